"""
Laser Array Model and Scan Scheduler

The laser array model turns the vertical field of view into one fixed angle
per channel. The scan scheduler decides, for every simulation tick, how many
horizontal samples each channel takes and how far the rotating head advances.

Scheduling model for a tick of length dt:
    samples_per_channel = round_half_from_zero(points_per_second * dt / channels)
    tick_angular_span   = rotation_frequency * 360 * dt            [deg]
    sample_angular_step = tick_angular_span / samples_per_channel  [deg]
    horizontal(k)       = current + k * sample_angular_step        [deg]
    next                = (current + tick_angular_span) mod 360    [deg] -> [rad]
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .Config import RawLidarConfig
from .errors import ConfigError, InvalidChannelCount, ZeroSampleRate
from .math_utils import _round_half_from_zero


@dataclass(frozen=True)
class SensorDescription:
    """
    Validated, immutable sensor parameters.

    :param channels:           Number of vertical lasers (>= 1).
    :param upper_fov:          Vertical angle of channel 0 [deg].
    :param lower_fov:          Vertical angle of the last channel [deg].
    :param range:              Maximum ray length [m].
    :param points_per_second:  Horizontal samples per second over all channels.
    :param rotation_frequency: Head rotation frequency [Hz].
    :param max_workers:        Ray-casting thread pool size (None = executor default).
    """
    channels: int
    upper_fov: float
    lower_fov: float
    range: float
    points_per_second: float
    rotation_frequency: float
    max_workers: Optional[int] = None

    def __post_init__(self):
        if int(self.channels) < 1:
            raise InvalidChannelCount(self.channels)
        if not self.range > 0.0:
            raise ConfigError("range must be > 0.")
        if self.points_per_second < 0.0:
            raise ConfigError("points_per_second must be >= 0.")
        if self.rotation_frequency < 0.0:
            raise ConfigError("rotation_frequency must be >= 0.")
        if self.max_workers is not None and int(self.max_workers) < 1:
            raise ConfigError("max_workers must be >= 1 or None.")

    @classmethod
    def from_config(cls, config=RawLidarConfig):
        """
        Read a RawLidarConfig-compatible object (class or instance).

        Missing attributes fall back to the RawLidarConfig defaults.
        """
        def read(name):
            return getattr(config, name, getattr(RawLidarConfig, name))

        max_workers = read("max_workers")
        return cls(
            channels=int(read("channels")),
            upper_fov=float(read("upper_fov")),
            lower_fov=float(read("lower_fov")),
            range=float(read("range")),
            points_per_second=float(read("points_per_second")),
            rotation_frequency=float(read("rotation_frequency")),
            max_workers=None if max_workers is None else int(max_workers),
        )


@dataclass(frozen=True)
class TickPlan:
    """
    Ray parameters for one tick.

    :param samples_per_channel:   Horizontal samples each channel takes.
    :param start_angle:           Horizontal angle of sample 0 [deg].
    :param sample_angular_step:   Horizontal spacing between samples [deg].
    :param tick_angular_span:     Horizontal sweep of the whole tick [deg].
    :param next_horizontal_angle: Scan state after the tick [rad], in [0, 2*pi).
    """
    samples_per_channel: int       # [-] per channel, >= 1
    start_angle: float             # [deg] head angle at tick start
    sample_angular_step: float     # [deg]
    tick_angular_span: float       # [deg]
    next_horizontal_angle: float   # [rad]

    def horizontal_angle(self, sample):
        """Horizontal angle of sample ``sample`` [deg], the same for every channel."""
        return self.start_angle + self.sample_angular_step * sample

    def horizontal_angles(self):
        """
        :return: Horizontal angle of every sample [deg], as a float array.
        """
        return self.start_angle + self.sample_angular_step * np.arange(self.samples_per_channel, dtype=float)


def build_laser_angles(channels, fov_upper, fov_lower):
    """
    Vertical angle of every channel, from fov_upper down to fov_lower.

    :param channels:  Number of lasers (>= 1).
    :param fov_upper: Angle of channel 0 [deg].
    :param fov_lower: Angle of channel channels-1 [deg].
    :return: Tuple of floats, index i is channel i.
    :raises InvalidChannelCount: If channels < 1.
    """
    channels = int(channels)
    if channels < 1:
        raise InvalidChannelCount(channels)
    fov_upper = float(fov_upper)
    if channels == 1:
        return (fov_upper,)
    delta = (fov_upper - float(fov_lower)) / (channels - 1)
    return tuple(fov_upper - i * delta for i in range(channels))


def plan_tick(description, horizontal_angle, delta_time):
    """
    Schedule one tick of the rotating scan.

    :param description:      SensorDescription.
    :param horizontal_angle: Current scan state [rad].
    :param delta_time:       Tick duration [s].
    :return: TickPlan.
    :raises ZeroSampleRate: If no sample per channel is requested this tick.
    """
    delta_time = float(delta_time)
    samples = _round_half_from_zero(description.points_per_second * delta_time / description.channels)
    if samples <= 0:
        raise ZeroSampleRate(description.points_per_second, delta_time, description.channels)

    current = float(np.rad2deg(horizontal_angle))
    span = description.rotation_frequency * 360.0 * delta_time
    next_angle = float(np.deg2rad(np.fmod(current + span, 360.0)))
    if next_angle < 0.0:
        next_angle += 2.0 * np.pi
    return TickPlan(
        samples_per_channel=samples,
        start_angle=current,
        sample_angular_step=span / samples,
        tick_angular_span=span,
        next_horizontal_angle=next_angle,
    )
