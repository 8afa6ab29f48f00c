"""
Exception hierarchy for the raw LiDAR pipeline.

Configuration problems are fatal and propagate to whoever activates the
sensor. Scheduling and query problems are local to a single tick (or a single
ray) and are absorbed by the sensor after being logged.
"""


class LidarError(Exception):
    """Base class for every error raised by rawlidar."""


class ConfigError(LidarError, ValueError):
    """The sensor description is not usable; the sensor must not be activated."""


class InvalidChannelCount(ConfigError):
    """The laser array was configured with fewer than one channel."""

    def __init__(self, channels):
        self.channels = channels
        super().__init__(f"channels must be >= 1, got {channels}.")


class ScheduleWarning(LidarError):
    """Recoverable scheduling condition: the current tick produces no scan."""


class ZeroSampleRate(ScheduleWarning):
    """
    The requested point rate rounds to zero samples per channel for this tick.

    :param points_per_second: Configured horizontal point rate.
    :param delta_time:        Tick duration [s].
    :param channels:          Number of channels sharing the point budget.
    """

    def __init__(self, points_per_second, delta_time, channels):
        self.points_per_second = points_per_second
        self.delta_time = delta_time
        self.channels = channels
        super().__init__(
            f"no points requested this tick ({points_per_second} pts/s * {delta_time} s / "
            f"{channels} channels rounds to 0), try increasing the number of points per second."
        )


class QueryError(LidarError):
    """A single world ray query failed; that ray counts as a miss."""

    def __init__(self, channel, sample, cause):
        self.channel = channel
        self.sample = sample
        self.cause = cause
        super().__init__(f"ray query failed for channel {channel}, sample {sample}: {cause!r}")
