"""
Rotating Ray-Cast Raw LiDAR

This module drives the scan-and-detection pipeline of a rotating,
multi-channel LiDAR. Every simulation tick it:

1. plans the tick (samples per channel, horizontal sweep) from the persistent
   head angle,
2. casts one ray per (channel, sample) pair on a thread pool while the world
   is read-locked, recording blocking hits per channel under that channel's
   lock,
3. resolves the hits into sensor-local detections with object id and
   semantic tag,
4. advances the head angle and hands the finished RawScanFrame to the stream.

The primary entry point is:
    RayCastRawLidar.on_tick(delta_time)
"""

from concurrent.futures import ThreadPoolExecutor, wait
import logging
import threading

from .Config import RawLidarConfig
from .errors import QueryError, ZeroSampleRate
from .physics import LIDAR_TRACE_CHANNEL
from .raw_data import finalize
from .scan import SensorDescription, build_laser_angles, plan_tick
from .transform import SensorTransform

logger = logging.getLogger(__name__)


class HitBuffer:
    """
    Per-tick accumulation of raw hits, one slot and one lock per channel.

    Workers append (sample, hit) pairs in completion order; ``seal()`` puts
    every slot back into sample order once all workers have joined.
    """

    def __init__(self, channels=0, max_points_per_channel=0):
        self.reset(channels, max_points_per_channel)

    def reset(self, channels, max_points_per_channel):
        """Drop all hits and prepare ``channels`` empty slots."""
        self.max_points_per_channel = int(max_points_per_channel)
        self._slots = [[] for _ in range(int(channels))]
        self._locks = [threading.Lock() for _ in range(int(channels))]

    def record(self, channel, sample, hit):
        """
        Store a blocking hit for one (channel, sample) ray. Safe to call from
        several workers at once; only the target channel's slot is locked.

        :param channel: Channel index of the ray.
        :param sample:  Sample index of the ray within the tick.
        :param hit:     Hit returned by the world query.
        :raises IndexError: If ``sample`` lies outside the tick's sample budget.
        """
        if not 0 <= sample < self.max_points_per_channel:
            raise IndexError(f"sample {sample} outside [0, {self.max_points_per_channel}).")
        with self._locks[channel]:
            self._slots[channel].append((sample, hit))

    def seal(self):
        """Sort every channel slot by sample index. Call once all workers have joined."""
        for slot in self._slots:
            slot.sort(key=lambda entry: entry[0])

    def samples(self, channel):
        """Sample indices that produced a hit on ``channel``."""
        return [sample for sample, _ in self._slots[channel]]

    def __len__(self):
        return len(self._slots)

    def __getitem__(self, channel):
        return [hit for _, hit in self._slots[channel]]

    @property
    def total(self):
        """
        :return: Number of hits recorded over all channels.
        """
        return sum(len(slot) for slot in self._slots)


class RayCastRawLidar:
    """
    Rotating ray-cast LiDAR producing raw, per-channel point clouds.

    :param world:     World capability: ``line_query(origin, end, ignore_actor, channel_mask)``,
                      ``lock_read()`` and ``unlock_read()``.
    :param registry:  Actor registry capability: ``lookup(actor) -> ActorInfo | None``.
    :param config:    Class or instance with RawLidarConfig-compatible attributes.
    :param transform: SensorTransform of the sensor in the world. Defaults to identity.
    :param stream:    Optional stream with ``pop_buffer_from_pool()`` and ``send(frame, buffer)``.
    :param actor:     Actor reference of the sensor itself, ignored by every ray.
                      Defaults to the sensor object.
    :param name:      Label used in log messages.
    """

    def __init__(self, world, registry=None, config=RawLidarConfig, transform=None, stream=None, actor=None,
                 name="RayCastRawLidar"):
        # External capabilities
        self.world = world
        self.registry = registry
        self.transform = transform if transform is not None else SensorTransform()  # sensor -> world pose
        self.stream = stream
        self.actor = self if actor is None else actor  # excluded from every ray
        self.name = str(name)

        # Tick state
        self._tick_lock = threading.Lock()  # one tick or reconfigure at a time
        self._executor = None               # created lazily on the first tick
        self._hits = HitBuffer()
        self._description = None
        self._laser_angles = ()             # [deg] per channel, upper to lower
        self._horizontal_angle = 0.0        # [rad] head angle, in [0, 2pi)
        self.reconfigure(config)

    # ---------- configuration ----------

    def reconfigure(self, config):
        """
        Apply a new sensor configuration.

        The configuration is validated before any state changes, so a rejected
        configuration leaves the sensor as it was. On success the laser angles
        are rebuilt and the scan restarts at horizontal angle 0.

        :raises ConfigError: If the configuration is invalid.
        """
        description = SensorDescription.from_config(config)
        laser_angles = build_laser_angles(description.channels, description.upper_fov, description.lower_fov)

        with self._tick_lock:
            if self._description is not None and description.max_workers != self._description.max_workers:
                self._shutdown_executor()
            self._description = description
            self._laser_angles = laser_angles
            self._horizontal_angle = 0.0
            self._hits.reset(description.channels, 0)

        logger.info(
            "%s configured: %d channels, fov [%.2f, %.2f] deg, range %.2f m, %.0f pts/s, %.2f Hz.",
            self.name,
            description.channels,
            description.upper_fov,
            description.lower_fov,
            description.range,
            description.points_per_second,
            description.rotation_frequency,
        )

    @property
    def description(self):
        return self._description

    @property
    def laser_angles(self):
        return self._laser_angles

    @property
    def channel_count(self):
        return self._description.channels

    @property
    def horizontal_angle(self):
        """Current head angle [rad]."""
        return self._horizontal_angle

    # ---------- thread pool ----------

    def _get_executor(self):
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._description.max_workers,
                thread_name_prefix="rawlidar",
            )
        return self._executor

    def _shutdown_executor(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def close(self):
        """
        Shut the worker pool down, waiting for running rays. The sensor can
        still tick afterwards; a new pool is created on demand.
        """
        with self._tick_lock:
            self._shutdown_executor()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ---------- tick ----------

    def on_tick(self, delta_time):
        """
        Run one simulation step of the sensor.

        :param delta_time: Tick duration [s].
        :return: The RawScanFrame produced by this tick, or None when the tick
                 requests no samples (the head angle is then left unchanged).
        """
        with self._tick_lock:
            # 1) Plan the sweep; a tick without samples is skipped
            try:
                plan = plan_tick(self._description, self._horizontal_angle, delta_time)
            except ZeroSampleRate as warning:
                logger.warning("%s: %s", self.name, warning)
                return None

            # 2) Cast every ray against the pose at tick start
            transform = self.transform
            hits = self.cast_rays(plan, transform)

            # 3) Resolve hits, stamped with the angle the head ends on
            frame = finalize(hits, transform, self.registry, plan.next_horizontal_angle)
            self._horizontal_angle = plan.next_horizontal_angle

            # 4) Publish
            if self.stream is not None:
                self.stream.send(frame, self.stream.pop_buffer_from_pool())
            return frame

    def preprocess_ray(self, vertical_angle, horizontal_angle):
        """
        Decide whether a ray is cast at all. Subclasses override this to mask
        out parts of the scan pattern; the default casts every ray.

        :param vertical_angle:   [deg]
        :param horizontal_angle: [deg]
        """
        return True

    def cast_rays(self, plan, transform):
        """
        Cast every (channel, sample) ray of a tick and collect the hits.

        The world stays read-locked from the first query until every worker
        has finished, and is unlocked even if a worker fails.

        :param plan:      TickPlan of the tick.
        :param transform: SensorTransform used for every ray of the tick.
        :return: HitBuffer, sealed (sample order within each channel).
        """
        channels = self._description.channels
        samples = plan.samples_per_channel
        self._hits.reset(channels, samples)
        horizontals = plan.horizontal_angles()  # [deg] shared by all channels

        self.world.lock_read()
        try:
            # Flat fan-out, one task per (channel, sample)
            executor = self._get_executor()
            futures = [
                executor.submit(
                    self._shoot_laser,
                    channel,
                    sample,
                    self._laser_angles[channel],
                    float(horizontals[sample]),
                    transform,
                )
                for channel in range(channels)
                for sample in range(samples)
            ]
            # Join every worker before re-raising, so none outlives the read lock
            wait(futures)
            for future in futures:
                future.result()
        finally:
            self.world.unlock_read()

        # Completion order -> sample order
        self._hits.seal()
        return self._hits

    def _shoot_laser(self, channel, sample, vertical_angle, horizontal_angle, transform):
        """Cast one ray; record it on a blocking hit. Returns True when a hit was recorded."""
        if not self.preprocess_ray(vertical_angle, horizontal_angle):
            return False

        origin = transform.location
        end = origin + self._description.range * transform.beam_direction(vertical_angle, horizontal_angle)
        try:
            hit = self.world.line_query(origin, end, ignore_actor=self.actor, channel_mask=LIDAR_TRACE_CHANNEL)
        except Exception as exc:
            logger.warning("%s: %s", self.name, QueryError(channel, sample, exc))
            return False

        if hit is None:
            return False
        self._hits.record(channel, sample, hit)
        return True
