"""
rawlidar: rotating multi-channel ray-cast LiDAR producing raw point clouds.
"""

from .Config import RawLidarConfig
from .detection import RawDetection, compute_raw_detection, resolve_object
from .errors import ConfigError, InvalidChannelCount, LidarError, QueryError, ScheduleWarning, ZeroSampleRate
from .lidar import HitBuffer, RayCastRawLidar
from .physics import LIDAR_TRACE_CHANNEL, AxisAlignedBox, Hit, Plane, Scene, SceneLock, Sphere
from .raw_data import POINT_DTYPE, RawScanFrame, finalize
from .registry import ActorInfo, ActorRegistry, SemanticTag
from .scan import SensorDescription, TickPlan, build_laser_angles, plan_tick
from .streaming import BufferPool, DataStream
from .transform import SensorTransform

__all__ = [
    "ActorInfo",
    "ActorRegistry",
    "AxisAlignedBox",
    "BufferPool",
    "ConfigError",
    "DataStream",
    "Hit",
    "HitBuffer",
    "InvalidChannelCount",
    "LIDAR_TRACE_CHANNEL",
    "LidarError",
    "POINT_DTYPE",
    "Plane",
    "QueryError",
    "RawDetection",
    "RawLidarConfig",
    "RawScanFrame",
    "RayCastRawLidar",
    "Scene",
    "SceneLock",
    "ScheduleWarning",
    "SemanticTag",
    "SensorDescription",
    "SensorTransform",
    "Sphere",
    "TickPlan",
    "ZeroSampleRate",
    "build_laser_angles",
    "compute_raw_detection",
    "finalize",
    "plan_tick",
    "resolve_object",
]
