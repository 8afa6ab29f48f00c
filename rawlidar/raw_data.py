"""
Raw Point Buffer and Serializer

A RawScanFrame is the complete output of one tick: the horizontal angle of
the head after the tick, the number of points recorded by every channel, and
the flattened detections in channel-then-sample order.

Wire layout (little endian), written into the transfer buffer handed to the
stream:

    horizontal_angle        float32 [rad]
    channel_count           uint32
    points_per_channel      uint32 x channel_count
    detections              POINT_DTYPE x sum(points_per_channel)
"""

from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np

from .detection import RawDetection, compute_raw_detection
from .registry import SemanticTag

POINT_DTYPE = np.dtype(
    [
        ("x", "<f4"),
        ("y", "<f4"),
        ("z", "<f4"),
        ("cos_inc_angle", "<f4"),
        ("object_idx", "<u4"),
        ("object_tag", "<u4"),
    ]
)

_ANGLE_DTYPE = np.dtype("<f4")   # [rad]
_COUNT_DTYPE = np.dtype("<u4")
_HEADER_FIXED_SIZE = _ANGLE_DTYPE.itemsize + _COUNT_DTYPE.itemsize  # [bytes] angle + channel count
_TWO_PI = 2.0 * np.pi


@dataclass
class RawScanFrame:
    """
    Output of one scan tick.

    :param horizontal_angle:   Head angle after the tick [rad].
    :param points_per_channel: Recorded point count of each channel.
    :param detections:         All detections, channel 0 first, sample order inside a channel.
    """
    horizontal_angle: float
    points_per_channel: Tuple[int, ...]
    detections: List[RawDetection] = field(default_factory=list)

    def __post_init__(self):
        self.points_per_channel = tuple(int(count) for count in self.points_per_channel)
        if sum(self.points_per_channel) != len(self.detections):
            raise ValueError("points_per_channel must sum to the number of detections.")

    @property
    def channel_count(self):
        """
        :return: Number of channels in the frame, including channels without points.
        """
        return len(self.points_per_channel)

    @property
    def point_count(self):
        """
        :return: Total number of detections over all channels.
        """
        return len(self.detections)

    def get_point_count(self, channel):
        """
        :param channel: Channel index.
        :return: Number of detections recorded by ``channel``.
        """
        return self.points_per_channel[channel]

    def channel_detections(self, channel):
        """Detections recorded by one channel."""
        start = sum(self.points_per_channel[:channel])
        return self.detections[start:start + self.points_per_channel[channel]]

    def __iter__(self):
        return iter(self.detections)

    def __len__(self):
        return len(self.detections)

    def to_array(self):
        """Detections as a numpy structured array of POINT_DTYPE."""
        points = np.zeros(len(self.detections), dtype=POINT_DTYPE)
        for i, detection in enumerate(self.detections):
            x, y, z = detection.point
            points[i] = (x, y, z, detection.cos_inc_angle, detection.object_idx, int(detection.object_tag))
        return points

    def serialize(self):
        """Encode the frame into bytes using the wire layout above."""
        header = np.asarray([self.horizontal_angle], dtype=_ANGLE_DTYPE).tobytes()
        counts = np.asarray((self.channel_count,) + self.points_per_channel, dtype=_COUNT_DTYPE).tobytes()
        return header + counts + self.to_array().tobytes()

    def serialize_into(self, buffer):
        """
        Overwrite ``buffer`` (a bytearray) with the encoded frame.

        :return: Number of bytes written.
        """
        data = self.serialize()
        buffer[:] = data
        return len(data)

    @classmethod
    def deserialize(cls, data):
        """
        Decode a frame written by serialize().

        Values come back at wire precision (float32 coordinates). The
        horizontal angle is wrapped back into [0, 2*pi) after widening, since
        float32 rounds angles just below 2*pi up to or past it.

        :param data: bytes-like object holding one encoded frame.
        :return: RawScanFrame.
        :raises ValueError: If the data is truncated or inconsistent.
        """
        data = bytes(data)
        if len(data) < _HEADER_FIXED_SIZE:
            raise ValueError("raw lidar buffer is shorter than its header.")

        # Fixed header: angle and channel count
        horizontal_angle = float(np.frombuffer(data, dtype=_ANGLE_DTYPE, count=1, offset=0)[0])
        if horizontal_angle >= _TWO_PI:
            horizontal_angle -= _TWO_PI
        channel_count = int(np.frombuffer(data, dtype=_COUNT_DTYPE, count=1, offset=_ANGLE_DTYPE.itemsize)[0])
        points_offset = _HEADER_FIXED_SIZE + channel_count * _COUNT_DTYPE.itemsize
        if len(data) < points_offset:
            raise ValueError("raw lidar buffer is missing per-channel point counts.")

        # Per-channel counts fix the exact size of the point block
        counts = np.frombuffer(data, dtype=_COUNT_DTYPE, count=channel_count, offset=_HEADER_FIXED_SIZE)
        total = int(counts.sum())
        if len(data) != points_offset + total * POINT_DTYPE.itemsize:
            raise ValueError("raw lidar buffer size does not match its point counts.")

        points = np.frombuffer(data, dtype=POINT_DTYPE, count=total, offset=points_offset)
        detections = [
            RawDetection(
                point=np.array([p["x"], p["y"], p["z"]], dtype=float),
                cos_inc_angle=float(p["cos_inc_angle"]),
                object_idx=int(p["object_idx"]),
                object_tag=SemanticTag(int(p["object_tag"])),
            )
            for p in points
        ]
        return cls(horizontal_angle=horizontal_angle, points_per_channel=tuple(counts.tolist()), detections=detections)


def finalize(hit_buffer, sensor_transform, registry, horizontal_angle):
    """
    Resolve every recorded hit and package the tick's RawScanFrame.

    Channels are visited in index order; each channel's count is recorded
    before its detections are appended, so a channel without hits
    contributes a zero count and nothing else.

    :param hit_buffer:       Sequence indexed by channel of per-channel hit sequences.
    :param sensor_transform: SensorTransform used for the tick.
    :param registry:         Actor registry capability.
    :param horizontal_angle: Scan state after the tick [rad].
    :return: RawScanFrame.
    """
    points_per_channel = []
    detections = []
    for channel in range(len(hit_buffer)):
        # Count first, so empty channels still get a 0 entry
        channel_hits = hit_buffer[channel]
        points_per_channel.append(len(channel_hits))

        # Hits are already in sample order
        for hit in channel_hits:
            detections.append(compute_raw_detection(hit, sensor_transform, registry))

    # Stamp the frame with the head angle after the tick
    return RawScanFrame(
        horizontal_angle=float(horizontal_angle),
        points_per_channel=tuple(points_per_channel),
        detections=detections,
    )
