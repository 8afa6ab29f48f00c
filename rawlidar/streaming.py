"""
Streaming reference implementation.

The sensor talks to its stream through two calls:
    pop_buffer_from_pool() -> bytearray   an empty reusable transfer buffer
    send(frame, buffer)                   hand the frame and the buffer over

After send() the sensor keeps no reference to either object.
"""

from collections import deque
import logging
import threading

logger = logging.getLogger(__name__)


class BufferPool:
    """Pool of reusable bytearrays. Popping from an empty pool allocates a new buffer."""

    def __init__(self):
        self._buffers = deque()
        self._lock = threading.Lock()

    def pop(self):
        """
        :return: An empty bytearray, reused from the pool when one is available.
        """
        with self._lock:
            buffer = self._buffers.popleft() if self._buffers else bytearray()
        buffer.clear()
        return buffer

    def push(self, buffer):
        """
        Return a buffer to the pool once its receiver is done with it.

        :param buffer: bytearray previously handed out by pop().
        """
        with self._lock:
            self._buffers.append(buffer)

    def __len__(self):
        with self._lock:
            return len(self._buffers)


class DataStream:
    """
    Serializes frames into pooled buffers and forwards them to a sink.

    :param sink: Callable ``sink(frame, buffer)`` receiving ownership of the
                 encoded buffer. When None the stream keeps the last frames
                 in ``self.sent`` (bounded by ``history``).
    :param pool: BufferPool to pop transfer buffers from.
    :param history: Number of (frame, buffer) pairs retained without a sink.
    """

    def __init__(self, sink=None, pool=None, history=16):
        self.sink = sink
        self.pool = pool if pool is not None else BufferPool()
        self.sent = deque(maxlen=history)
        self.frames_sent = 0

    def pop_buffer_from_pool(self):
        return self.pool.pop()

    def send(self, frame, buffer):
        """
        Encode ``frame`` into ``buffer`` and hand both to the sink.

        :param frame:  RawScanFrame of one tick.
        :param buffer: bytearray from pop_buffer_from_pool(); ownership moves to the sink.
        """
        size = frame.serialize_into(buffer)
        self.frames_sent += 1
        logger.debug("Streaming raw lidar frame: %d points, %d bytes.", frame.point_count, size)
        if self.sink is None:
            self.sent.append((frame, buffer))
        else:
            self.sink(frame, buffer)
