"""
Pipe Channel - Bounded byte channel between two execution units

ARCHITECTURE:
    producer unit                                  consumer unit
    stdout (TextIOWrapper, line buffered)          stdin_reader (TextIOWrapper)
        ↓                                              ↑
    BufferedWriter                                 BufferedReader
        ↓                                              ↑
    ChannelWriter (raw) ──→ PipeChannel buffer ──→ ChannelReader (raw)
                           (capacity BUFFER_SIZE)

RESPONSIBILITIES:
- Hold at most `capacity` bytes in flight
- Block the writer while the buffer is full (backpressure)
- Block the reader while the buffer is empty and the writer is still open
- Signal end-of-stream (b'') once the writer closed and the buffer drained
- Fail the writer with BrokenPipeError once the reader closed

NOT RESPONSIBLE FOR:
- Timeouts or cancellation (a writer that never closes stalls the reader)
- More than one producer or consumer

Synchronization is a single threading.Condition guarding the buffer.
"""
import io
import logging
import threading
from typing import Optional

from .constants import BUFFER_SIZE


class PipeChannel:
    """
    Single-producer/single-consumer bounded byte buffer.

    Example:
        >>> channel = PipeChannel()
        >>> channel.write(b'hello\\n')
        6
        >>> channel.close_writer()
        >>> channel.read()
        b'hello\\n'
        >>> channel.read()
        b''
    """

    def __init__(self, capacity: int = BUFFER_SIZE, logger=None):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.logger = logger or logging.getLogger('PipeChannel')
        self._buffer = bytearray()
        self._cond = threading.Condition()
        self._writer_closed = False
        self._reader_closed = False

    # ========================================================================
    # WRITE SIDE
    # ========================================================================

    def write(self, data: bytes) -> int:
        """
        Write all of data, blocking while the buffer is full

        Returns:
            Number of bytes written (always len(data))

        Raises:
            ValueError: if the write side is closed
            BrokenPipeError: if the read side is closed
        """
        view = memoryview(data)
        written = 0
        with self._cond:
            while written < len(view):
                if self._writer_closed:
                    raise ValueError("write to closed channel")
                while len(self._buffer) >= self.capacity and not self._reader_closed:
                    self._cond.wait()
                if self._reader_closed:
                    raise BrokenPipeError("channel reader is closed")
                room = self.capacity - len(self._buffer)
                chunk = view[written:written + room]
                self._buffer += chunk
                written += len(chunk)
                self._cond.notify_all()
        return written

    def close_writer(self) -> None:
        """Signal end-of-stream to the reader"""
        with self._cond:
            if not self._writer_closed:
                self._writer_closed = True
                self.logger.debug("Channel writer closed")
                self._cond.notify_all()

    # ========================================================================
    # READ SIDE
    # ========================================================================

    def read(self, size: int = -1) -> bytes:
        """
        Read up to size bytes (all buffered bytes if size < 0)

        Blocks until at least one byte is available or the writer closed.

        Returns:
            Data, or b'' at end-of-stream
        """
        with self._cond:
            while not self._buffer and not self._writer_closed and not self._reader_closed:
                self._cond.wait()
            if not self._buffer:
                return b''
            if size is None or size < 0 or size > len(self._buffer):
                size = len(self._buffer)
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
            self._cond.notify_all()
            return data

    def close_reader(self) -> None:
        """Stop consuming. A blocked or later writer gets BrokenPipeError."""
        with self._cond:
            if not self._reader_closed:
                self._reader_closed = True
                self._buffer.clear()
                self.logger.debug("Channel reader closed")
                self._cond.notify_all()

    # ========================================================================
    # STATE
    # ========================================================================

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._writer_closed and not self._buffer

    def __len__(self) -> int:
        with self._cond:
            return len(self._buffer)

    def writer(self) -> 'ChannelWriter':
        return ChannelWriter(self)

    def reader(self) -> 'ChannelReader':
        return ChannelReader(self)


class ChannelWriter(io.RawIOBase):
    """Raw binary stream writing into a PipeChannel"""

    def __init__(self, channel: PipeChannel):
        super().__init__()
        self.channel = channel

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        if self.closed:
            raise ValueError("write to closed stream")
        return self.channel.write(bytes(b))

    def close(self) -> None:
        if not self.closed:
            self.channel.close_writer()
        super().close()


class ChannelReader(io.RawIOBase):
    """Raw binary stream reading from a PipeChannel"""

    def __init__(self, channel: PipeChannel):
        super().__init__()
        self.channel = channel

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> Optional[int]:
        data = self.channel.read(len(b))
        n = len(data)
        b[:n] = data
        return n

    def close(self) -> None:
        if not self.closed:
            self.channel.close_reader()
        super().close()
