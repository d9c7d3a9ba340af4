"""Bounded in-memory byte pipe between an encoder thread and a COPY consumer."""

import threading

DEFAULT_PIPE_CAPACITY = 16384


class PipeClosedError(BrokenPipeError):
    """Raised on the write end after the reader has closed the pipe."""


class BoundedPipe:
    """
    Single-producer / single-consumer byte channel with backpressure.

    The writer blocks while ``capacity`` bytes are buffered; the reader blocks
    until bytes arrive or the write end is closed. Either side can terminate
    the channel:

    - ``close_write()``: normal end of stream, reader drains then sees EOF
    - ``abort(exc)``: producer failure, reader raises ``exc``
    - ``close()``: consumer gave up, blocked writer raises PipeClosedError
    """

    def __init__(self, capacity: int = DEFAULT_PIPE_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.peak = 0
        self.bytes_written = 0
        self._buffer = bytearray()
        self._cond = threading.Condition()
        self._write_closed = False
        self._read_closed = False
        self._error: BaseException | None = None

    def write(self, data: bytes) -> int:
        """Write all of ``data``, blocking while the buffer is full."""
        data = bytes(data)
        written = 0
        with self._cond:
            while written < len(data):
                if self._read_closed:
                    raise PipeClosedError("pipe closed by reader")
                if self._write_closed:
                    raise ValueError("write to closed pipe")
                free = self.capacity - len(self._buffer)
                if free == 0:
                    self._cond.wait()
                    continue
                chunk = data[written : written + free]
                self._buffer += chunk
                written += len(chunk)
                self.bytes_written += len(chunk)
                self.peak = max(self.peak, len(self._buffer))
                self._cond.notify_all()
        return written

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes; ``b""`` means end of stream."""
        with self._cond:
            while not self._buffer:
                if self._error is not None:
                    raise self._error
                if self._write_closed or self._read_closed:
                    return b""
                self._cond.wait()
            if size is None or size < 0:
                size = len(self._buffer)
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
            self._cond.notify_all()
            return data

    def close_write(self) -> None:
        with self._cond:
            self._write_closed = True
            self._cond.notify_all()

    def abort(self, exc: BaseException) -> None:
        """Fail the stream; pending and future reads raise ``exc``."""
        with self._cond:
            self._error = exc
            self._write_closed = True
            self._buffer.clear()
            self._cond.notify_all()

    def close(self) -> None:
        """Close the read end and wake a blocked writer."""
        with self._cond:
            self._read_closed = True
            self._buffer.clear()
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._read_closed or (self._write_closed and not self._buffer)
