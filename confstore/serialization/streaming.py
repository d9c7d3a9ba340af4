"""Encode values on a worker thread into a bounded pipe."""

import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from confstore.errors import SerializationError
from confstore.logger.logger import get_logger
from confstore.logger.types import Category, duration_ms, param
from confstore.serialization.codec import JsonCodec
from confstore.serialization.pipe import DEFAULT_PIPE_CAPACITY, BoundedPipe, PipeClosedError


class EncodingJob:
    """A running encode: the pipe's read end plus the encoder's outcome."""

    def __init__(self, pipe: BoundedPipe, future: "Future[int]") -> None:
        self.pipe = pipe
        self.future = future

    def wait(self) -> int:
        """
        Block until the encoder finished.

        Returns:
            Number of bytes written into the pipe

        Raises:
            SerializationError: the value could not be encoded
            PipeClosedError: the consumer closed the pipe first
        """
        return self.future.result()

    def cancel(self) -> BaseException | None:
        """Close the read end, wait for the encoder and return its error."""
        self.pipe.close()
        return self.future.exception()


class StreamingSerializer:
    """Runs JSON encoding on a shared thread pool, one pipe per value."""

    def __init__(
        self,
        pipe_capacity: int = DEFAULT_PIPE_CAPACITY,
        max_workers: int = 8,
    ) -> None:
        """
        Initialize StreamingSerializer.

        Args:
            pipe_capacity: Bytes buffered between encoder and consumer
            max_workers: Encoder threads
        """
        self.pipe_capacity = pipe_capacity
        self.write_size = max(1, pipe_capacity // 4)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="confstore-encoder",
        )
        self.logger = get_logger().with_category(Category.SERIALIZATION)

    def start(self, value: Any, codec: JsonCodec) -> EncodingJob:
        """Submit ``value`` for encoding and return the job."""
        pipe = BoundedPipe(self.pipe_capacity)
        future = self._executor.submit(self._encode, pipe, value, codec)
        return EncodingJob(pipe, future)

    def _encode(self, pipe: BoundedPipe, value: Any, codec: JsonCodec) -> int:
        started = time.monotonic()
        try:
            # iterencode yields tiny tokens; coalesce before taking the pipe lock
            pending = bytearray()
            for chunk in codec.iterencode(value):
                pending += chunk
                if len(pending) >= self.write_size:
                    pipe.write(pending)
                    pending.clear()
            if pending:
                pipe.write(pending)
        except SerializationError as e:
            pipe.abort(e)
            self.logger.warn(
                "Value encoding failed",
                param("value_type", type(value).__name__),
                param("error", str(e)),
            )
            raise
        except PipeClosedError:
            self.logger.debug(
                "Pipe closed by consumer, encoding stopped",
                param("bytes_written", pipe.bytes_written),
            )
            raise
        except BaseException as e:
            pipe.abort(e)
            raise
        pipe.close_write()
        self.logger.trace(
            "Value encoded",
            param("bytes_written", pipe.bytes_written),
            param("pipe_peak", pipe.peak),
            duration_ms(int((time.monotonic() - started) * 1000)),
        )
        return pipe.bytes_written

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
