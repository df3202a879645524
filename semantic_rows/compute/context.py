"""
Compute context for the parallel-dispatch backend.

A ComputeContext owns the long-lived "device": a worker pool running numpy
kernels, which release the GIL for the heavy arithmetic. It is probed lazily,
at most once, and then stays available or unavailable for its lifetime.

Work is dispatched as a grid of independent parallel units. A kernel is
called as kernel(start, stop, *args) for one workgroup of units
[start, stop) and must only write the output slots of its own units.

Device buffers are acquired through ComputeContext.buffer(), a context
manager that releases the buffer on every exit path. Live buffer bytes are
accounted against a budget, and exceeding it fails the dispatch the way a
device out-of-memory error would.
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterator, Optional, Tuple, Union

import numpy as np

from semantic_rows.config import get_backend_mode, get_max_buffer_bytes, get_worker_count
from semantic_rows.constants import (
    DEFAULT_MAX_BUFFER_MB,
    DEVICE_DTYPE,
    PROBE_VECTOR_DIM,
    WORKGROUP_SIZE,
)
from semantic_rows.errors import BackendUnavailable, DispatchFailure

logger = logging.getLogger(__name__)

Shape = Union[int, Tuple[int, ...]]


class BackendState(Enum):
    """Availability of the parallel backend."""

    UNINITIALIZED = "uninitialized"
    PARALLEL_AVAILABLE = "parallel_available"
    PARALLEL_UNAVAILABLE = "parallel_unavailable"


class DeviceBuffer:
    """A fixed-size array owned by a ComputeContext for the span of one scope."""

    def __init__(self, shape: Shape, dtype=DEVICE_DTYPE):
        self.array = np.zeros(shape, dtype=dtype)
        self.released = False

    @property
    def nbytes(self) -> int:
        return self.array.nbytes

    def write(self, data) -> None:
        """Overwrite the buffer contents in place (shape must match)."""
        if self.released:
            raise DispatchFailure("Write to a released device buffer")
        data = np.asarray(data)
        if data.shape != self.array.shape:
            raise ValueError(f"Buffer shape {self.array.shape} cannot hold data of shape {data.shape}")
        np.copyto(self.array, data, casting="unsafe")

    def read(self) -> np.ndarray:
        """Copy the buffer contents back to the host."""
        if self.released:
            raise DispatchFailure("Read from a released device buffer")
        return self.array.copy()

    def _release(self) -> None:
        self.released = True
        self.array = np.zeros(0, dtype=self.array.dtype)


class ComputeContext:
    """
    Lazily probed parallel compute device.

    Engines receive a context (usually through a BackendSelector) instead of
    reading process-wide state.
    """

    def __init__(
        self,
        workers: Optional[int] = None,
        max_buffer_bytes: Optional[int] = None,
        mode: str = "auto",
        workgroup_size: int = WORKGROUP_SIZE,
    ):
        """
        Initialize an unprobed context.

        Args:
            workers: Worker pool size (default: CPU count)
            max_buffer_bytes: Live device buffer budget
            mode: "auto" to probe the parallel backend, "cpu" to disable it
            workgroup_size: Parallel units per submitted task
        """
        if workgroup_size < 1:
            raise ValueError(f"workgroup_size must be >= 1, got {workgroup_size}")

        self.workers = workers if workers is not None else get_worker_count()
        self.max_buffer_bytes = (
            max_buffer_bytes
            if max_buffer_bytes is not None
            else DEFAULT_MAX_BUFFER_MB * 1024 * 1024
        )
        self.mode = mode
        self.workgroup_size = workgroup_size

        self._state = BackendState.UNINITIALIZED
        self._probe_lock = threading.Lock()
        self._buffer_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._live_bytes = 0

    @classmethod
    def from_config(cls) -> "ComputeContext":
        """Create a context from SEMANTIC_ROWS_* environment settings."""
        return cls(
            workers=get_worker_count(),
            max_buffer_bytes=get_max_buffer_bytes(),
            mode=get_backend_mode(),
        )

    @property
    def state(self) -> BackendState:
        return self._state

    @property
    def is_available(self) -> bool:
        return self._state is BackendState.PARALLEL_AVAILABLE

    @property
    def live_bytes(self) -> int:
        """Bytes currently held by unreleased device buffers."""
        return self._live_bytes

    def probe(self) -> bool:
        """
        Probe the parallel backend once; later calls return the cached result.

        Returns:
            True if the parallel backend is available
        """
        if self._state is not BackendState.UNINITIALIZED:
            return self.is_available

        with self._probe_lock:
            # Another thread may have finished probing while we waited
            if self._state is not BackendState.UNINITIALIZED:
                return self.is_available

            try:
                self._executor = self._create_device()
                self._self_test()
            except BackendUnavailable as e:
                logger.info(
                    f"Parallel backend unavailable, using CPU: {e}",
                    extra={"backend": "cpu"},
                )
                self._shutdown_executor()
                self._state = BackendState.PARALLEL_UNAVAILABLE
            else:
                logger.info(
                    f"Parallel backend enabled with {self.workers} workers",
                    extra={"backend": "parallel"},
                )
                self._state = BackendState.PARALLEL_AVAILABLE

        return self.is_available

    def _create_device(self) -> ThreadPoolExecutor:
        if self.mode == "cpu":
            raise BackendUnavailable("parallel backend disabled by configuration")
        if self.workers < 2:
            raise BackendUnavailable(f"only {self.workers} worker available")
        try:
            return ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="semantic_rows_compute"
            )
        except (RuntimeError, ValueError) as e:
            raise BackendUnavailable(f"could not create worker pool: {e}") from e

    def _self_test(self) -> None:
        identity = np.eye(PROBE_VECTOR_DIM, dtype=DEVICE_DTYPE)
        try:
            result = self._executor.submit(np.dot, identity, identity).result()
        except Exception as e:
            raise BackendUnavailable(f"self-test dispatch failed: {e}") from e
        if not np.allclose(result, identity):
            raise BackendUnavailable("self-test dispatch returned a wrong result")

    @contextmanager
    def buffer(self, shape: Shape, dtype=DEVICE_DTYPE, data=None) -> Iterator[DeviceBuffer]:
        """
        Acquire a device buffer for the duration of a with-block.

        Args:
            shape: Buffer shape
            dtype: Element type
            data: Optional initial contents

        Yields:
            DeviceBuffer, released when the block exits

        Raises:
            DispatchFailure: If the buffer would exceed the device budget
        """
        nbytes = int(np.prod(shape, dtype=np.int64)) * np.dtype(dtype).itemsize
        with self._buffer_lock:
            if self._live_bytes + nbytes > self.max_buffer_bytes:
                raise DispatchFailure(
                    f"Device out of memory: {nbytes} bytes requested, "
                    f"{self.max_buffer_bytes - self._live_bytes} available"
                )
            self._live_bytes += nbytes

        device_buffer = None
        try:
            try:
                device_buffer = DeviceBuffer(shape, dtype)
            except MemoryError as e:
                raise DispatchFailure(f"Device out of memory allocating {nbytes} bytes") from e
            if data is not None:
                device_buffer.write(data)
            yield device_buffer
        finally:
            if device_buffer is not None:
                device_buffer._release()
            with self._buffer_lock:
                self._live_bytes -= nbytes

    async def dispatch(self, kernel: Callable[..., Any], total_units: int, *args: Any) -> None:
        """
        Run kernel over parallel units [0, total_units) and wait for all of them.

        Units are grouped into workgroups of workgroup_size. Every workgroup
        runs to completion before this returns or raises.

        Raises:
            BackendUnavailable: If the context is not available
            DispatchFailure: If any workgroup fails
        """
        if not self.is_available:
            raise BackendUnavailable("parallel backend is not available")
        if total_units <= 0:
            return

        loop = asyncio.get_running_loop()
        futures = []
        try:
            for start in range(0, total_units, self.workgroup_size):
                stop = min(start + self.workgroup_size, total_units)
                futures.append(loop.run_in_executor(self._executor, kernel, start, stop, *args))
        except RuntimeError as e:
            # Pool shut down under us; wait for what was submitted before failing
            await asyncio.gather(*futures, return_exceptions=True)
            raise DispatchFailure(f"Could not submit {kernel.__name__}: {e}") from e

        results = await asyncio.gather(*futures, return_exceptions=True)
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            raise DispatchFailure(
                f"{kernel.__name__} failed in {len(errors)} of {len(futures)} workgroups: "
                f"{errors[0]!r}"
            ) from errors[0]

    def _shutdown_executor(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def close(self) -> None:
        """Shut the worker pool down; the context falls back to CPU afterwards."""
        with self._probe_lock:
            self._shutdown_executor()
            self._state = BackendState.PARALLEL_UNAVAILABLE

    def __enter__(self) -> "ComputeContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
