"""
Backend selection with CPU fallback.

Every engine entry point goes through BackendSelector.run(): the parallel
implementation is tried when the context probes available, and any failure
during that call degrades just that call to the CPU implementation.
"""

import asyncio
import logging
import threading
import time
from typing import Awaitable, Callable, Optional, TypeVar

from semantic_rows.compute.context import ComputeContext
from semantic_rows.errors import OperationCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

ParallelFn = Callable[[ComputeContext], Awaitable[T]]
CpuFn = Callable[[], Awaitable[T]]


class BackendSelector:
    """Routes engine calls to the parallel backend, falling back to CPU."""

    def __init__(self, context: ComputeContext):
        self.context = context

    @classmethod
    def from_config(cls) -> "BackendSelector":
        return cls(ComputeContext.from_config())

    @classmethod
    def cpu_only(cls) -> "BackendSelector":
        """Selector that never probes or uses the parallel backend."""
        return cls(ComputeContext(mode="cpu"))

    async def run(self, operation: str, parallel_fn: ParallelFn, cpu_fn: CpuFn) -> T:
        """
        Run an operation on the best available backend.

        Args:
            operation: Operation name for logging (e.g. "all_pairs")
            parallel_fn: Coroutine function taking the ComputeContext
            cpu_fn: Coroutine function for the CPU path

        Returns:
            Result of whichever backend completed the call

        Raises:
            Whatever the CPU path raises; cancellation is never retried
        """
        # First call blocks on the self-test dispatch; keep it off the event loop
        if await asyncio.to_thread(self.context.probe):
            start = time.perf_counter()
            try:
                result = await parallel_fn(self.context)
            except OperationCancelled:
                raise
            except Exception as e:
                logger.warning(
                    f"Parallel {operation} failed, falling back to CPU: {e}",
                    extra={"operation": operation, "backend": "parallel"},
                )
            else:
                duration_ms = round((time.perf_counter() - start) * 1000, 1)
                logger.debug(
                    f"{operation} completed on parallel backend in {duration_ms} ms",
                    extra={"operation": operation, "backend": "parallel", "duration_ms": duration_ms},
                )
                return result

        start = time.perf_counter()
        result = await cpu_fn()
        duration_ms = round((time.perf_counter() - start) * 1000, 1)
        logger.debug(
            f"{operation} completed on CPU backend in {duration_ms} ms",
            extra={"operation": operation, "backend": "cpu", "duration_ms": duration_ms},
        )
        return result

    def close(self) -> None:
        self.context.close()


_default_selector: Optional[BackendSelector] = None
_default_lock = threading.Lock()


def get_default_selector() -> BackendSelector:
    """
    Get the process-wide selector, creating it from configuration on first use.

    Callers that need isolation (tests, services with their own pools) should
    construct and pass their own BackendSelector instead.
    """
    global _default_selector
    with _default_lock:
        if _default_selector is None:
            _default_selector = BackendSelector.from_config()
        return _default_selector


def reset_default_selector() -> None:
    """Close and forget the process-wide selector."""
    global _default_selector
    with _default_lock:
        if _default_selector is not None:
            _default_selector.close()
            _default_selector = None
