"""
Compute backends.

Provides the parallel-dispatch ComputeContext and the BackendSelector that
routes engine calls to it with CPU fallback.
"""

from semantic_rows.compute.context import BackendState, ComputeContext, DeviceBuffer
from semantic_rows.compute.selector import (
    BackendSelector,
    get_default_selector,
    reset_default_selector,
)

__all__ = [
    "BackendState",
    "ComputeContext",
    "DeviceBuffer",
    "BackendSelector",
    "get_default_selector",
    "reset_default_selector",
]
