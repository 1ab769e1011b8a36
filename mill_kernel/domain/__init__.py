"""Domain helpers for the mill kernel: time source, parameter and tenant checks."""

from mill_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from mill_kernel.domain.params import ensure_tenant, require_id, require_text

__all__ = [
    "Clock",
    "DeterministicClock",
    "ensure_tenant",
    "SystemClock",
    "require_id",
    "require_text",
]
