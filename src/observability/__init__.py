"""Telemetry and monitoring helpers for the reference allocator.

Exports:
    init_logfire: Configure Pydantic Logfire instrumentation.
    record_allocation: Record a successful allocation.
    record_failure: Track an allocation that raised.
    print_summary: Output a summary of collected metrics.
    reset: Clear stored metrics.
"""

from .monitoring import init_logfire
from .telemetry import print_summary, record_allocation, record_failure, reset

__all__ = [
    "init_logfire",
    "record_allocation",
    "record_failure",
    "print_summary",
    "reset",
]
