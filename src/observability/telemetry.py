# SPDX-License-Identifier: MIT
"""Aggregate allocation metrics for end-of-run reporting."""

from __future__ import annotations

from dataclasses import dataclass

import logfire

REFERENCES_ALLOCATED = logfire.metric_counter("references_allocated")
"""Counter for newly committed references."""

REFERENCES_REUSED = logfire.metric_counter("references_reused")
"""Counter for idempotent hits returning an existing reference."""

REFERENCE_COLLISIONS = logfire.metric_counter("reference_collisions")
"""Counter for derived references already owned by another procedure."""


@dataclass
class AllocationMetrics:
    """Metrics collected across allocations in this process."""

    allocated: int = 0
    reused: int = 0
    collisions: int = 0
    failures: int = 0

    @property
    def total(self) -> int:
        """Return the number of allocation calls that returned a reference."""

        return self.allocated + self.reused


_metrics = AllocationMetrics()


def record_allocation(*, reused: bool, collisions: int = 0) -> None:
    """Record a successful allocation and the collisions it had to escape."""

    if reused:
        _metrics.reused += 1
        REFERENCES_REUSED.add(1)
    else:
        _metrics.allocated += 1
        REFERENCES_ALLOCATED.add(1)
    if collisions:
        record_collisions(collisions)


def record_collisions(count: int) -> None:
    """Track ``count`` collisions encountered while probing."""

    _metrics.collisions += count
    REFERENCE_COLLISIONS.add(count)


def record_failure() -> None:
    """Track an allocation that raised."""

    _metrics.failures += 1


def snapshot() -> AllocationMetrics:
    """Return a copy of the collected metrics."""

    return AllocationMetrics(**vars(_metrics))


def reset() -> None:
    """Clear all recorded metrics."""

    _metrics.allocated = 0
    _metrics.reused = 0
    _metrics.collisions = 0
    _metrics.failures = 0


def print_summary() -> None:
    """Write a summary of collected metrics to ``stdout``."""

    if not _metrics.total and not _metrics.failures:
        return
    print(
        f"allocations: new={_metrics.allocated} reused={_metrics.reused} "
        f"collisions={_metrics.collisions} failures={_metrics.failures}"
    )


__all__ = [
    "AllocationMetrics",
    "print_summary",
    "record_allocation",
    "record_collisions",
    "record_failure",
    "reset",
    "snapshot",
]
