"""Input and output helpers for configuration and allocation state.

Exports:
    load_app_config: Read ``config/app.yaml`` into :class:`models.AppConfig`.
    atomic_write: Replace a file atomically.
    read_bytes: Read a file, returning ``None`` when it is missing.
    AllocationStore: Interface for allocation state.
    InMemoryAllocationStore: Process-local store.
    JSONAllocationStore: Store persisted as one JSON document.
"""

from __future__ import annotations

from .loader import load_app_config
from .persistence import atomic_write, read_bytes
from .store import AllocationStore, InMemoryAllocationStore, JSONAllocationStore

__all__ = [
    "load_app_config",
    "atomic_write",
    "read_bytes",
    "AllocationStore",
    "InMemoryAllocationStore",
    "JSONAllocationStore",
]
