# SPDX-License-Identifier: MIT
"""Durable state backing reference allocation.

A store keeps four regions that must stay mutually consistent:

* ``records``: reference -> :class:`AllocationRecord` (uniqueness domain)
* ``base_index``: base key -> reference (idempotence lookup)
* ``counters``: base key -> next disambiguator
* ``history``: bounded activity log, newest first

:meth:`AllocationStore.commit` updates all of them in one step. Concurrent
writers are not coordinated; callers serialise access.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from pathlib import Path

import logfire
from pydantic import ValidationError

from constants import HISTORY_LIMIT, STORE_FILENAME
from core.codec import is_valid_id
from models import AllocationRecord, HistoryEntry, StoreState
from utils import ErrorHandler, LoggingErrorHandler

from .persistence import atomic_write, read_bytes


def apply_commit(
    state: StoreState,
    record: AllocationRecord,
    next_disambiguator: int,
    history_limit: int = HISTORY_LIMIT,
) -> StoreState:
    """Return a copy of ``state`` with ``record`` committed.

    ``state`` itself is left untouched so a failed write can be discarded.

    Raises:
        ValueError: If the reference is already allocated or the counter would
            fall behind the record's disambiguator.
    """

    if record.id in state.records:
        raise ValueError(f"Reference {record.id} is already allocated")
    if next_disambiguator < record.disambiguator:
        raise ValueError(
            f"Counter {next_disambiguator} is behind disambiguator"
            f" {record.disambiguator}"
        )
    updated = state.model_copy(deep=True)
    updated.records[record.id] = record
    updated.base_index[record.base_key] = record.id
    updated.counters[record.base_key] = max(
        updated.counters.get(record.base_key, 0), next_disambiguator
    )
    # Newest first: keep the most recent entries and let the oldest fall off.
    history: deque[HistoryEntry] = deque(
        updated.history[: history_limit - 1], maxlen=history_limit
    )
    history.appendleft(record.history_entry())
    updated.history = list(history)
    return updated


def verify_state(state: StoreState) -> list[str]:
    """Return a description of every consistency violation in ``state``."""

    issues: list[str] = []
    for key, record in state.records.items():
        if not is_valid_id(key):
            issues.append(f"Malformed reference {key!r}")
        if key != record.id:
            issues.append(f"Record stored under {key!r} holds reference {record.id!r}")
        counter = state.counters.get(record.base_key, 0)
        if counter < record.disambiguator:
            issues.append(
                f"Counter {counter} for {record.id} is behind disambiguator"
                f" {record.disambiguator}"
            )
    for base, reference in state.base_index.items():
        indexed = state.records.get(reference)
        if indexed is None:
            issues.append(f"Base index points to unknown reference {reference!r}")
        elif indexed.base_key != base:
            issues.append(f"Base index entry for {reference} does not match its record")
    return issues


class AllocationStore(ABC):
    """Interface for allocation state.

    Reads must reflect every successful :meth:`commit`. A failed commit must
    leave all regions exactly as they were.
    """

    @abstractmethod
    def lookup_by_base(self, base_key: str) -> str | None:
        """Return the reference allocated for ``base_key``, if any."""

    @abstractmethod
    def exists(self, reference: str) -> bool:
        """Return ``True`` when ``reference`` is already allocated."""

    @abstractmethod
    def get(self, reference: str) -> AllocationRecord | None:
        """Return the record for ``reference``, if any."""

    @abstractmethod
    def next_disambiguator(self, base_key: str) -> int:
        """Return the disambiguator to try first for ``base_key``."""

    @abstractmethod
    def commit(self, record: AllocationRecord, next_disambiguator: int) -> None:
        """Persist ``record``, its index entry, counter and history entry."""

    @abstractmethod
    def history(self) -> list[HistoryEntry]:
        """Return the activity log, newest first."""

    @abstractmethod
    def verify(self) -> list[str]:
        """Return integrity issues; an empty list means the store is consistent."""


class InMemoryAllocationStore(AllocationStore):
    """Allocation store held entirely in process memory."""

    def __init__(
        self, state: StoreState | None = None, history_limit: int = HISTORY_LIMIT
    ) -> None:
        if history_limit < 1:
            raise ValueError("history_limit must be at least 1")
        self.history_limit = history_limit
        self._state = state if state is not None else StoreState()

    def lookup_by_base(self, base_key: str) -> str | None:
        return self._state.base_index.get(base_key)

    def exists(self, reference: str) -> bool:
        return reference in self._state.records

    def get(self, reference: str) -> AllocationRecord | None:
        return self._state.records.get(reference)

    def next_disambiguator(self, base_key: str) -> int:
        return self._state.counters.get(base_key, 0)

    def commit(self, record: AllocationRecord, next_disambiguator: int) -> None:
        with logfire.span("store.commit", attributes={"id": record.id}):
            state = apply_commit(
                self._state, record, next_disambiguator, self.history_limit
            )
            self._persist(state)
            self._state = state
            logfire.debug(
                "Committed allocation",
                id=record.id,
                disambiguator=record.disambiguator,
                records=len(state.records),
            )

    def history(self) -> list[HistoryEntry]:
        return list(self._state.history)

    def verify(self) -> list[str]:
        return verify_state(self._state)

    def snapshot(self) -> StoreState:
        """Return a deep copy of the current state."""
        return self._state.model_copy(deep=True)

    def _persist(self, state: StoreState) -> None:
        """Durably record ``state`` before it becomes visible."""


class JSONAllocationStore(InMemoryAllocationStore):
    """Allocation store persisted as a single JSON document.

    Every commit rewrites the whole document through :func:`atomic_write`, so
    the on-disk regions are always mutually consistent. The file may contain
    secrets inside full keys and is created with mode ``0600``.
    """

    def __init__(
        self,
        path: Path | str,
        history_limit: int = HISTORY_LIMIT,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        self.path = Path(path)
        self._handler = error_handler or LoggingErrorHandler()
        super().__init__(self._load(), history_limit)

    @classmethod
    def open(cls, store_dir: Path | str, **kwargs) -> JSONAllocationStore:
        """Return a store backed by the default file inside ``store_dir``."""
        return cls(Path(store_dir) / STORE_FILENAME, **kwargs)

    def _load(self) -> StoreState:
        """Return the persisted state, or an empty one when no file exists.

        Raises:
            RuntimeError: If the file cannot be read or fails validation.
        """
        with logfire.span("store.load", attributes={"path": str(self.path)}):
            try:
                raw = read_bytes(self.path)
            except OSError as exc:
                self._handler.handle(f"Error reading store {self.path}", exc)
                raise RuntimeError(
                    f"An error occurred while reading the store: {exc}"
                ) from exc
            if raw is None:
                return StoreState()
            try:
                state = StoreState.model_validate_json(raw)
            except ValidationError as exc:
                self._handler.handle(f"Invalid store document {self.path}", exc)
                raise RuntimeError(f"Invalid store document: {exc}") from exc
            issues = verify_state(state)
            if issues:
                logfire.warning(
                    "Store integrity issues detected",
                    path=str(self.path),
                    count=len(issues),
                )
            logfire.debug(
                "Loaded store",
                path=str(self.path),
                records=len(state.records),
                history=len(state.history),
            )
            return state

    def _persist(self, state: StoreState) -> None:
        atomic_write(self.path, state.model_dump_json(indent=2).encode("utf-8"))


__all__ = [
    "AllocationStore",
    "InMemoryAllocationStore",
    "JSONAllocationStore",
    "apply_commit",
    "verify_state",
]
