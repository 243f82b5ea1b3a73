# SPDX-License-Identifier: MIT
"""Allocation of keyed procedure references.

:class:`ReferenceAllocator` ties the canonicaliser, keyed digest, codec and
allocation store together:

1. Normalise the raw attributes and build the base key.
2. Return the reference already indexed for that base key, if any. Nothing is
   digested on this path.
3. Otherwise derive a candidate from the full key at the stored
   disambiguator. A free candidate is committed; a candidate whose record has
   the same full key is returned; any other owner is a collision and the
   disambiguator is bumped.
4. Give up with :class:`UnresolvedCollision` after ``max_attempts`` tries.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date as date_type
from datetime import datetime, timezone
from threading import Lock
from typing import TYPE_CHECKING, Callable

import logfire

from constants import MAX_ATTEMPTS
from models import (
    AllocationRecord,
    HistoryEntry,
    ProcedureAttributes,
    ProcedureType,
)
from observability import telemetry

from .canonical import base_key, full_key, normalize, normalize_secret
from .codec import derive_id
from .digest import keyed_digest_hex
from .errors import AllocationError, UnresolvedCollision
from .history import format_history_csv

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from io_utils.store import AllocationStore


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Allocation:
    """Outcome of a single allocation call."""

    id: str
    attributes: ProcedureAttributes
    reused: bool
    # Digests computed; zero when the base index answered directly.
    attempts: int


class ReferenceAllocator:
    """Derive and persist references for procedures.

    Calls to :meth:`allocate` are serialised with an in-process lock. Several
    processes sharing one store must coordinate externally.
    """

    def __init__(
        self,
        store: "AllocationStore",
        *,
        max_attempts: int = MAX_ATTEMPTS,
        clock: Callable[[], datetime] | None = None,
        today: Callable[[], str] | None = None,
    ) -> None:
        """Create an allocator over ``store``.

        Args:
            store: Allocation state to read and commit to.
            max_attempts: Derivation attempts before giving up, first included.
            clock: Source of ``created_at`` timestamps.
            today: Source of the substitute date for missing or malformed dates.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.max_attempts = max_attempts
        self._clock = clock or _utc_now
        self._today = today
        self._lock = Lock()

    def allocate(
        self,
        type: ProcedureType | str,
        date: date_type | str | None = None,
        jurisdiction: str | None = None,
        channel: str | None = None,
        *,
        secret: object,
    ) -> str:
        """Return the reference for the procedure described by the arguments.

        Raises:
            InvalidType: For an unsupported procedure type.
            InvalidAttribute: When jurisdiction or channel contain ``|``.
            MissingSecret: When ``secret`` is absent or blank.
            CodecInvariantViolation: When a derived reference is malformed.
            UnresolvedCollision: When every attempt collided.
        """
        return self.allocate_detailed(
            type, date, jurisdiction, channel, secret=secret
        ).id

    def allocate_detailed(
        self,
        type: ProcedureType | str,
        date: date_type | str | None = None,
        jurisdiction: str | None = None,
        channel: str | None = None,
        *,
        secret: object,
    ) -> Allocation:
        """Like :meth:`allocate` but also report how the reference was obtained."""
        with logfire.span("allocator.allocate"):
            try:
                with self._lock:
                    return self._allocate(type, date, jurisdiction, channel, secret)
            except AllocationError:
                telemetry.record_failure()
                raise

    def _allocate(
        self,
        type: ProcedureType | str,
        date: date_type | str | None,
        jurisdiction: str | None,
        channel: str | None,
        secret: object,
    ) -> Allocation:
        today = self._today() if self._today else None
        attrs = normalize(type, date, jurisdiction, channel, today=today)
        key_material = normalize_secret(secret)
        base = base_key(attrs)

        existing = self.store.lookup_by_base(base)
        if existing:
            logfire.debug("Reusing reference for base key", id=existing)
            telemetry.record_allocation(reused=True)
            return Allocation(existing, attrs, reused=True, attempts=0)

        disambiguator = self.store.next_disambiguator(base)
        for attempt in range(self.max_attempts):
            full = full_key(base, disambiguator, key_material)
            candidate = derive_id(keyed_digest_hex(key_material, full), attrs.type)
            if not self.store.exists(candidate):
                record = AllocationRecord(
                    id=candidate,
                    base_key=base,
                    full_key=full,
                    type=attrs.type,
                    date=attrs.date,
                    jurisdiction=attrs.jurisdiction,
                    channel=attrs.channel,
                    disambiguator=disambiguator,
                    created_at=self._clock(),
                )
                self.store.commit(record, disambiguator + 1)
                telemetry.record_allocation(reused=False, collisions=attempt)
                return Allocation(candidate, attrs, reused=False, attempts=attempt + 1)
            owner = self.store.get(candidate)
            if owner is not None and owner.full_key == full:
                telemetry.record_allocation(reused=True, collisions=attempt)
                return Allocation(candidate, attrs, reused=True, attempts=attempt + 1)
            logfire.debug(
                "Reference collision",
                id=candidate,
                attempt=attempt,
                disambiguator=disambiguator,
            )
            disambiguator += 1
        telemetry.record_collisions(self.max_attempts)
        raise UnresolvedCollision(base, self.max_attempts)

    def list_history(self) -> list[HistoryEntry]:
        """Return the activity log, newest first."""
        return self.store.history()

    def export_history(self) -> str:
        """Return the activity log formatted as delimited text."""
        return format_history_csv(self.store.history())


__all__ = ["Allocation", "ReferenceAllocator"]
