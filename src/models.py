# SPDX-License-Identifier: MIT
"""Pydantic models describing procedure attributes, allocations and store state.

These definitions act as the contract between the allocator, the allocation
store and the command-line interface. Every structure written to disk is
declared here so the persisted document can be validated on load.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator

SCHEMA_VERSION = "1.0"


class ProcedureType(str, Enum):
    """Closed set of procedure categories.

    The value doubles as the trailing symbol of every derived reference.
    """

    CIVIL = "C"
    MEDICAL = "M"
    SUCCESSION = "S"
    REAL_ESTATE = "I"
    ACADEMIC = "A"

    @property
    def label(self) -> str:
        """Return a human readable description of the category."""

        return PROCEDURE_LABELS[self]


PROCEDURE_LABELS = {
    ProcedureType.CIVIL: "Civil / Liability",
    ProcedureType.MEDICAL: "Medical / Health",
    ProcedureType.SUCCESSION: "Succession / Inheritance",
    ProcedureType.REAL_ESTATE: "Real estate",
    ProcedureType.ACADEMIC: "Academic / Student",
}

TYPE_SYMBOLS = "".join(member.value for member in ProcedureType)
# Seven uppercase hex digits followed by one procedure type symbol.
ID_REGEX = rf"^[0-9A-F]{{7}}[{TYPE_SYMBOLS}]$"


class StrictModel(BaseModel):
    """Base model with strict settings to prevent shape drift."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=False)


class ProcedureAttributes(StrictModel):
    """Normalised classification attributes of a procedure.

    The caller's secret is deliberately not part of this model so it can be
    logged or persisted without exposing key material.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: ProcedureType
    date: Annotated[
        str,
        Field(
            pattern=r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$",
            description="Calendar date in ISO format.",
        ),
    ]
    jurisdiction: str = Field(
        "", description="Uppercased jurisdiction code, possibly empty."
    )
    channel: Annotated[
        str, Field(min_length=1, description="Uppercased intake channel code.")
    ]


class AllocationRecord(StrictModel):
    """A committed reference and the canonical inputs that produced it."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: Annotated[str, Field(pattern=ID_REGEX, description="Public reference.")]
    base_key: Annotated[
        str, Field(min_length=1, description="Canonical idempotence key.")
    ]
    full_key: Annotated[
        str,
        Field(
            min_length=1,
            repr=False,
            description="Exact digest input including disambiguator and secret.",
        ),
    ]
    type: ProcedureType
    date: str
    jurisdiction: str
    channel: str
    disambiguator: int = Field(0, ge=0, description="Collision escape counter.")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="ISO-8601 timestamp when the reference was allocated.",
    )

    def history_entry(self) -> HistoryEntry:
        """Return the activity log entry describing this allocation."""

        return HistoryEntry(
            id=self.id,
            type=self.type,
            date=self.date,
            jurisdiction=self.jurisdiction,
            channel=self.channel,
            created_at=self.created_at,
        )


class HistoryEntry(StrictModel):
    """Observational record of a single allocation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    type: ProcedureType
    date: str
    jurisdiction: str
    channel: str
    created_at: datetime


class StoreState(StrictModel):
    """Complete persisted state of an allocation store.

    The four regions must stay mutually consistent: ``base_index`` and
    ``counters`` are derived from ``records`` and ``history`` is purely
    observational.
    """

    schema_version: str = Field(
        default=SCHEMA_VERSION, description="Version of the store document."
    )
    records: dict[str, AllocationRecord] = Field(
        default_factory=dict, description="Allocation records keyed by reference."
    )
    base_index: dict[str, str] = Field(
        default_factory=dict, description="Reference allocated for each base key."
    )
    counters: dict[str, int] = Field(
        default_factory=dict, description="Next disambiguator for each base key."
    )
    history: list[HistoryEntry] = Field(
        default_factory=list, description="Activity log, newest first."
    )

    @model_validator(mode="after")
    def _counters_non_negative(self) -> StoreState:
        for base, value in self.counters.items():
            if value < 0:
                raise ValueError(f"counter for '{base}' must be non-negative")
        return self


class AppConfig(StrictModel):
    """Top-level application configuration read from ``config/app.yaml``."""

    log_level: Annotated[
        str, Field(min_length=1, description="Logging verbosity level.")
    ] = "WARN"
    store_dir: Path | None = Field(
        None, description="Directory holding the allocation store document."
    )


__all__ = [
    "AllocationRecord",
    "AppConfig",
    "HistoryEntry",
    "ID_REGEX",
    "PROCEDURE_LABELS",
    "ProcedureAttributes",
    "ProcedureType",
    "SCHEMA_VERSION",
    "StoreState",
    "StrictModel",
    "TYPE_SYMBOLS",
]
