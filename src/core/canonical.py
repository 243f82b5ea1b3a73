# SPDX-License-Identifier: MIT
"""Normalisation of raw procedure attributes into canonical key strings.

Two canonical strings are produced for every procedure:

``base key``
    ``v1|type|date|jurisdiction|channel``. Identifies the logical procedure
    and drives idempotent reuse of an existing reference.
``full key``
    ``base key|disambiguator|secret``. The exact message fed to the keyed
    digest.
"""

from __future__ import annotations

import re
from datetime import date as date_type
from datetime import datetime

from constants import CANONICAL_DELIMITER, CANONICAL_VERSION, DEFAULT_CHANNEL
from models import ProcedureAttributes, ProcedureType

from .errors import InvalidAttribute, InvalidType, MissingSecret

_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def today_local() -> str:
    """Return the current calendar date in the local timezone as ``YYYY-MM-DD``."""

    return datetime.now().astimezone().date().isoformat()


def normalize_type(value: ProcedureType | str) -> ProcedureType:
    """Return the :class:`ProcedureType` for ``value``.

    Raises:
        InvalidType: If ``value`` is not one of ``C``, ``M``, ``S``, ``I``, ``A``.
    """

    if isinstance(value, ProcedureType):
        return value
    symbol = str(value or "").strip().upper()
    try:
        return ProcedureType(symbol)
    except ValueError:
        raise InvalidType(
            f"Invalid procedure type {value!r}: expected one of C, M, S, I or A"
        ) from None


def normalize_date(value: date_type | str | None, today: str | None = None) -> str:
    """Return ``value`` as ``YYYY-MM-DD``, substituting today when unusable.

    Malformed or missing dates are not an error: they are replaced by the
    current local date, computed once per call.
    """

    if isinstance(value, date_type):
        return value.isoformat()[:10]
    candidate = (value or "").strip()
    if _DATE_RE.fullmatch(candidate):
        return candidate
    return today or today_local()


def normalize_code(value: str | None, default: str = "") -> str:
    """Return ``value`` trimmed and uppercased, or ``default`` when empty."""

    code = (value or "").strip().upper()
    return code or default


def normalize_secret(value: object) -> str:
    """Return ``value`` as the HMAC key.

    The untrimmed string is used as key material; only emptiness is judged
    after trimming.

    Raises:
        MissingSecret: If ``value`` is absent or blank.
    """

    secret = "" if value is None else str(value)
    if not secret.strip():
        raise MissingSecret("A secret is required to derive references")
    return secret


def _reject_delimiter(name: str, value: str) -> None:
    if CANONICAL_DELIMITER in value:
        raise InvalidAttribute(
            f"{name} must not contain '{CANONICAL_DELIMITER}': {value!r}"
        )


def normalize(
    type: ProcedureType | str,
    date: date_type | str | None = None,
    jurisdiction: str | None = None,
    channel: str | None = None,
    today: str | None = None,
) -> ProcedureAttributes:
    """Return canonical :class:`ProcedureAttributes` for the raw inputs.

    Args:
        type: Procedure type symbol, any case.
        date: ISO calendar date; replaced by today when missing or malformed.
        jurisdiction: Free-text jurisdiction code; may be empty.
        channel: Free-text channel code; defaults to ``WEB`` when empty.
        today: Override for the current date, mainly for tests.

    Raises:
        InvalidType: For an unsupported procedure type.
        InvalidAttribute: When a field contains the canonical delimiter.
    """

    procedure_type = normalize_type(type)
    iso_date = normalize_date(date, today)
    jurisdiction_code = normalize_code(jurisdiction)
    channel_code = normalize_code(channel, DEFAULT_CHANNEL)
    _reject_delimiter("jurisdiction", jurisdiction_code)
    _reject_delimiter("channel", channel_code)
    return ProcedureAttributes(
        type=procedure_type,
        date=iso_date,
        jurisdiction=jurisdiction_code,
        channel=channel_code,
    )


def base_key(attrs: ProcedureAttributes) -> str:
    """Return the idempotence key for ``attrs``."""

    return CANONICAL_DELIMITER.join(
        (
            CANONICAL_VERSION,
            attrs.type.value,
            attrs.date,
            attrs.jurisdiction,
            attrs.channel,
        )
    )


def full_key(base: str, disambiguator: int, secret: str) -> str:
    """Return the digest input for ``base`` at ``disambiguator``."""

    return CANONICAL_DELIMITER.join((base, str(disambiguator), secret))


__all__ = [
    "base_key",
    "full_key",
    "normalize",
    "normalize_code",
    "normalize_date",
    "normalize_secret",
    "normalize_type",
    "today_local",
]
