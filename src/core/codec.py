# SPDX-License-Identifier: MIT
"""Derivation and validation of public procedure references.

A reference is the first seven hexadecimal characters of a keyed digest
followed by the procedure type symbol, e.g. ``3FA9C01M``. The format is
fixed: eight characters, no separators, nothing else.
"""

from __future__ import annotations

import re

from models import ID_REGEX, ProcedureType

from .errors import CodecInvariantViolation

ID_PATTERN = re.compile(ID_REGEX)
HEX_PREFIX_LENGTH = 7


def is_valid_id(value: object) -> bool:
    """Return ``True`` when ``value`` is a well-formed reference."""

    return isinstance(value, str) and ID_PATTERN.fullmatch(value) is not None


def derive_id(digest_hex: str, procedure_type: ProcedureType) -> str:
    """Return the reference for ``digest_hex`` and ``procedure_type``.

    Args:
        digest_hex: Hexadecimal digest, any case, at least seven characters.
        procedure_type: Category whose symbol terminates the reference.

    Returns:
        Eight character reference.

    Raises:
        CodecInvariantViolation: If the result does not match the reference
            format. This means the digest and codec are miswired.
    """

    candidate = f"{digest_hex[:HEX_PREFIX_LENGTH].upper()}{procedure_type.value}"
    if not is_valid_id(candidate):
        raise CodecInvariantViolation(f"Derived reference {candidate!r} is malformed")
    return candidate


__all__ = ["HEX_PREFIX_LENGTH", "ID_PATTERN", "derive_id", "is_valid_id"]
