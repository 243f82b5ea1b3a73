# SPDX-License-Identifier: MIT
"""Exceptions raised while allocating procedure references.

Caller-correctable problems derive from :class:`ValueError`; failures that
indicate a wiring bug or a saturated store derive from :class:`RuntimeError`.
No state is mutated when any of these is raised.
"""

from __future__ import annotations


class AllocationError(Exception):
    """Base class for allocation failures."""


class InvalidType(AllocationError, ValueError):
    """Procedure type is not one of the supported symbols."""


class InvalidAttribute(AllocationError, ValueError):
    """An attribute contains the canonical delimiter."""


class MissingSecret(AllocationError, ValueError):
    """No usable secret was supplied."""


class CodecInvariantViolation(AllocationError, RuntimeError):
    """A derived reference does not match the output format."""


class UnresolvedCollision(AllocationError, RuntimeError):
    """Every derivation attempt produced a reference owned by another procedure."""

    def __init__(self, base_key: str, attempts: int) -> None:
        super().__init__(f"Collision unresolved after {attempts} attempts")
        self.base_key = base_key
        self.attempts = attempts


__all__ = [
    "AllocationError",
    "CodecInvariantViolation",
    "InvalidAttribute",
    "InvalidType",
    "MissingSecret",
    "UnresolvedCollision",
]
