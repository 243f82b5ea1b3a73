"""Core reference derivation.

Exports:
    ReferenceAllocator: Derive, deduplicate and persist procedure references.
    derive_id: Build a reference from a digest and procedure type.
    is_valid_id: Check a value against the reference format.
    keyed_digest_hex: HMAC-SHA256 rendered as uppercase hexadecimal.
    format_history_csv: Render the activity log as delimited text.
"""

from .allocator import Allocation, ReferenceAllocator
from .codec import derive_id, is_valid_id
from .digest import keyed_digest_hex
from .errors import (
    AllocationError,
    CodecInvariantViolation,
    InvalidAttribute,
    InvalidType,
    MissingSecret,
    UnresolvedCollision,
)
from .history import format_history_csv

__all__ = [
    "Allocation",
    "AllocationError",
    "CodecInvariantViolation",
    "InvalidAttribute",
    "InvalidType",
    "MissingSecret",
    "ReferenceAllocator",
    "UnresolvedCollision",
    "derive_id",
    "format_history_csv",
    "is_valid_id",
    "keyed_digest_hex",
]
