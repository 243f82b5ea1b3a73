# SPDX-License-Identifier: MIT
"""Keyed digest used to derive references from canonical strings."""

from __future__ import annotations

import hashlib
import hmac


def keyed_digest(secret: str, message: str) -> bytes:
    """Return the 32 byte HMAC-SHA256 of ``message`` keyed by ``secret``.

    Both arguments are encoded as UTF-8. Identical inputs always yield the
    same output.
    """

    return hmac.new(
        secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
    ).digest()


def keyed_digest_hex(secret: str, message: str) -> str:
    """Return :func:`keyed_digest` as 64 uppercase hexadecimal characters."""

    return keyed_digest(secret, message).hex().upper()


__all__ = ["keyed_digest", "keyed_digest_hex"]
