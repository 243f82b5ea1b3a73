# SPDX-License-Identifier: MIT
"""Utilities for safe, crash-consistent file writes.

The allocation store relies on these helpers to replace its document in a
single step so readers never observe a partially written state.
"""

from __future__ import annotations

import os
from pathlib import Path

import logfire


def read_bytes(path: Path) -> bytes | None:
    """Return the contents of ``path`` or ``None`` when it does not exist."""
    with logfire.span("fs.read_bytes", attributes={"path": str(path)}):
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            logfire.debug("File not found when reading", path=str(path))
            return None
        logfire.debug("Read file", path=str(path), bytes=len(data))
        return data


def atomic_write(path: Path, data: bytes, mode: int = 0o600) -> None:
    """Write ``data`` to ``path`` atomically.

    Args:
        path: Destination file to replace.
        data: Complete new file contents.
        mode: Permission bits applied to the new file.

    The function writes to ``path`` with a ``.tmp`` suffix, flushes and
    syncs the temporary file to disk, then performs :func:`os.replace` to
    ensure the final file is updated atomically. The temporary file is
    removed when any step fails.
    """
    with logfire.span("fs.atomic_write", attributes={"path": str(path)}):
        tmp_path = Path(f"{path}.tmp")
        # Ensure the destination directory exists before attempting the write.
        tmp_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                # Ensure data is written to disk before the atomic replace
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
        logfire.debug("Atomic write complete", path=str(path), bytes=len(data))


__all__ = ["atomic_write", "read_bytes"]
