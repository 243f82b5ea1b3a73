"""Project-wide constants and default paths.

This module centralises small constants that are imported across the
application. Keep this file minimal and free of side effects.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

DEFAULT_STORE_DIR = (
    Path(os.path.expandvars(os.environ.get("XDG_DATA_HOME", tempfile.gettempdir())))
    / "hexref"
)
STORE_FILENAME = "store.json"

# Version tag prefixed to every canonical string. Changing it changes every
# reference derived from then on.
CANONICAL_VERSION = "v1"
CANONICAL_DELIMITER = "|"
DEFAULT_CHANNEL = "WEB"

HISTORY_LIMIT = 200
# Total derivation attempts per allocation, the first included.
MAX_ATTEMPTS = 6

__all__ = [
    "CANONICAL_DELIMITER",
    "CANONICAL_VERSION",
    "DEFAULT_CHANNEL",
    "DEFAULT_STORE_DIR",
    "HISTORY_LIMIT",
    "MAX_ATTEMPTS",
    "STORE_FILENAME",
]
