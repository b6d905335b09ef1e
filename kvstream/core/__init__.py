from __future__ import annotations

from .constants import DEFAULT_BATCH_SIZE, KEY_VALUE_TABLE
from .exceptions import KeyValueStreamError

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "KEY_VALUE_TABLE",
    "KeyValueStreamError",
]
