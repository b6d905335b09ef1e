from __future__ import annotations

DEFAULT_BATCH_SIZE = 15

KEY_VALUE_TABLE = "key_value"

# Kept apart from a host application's own "alembic_version" table.
MIGRATIONS_VERSION_TABLE = "kvstream_alembic_version"

# Cursor values are stored as signed 64-bit decimals.
MAX_CURSOR_VALUE = 2**63 - 1
