from .core.exceptions import (
    CursorCorruptError,
    FatalStoreError,
    HandlerError,
    KeyValueStreamError,
    MigrationError,
    QueryError,
    SourceError,
    StreamCancelledError,
)
from .ports.streamable import OffsetPageParams, Streamable
from .repos.key_value import KeyValueRepo
from .schemas.key_value import KeyValue
from .services.migrator import KeyValueMigrator
from .services.streamer import StreamContext, Streamer

__all__ = [
    "CursorCorruptError",
    "FatalStoreError",
    "HandlerError",
    "KeyValue",
    "KeyValueMigrator",
    "KeyValueRepo",
    "KeyValueStreamError",
    "MigrationError",
    "OffsetPageParams",
    "QueryError",
    "SourceError",
    "StreamCancelledError",
    "StreamContext",
    "Streamable",
    "Streamer",
]
