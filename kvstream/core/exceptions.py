from __future__ import annotations


class KeyValueStreamError(Exception):
    """Base error of the key-value store and the cursor streamer."""


class QueryError(KeyValueStreamError):
    """Key-value table query failed (anything except "row not found")."""

    def __init__(self, message: str, *, key: str, operation: str) -> None:
        super().__init__(f"{message}: key={key!r} operation={operation}")
        self.key = key
        self.operation = operation


class CursorCorruptError(KeyValueStreamError):
    """Stored cursor is not a non-negative base-10 integer."""

    def __init__(self, message: str, *, key: str, value: object) -> None:
        super().__init__(f"{message}: key={key!r} value={value!r}")
        self.key = key
        self.value = value


class SourceError(KeyValueStreamError):
    """Paginated source failed to produce a page."""

    def __init__(self, message: str, *, page_number: int) -> None:
        super().__init__(f"{message}: page={page_number}")
        self.page_number = page_number


class HandlerError(KeyValueStreamError):
    """Per-entity handler failed; the rest of the page was not processed."""

    def __init__(self, message: str, *, index: int, page_number: int | None = None) -> None:
        super().__init__(f"{message}: index={index} page={page_number}")
        self.index = index
        self.page_number = page_number


class StreamCancelledError(KeyValueStreamError):
    """Stream context was cancelled before the page was fully processed."""

    def __init__(self, message: str, *, index: int) -> None:
        super().__init__(f"{message}: index={index}")
        self.index = index


class MigrationError(KeyValueStreamError):
    """Key-value schema migration failed."""


class FatalStoreError(BaseException):
    """Unrecoverable key-value failure raised by the must_* accessors.

    Derives from BaseException so that generic ``except Exception`` blocks
    do not swallow it.
    """

    def __init__(self, message: str, *, key: str) -> None:
        super().__init__(f"{message}: key={key!r}")
        self.key = key
