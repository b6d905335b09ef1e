from __future__ import annotations

import asyncpg
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

_DISCONNECT_MARKERS = (
    "connection is closed",
    "connection was closed",
    "connection does not exist",
    "connection refused",
    "connect call failed",
    "no address associated with hostname",
    "the database system is starting up",
    "closed in the middle of operation",
)


def _is_disconnect(exc: BaseException) -> bool:
    # SQLAlchemy wrappers
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    if (isinstance(exc, DBAPIError) and
            getattr(exc, "connection_invalidated", False)):
        return True

    # asyncpg / OS-level
    if isinstance(exc, (asyncpg.PostgresError, OSError)):
        msg = str(exc).lower()
        return any(marker in msg for marker in _DISCONNECT_MARKERS)

    msg = str(exc).lower()
    return "no address associated with hostname" in msg


def is_db_disconnect(exc: BaseException) -> bool:
    # QueryError / SourceError wrap the driver error; walk the cause chain
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if _is_disconnect(current):
            return True
        seen.add(id(current))
        current = current.__cause__
    return False
