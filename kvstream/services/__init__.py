from .db_errors import is_db_disconnect
from .streamer import StreamContext, Streamer, parse_cursor

__all__ = [
    "StreamContext",
    "Streamer",
    "is_db_disconnect",
    "parse_cursor",
]
