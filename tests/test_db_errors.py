from sqlalchemy.exc import OperationalError

from kvstream.core.exceptions import QueryError, SourceError
from kvstream.services.db_errors import is_db_disconnect


def _wrapped(outer, inner):
    try:
        try:
            raise inner
        except Exception as exc:
            raise outer from exc
    except Exception as exc:
        return exc


def test_operational_error_is_disconnect():
    assert is_db_disconnect(OperationalError("SELECT 1", {}, Exception("down")))


def test_connection_refused_os_error_is_disconnect():
    assert is_db_disconnect(ConnectionRefusedError("connection refused"))


def test_plain_errors_are_not_disconnect():
    assert not is_db_disconnect(ValueError("bad item"))
    assert not is_db_disconnect(OSError("disk full"))


def test_wrapped_disconnect_is_detected():
    exc = _wrapped(
        QueryError("failed to get value by key", key="k", operation="locking_get"),
        OperationalError("SELECT", {}, Exception("down")),
    )
    assert is_db_disconnect(exc)

    exc = _wrapped(SourceError("failed to select entities", page_number=1), RuntimeError("boom"))
    assert not is_db_disconnect(exc)
