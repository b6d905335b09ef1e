from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Generic, Mapping, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from kvstream.core.constants import DEFAULT_BATCH_SIZE, MAX_CURSOR_VALUE
from kvstream.core.exceptions import (
    CursorCorruptError,
    HandlerError,
    QueryError,
    SourceError,
    StreamCancelledError,
)
from kvstream.ports.streamable import OffsetPageParams, Streamable
from kvstream.repos.key_value import KeyValueRepo
from kvstream.schemas import KeyValue
from kvstream.services.logctx import ctx_prefix

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger("kvstream")

_CURSOR_RE = re.compile(r"[+-]?[0-9]+")

# first pass + one pass after a wraparound reset
_MAX_PASSES = 2


@dataclass(frozen=True, slots=True)
class StreamContext:
    """Execution context handed to every handler call."""

    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    values: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()


Handler = Callable[[StreamContext, T], Awaitable[Any]]


def parse_cursor(key: str, raw: str) -> int:
    """Decode a stored cursor; never coerces a bad value to 0."""
    if not _CURSOR_RE.fullmatch(raw or ""):
        raise CursorCorruptError("failed to parse cursor", key=key, value=raw)

    page = int(raw)
    if page < 0:
        raise CursorCorruptError("cursor cannot be negative", key=key, value=raw)
    if page > MAX_CURSOR_VALUE:
        raise CursorCorruptError("cursor is out of range", key=key, value=raw)
    return page


class Streamer(Generic[T]):
    """Resumable round-robin batch iteration over a paginated source.

    The current page number lives in the key-value table under cursor_key.
    Every form_list call reads it with a row lock, fetches that page, and
    moves the cursor forward (or back to 0 once the source is exhausted),
    so several workers sharing one cursor_key never receive the same page.

    The cursor is advanced before handlers run: if a handler fails, the
    rest of that batch is skipped on the next pass.
    """

    def __init__(
        self,
        *,
        source: Streamable[T],
        kv: KeyValueRepo,
        cursor_key: str,
        batch_size: int | None = None,
        ctx: StreamContext | None = None,
        log: logging.Logger | logging.LoggerAdapter | None = None,
        manage_transaction: bool = True,
    ) -> None:
        if not cursor_key or not cursor_key.strip():
            raise ValueError("Streamer requires a non-empty cursor_key")

        size = DEFAULT_BATCH_SIZE if batch_size is None else batch_size
        if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
            raise ValueError(f"batch_size must be a positive int, got {batch_size!r}")

        self._source = source
        self._kv = kv
        self._cursor_key = cursor_key
        self._batch_size = size
        self._ctx = ctx if ctx is not None else StreamContext()
        self._log = log if log is not None else logger
        self._manage_transaction = manage_transaction

    @property
    def cursor_key(self) -> str:
        return self._cursor_key

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def ctx(self) -> StreamContext:
        return self._ctx

    async def select(self, page_number: int) -> Sequence[T]:
        page = OffsetPageParams(limit=self._batch_size, page_number=page_number)
        try:
            return await self._source.select_with_page_params(page)
        except Exception as exc:
            raise SourceError("failed to select entities", page_number=page_number) from exc

    async def get_current_page(self) -> int:
        return await self._in_transaction(self._get_current_page)

    async def _get_current_page(self) -> int:
        kv = await self._kv.locking_get(self._cursor_key)

        # a missing cursor means "start from the first page"; nothing is written here
        if kv is None:
            return 0

        return parse_cursor(self._cursor_key, kv.value)

    async def form_list(self) -> list[T]:
        _, entities = await self._form_list_tx()
        return entities

    async def form_list_and_process(self, fn: Handler[T]) -> int:
        if self._ctx.cancelled:
            raise StreamCancelledError("stream cancelled before forming a list", index=0)

        page_number, entities = await self._form_list_tx()

        for index, entity in enumerate(entities):
            if self._ctx.cancelled:
                raise StreamCancelledError("stream cancelled while processing entities", index=index)
            try:
                await fn(self._ctx, entity)
            except Exception as exc:
                raise HandlerError(
                    "failed to process an entity", index=index, page_number=page_number
                ) from exc

        return len(entities)

    async def _form_list_tx(self) -> tuple[int, list[T]]:
        return await self._in_transaction(self._form_list)

    async def _in_transaction(self, fn: Callable[[], Awaitable[R]]) -> R:
        if not self._manage_transaction:
            return await fn()

        session = self._kv.session
        try:
            result = await fn()
        except BaseException:
            await session.rollback()
            raise

        # commit releases the cursor row lock
        try:
            await session.commit()
        except SQLAlchemyError as exc:
            raise QueryError(
                "failed to commit cursor", key=self._cursor_key, operation="commit"
            ) from exc
        return result

    async def _form_list(self) -> tuple[int, list[T]]:
        page_number = 0

        for _ in range(_MAX_PASSES):
            page_number = await self._get_current_page()
            entities = list(await self.select(page_number))
            prefix = ctx_prefix(key=self._cursor_key, page=page_number)

            if not entities:
                # nothing on the first page: the source itself is empty
                if page_number == 0:
                    self._log.warning("%s entities list is empty", prefix)
                    return page_number, []

                # walked off the end: start over from the first page
                await self._kv.upsert(KeyValue(key=self._cursor_key, value="0"))
                self._log.info("%s end of source reached, cursor reset to 0", prefix)
                continue

            await self._kv.upsert(KeyValue(key=self._cursor_key, value=str(page_number + 1)))
            self._log.debug(
                "%s fetched=%d cursor advanced to %d", prefix, len(entities), page_number + 1
            )
            return page_number, entities

        return page_number, []
