from __future__ import annotations

import asyncio
import logging
from typing import Callable, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kvstream.config import get_settings
from kvstream.core.exceptions import StreamCancelledError
from kvstream.ports.streamable import Streamable
from kvstream.repos.key_value import KeyValueRepo
from kvstream.services.db_errors import is_db_disconnect
from kvstream.services.logctx import ctx_prefix
from kvstream.services.streamer import Handler, StreamContext, Streamer

T = TypeVar("T")

logger = logging.getLogger("kvstream")


class StreamWorker(Generic[T]):
    """Polls one cursor stream: every tick processes one batch in a fresh session.

    batch_size and poll_interval fall back to stream_batch_size and
    poll_interval from the settings.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        source_factory: Callable[[AsyncSession], Streamable[T]],
        handler: Handler[T],
        cursor_key: str,
        batch_size: int | None = None,
        poll_interval: float | None = None,
        disconnect_backoff: float = 1.0,
        ctx: StreamContext | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._source_factory = source_factory
        self._handler = handler
        self._cursor_key = cursor_key
        settings = get_settings()
        self._batch_size = batch_size if batch_size is not None else settings.stream_batch_size
        self._poll_interval = poll_interval if poll_interval is not None else settings.poll_interval
        self._disconnect_backoff = disconnect_backoff
        self._ctx = ctx if ctx is not None else StreamContext()

    @property
    def ctx(self) -> StreamContext:
        return self._ctx

    def stop(self) -> None:
        self._ctx.cancel()

    async def tick(self) -> int:
        async with self._session_factory() as session:
            streamer: Streamer[T] = Streamer(
                source=self._source_factory(session),
                kv=KeyValueRepo(session),
                cursor_key=self._cursor_key,
                batch_size=self._batch_size,
                ctx=self._ctx,
            )
            return await streamer.form_list_and_process(self._handler)

    async def run(self) -> None:
        prefix = ctx_prefix(key=self._cursor_key)
        logger.info("%s stream worker started poll_interval=%s", prefix, self._poll_interval)

        while not self._ctx.cancelled:
            delay = self._poll_interval
            try:
                processed = await self.tick()
                logger.info("%s tick processed=%d", prefix, processed)
            except StreamCancelledError:
                break
            except Exception as exc:
                if is_db_disconnect(exc):
                    logger.warning("%s DB disconnected during tick. Will retry. err=%r", prefix, exc)
                    delay = self._disconnect_backoff
                else:
                    logger.exception("%s error during stream tick", prefix)

            await self._sleep(delay)

        logger.info("%s stream worker stopped", prefix)

    async def _sleep(self, delay: float) -> None:
        # wakes up early on stop()
        try:
            await asyncio.wait_for(self._ctx.cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
