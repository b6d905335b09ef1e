from __future__ import annotations

import logging

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kvstream.core.exceptions import FatalStoreError, QueryError
from kvstream.models import KeyValueRow
from kvstream.schemas import KeyValue

logger = logging.getLogger("kvstream")


class KeyValueRepo:
    """Key-value table bound to one session.

    locking_get and upsert issued through the same repo run in the same
    transaction, so a row locked by locking_get stays locked until the
    session commits or rolls back.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    def new(self) -> KeyValueRepo:
        return KeyValueRepo(self._session)

    async def get(self, key: str) -> KeyValue | None:
        return await self._get(key, for_update=False)

    async def locking_get(self, key: str) -> KeyValue | None:
        return await self._get(key, for_update=True)

    async def must_get(self, key: str) -> KeyValue | None:
        try:
            return await self.get(key)
        except QueryError as exc:
            logger.critical("Failed to get value by key key=%s err=%r", key, exc)
            raise FatalStoreError("failed to get value by key", key=key) from exc

    async def must_locking_get(self, key: str) -> KeyValue | None:
        try:
            return await self.locking_get(key)
        except QueryError as exc:
            logger.critical("Failed to locking get value by key key=%s err=%r", key, exc)
            raise FatalStoreError("failed to locking get value by key", key=key) from exc

    async def upsert(self, kv: KeyValue) -> None:
        stmt = insert(KeyValueRow).values(key=kv.key, value=kv.value)
        stmt = stmt.on_conflict_do_update(
            index_elements=[KeyValueRow.key],
            set_={"value": stmt.excluded.value},
        )
        try:
            await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise QueryError("failed to upsert value", key=kv.key, operation="upsert") from exc

    async def _get(self, key: str, *, for_update: bool) -> KeyValue | None:
        operation = "locking_get" if for_update else "get"

        # columns, not the entity: the identity map must not serve a stale value
        stmt = select(KeyValueRow.key, KeyValueRow.value).where(KeyValueRow.key == key)
        if for_update:
            stmt = stmt.with_for_update()

        try:
            res = await self._session.execute(stmt)
            row = res.one_or_none()
        except SQLAlchemyError as exc:
            raise QueryError("failed to get value by key", key=key, operation=operation) from exc

        if row is None:
            return None

        try:
            return KeyValue.model_validate(row, from_attributes=True)
        except ValidationError as exc:
            raise QueryError("malformed key value row", key=key, operation=operation) from exc
