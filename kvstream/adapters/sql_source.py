from __future__ import annotations

import re
from typing import Any, Generic, Mapping, Sequence, TypeVar

from sqlalchemy import Select, text
from sqlalchemy.ext.asyncio import AsyncSession

from kvstream.ports.streamable import OffsetPageParams

T = TypeVar("T")

_ORDER_BY_RE = re.compile(r"\border\s+by\b", re.IGNORECASE)
_PAGING_RE = re.compile(r"\b(limit|offset)\b", re.IGNORECASE)


def paged_sql(query: str, page: OffsetPageParams) -> str:
    """Append LIMIT/OFFSET for one page of a raw SQL query.

    The query needs an ORDER BY so that a page number selects the same rows
    on every call, and must leave LIMIT/OFFSET to the streamer.

    Both checks are plain word matches on the SQL text: a column, alias or
    string literal spelled ``limit``/``offset`` (or ``order by`` inside a
    literal) is taken as the keyword. Rename or alias such columns.
    """
    body = (query or "").strip().rstrip(";").rstrip()

    if not _ORDER_BY_RE.search(body):
        raise ValueError("Paged source query requires deterministic ORDER BY.")
    if _PAGING_RE.search(body):
        raise ValueError(
            "Source query must not contain LIMIT/OFFSET; pagination is handled by the streamer."
        )

    return f"{body} LIMIT {int(page.limit)} OFFSET {int(page.offset)}"


class SqlQuerySource:
    """Pages a raw SQL query; every row comes back as a plain dict."""

    def __init__(
        self,
        session: AsyncSession,
        query: str,
        params: Mapping[str, Any] | None = None,
    ) -> None:
        # reject a query that cannot be paged before the streamer touches the cursor
        paged_sql(query, OffsetPageParams(limit=1, page_number=0))
        self._session = session
        self._query = query
        self._params = dict(params or {})

    async def select_with_page_params(self, page: OffsetPageParams) -> list[dict[str, Any]]:
        res = await self._session.execute(text(paged_sql(self._query, page)), self._params)
        return [dict(r) for r in res.mappings().all()]


class SelectSource(Generic[T]):
    """Pages a SQLAlchemy Select. The statement should carry its own ORDER BY."""

    def __init__(self, session: AsyncSession, stmt: Select, *, scalars: bool = True) -> None:
        self._session = session
        self._stmt = stmt
        self._scalars = scalars

    async def select_with_page_params(self, page: OffsetPageParams) -> Sequence[T]:
        stmt = self._stmt.limit(page.limit).offset(page.offset)
        res = await self._session.execute(stmt)
        if self._scalars:
            return list(res.scalars().all())
        return [dict(r) for r in res.mappings().all()]
