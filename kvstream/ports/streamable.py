from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, TypeVar

T_co = TypeVar("T_co", covariant=True)


@dataclass(frozen=True, slots=True)
class OffsetPageParams:
    limit: int
    page_number: int  # 0 is the first page

    @property
    def offset(self) -> int:
        return self.limit * self.page_number


class Streamable(Protocol[T_co]):
    """Anything that can return one limit/offset page of entities."""

    async def select_with_page_params(self, page: OffsetPageParams) -> Sequence[T_co]:
        """Return up to page.limit entities (empty when the page is past the end)."""
        ...
