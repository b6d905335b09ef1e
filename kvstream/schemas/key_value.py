from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class KeyValue(BaseModel):
    """Object stored in the key-value table."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    key: str = Field(min_length=1)
    value: str
