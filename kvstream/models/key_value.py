from __future__ import annotations

from typing import Optional

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from kvstream.core.constants import KEY_VALUE_TABLE

from .base import Base


class KeyValueRow(Base):
    """Key-value pair (key_value); one row per key, updated in place."""

    __tablename__ = KEY_VALUE_TABLE

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
