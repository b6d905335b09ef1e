from .base import Base
from .key_value import KeyValueRow

__all__ = [
    "Base",
    "KeyValueRow",
]
