"""Database package: declarative base, archive slot model and async session helpers."""

from .base import Base  # noqa: F401
from .session import get_async_engine, get_session_maker  # noqa: F401
from . import models  # noqa: F401

__all__ = ["Base", "get_async_engine", "get_session_maker", "models"]
