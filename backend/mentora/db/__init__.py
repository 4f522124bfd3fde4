"""SQLAlchemy models and session helpers behind the database store."""

from .base import Base
from .models import KeyValueEntryModel
from .session import dispose_engine, get_engine, session_scope

__all__ = ["Base", "KeyValueEntryModel", "dispose_engine", "get_engine", "session_scope"]
