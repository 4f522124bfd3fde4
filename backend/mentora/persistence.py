"""Key-value persistence for learner documents.

Every read and write of persisted learner data goes through
:class:`PersistenceStore`. Values are stored as JSON text under string keys,
mirroring a browser's local storage. Three interchangeable backends are
provided: an in-memory dict, a single JSON file and a SQLAlchemy table.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError
from pydantic_core import PydanticSerializationError
from sqlalchemy import delete, select

from .config import Settings, get_settings
from .db.base import Base
from .db.models import KeyValueEntryModel
from .db.session import get_engine, session_scope
from .errors import PersistenceSerializationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

USER_KEY = "user"
PROFILE_KEY = "profile"
STATE_KEY = "state"
THEME_KEY = "theme"


class KeyValueStore(Protocol):
    """Raw string storage used underneath :class:`PersistenceStore`."""

    def get_raw(self, key: str) -> Optional[str]:  # pragma: no cover - protocol definition
        ...

    def set_raw(self, key: str, value: str) -> None:  # pragma: no cover - protocol definition
        ...

    def remove(self, key: str) -> None:  # pragma: no cover - protocol definition
        ...

    def keys(self) -> List[str]:  # pragma: no cover - protocol definition
        ...


class MemoryKeyValueStore:
    """Process-local storage, used for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._entries: Dict[str, str] = dict(initial or {})

    def get_raw(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def set_raw(self, key: str, value: str) -> None:
        self._entries[key] = value

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._entries)


class JsonFileKeyValueStore:
    """All keys kept in one JSON object on disk, the local-storage analogue."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _load_unlocked(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable storage file %s: %s", self._path, exc)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring storage file %s; expected a JSON object", self._path)
            return {}
        return {str(key): value for key, value in raw.items() if isinstance(value, str)}

    def _write_unlocked(self, entries: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(entries, handle, indent=2)
        os.replace(tmp_path, self._path)

    def get_raw(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load_unlocked().get(key)

    def set_raw(self, key: str, value: str) -> None:
        with self._lock:
            entries = self._load_unlocked()
            entries[key] = value
            self._write_unlocked(entries)

    def remove(self, key: str) -> None:
        with self._lock:
            entries = self._load_unlocked()
            if entries.pop(key, None) is not None:
                self._write_unlocked(entries)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._load_unlocked())


class DatabaseKeyValueStore:
    """Key-value rows in the ``key_value_entries`` table."""

    def __init__(self) -> None:
        Base.metadata.create_all(get_engine())

    def get_raw(self, key: str) -> Optional[str]:
        with session_scope(commit=False) as session:
            model = session.get(KeyValueEntryModel, key)
            return model.value if model else None

    def set_raw(self, key: str, value: str) -> None:
        with session_scope() as session:
            model = session.get(KeyValueEntryModel, key)
            if model is None:
                session.add(KeyValueEntryModel(key=key, value=value))
            else:
                model.value = value

    def remove(self, key: str) -> None:
        with session_scope() as session:
            session.execute(delete(KeyValueEntryModel).where(KeyValueEntryModel.key == key))

    def keys(self) -> List[str]:
        with session_scope(commit=False) as session:
            return list(session.execute(select(KeyValueEntryModel.key)).scalars().all())


class PersistenceStore:
    """Typed JSON reads and writes over a :class:`KeyValueStore`."""

    def __init__(self, backend: Optional[KeyValueStore] = None, prefix: str = "mentora_") -> None:
        self._backend: KeyValueStore = backend if backend is not None else MemoryKeyValueStore()
        self._prefix = prefix

    @property
    def backend(self) -> KeyValueStore:
        return self._backend

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def read_text(self, key: str) -> Optional[str]:
        try:
            return self._backend.get_raw(self._key(key))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Storage read failed for %s: %s", key, exc)
            return None

    def write_text(self, key: str, value: str) -> None:
        self._backend.set_raw(self._key(key), value)

    def read(self, key: str, default: Any = None, model: Optional[Type[ModelT]] = None) -> Any:
        """Return the stored value for ``key`` or ``default`` if missing or malformed."""
        raw = self.read_text(key)
        if not raw:
            return default
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding malformed JSON stored under %s", key)
            return default
        if model is None:
            return payload
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Stored %s does not match %s: %s", key, model.__name__, exc)
            return default

    def write(self, key: str, value: Any) -> None:
        """Serialise ``value`` and commit it; serialisation errors propagate."""
        try:
            if isinstance(value, BaseModel):
                value = value.model_dump(mode="json", by_alias=True)
            encoded = json.dumps(value, allow_nan=False)
        except (PydanticSerializationError, TypeError, ValueError) as exc:
            raise PersistenceSerializationError(key, exc) from exc
        self.write_text(key, encoded)
        logger.debug("Committed %s (%d bytes)", key, len(encoded))

    def remove(self, key: str) -> None:
        self._backend.remove(self._key(key))

    def clear(self) -> None:
        """Remove every key in this store's namespace."""
        for key in self._backend.keys():
            if key.startswith(self._prefix):
                self._backend.remove(key)


def build_store(settings: Optional[Settings] = None) -> PersistenceStore:
    settings = settings or get_settings()
    backend: KeyValueStore
    if settings.persistence_mode == "database":
        backend = DatabaseKeyValueStore()
    elif settings.persistence_mode == "memory":
        backend = MemoryKeyValueStore()
    else:
        backend = JsonFileKeyValueStore(settings.state_path)
    logger.info("Using %s persistence", settings.persistence_mode)
    return PersistenceStore(backend, prefix=settings.storage_prefix)


__all__ = [
    "DatabaseKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "PROFILE_KEY",
    "PersistenceStore",
    "STATE_KEY",
    "THEME_KEY",
    "USER_KEY",
    "build_store",
]
