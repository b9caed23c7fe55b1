"""Key-value storage backends for the local draft store."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import SessionLocal
from app.core.errors import LocalStorageError
from app.models import DraftEntry

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    """Synchronous string key-value storage.

    ``get`` returns ``None`` for a missing key; failures raise
    :class:`LocalStorageError`.
    """

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage, lost on restart."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class SqlStorage:
    """Storage persisted in the ``draft_entries`` table."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        try:
            with self._session_factory() as db:
                entry = db.get(DraftEntry, key)
                return entry.value if entry else None
        except SQLAlchemyError as e:
            raise LocalStorageError(f"Could not read {key}: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            with self._session_factory() as db:
                entry = db.get(DraftEntry, key)
                if entry is None:
                    db.add(DraftEntry(key=key, value=value))
                else:
                    entry.value = value
                db.commit()
        except SQLAlchemyError as e:
            raise LocalStorageError(f"Could not write {key}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            with self._session_factory() as db:
                db.query(DraftEntry).filter(DraftEntry.key == key).delete()
                db.commit()
        except SQLAlchemyError as e:
            raise LocalStorageError(f"Could not remove {key}: {e}") from e


def create_storage() -> KeyValueStorage:
    """Build the storage backend selected by ``DRAFT_STORE_BACKEND``."""
    backend = settings.DRAFT_STORE_BACKEND.lower()
    if backend == "memory":
        return MemoryStorage()
    if backend == "sql":
        return SqlStorage()
    raise RuntimeError(f"Unknown DRAFT_STORE_BACKEND: {settings.DRAFT_STORE_BACKEND}")
