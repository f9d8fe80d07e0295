"""
Persistence collaborator for token values. Keys are plain strings
("_refresh_token.refresh", "_refresh_token_expiration.refresh", ...).
Two backends: in-process memory and a SQLAlchemy table (SQLite by default).
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from refresh_auth.config import DATABASE_URL
from refresh_auth.models import Base, StoredValue

logger = logging.getLogger(__name__)


class Storage(ABC):
    @abstractmethod
    def read_token(self, key: str) -> Any:
        """Stored value for key, or None."""

    @abstractmethod
    def write_token(self, key: str, value: Any) -> None:
        """Store value under key. Writing None is the same as clear_token."""

    @abstractmethod
    def clear_token(self, key: str) -> None:
        ...


class MemoryStorage(Storage):
    """Dict-backed storage; lost with the process."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(initial or {})

    def read_token(self, key: str) -> Any:
        return self._values.get(key)

    def write_token(self, key: str, value: Any) -> None:
        if value is None:
            self.clear_token(key)
            return
        self._values[key] = value

    def clear_token(self, key: str) -> None:
        self._values.pop(key, None)


def _make_engine(url: str):
    # In-memory SQLite needs StaticPool so every connection sees the same DB
    if url.startswith("sqlite:///:memory:") or url == "sqlite://":
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    connect_args = {"check_same_thread": False} if "sqlite" in url else {}
    return create_engine(url, connect_args=connect_args)


class DatabaseStorage(Storage):
    """
    Values persisted as JSON in the stored_values table. Survives restarts, and another
    process writing the same DB is picked up on the next sync().
    """

    def __init__(self, url: str | None = None) -> None:
        self.url = url or DATABASE_URL
        self.engine = _make_engine(self.url)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        Base.metadata.create_all(bind=self.engine)

    def read_token(self, key: str) -> Any:
        db = self.SessionLocal()
        try:
            row = db.get(StoredValue, key)
            if row is None:
                return None
            return json.loads(row.value)
        finally:
            db.close()

    def write_token(self, key: str, value: Any) -> None:
        if value is None:
            self.clear_token(key)
            return
        db = self.SessionLocal()
        try:
            row = db.get(StoredValue, key)
            if row is None:
                db.add(StoredValue(key=key, value=json.dumps(value)))
            else:
                row.value = json.dumps(value)
            db.commit()
        except Exception:
            db.rollback()
            logger.warning("Failed to persist %s", key)
            raise
        finally:
            db.close()

    def clear_token(self, key: str) -> None:
        db = self.SessionLocal()
        try:
            row = db.get(StoredValue, key)
            if row is not None:
                db.delete(row)
                db.commit()
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()
