"""
Device-local durable cache.

A synchronous key -> JSON store backed by a single SQLite table. The session
reads it once at startup and writes it on every mutation and every pull.
"""

import json
import logging
from typing import Any

from sqlalchemy.engine import Engine

from app.db.database import make_engine, make_session_factory, session_scope
from app.db.models import CacheBase, CacheEntry

logger = logging.getLogger(__name__)

LOANS_KEY = "loans"
USERS_KEY = "users"
REMOTE_KEY = "remote_settings"


class LocalCache:
    """Key/value JSON cache on a SQLAlchemy engine."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._factory = make_session_factory(engine)
        CacheBase.metadata.create_all(bind=engine)

    @classmethod
    def from_url(cls, database_url: str) -> "LocalCache":
        return cls(make_engine(database_url))

    def get(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for ``key``, or ``default`` when absent or unreadable."""
        with session_scope(self._factory) as db:
            entry = db.get(CacheEntry, key)
            raw = entry.value if entry else None

        if raw is None:
            return default

        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding unreadable cache entry '{key}'")
            return default

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def set_many(self, values: dict) -> None:
        """Write several keys in one transaction."""
        with session_scope(self._factory) as db:
            for key, value in values.items():
                payload = json.dumps(value)
                entry = db.get(CacheEntry, key)
                if entry:
                    entry.value = payload
                else:
                    db.add(CacheEntry(key=key, value=payload))

    def delete(self, key: str) -> None:
        with session_scope(self._factory) as db:
            entry = db.get(CacheEntry, key)
            if entry:
                db.delete(entry)

    def keys(self) -> list:
        with session_scope(self._factory) as db:
            return [row.key for row in db.query(CacheEntry.key).all()]

    def clear(self) -> None:
        """Remove every entry."""
        with session_scope(self._factory) as db:
            db.query(CacheEntry).delete()

