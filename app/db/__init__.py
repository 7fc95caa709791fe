"""
Database configuration and models.
"""

from app.db.database import make_engine, make_session_factory, session_scope
from app.db.models import RemoteBase, CacheBase

__all__ = ["make_engine", "make_session_factory", "session_scope", "RemoteBase", "CacheBase"]
