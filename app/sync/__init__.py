"""
Offline-first synchronization between the device cache and the remote store.
"""

from app.sync.cache import LocalCache
from app.sync.remote import RemoteStore, SqlRemoteStore
from app.sync.session import SyncSession, get_sync_session
from app.sync.state import AppState, reduce

__all__ = ["LocalCache", "RemoteStore", "SqlRemoteStore", "SyncSession", "get_sync_session", "AppState", "reduce"]
