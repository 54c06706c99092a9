"""MongoDB connection helpers."""

from __future__ import annotations

from typing import Any, Dict, Tuple

from pymongo import MongoClient
from pymongo.database import Database

from jrdev.core.config import settings

_clients: Dict[Tuple[str, frozenset], MongoClient] = {}


def get_client(uri: str, **kwargs: Any) -> MongoClient:
    """
    Return a cached MongoClient keyed by URI and options.
    This avoids creating many clients across the API process and workers.
    """
    key = (uri, frozenset(kwargs.items()))
    if key not in _clients:
        _clients[key] = MongoClient(uri, **kwargs)
    return _clients[key]


def close_clients() -> None:
    for client in _clients.values():
        client.close()
    _clients.clear()


def get_database() -> Database:
    """Return a MongoDB database handle (non-dependency use)."""
    return get_client(settings.MONGODB_URI)[settings.MONGODB_DB_NAME]


def get_db():
    """FastAPI dependency that yields a database handle."""
    db = get_database()
    try:
        yield db
    finally:
        # Clients are cached; no explicit close here.
        pass
