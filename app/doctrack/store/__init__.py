"""
Store selection.

STORE_BACKEND=sql (default) binds a SqlStore to the request-scoped SQLAlchemy session;
STORE_BACKEND=memory shares one MemoryStore across the whole process.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from flask import Flask, current_app, g

from app.doctrack.db import db_session, init_db, session_scope
from app.doctrack.store.base import Store, StoreError
from app.doctrack.store.memory import MemoryStore
from app.doctrack.store.sql import SqlStore

__all__ = ["MemoryStore", "SqlStore", "Store", "StoreError", "app_store", "current_store", "init_store"]


def init_store(app: Flask) -> None:
    backend = (app.config.get("STORE_BACKEND") or "sql").strip().lower()
    if backend == "memory":
        app.extensions["memory_store"] = MemoryStore()
    elif backend == "sql":
        init_db(app)
    else:
        raise RuntimeError(f"Unknown STORE_BACKEND {backend!r} (expected 'sql' or 'memory').")
    app.extensions["store_backend"] = backend


@contextmanager
def app_store(app: Flask) -> Generator[Store, None, None]:
    """A store outside any request (startup seeding, scripts, tests)."""
    if app.extensions["store_backend"] == "memory":
        yield app.extensions["memory_store"]
        return
    with session_scope(app) as s:
        yield SqlStore(s)


def current_store() -> Store:
    """Request-scoped store."""
    store = getattr(g, "store", None)
    if store is not None:
        return store
    if current_app.extensions["store_backend"] == "memory":
        store = current_app.extensions["memory_store"]
    else:
        store = SqlStore(db_session())
    g.store = store
    return store
