from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from app.doctrack.db import make_engine, make_sessionmaker
from app.doctrack.store import SqlStore


@contextmanager
def script_store(db_url: str) -> Generator[SqlStore, None, None]:
    """
    Standalone SQL store for release/seed scripts (no Flask app).
    Writes go through store.transaction(); the engine is disposed on exit.
    """
    engine = make_engine(db_url)
    s = make_sessionmaker(engine)()
    try:
        yield SqlStore(s)
    finally:
        s.close()
        engine.dispose()
