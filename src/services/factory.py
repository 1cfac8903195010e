# src/services/factory.py

"""Wire a record store, auth, snapshot cache and price service."""

import logging
from dataclasses import dataclass
from pathlib import Path

from src.config.settings import Settings
from src.services.auth import (
    AuthBackend,
    AuthService,
    LocalAuthBackend,
    RestAuthBackend,
)
from src.services.price_service import PriceService
from src.services.snapshot_cache import SnapshotCache
from src.storage.record_store import RecordStore
from src.storage.rest_store import RestRecordStore
from src.storage.sqlite_store import SQLiteRecordStore

logger = logging.getLogger("price_tracker.factory")


@dataclass
class TrackerContext:
    """Everything one signed-in session needs, built once per run."""

    store: RecordStore
    auth: AuthService
    cache: SnapshotCache
    prices: PriceService

    def close(self) -> None:
        self.store.close()


def build_backend(
    backend: str | None = None,
    db_path: Path | None = None,
) -> tuple[RecordStore, AuthBackend]:
    """Create the store/auth pair for ``sqlite`` or ``rest``."""
    kind = (backend or Settings.STORE_BACKEND).lower()
    if kind == "sqlite":
        sqlite_store = SQLiteRecordStore(db_path=db_path)
        return sqlite_store, LocalAuthBackend(sqlite_store)
    if kind == "rest":
        rest_store = RestRecordStore()
        return rest_store, RestAuthBackend(rest_store)
    raise ValueError(f"Unknown store backend: {kind}")


def build_context(
    backend: str | None = None,
    db_path: Path | None = None,
) -> TrackerContext:
    """Build a fresh session context; nobody is signed in yet."""
    store, auth_backend = build_backend(backend, db_path)
    auth = AuthService(auth_backend)
    cache = SnapshotCache(store, auth)
    logger.info(
        "Tracker context ready (backend=%s)",
        type(store).__name__,
    )
    return TrackerContext(
        store=store,
        auth=auth,
        cache=cache,
        prices=PriceService(cache),
    )
