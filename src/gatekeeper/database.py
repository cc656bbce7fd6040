from __future__ import annotations

import logging
from typing import List

import aiosqlite

from .services.base import BaseService

log = logging.getLogger("gatekeeper.database")


async def initialize_database(sqlite_path: str, stores: List[BaseService]) -> None:
    """Apply connection PRAGMAs and create every store's tables."""
    try:
        async with aiosqlite.connect(sqlite_path) as db:
            # WAL lets the sweeper write while handlers read
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("PRAGMA synchronous=NORMAL")
            await db.commit()
        log.info("Applied SQLite settings to %s", sqlite_path)

        for store in stores:
            await store.init()
            log.info("Initialized %s", store.__class__.__name__)
    except Exception:
        log.exception("Failed to initialize database")
        raise
