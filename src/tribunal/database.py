from __future__ import annotations

import logging
from typing import Sequence

import aiosqlite

from .services.base import BaseService

log = logging.getLogger("tribunal.database")


async def initialize_database(sqlite_path: str, stores: Sequence[BaseService]) -> None:
    """Apply SQLite pragmas and create every store's tables."""
    try:
        async with aiosqlite.connect(sqlite_path) as db:
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("PRAGMA synchronous=NORMAL")
            await db.execute("PRAGMA temp_store=MEMORY")
            await db.commit()
        log.info("Applied SQLite pragmas to %s", sqlite_path)

        for store in stores:
            await store.init()
            log.info("Initialized %s", store.__class__.__name__)
    except Exception:
        log.exception("Failed to initialize database at %s", sqlite_path)
        raise
