from __future__ import annotations

from datetime import datetime
from typing import Optional

import aiosqlite

# Entity and vote tables are read by more than one store, so their DDL lives
# here and every store that touches them creates them idempotently.

ENTITIES_DDL = """
CREATE TABLE IF NOT EXISTS review_entities (
  kind TEXT NOT NULL,
  id INTEGER NOT NULL,
  name TEXT NOT NULL,
  status TEXT NOT NULL,
  confidence REAL NOT NULL DEFAULT 0,
  reasons_json TEXT NOT NULL DEFAULT '{}',
  owner_id INTEGER,
  last_updated TEXT,
  last_viewed TEXT,
  verified_at TEXT,
  cleared_at TEXT,
  reviewer_id INTEGER,
  is_deleted INTEGER NOT NULL DEFAULT 0,
  is_locked INTEGER NOT NULL DEFAULT 0,
  PRIMARY KEY (kind, id)
)
"""

VOTES_DDL = """
CREATE TABLE IF NOT EXISTS review_votes (
  reviewer_id INTEGER NOT NULL,
  target_kind TEXT NOT NULL,
  target_id INTEGER NOT NULL,
  is_upvote INTEGER NOT NULL,
  is_training INTEGER NOT NULL DEFAULT 1,
  is_correct INTEGER,
  voted_at TEXT NOT NULL,
  PRIMARY KEY (reviewer_id, target_kind, target_id)
)
"""

INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_entities_status ON review_entities(kind, status, is_deleted)",
    "CREATE INDEX IF NOT EXISTS idx_votes_target ON review_votes(target_kind, target_id)",
)


async def create_shared_tables(db: aiosqlite.Connection) -> None:
    await db.execute(ENTITIES_DDL)
    await db.execute(VOTES_DDL)
    for stmt in INDEXES:
        await db.execute(stmt)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None
