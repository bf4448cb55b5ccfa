from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

import aiosqlite

from ..models import ActivityLogEntry, ActivityType, EntityKind
from .base import BaseService
from .schema import from_iso, to_iso


class ActivityStore(BaseService[ActivityLogEntry]):
    """Append-only reviewer activity log."""

    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS review_activity (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              reviewer_id INTEGER NOT NULL,
              target_kind TEXT,
              target_id INTEGER NOT NULL,
              activity_type TEXT NOT NULL,
              created_at_iso TEXT NOT NULL,
              details_json TEXT NOT NULL
            )
            """
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_activity_target ON review_activity(target_kind, target_id, activity_type, created_at_iso)"
        )
        await db.execute("CREATE INDEX IF NOT EXISTS idx_activity_reviewer ON review_activity(reviewer_id, id)")

    def _from_row(self, row: aiosqlite.Row) -> ActivityLogEntry:
        return ActivityLogEntry(
            reviewer_id=int(row["reviewer_id"]),
            target_kind=(EntityKind(row["target_kind"]) if row["target_kind"] is not None else None),
            target_id=int(row["target_id"]),
            activity_type=ActivityType(row["activity_type"]),
            timestamp=from_iso(row["created_at_iso"]),
            details=json.loads(row["details_json"] or "{}"),
        )

    async def append(self, entry: ActivityLogEntry) -> None:
        details_json = json.dumps(entry.details, separators=(",", ":"), ensure_ascii=False, default=str)
        await self._execute(
            """
            INSERT INTO review_activity (reviewer_id, target_kind, target_id, activity_type, created_at_iso, details_json)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                entry.reviewer_id,
                entry.target_kind.value if entry.target_kind is not None else None,
                entry.target_id,
                entry.activity_type.value,
                to_iso(entry.timestamp),
                details_json,
            ),
        )

    async def recent_viewers(self, kind: EntityKind, target_id: int, since: datetime) -> list[int]:
        """Reviewers who viewed the target at or after ``since``, newest first."""
        rows = await self._fetchall(
            """
            SELECT reviewer_id, MAX(id) AS last_id
            FROM review_activity
            WHERE target_kind = ? AND target_id = ? AND activity_type = ? AND created_at_iso >= ?
            GROUP BY reviewer_id
            ORDER BY last_id DESC
            """,
            (kind.value, target_id, ActivityType.VIEWED.value, to_iso(since)),
        )
        return [int(r["reviewer_id"]) for r in rows]

    async def recently_reviewed_ids(self, reviewer_id: int, kind: EntityKind, limit: int) -> list[int]:
        limit = max(1, int(limit))
        rows = await self._fetchall(
            """
            SELECT target_id, MAX(id) AS last_id
            FROM review_activity
            WHERE reviewer_id = ? AND target_kind = ? AND activity_type = ?
            GROUP BY target_id
            ORDER BY last_id DESC
            LIMIT ?
            """,
            (reviewer_id, kind.value, ActivityType.VIEWED.value, limit),
        )
        return [int(r["target_id"]) for r in rows]

    async def recent_by_reviewer(
        self,
        reviewer_id: int,
        limit: int = 20,
        activity_type: Optional[ActivityType] = None,
    ) -> list[ActivityLogEntry]:
        limit = max(1, min(100, int(limit)))
        sql = (
            "SELECT reviewer_id, target_kind, target_id, activity_type, created_at_iso, details_json "
            "FROM review_activity WHERE reviewer_id = ?"
        )
        params: list[object] = [reviewer_id]
        if activity_type is not None:
            sql += " AND activity_type = ?"
            params.append(activity_type.value)
        sql += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        rows = await self._fetchall(sql, tuple(params))
        return [self._from_row(r) for r in rows]
