from __future__ import annotations

from datetime import datetime
from typing import Optional

import aiosqlite

from ..models import EntityKind, VoteRecord
from .base import BaseService
from .schema import create_shared_tables, from_iso, to_iso


class VoteStore(BaseService[VoteRecord]):
    """Reviewer votes and accuracy bans.

    A reviewer holds at most one vote per target; voting again replaces it and
    clears any earlier correctness verdict. Accuracy only counts votes cast
    after the reviewer's last lifted ban.
    """

    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await create_shared_tables(db)
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS reviewer_bans (
              reviewer_id INTEGER PRIMARY KEY,
              notes TEXT NOT NULL,
              banned_at TEXT NOT NULL,
              lifted_at TEXT,
              lifted_by INTEGER
            )
            """
        )
        await db.execute("CREATE INDEX IF NOT EXISTS idx_votes_reviewer ON review_votes(reviewer_id, voted_at)")

    def _from_row(self, row: aiosqlite.Row) -> VoteRecord:
        return VoteRecord(
            reviewer_id=int(row["reviewer_id"]),
            target_kind=EntityKind(row["target_kind"]),
            target_id=int(row["target_id"]),
            is_upvote=bool(row["is_upvote"]),
            is_training=bool(row["is_training"]),
            voted_at=from_iso(row["voted_at"]),
            is_correct=(bool(row["is_correct"]) if row["is_correct"] is not None else None),
        )

    async def record_vote(
        self,
        reviewer_id: int,
        kind: EntityKind,
        target_id: int,
        is_upvote: bool,
        is_training: bool,
        voted_at: datetime,
    ) -> None:
        await self._execute(
            """
            INSERT INTO review_votes (reviewer_id, target_kind, target_id, is_upvote, is_training, is_correct, voted_at)
            VALUES (?, ?, ?, ?, ?, NULL, ?)
            ON CONFLICT(reviewer_id, target_kind, target_id) DO UPDATE SET
              is_upvote = excluded.is_upvote,
              is_training = excluded.is_training,
              is_correct = NULL,
              voted_at = excluded.voted_at
            """,
            (reviewer_id, kind.value, target_id, int(is_upvote), int(is_training), to_iso(voted_at)),
        )

    async def get_vote(self, reviewer_id: int, kind: EntityKind, target_id: int) -> Optional[VoteRecord]:
        row = await self._fetchone(
            """
            SELECT reviewer_id, target_kind, target_id, is_upvote, is_training, is_correct, voted_at
            FROM review_votes
            WHERE reviewer_id = ? AND target_kind = ? AND target_id = ?
            """,
            (reviewer_id, kind.value, target_id),
        )
        return self._from_row(row) if row is not None else None

    async def resolve_votes(self, kind: EntityKind, target_id: int, confirmed: bool) -> int:
        """Mark outstanding votes on a target once its outcome is known.

        An upvote is correct when the target was cleared, a downvote when it
        was confirmed.
        """
        return await self._execute(
            """
            UPDATE review_votes
            SET is_correct = CASE WHEN is_upvote = ? THEN 0 ELSE 1 END
            WHERE target_kind = ? AND target_id = ? AND is_correct IS NULL
            """,
            (int(confirmed), kind.value, target_id),
        )

    async def historical_accuracy(self, reviewer_id: int) -> tuple[float, int]:
        row = await self._fetchone(
            """
            SELECT COUNT(*) AS total, COALESCE(SUM(v.is_correct), 0) AS correct
            FROM review_votes v
            WHERE v.reviewer_id = ?
              AND v.is_training = 1
              AND v.is_correct IS NOT NULL
              AND v.voted_at > COALESCE(
                (SELECT b.lifted_at FROM reviewer_bans b WHERE b.reviewer_id = v.reviewer_id), ''
              )
            """,
            (reviewer_id,),
        )
        total = int(row["total"]) if row is not None else 0
        if total == 0:
            return 1.0, 0
        return int(row["correct"]) / total, total

    async def is_banned(self, reviewer_id: int) -> bool:
        row = await self._fetchone(
            "SELECT 1 FROM reviewer_bans WHERE reviewer_id = ? AND lifted_at IS NULL",
            (reviewer_id,),
        )
        return row is not None

    async def ban(self, reviewer_id: int, notes: str, banned_at: datetime) -> None:
        await self._execute(
            """
            INSERT INTO reviewer_bans (reviewer_id, notes, banned_at, lifted_at, lifted_by)
            VALUES (?, ?, ?, NULL, NULL)
            ON CONFLICT(reviewer_id) DO UPDATE SET
              notes = excluded.notes,
              banned_at = excluded.banned_at,
              lifted_at = NULL,
              lifted_by = NULL
            """,
            (reviewer_id, notes, to_iso(banned_at)),
        )

    async def unban(self, reviewer_id: int, lifted_by: int, lifted_at: datetime) -> bool:
        changed = await self._execute(
            "UPDATE reviewer_bans SET lifted_at = ?, lifted_by = ? WHERE reviewer_id = ? AND lifted_at IS NULL",
            (to_iso(lifted_at), lifted_by, reviewer_id),
        )
        return changed > 0
