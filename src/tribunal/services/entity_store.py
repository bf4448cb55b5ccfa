from __future__ import annotations

import json
from typing import Iterable

import aiosqlite

from ..constants import MESSAGES
from ..errors import NoTargetsError, NotFoundError
from ..models import Entity, EntityKind, EntityStatus, Reason, ReviewSort, parse_reason_type
from .base import BaseService
from .schema import create_shared_tables, from_iso, to_iso

_COLUMNS = (
    "kind, id, name, status, confidence, reasons_json, owner_id, last_updated, last_viewed, "
    "verified_at, cleared_at, reviewer_id, is_deleted, is_locked"
)

_SCORE = (
    "(SELECT COALESCE(SUM(CASE WHEN v.is_upvote THEN 1 ELSE -1 END), 0) FROM review_votes v "
    "WHERE v.target_kind = e.kind AND v.target_id = e.id)"
)

# SQLite sorts NULL first in ascending order, so never-viewed rows lead.
ORDER_BY: dict[ReviewSort, str] = {
    ReviewSort.RANDOM: "RANDOM()",
    ReviewSort.CONFIDENCE: "e.confidence DESC, e.last_viewed ASC",
    ReviewSort.LAST_UPDATED: "e.last_updated ASC",
    ReviewSort.RECENTLY_UPDATED: "e.last_updated DESC",
    ReviewSort.REPUTATION: f"{_SCORE} ASC, e.last_viewed ASC",
    ReviewSort.LAST_VIEWED: "e.last_viewed ASC",
}


class EntityStore(BaseService[Entity]):
    """Users and groups under review, keyed by (kind, id)."""

    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await create_shared_tables(db)

    def _from_row(self, row: aiosqlite.Row) -> Entity:
        kind = EntityKind(row["kind"])
        raw_reasons = json.loads(row["reasons_json"] or "{}")
        reasons = {parse_reason_type(kind, key): Reason.from_dict(value) for key, value in raw_reasons.items()}
        return Entity(
            id=int(row["id"]),
            kind=kind,
            name=str(row["name"]),
            status=EntityStatus(row["status"]),
            confidence=float(row["confidence"]),
            reasons=reasons,
            owner_id=(int(row["owner_id"]) if row["owner_id"] is not None else None),
            last_updated=from_iso(row["last_updated"]),
            last_viewed=from_iso(row["last_viewed"]),
            verified_at=from_iso(row["verified_at"]),
            cleared_at=from_iso(row["cleared_at"]),
            reviewer_id=(int(row["reviewer_id"]) if row["reviewer_id"] is not None else None),
            is_deleted=bool(row["is_deleted"]),
            is_locked=bool(row["is_locked"]),
        )

    async def fetch_next(
        self,
        kind: EntityKind,
        sort: ReviewSort,
        status: EntityStatus,
        exclude_ids: Iterable[int] = (),
    ) -> Entity:
        excluded = sorted(set(exclude_ids))
        sql = f"SELECT {_COLUMNS} FROM review_entities e WHERE e.kind = ? AND e.status = ? AND e.is_deleted = 0"
        params: list[object] = [kind.value, status.value]
        if excluded:
            sql += f" AND e.id NOT IN ({', '.join('?' for _ in excluded)})"
            params.extend(excluded)
        sql += f" ORDER BY {ORDER_BY[sort]} LIMIT 1"

        row = await self._fetchone(sql, tuple(params))
        if row is None:
            raise NoTargetsError(MESSAGES["no_targets"].format(kind=kind.value))
        return self._from_row(row)

    async def get_by_id(self, kind: EntityKind, entity_id: int) -> Entity:
        row = await self._fetchone(
            f"SELECT {_COLUMNS} FROM review_entities WHERE kind = ? AND id = ?",
            (kind.value, entity_id),
        )
        if row is None:
            raise NotFoundError(f"{kind.value.capitalize()} {entity_id} no longer exists.")
        return self._from_row(row)

    async def save(self, entity: Entity) -> None:
        reasons_json = json.dumps(
            {key.value: reason.to_dict() for key, reason in entity.reasons.items()},
            separators=(",", ":"),
            ensure_ascii=False,
        )
        await self._execute(
            f"""
            INSERT INTO review_entities ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(kind, id) DO UPDATE SET
              name = excluded.name,
              status = excluded.status,
              confidence = excluded.confidence,
              reasons_json = excluded.reasons_json,
              owner_id = excluded.owner_id,
              last_updated = excluded.last_updated,
              last_viewed = excluded.last_viewed,
              verified_at = excluded.verified_at,
              cleared_at = excluded.cleared_at,
              reviewer_id = excluded.reviewer_id,
              is_deleted = excluded.is_deleted,
              is_locked = excluded.is_locked
            """,
            (
                entity.kind.value,
                entity.id,
                entity.name,
                entity.status.value,
                float(entity.confidence),
                reasons_json,
                entity.owner_id,
                to_iso(entity.last_updated),
                to_iso(entity.last_viewed),
                to_iso(entity.verified_at),
                to_iso(entity.cleared_at),
                entity.reviewer_id,
                int(entity.is_deleted),
                int(entity.is_locked),
            ),
        )

    async def count_votes(self, kind: EntityKind, entity_id: int) -> tuple[int, int]:
        row = await self._fetchone(
            """
            SELECT COALESCE(SUM(CASE WHEN is_upvote THEN 1 ELSE 0 END), 0) AS up,
                   COALESCE(SUM(CASE WHEN is_upvote THEN 0 ELSE 1 END), 0) AS down
            FROM review_votes
            WHERE target_kind = ? AND target_id = ?
            """,
            (kind.value, entity_id),
        )
        if row is None:
            return 0, 0
        return int(row["up"]), int(row["down"])
