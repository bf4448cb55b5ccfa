from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, NamedTuple, Optional

import discord

from .accuracy import VoteAccuracyGatekeeper
from .config import ReviewPolicy
from .constants import MESSAGES
from .errors import NoTargetsError
from .interfaces import ActivityLog, EntityStore
from .models import (
    ActivityLogEntry,
    ActivityType,
    Entity,
    EntityKind,
    EntityStatus,
    Reputation,
    ReviewSort,
    TargetMode,
)
from .services.audit_queue import AuditDispatcher

log = logging.getLogger("tribunal.scheduler")

# Status order tried when the requested set is empty and fallback is enabled.
FALLBACK_ORDER: dict[TargetMode, tuple[EntityStatus, ...]] = {
    TargetMode.FLAGGED: (EntityStatus.FLAGGED, EntityStatus.CONFIRMED, EntityStatus.CLEARED),
    TargetMode.CONFIRMED: (EntityStatus.CONFIRMED, EntityStatus.FLAGGED, EntityStatus.CLEARED),
    TargetMode.CLEARED: (EntityStatus.CLEARED, EntityStatus.FLAGGED, EntityStatus.CONFIRMED),
}


class ScheduledTarget(NamedTuple):
    entity: Optional[Entity]
    banned: bool


class TargetScheduler:
    def __init__(
        self,
        entities: EntityStore,
        activity: ActivityLog,
        accuracy: VoteAccuracyGatekeeper,
        dispatcher: AuditDispatcher,
        policy: ReviewPolicy,
        clock: Callable[[], datetime] = discord.utils.utcnow,
    ) -> None:
        self._entities = entities
        self._activity = activity
        self._accuracy = accuracy
        self._dispatcher = dispatcher
        self._policy = policy
        self._clock = clock

    def statuses_for(self, target_mode: TargetMode) -> tuple[EntityStatus, ...]:
        if self._policy.target_fallback:
            return FALLBACK_ORDER[target_mode]
        return (target_mode.status,)

    async def _excluded_ids(self, reviewer_id: int, kind: EntityKind) -> list[int]:
        try:
            return list(
                await self._activity.recently_reviewed_ids(reviewer_id, kind, self._policy.recent_exclusion_limit)
            )
        except Exception:
            log.exception("Could not load recently reviewed %ss for reviewer %s", kind.value, reviewer_id)
            return []

    async def next(
        self,
        sort: ReviewSort,
        target_mode: TargetMode,
        reviewer_id: int,
        kind: EntityKind = EntityKind.USER,
    ) -> ScheduledTarget:
        """Pick, stamp and announce the next entity for ``reviewer_id``.

        Banned reviewers get ``(None, True)`` without touching the entity
        store. Raises NoTargetsError when every eligible status is empty.
        """
        if await self._accuracy.is_banned(reviewer_id):
            return ScheduledTarget(None, True)

        exclude = await self._excluded_ids(reviewer_id, kind)

        entity: Optional[Entity] = None
        for status in self.statuses_for(target_mode):
            try:
                entity = await self._entities.fetch_next(kind, sort, status, exclude)
                break
            except NoTargetsError:
                log.debug("No %s %ss left for reviewer %s", status.value, kind.value, reviewer_id)
        if entity is None:
            raise NoTargetsError(MESSAGES["no_targets"].format(kind=kind.value))

        upvotes, downvotes = await self._entities.count_votes(kind, entity.id)
        entity.reputation = Reputation(upvotes, downvotes)

        now = self._clock()
        entity.last_viewed = now
        await self._entities.save(entity)

        self._dispatcher.dispatch(
            ActivityLogEntry(
                reviewer_id=reviewer_id,
                target_kind=kind,
                target_id=entity.id,
                activity_type=ActivityType.VIEWED,
                timestamp=now,
                details={"sort": sort.value, "target_mode": target_mode.value, "status": entity.status.value},
            )
        )
        return ScheduledTarget(entity, False)
