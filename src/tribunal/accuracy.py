from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

import discord

from .config import ReviewPolicy
from .constants import BAN_NOTES
from .interfaces import VoteStore
from .models import ActivityLogEntry, ActivityType
from .services.audit_queue import AuditDispatcher
from .services.cache import TTLCache

log = logging.getLogger("tribunal.accuracy")

# Reviewer id recorded on entries the engine writes on its own behalf.
SYSTEM_REVIEWER_ID = 0


class VoteAccuracyGatekeeper:
    """Bans reviewers whose resolved training votes are mostly wrong."""

    def __init__(
        self,
        votes: VoteStore,
        dispatcher: AuditDispatcher,
        policy: ReviewPolicy,
        clock: Callable[[], datetime] = discord.utils.utcnow,
        cache: Optional[TTLCache[int, bool]] = None,
    ) -> None:
        self._votes = votes
        self._dispatcher = dispatcher
        self._floor = policy.accuracy_floor
        self._min_votes = policy.accuracy_min_votes
        self._clock = clock
        # Only "not banned" verdicts are cached. Persisted bans are always read.
        self._clean = cache if cache is not None else TTLCache(default_ttl_seconds=policy.accuracy_cache_ttl_seconds)

    def forget(self, reviewer_id: int) -> None:
        """Drop a cached clean verdict so the next check recomputes accuracy."""
        self._clean.delete(reviewer_id)

    async def is_banned(self, reviewer_id: int) -> bool:
        if await self._votes.is_banned(reviewer_id):
            return True
        if self._clean.get(reviewer_id):
            return False

        accuracy, sample = await self._votes.historical_accuracy(reviewer_id)
        if sample < self._min_votes or accuracy >= self._floor:
            self._clean.set(reviewer_id, True)
            return False

        now = self._clock()
        await self._votes.ban(reviewer_id, BAN_NOTES, now)
        self._dispatcher.dispatch(
            ActivityLogEntry(
                reviewer_id=SYSTEM_REVIEWER_ID,
                target_kind=None,
                target_id=reviewer_id,
                activity_type=ActivityType.REVIEWER_BANNED,
                timestamp=now,
                details={"accuracy": round(accuracy, 2), "sample": sample, "notes": BAN_NOTES},
            )
        )
        log.warning(
            "Banned reviewer %s: accuracy %.2f over %d votes is below %.2f",
            reviewer_id,
            accuracy,
            sample,
            self._floor,
        )
        return True

    async def lift_ban(self, reviewer_id: int, lifted_by: int) -> bool:
        lifted = await self._votes.unban(reviewer_id, lifted_by, self._clock())
        self.forget(reviewer_id)
        if lifted:
            log.info("Reviewer %s unbanned by %s", reviewer_id, lifted_by)
        return lifted
