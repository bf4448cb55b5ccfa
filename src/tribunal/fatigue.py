from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

import discord

from .config import ReviewPolicy
from .session import ReviewSession

log = logging.getLogger("tribunal.fatigue")

Clock = Callable[[], datetime]


class FatigueThrottle:
    """Forces a cooldown after too many reviews in a rolling window."""

    def __init__(self, policy: ReviewPolicy, clock: Clock = discord.utils.utcnow) -> None:
        self.max_reviews = policy.max_reviews_before_break
        self.min_break = policy.min_break_duration
        self.window = policy.review_session_window
        self._clock = clock

    def in_break(self, session: ReviewSession, now: Optional[datetime] = None) -> bool:
        now = now or self._clock()
        nxt = session.next_allowed_review_time
        return nxt is not None and now < nxt

    def break_remaining(self, session: ReviewSession, now: Optional[datetime] = None) -> timedelta:
        now = now or self._clock()
        if not self.in_break(session, now):
            return timedelta(0)
        return session.next_allowed_review_time - now

    def check_and_advance(self, session: ReviewSession, now: Optional[datetime] = None) -> bool:
        """Count one review. Returns True when a break screen must be shown."""
        now = now or self._clock()

        # Already on a break: does not consume a slot.
        if self.in_break(session, now):
            return True

        if session.session_start is None or now - session.session_start > self.window:
            session.reviews_this_window = 0
            session.session_start = now

        if session.reviews_this_window >= self.max_reviews:
            resume_at = now + self.min_break
            session.session_start = resume_at
            session.next_allowed_review_time = resume_at
            session.reviews_this_window = 0
            log.info(
                "Reviewer %s hit %d reviews; break until %s",
                session.reviewer_id,
                self.max_reviews,
                resume_at.isoformat(timespec="seconds"),
            )
            return True

        session.reviews_this_window += 1
        return False
