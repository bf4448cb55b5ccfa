from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .constants import MAX_HISTORY_SIZE
from .history import ReviewHistory
from .models import Entity, EntityKind, ReviewMode, ReviewSort, TargetMode
from .reasons import ReasonAggregator


class ControllerState(Enum):
    NO_TARGET = "no_target"
    PRESENTING = "presenting"
    AWAITING_DECISION = "awaiting_decision"
    BLOCKED_BREAK = "blocked_break"
    BLOCKED_CAPTCHA = "blocked_captcha"
    BLOCKED_BANNED = "blocked_banned"


@dataclass
class ReviewSession:
    """Per-reviewer review context.

    Created by the caller at the start of a reviewer's interaction and passed
    into every controller call. Nothing here is persisted.
    """

    reviewer_id: int
    target_kind: EntityKind = EntityKind.USER
    default_sort: ReviewSort = ReviewSort.CONFIDENCE
    target_mode: TargetMode = TargetMode.FLAGGED
    mode: ReviewMode = ReviewMode.TRAINING
    # None until a controller sizes it from its policy.
    max_history_size: Optional[int] = None

    active_target: Optional[Entity] = None
    reasons: Optional[ReasonAggregator] = None
    presented_at: Optional[datetime] = None
    histories: dict[EntityKind, ReviewHistory] = field(default_factory=dict)

    session_start: Optional[datetime] = None
    reviews_this_window: int = 0
    next_allowed_review_time: Optional[datetime] = None

    decision_count: int = 0
    state: ControllerState = ControllerState.NO_TARGET

    @property
    def history(self) -> ReviewHistory:
        hist = self.histories.get(self.target_kind)
        if hist is None:
            hist = ReviewHistory(self.max_history_size or MAX_HISTORY_SIZE)
            self.histories[self.target_kind] = hist
        return hist

    @property
    def active_target_id(self) -> Optional[int]:
        return self.active_target.id if self.active_target else None

    @property
    def history_index(self) -> int:
        return self.history.index

    def present(self, entity: Entity, now: datetime) -> None:
        self.active_target = entity
        self.reasons = ReasonAggregator(entity)
        self.presented_at = now
        self.state = ControllerState.PRESENTING

    def clear_target(self) -> None:
        self.active_target = None
        self.reasons = None
        self.presented_at = None
        self.state = ControllerState.NO_TARGET
