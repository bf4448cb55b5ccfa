from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


class EntityKind(Enum):
    USER = "user"
    GROUP = "group"


class EntityStatus(Enum):
    FLAGGED = "flagged"
    CONFIRMED = "confirmed"
    CLEARED = "cleared"


class UserReasonType(Enum):
    PROFILE = "profile"
    FRIEND = "friend"
    OUTFIT = "outfit"
    GROUP = "group"
    CONDO = "condo"
    CHAT = "chat"
    FAVORITES = "favorites"
    BADGES = "badges"


class GroupReasonType(Enum):
    MEMBER = "member"
    PURPOSE = "purpose"
    DESCRIPTION = "description"
    SHOUT = "shout"


ReasonType = Union[UserReasonType, GroupReasonType]


def reason_types_for(kind: EntityKind) -> type[UserReasonType] | type[GroupReasonType]:
    """Return the closed set of reason keys an entity kind accepts."""
    if kind is EntityKind.USER:
        return UserReasonType
    return GroupReasonType


def parse_reason_type(kind: EntityKind, raw: Union[str, ReasonType]) -> ReasonType:
    """Resolve a reason key for ``kind``. Raises ValueError for foreign keys."""
    enum_cls = reason_types_for(kind)
    if isinstance(raw, enum_cls):
        return raw
    if isinstance(raw, Enum):
        raise ValueError(f"{raw.value!r} is not a {kind.value} reason")
    return enum_cls(str(raw).strip().lower())


class ReviewSort(Enum):
    RANDOM = "random"
    CONFIDENCE = "confidence"
    LAST_UPDATED = "last_updated"
    RECENTLY_UPDATED = "recently_updated"
    REPUTATION = "reputation"
    LAST_VIEWED = "last_viewed"


class TargetMode(Enum):
    FLAGGED = "flagged"
    CONFIRMED = "confirmed"
    CLEARED = "cleared"

    @property
    def status(self) -> EntityStatus:
        return EntityStatus(self.value)


class ReviewMode(Enum):
    TRAINING = "training"
    STANDARD = "standard"


class Decision(Enum):
    CONFIRM = "confirm"
    CLEAR = "clear"


class ActivityType(Enum):
    VIEWED = "viewed"
    CONFIRMED = "confirmed"
    CONFIRMED_CUSTOM = "confirmed_custom"
    CLEARED = "cleared"
    SKIPPED = "skipped"
    TRAINING_UPVOTE = "training_upvote"
    TRAINING_DOWNVOTE = "training_downvote"
    REASON_UPDATED = "reason_updated"
    REASONS_RESTORED = "reasons_restored"
    REVIEWER_BANNED = "reviewer_banned"
    REVIEWER_UNBANNED = "reviewer_unbanned"


@dataclass
class Reason:
    message: str
    confidence: float
    evidence: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "confidence": self.confidence, "evidence": list(self.evidence)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Reason:
        return cls(
            message=str(data.get("message") or ""),
            confidence=float(data.get("confidence") or 0.0),
            evidence=[str(e) for e in (data.get("evidence") or [])],
        )


@dataclass(frozen=True)
class Reputation:
    # Upvotes say "looks safe", downvotes say "looks bad".
    upvotes: int = 0
    downvotes: int = 0

    @property
    def total(self) -> int:
        return self.upvotes + self.downvotes

    @property
    def score(self) -> int:
        return self.upvotes - self.downvotes


@dataclass
class Entity:
    """Snapshot of a user or group under review."""

    id: int
    kind: EntityKind
    name: str
    status: EntityStatus = EntityStatus.FLAGGED
    confidence: float = 0.0
    reasons: dict[ReasonType, Reason] = field(default_factory=dict)
    reputation: Reputation = field(default_factory=Reputation)
    owner_id: Optional[int] = None
    last_updated: Optional[datetime] = None
    last_viewed: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    cleared_at: Optional[datetime] = None
    reviewer_id: Optional[int] = None
    is_deleted: bool = False
    is_locked: bool = False

    @property
    def label(self) -> str:
        return self.kind.value

    def reason_messages(self) -> list[str]:
        return [r.message for r in self.reasons.values()]


@dataclass(frozen=True)
class VoteRecord:
    reviewer_id: int
    target_kind: EntityKind
    target_id: int
    is_upvote: bool
    is_training: bool
    voted_at: datetime
    is_correct: Optional[bool] = None


@dataclass(frozen=True)
class ActivityLogEntry:
    reviewer_id: int
    target_kind: Optional[EntityKind]
    target_id: int
    activity_type: ActivityType
    timestamp: datetime
    details: dict[str, Any] = field(default_factory=dict)
