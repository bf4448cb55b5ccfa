"""
Collaborator contracts for the review engine.

The controller and its gates only talk to storage and permissions through
these protocols, so the SQLite stores and the in-memory fakes are
interchangeable.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Protocol, TypeVar, runtime_checkable

from .models import ActivityLogEntry, Entity, EntityKind, EntityStatus, ReviewSort

P = TypeVar("P")


@runtime_checkable
class EntityStore(Protocol):
    async def fetch_next(
        self,
        kind: EntityKind,
        sort: ReviewSort,
        status: EntityStatus,
        exclude_ids: Iterable[int] = (),
    ) -> Entity:
        """Next candidate in ``sort`` order. Raises NoTargetsError when none remain."""
        ...

    async def get_by_id(self, kind: EntityKind, entity_id: int) -> Entity:
        """Fresh snapshot. Raises NotFoundError when the id no longer resolves."""
        ...

    async def save(self, entity: Entity) -> None:
        ...

    async def count_votes(self, kind: EntityKind, entity_id: int) -> tuple[int, int]:
        """(upvotes, downvotes) for the entity."""
        ...


@runtime_checkable
class VoteStore(Protocol):
    async def record_vote(
        self,
        reviewer_id: int,
        kind: EntityKind,
        target_id: int,
        is_upvote: bool,
        is_training: bool,
        voted_at: datetime,
    ) -> None:
        ...

    async def historical_accuracy(self, reviewer_id: int) -> tuple[float, int]:
        """(accuracy, sample size) over the reviewer's resolved training votes."""
        ...

    async def resolve_votes(self, kind: EntityKind, target_id: int, confirmed: bool) -> int:
        ...

    async def is_banned(self, reviewer_id: int) -> bool:
        ...

    async def ban(self, reviewer_id: int, notes: str, banned_at: datetime) -> None:
        ...

    async def unban(self, reviewer_id: int, lifted_by: int, lifted_at: datetime) -> bool:
        ...


@runtime_checkable
class ActivityLog(Protocol):
    async def append(self, entry: ActivityLogEntry) -> None:
        ...

    async def recent_viewers(self, kind: EntityKind, target_id: int, since: datetime) -> list[int]:
        ...

    async def recently_reviewed_ids(self, reviewer_id: int, kind: EntityKind, limit: int) -> list[int]:
        ...


@runtime_checkable
class PermissionOracle(Protocol):
    def is_reviewer(self, user_id: int) -> bool:
        ...

    def is_admin(self, user_id: int) -> bool:
        ...


def _validate(obj: object, protocol: type[P], required_methods: tuple[str, ...]) -> P:
    name = protocol.__name__
    if not isinstance(obj, protocol):
        raise AttributeError(f"Object {obj!r} does not implement {name} interface")
    for method in required_methods:
        if not callable(getattr(obj, method, None)):
            raise AttributeError(f"{name} method {method} is not callable")
    return obj


def validate_entity_store(store: object) -> EntityStore:
    return _validate(store, EntityStore, ("fetch_next", "get_by_id", "save", "count_votes"))


def validate_vote_store(store: object) -> VoteStore:
    return _validate(
        store,
        VoteStore,
        ("record_vote", "historical_accuracy", "resolve_votes", "is_banned", "ban", "unban"),
    )


def validate_activity_log(log: object) -> ActivityLog:
    return _validate(log, ActivityLog, ("append", "recent_viewers", "recently_reviewed_ids"))


def validate_permission_oracle(oracle: object) -> PermissionOracle:
    return _validate(oracle, PermissionOracle, ("is_reviewer", "is_admin"))
