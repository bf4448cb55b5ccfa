"""Shared fixtures for the tribunal test suite."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest

from tribunal.config import ReviewPolicy
from tribunal.controller import SessionController
from tribunal.models import Entity, EntityKind, EntityStatus, Reason, ReviewMode, UserReasonType
from tribunal.permissions import StaticPermissionOracle
from tribunal.reasons import calculate_confidence
from tribunal.services.audit_queue import AuditDispatcher
from tribunal.session import ReviewSession
from tribunal.testing.fakes import FakeClock, InMemoryActivityLog, InMemoryEntityStore, InMemoryVoteStore

ADMIN_ID = 1
REVIEWER_ID = 100
OTHER_REVIEWER_ID = 101
TRAINEE_ID = 200


# ============================================================================
# Builders
# ============================================================================


def make_user(entity_id: int, confidence_reasons: dict[UserReasonType, float] | None = None, **kwargs: Any) -> Entity:
    """Build a flagged user whose confidence matches its reasons."""
    reasons = {
        key: Reason(message=f"{key.value} looks suspicious", confidence=value, evidence=[f"evidence-{key.value}"])
        for key, value in (confidence_reasons or {UserReasonType.PROFILE: 0.8}).items()
    }
    fields: dict[str, Any] = {
        "id": entity_id,
        "kind": EntityKind.USER,
        "name": f"user{entity_id}",
        "status": EntityStatus.FLAGGED,
        "reasons": reasons,
        "confidence": calculate_confidence(reasons),
    }
    fields.update(kwargs)
    return Entity(**fields)


# ============================================================================
# Collaborators
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy() -> ReviewPolicy:
    return ReviewPolicy(
        max_history_size=5,
        minimum_votes_required=50,
        vote_consensus_threshold=0.8,
        max_reviews_before_break=50,
        min_break_duration=timedelta(minutes=15),
        review_session_window=timedelta(hours=1),
    )


@pytest.fixture
def votes() -> InMemoryVoteStore:
    return InMemoryVoteStore()


@pytest.fixture
def entities(votes: InMemoryVoteStore) -> InMemoryEntityStore:
    return InMemoryEntityStore(votes)


@pytest.fixture
def activity() -> InMemoryActivityLog:
    return InMemoryActivityLog()


@pytest.fixture
def dispatcher(activity: InMemoryActivityLog) -> AuditDispatcher:
    return AuditDispatcher(activity)


@pytest.fixture
def oracle() -> StaticPermissionOracle:
    return StaticPermissionOracle(reviewer_ids={REVIEWER_ID, OTHER_REVIEWER_ID}, admin_ids={ADMIN_ID})


@pytest.fixture
def controller(entities, votes, activity, oracle, dispatcher, policy, clock) -> SessionController:
    return SessionController(entities, votes, activity, oracle, dispatcher, policy=policy, clock=clock)


@pytest.fixture
def reviewer_session(policy: ReviewPolicy) -> ReviewSession:
    return ReviewSession(reviewer_id=REVIEWER_ID, mode=ReviewMode.STANDARD, max_history_size=policy.max_history_size)


@pytest.fixture
def trainee_session(policy: ReviewPolicy) -> ReviewSession:
    return ReviewSession(reviewer_id=TRAINEE_ID, mode=ReviewMode.TRAINING, max_history_size=policy.max_history_size)
