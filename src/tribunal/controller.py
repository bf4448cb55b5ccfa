"""
Per-reviewer review lifecycle.

``SessionController`` is the only entry point the presentation layer uses. It
owns no per-reviewer state itself: every call takes the reviewer's
``ReviewSession`` and mutates it. Calls for the same session must be
serialized by the caller.

Gate refusals raise a ``ReviewBlockedError`` subclass before anything is
written. Each visible transition hands exactly one activity entry to the
audit dispatcher after its writes succeeded.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

import discord

from .accuracy import VoteAccuracyGatekeeper
from .config import ReviewPolicy
from .consensus import ConsensusGate
from .constants import MESSAGES
from .errors import (
    BannedError,
    BreakRequiredError,
    ConsensusBlockedError,
    NoTargetsError,
    NotFoundError,
    PermissionDeniedError,
    ReviewError,
    TransientError,
    ValidationError,
    VerificationRequiredError,
)
from .fatigue import FatigueThrottle
from .history import NEXT, PREVIOUS
from .interfaces import (
    validate_activity_log,
    validate_entity_store,
    validate_permission_oracle,
    validate_vote_store,
)
from .models import (
    ActivityLogEntry,
    ActivityType,
    Decision,
    Entity,
    EntityKind,
    EntityStatus,
    ReasonType,
    Reputation,
    ReviewMode,
    ReviewSort,
    TargetMode,
    parse_reason_type,
)
from .reasons import ReasonAggregator, parse_confidence
from .scheduler import TargetScheduler
from .services.audit_queue import AuditDispatcher
from .session import ControllerState, ReviewSession

log = logging.getLogger("tribunal.controller")

T = TypeVar("T")


@dataclass
class ReviewOutcome:
    state: ControllerState
    entity: Optional[Entity] = None
    message: str = ""
    warnings: list[str] = field(default_factory=list)
    # The candidate set is empty. Informational, not a failure.
    exhausted: bool = False


class SessionController:
    def __init__(
        self,
        entities: object,
        votes: object,
        activity: object,
        permissions: object,
        dispatcher: AuditDispatcher,
        policy: Optional[ReviewPolicy] = None,
        clock: Callable[[], datetime] = discord.utils.utcnow,
    ) -> None:
        self.entities = validate_entity_store(entities)
        self.votes = validate_vote_store(votes)
        self.activity = validate_activity_log(activity)
        self.permissions = validate_permission_oracle(permissions)
        self.dispatcher = dispatcher
        self.policy = policy or ReviewPolicy()
        self._clock = clock

        self.consensus = ConsensusGate(self.policy)
        self.fatigue = FatigueThrottle(self.policy, clock)
        self.accuracy = VoteAccuracyGatekeeper(self.votes, dispatcher, self.policy, clock)
        self.scheduler = TargetScheduler(self.entities, self.activity, self.accuracy, dispatcher, self.policy, clock)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _is_reviewer(self, user_id: int) -> bool:
        return bool(self.permissions.is_reviewer(user_id))

    def new_session(self, reviewer_id: int, mode: ReviewMode = ReviewMode.TRAINING, **kwargs: Any) -> ReviewSession:
        """Start a session sized by this controller's policy."""
        return ReviewSession(reviewer_id=reviewer_id, mode=mode, max_history_size=self.policy.max_history_size, **kwargs)

    def _prepare(self, session: ReviewSession) -> None:
        if session.max_history_size is None:
            session.max_history_size = self.policy.max_history_size
        self._enforce_mode(session)

    def _enforce_mode(self, session: ReviewSession) -> None:
        if session.mode is ReviewMode.STANDARD and not self._is_reviewer(session.reviewer_id):
            log.info("Reviewer %s lacks review privilege; forcing training mode", session.reviewer_id)
            session.mode = ReviewMode.TRAINING

    async def _persist(self, action: str, op: Awaitable[T]) -> T:
        try:
            return await op
        except ReviewError:
            raise
        except Exception as e:
            log.exception("Failed to %s", action)
            raise TransientError(MESSAGES["transient"].format(action=action)) from e

    def _emit(
        self,
        session: ReviewSession,
        activity_type: ActivityType,
        target_id: int,
        target_kind: Optional[EntityKind] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.dispatcher.dispatch(
            ActivityLogEntry(
                reviewer_id=session.reviewer_id,
                target_kind=target_kind,
                target_id=target_id,
                activity_type=activity_type,
                timestamp=self._clock(),
                details=details or {},
            )
        )

    def _require_target(self, session: ReviewSession) -> Entity:
        if session.active_target is None or session.reasons is None:
            raise NotFoundError(MESSAGES["no_active_target"].format(kind=session.target_kind.value))
        return session.active_target

    def _outcome(self, session: ReviewSession, message: str = "", warnings: Optional[list[str]] = None) -> ReviewOutcome:
        return ReviewOutcome(
            state=session.state,
            entity=session.active_target,
            message=message,
            warnings=warnings or [],
        )

    async def _recent_viewer_warnings(self, session: ReviewSession, entity: Entity) -> list[str]:
        window = self.policy.recent_viewer_window
        since = self._clock() - window
        try:
            viewers = await self.activity.recent_viewers(entity.kind, entity.id, since)
        except Exception:
            log.exception("Could not load recent viewers of %s %s", entity.label, entity.id)
            return []

        others = [v for v in viewers if v != session.reviewer_id and self._is_reviewer(v)]
        if not others:
            return []
        minutes = int(window.total_seconds() // 60)
        mentions = ", ".join(f"<@{v}>" for v in others)
        return [f"This {entity.label} was viewed by other reviewers in the last {minutes} minutes: {mentions}"]

    async def _refresh_reputation(self, entity: Entity) -> Reputation:
        upvotes, downvotes = await self._persist(
            "count votes", self.entities.count_votes(entity.kind, entity.id)
        )
        entity.reputation = Reputation(upvotes, downvotes)
        return entity.reputation

    def _raise_break(self, session: ReviewSession) -> None:
        session.state = ControllerState.BLOCKED_BREAK
        raise BreakRequiredError(MESSAGES["break_required"], retry_at=session.next_allowed_review_time)

    # ------------------------------------------------------------------
    # presentation
    # ------------------------------------------------------------------

    async def show(self, session: ReviewSession, verified: bool = True) -> ReviewOutcome:
        """Present the active target, or schedule a new one."""
        self._prepare(session)
        now = self._clock()

        if not verified:
            session.state = ControllerState.BLOCKED_CAPTCHA
            raise VerificationRequiredError(MESSAGES["verification_required"])
        if self.fatigue.in_break(session, now):
            self._raise_break(session)

        message = ""
        entity = session.active_target
        if entity is not None:
            if session.presented_at is None or now - session.presented_at <= self.policy.stale_target_timeout:
                if session.state not in (ControllerState.PRESENTING, ControllerState.AWAITING_DECISION):
                    session.state = ControllerState.PRESENTING
                return self._outcome(session, warnings=await self._recent_viewer_warnings(session, entity))
            log.info("Dropping stale %s %s for reviewer %s", entity.label, entity.id, session.reviewer_id)
            minutes = int(self.policy.stale_target_timeout.total_seconds() // 60)
            message = MESSAGES["stale_target"].format(minutes=minutes, kind=entity.label)
            session.clear_target()

        # Banned reviewers must not spend review slots.
        if await self._persist("check vote accuracy", self.accuracy.is_banned(session.reviewer_id)):
            session.state = ControllerState.BLOCKED_BANNED
            raise BannedError(MESSAGES["banned"])
        if self.fatigue.check_and_advance(session, now):
            self._raise_break(session)

        try:
            scheduled = await self.scheduler.next(
                session.default_sort, session.target_mode, session.reviewer_id, session.target_kind
            )
        except NoTargetsError as e:
            session.clear_target()
            return ReviewOutcome(state=session.state, message=e.message, exhausted=True)
        except ReviewError:
            raise
        except Exception as e:
            log.exception("Failed to fetch a %s for reviewer %s", session.target_kind.value, session.reviewer_id)
            raise TransientError(MESSAGES["transient"].format(action=f"fetch a {session.target_kind.value}")) from e

        if scheduled.banned or scheduled.entity is None:
            session.state = ControllerState.BLOCKED_BANNED
            raise BannedError(MESSAGES["banned"])

        entity = scheduled.entity
        session.history.push(entity.id)
        session.present(entity, now)
        return self._outcome(session, message, await self._recent_viewer_warnings(session, entity))

    # ------------------------------------------------------------------
    # decisions
    # ------------------------------------------------------------------

    async def confirm(self, session: ReviewSession) -> ReviewOutcome:
        return await self._decide(session, Decision.CONFIRM)

    async def clear(self, session: ReviewSession) -> ReviewOutcome:
        return await self._decide(session, Decision.CLEAR)

    async def _decide(self, session: ReviewSession, decision: Decision) -> ReviewOutcome:
        entity = self._require_target(session)
        self._prepare(session)
        if session.mode is ReviewMode.TRAINING:
            return await self._training_vote(session, entity, decision)

        await self._refresh_reputation(entity)
        verdict = self.consensus.allow(decision, entity.reputation, session.mode, entity.kind)
        if not verdict.allowed:
            raise ConsensusBlockedError(verdict.reason)

        activity = ActivityType.CONFIRMED if decision is Decision.CONFIRM else ActivityType.CLEARED
        return await self._commit(session, entity, decision, activity)

    async def _training_vote(self, session: ReviewSession, entity: Entity, decision: Decision) -> ReviewOutcome:
        banned = await self._persist("check vote accuracy", self.accuracy.is_banned(session.reviewer_id))
        if banned:
            session.state = ControllerState.BLOCKED_BANNED
            raise BannedError(MESSAGES["banned"])

        # A clear says "looks safe" (upvote), a confirm says "looks bad" (downvote).
        is_upvote = decision is Decision.CLEAR
        await self._persist(
            "record your vote",
            self.votes.record_vote(session.reviewer_id, entity.kind, entity.id, is_upvote, True, self._clock()),
        )
        try:
            upvotes, downvotes = await self.entities.count_votes(entity.kind, entity.id)
            entity.reputation = Reputation(upvotes, downvotes)
        except Exception:
            log.exception("Could not recount votes on %s %s after a training vote", entity.label, entity.id)
        reputation = entity.reputation

        self._emit(
            session,
            ActivityType.TRAINING_UPVOTE if is_upvote else ActivityType.TRAINING_DOWNVOTE,
            entity.id,
            entity.kind,
            {"upvotes": reputation.upvotes, "downvotes": reputation.downvotes},
        )
        session.decision_count += 1
        session.clear_target()
        vote = "upvote" if is_upvote else "downvote"
        return ReviewOutcome(
            state=session.state,
            entity=entity,
            message=f"Recorded your {vote} for this {entity.label}.",
        )

    async def _commit(
        self,
        session: ReviewSession,
        entity: Entity,
        decision: Decision,
        activity: ActivityType,
        details: Optional[dict[str, Any]] = None,
    ) -> ReviewOutcome:
        warnings = await self._recent_viewer_warnings(session, entity)

        # The presented entity stays untouched until the save succeeds.
        now = self._clock()
        confirmed = decision is Decision.CONFIRM
        entity = dataclasses.replace(
            entity,
            status=EntityStatus.CONFIRMED if confirmed else EntityStatus.CLEARED,
            verified_at=now if confirmed else None,
            cleared_at=None if confirmed else now,
            last_updated=now,
            reviewer_id=session.reviewer_id,
        )
        await self._persist(f"{decision.value} the {entity.label}", self.entities.save(entity))

        try:
            await self.votes.resolve_votes(entity.kind, entity.id, confirmed)
        except Exception:
            log.exception("Could not resolve votes on %s %s", entity.label, entity.id)

        payload = {
            "reasons": entity.reason_messages(),
            "confidence": entity.confidence,
        }
        payload.update(details or {})
        self._emit(session, activity, entity.id, entity.kind, payload)

        session.decision_count += 1
        session.clear_target()
        verb = "confirmed" if decision is Decision.CONFIRM else "cleared"
        return ReviewOutcome(
            state=session.state,
            entity=entity,
            message=f"{entity.label.capitalize()} {verb}.",
            warnings=warnings,
        )

    async def confirm_with_reason(
        self,
        session: ReviewSession,
        reason_type: Union[str, ReasonType],
        message: str,
        confidence: Union[str, float],
    ) -> ReviewOutcome:
        """Overwrite one reason and confirm in a single binding step."""
        entity = self._require_target(session)
        if not self._is_reviewer(session.reviewer_id):
            raise PermissionDeniedError("You do not have permission to confirm with a reason.")

        value = parse_confidence(confidence)
        text = (message or "").strip()
        if not text:
            raise ValidationError("message", "Reason message cannot be empty")
        try:
            key = parse_reason_type(entity.kind, reason_type)
        except ValueError:
            raise ValidationError("reason_type", f"Invalid reason type: {reason_type}") from None

        await self._refresh_reputation(entity)
        verdict = self.consensus.allow(Decision.CONFIRM, entity.reputation, ReviewMode.STANDARD, entity.kind)
        if not verdict.allowed:
            raise ConsensusBlockedError(verdict.reason)

        staged = dataclasses.replace(entity, reasons=copy.deepcopy(entity.reasons))
        ReasonAggregator(staged).upsert(key, text, value)
        return await self._commit(
            session,
            staged,
            Decision.CONFIRM,
            ActivityType.CONFIRMED_CUSTOM,
            {"reason_type": key.value},
        )

    async def skip(self, session: ReviewSession) -> ReviewOutcome:
        entity = self._require_target(session)
        self._emit(session, ActivityType.SKIPPED, entity.id, entity.kind)
        session.clear_target()
        return ReviewOutcome(state=session.state, entity=entity, message=f"Skipped {entity.label}.")

    # ------------------------------------------------------------------
    # navigation
    # ------------------------------------------------------------------

    async def _navigate(self, session: ReviewSession, direction: int) -> Optional[ReviewOutcome]:
        kind = session.target_kind

        async def fetch(entity_id: int) -> Entity:
            return await self._persist(f"load the {kind.value}", self.entities.get_by_id(kind, entity_id))

        entity = await session.history.navigate(direction, fetch)
        if entity is None:
            return None

        await self._refresh_reputation(entity)
        session.present(entity, self._clock())
        self._emit(
            session,
            ActivityType.VIEWED,
            entity.id,
            entity.kind,
            {"navigation": "previous" if direction == PREVIOUS else "next"},
        )
        return self._outcome(session, warnings=await self._recent_viewer_warnings(session, entity))

    async def previous(self, session: ReviewSession) -> ReviewOutcome:
        """Step back in history. Allowed while banned."""
        self._prepare(session)
        no_previous = MESSAGES["no_previous"].format(kind=session.target_kind.value)
        if session.history.index <= 0:
            return self._outcome(session, no_previous)
        outcome = await self._navigate(session, PREVIOUS)
        return outcome or self._outcome(session, no_previous)

    async def next(self, session: ReviewSession, verified: bool = True) -> ReviewOutcome:
        """Step forward in history; at the end this skips and shows a new target."""
        self._prepare(session)
        if not session.history.at_end():
            outcome = await self._navigate(session, NEXT)
            if outcome is not None:
                return outcome
        if session.active_target is not None:
            await self.skip(session)
        return await self.show(session, verified)

    # ------------------------------------------------------------------
    # reason editing
    # ------------------------------------------------------------------

    async def edit_reason(
        self,
        session: ReviewSession,
        reason_type: Union[str, ReasonType],
        message: Optional[str],
        confidence: Union[str, float, None] = None,
        evidence: Union[str, list[str], None] = None,
    ) -> ReviewOutcome:
        entity = self._require_target(session)
        if not self._is_reviewer(session.reviewer_id):
            raise PermissionDeniedError("You do not have permission to edit reasons.")

        reason = session.reasons.upsert(reason_type, message, confidence, evidence)
        key = parse_reason_type(entity.kind, reason_type)
        session.state = ControllerState.AWAITING_DECISION if session.reasons.changed else ControllerState.PRESENTING

        self._emit(
            session,
            ActivityType.REASON_UPDATED,
            entity.id,
            entity.kind,
            {"reason_type": key.value, "removed": reason is None, "confidence": entity.confidence},
        )
        verb = "removed" if reason is None else "updated"
        return self._outcome(session, f"{key.value.capitalize()} reason {verb}.")

    async def restore_reasons(self, session: ReviewSession) -> ReviewOutcome:
        entity = self._require_target(session)
        session.reasons.restore()
        session.state = ControllerState.PRESENTING
        self._emit(
            session,
            ActivityType.REASONS_RESTORED,
            entity.id,
            entity.kind,
            {"confidence": entity.confidence},
        )
        return self._outcome(session, "Reasons restored.")

    # ------------------------------------------------------------------
    # settings
    # ------------------------------------------------------------------

    def set_mode(self, session: ReviewSession, mode: ReviewMode) -> ReviewMode:
        if mode is ReviewMode.STANDARD and not self._is_reviewer(session.reviewer_id):
            raise PermissionDeniedError("Standard mode is only available to official reviewers.")
        session.mode = mode
        return mode

    def set_sort(self, session: ReviewSession, sort: ReviewSort) -> None:
        session.default_sort = sort

    def set_target_mode(self, session: ReviewSession, target_mode: TargetMode) -> None:
        session.target_mode = target_mode

    def set_target_kind(self, session: ReviewSession, kind: EntityKind) -> None:
        if kind is session.target_kind:
            return
        session.clear_target()
        session.target_kind = kind

    # ------------------------------------------------------------------
    # administration
    # ------------------------------------------------------------------

    async def lift_ban(self, session: ReviewSession, reviewer_id: int) -> bool:
        if not self.permissions.is_admin(session.reviewer_id):
            raise PermissionDeniedError("Only administrators can lift reviewer bans.")
        lifted = await self._persist("lift the ban", self.accuracy.lift_ban(reviewer_id, session.reviewer_id))
        if lifted:
            self._emit(session, ActivityType.REVIEWER_UNBANNED, reviewer_id)
        return lifted
