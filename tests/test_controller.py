"""Tests for the session controller.

Verifies:
- Presentation, blocking gates and their states
- Training votes vs binding decisions
- History navigation, including while banned
- Reason editing and restore
- Permission checks and audit dispatch independence
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from tribunal.controller import SessionController
from tribunal.errors import (
    BannedError,
    BreakRequiredError,
    ConsensusBlockedError,
    NotFoundError,
    PermissionDeniedError,
    TransientError,
    ValidationError,
    VerificationRequiredError,
)
from tribunal.models import (
    ActivityType,
    EntityKind,
    EntityStatus,
    Reputation,
    ReviewMode,
    ReviewSort,
    TargetMode,
    UserReasonType,
)
from tribunal.reasons import calculate_confidence
from tribunal.services.audit_queue import AuditDispatcher
from tribunal.session import ControllerState, ReviewSession
from tribunal.testing.fakes import FailingActivityLog

from conftest import ADMIN_ID, OTHER_REVIEWER_ID, REVIEWER_ID, TRAINEE_ID, make_user


def _types(activity) -> list[ActivityType]:
    return [e.activity_type for e in activity.entries]


# ============================================================================
# Presentation
# ============================================================================


class TestShow:
    @pytest.mark.asyncio
    async def test_presents_next_target(self, controller, entities, reviewer_session):
        entities.add(make_user(1))
        outcome = await controller.show(reviewer_session)

        assert outcome.state is ControllerState.PRESENTING
        assert outcome.entity.id == 1
        assert reviewer_session.active_target_id == 1
        assert reviewer_session.history.ids == [1]
        assert reviewer_session.history_index == 0

    @pytest.mark.asyncio
    async def test_show_again_returns_active_target(self, controller, entities, reviewer_session):
        entities.add(make_user(1), make_user(2))
        await controller.show(reviewer_session)
        outcome = await controller.show(reviewer_session)
        assert outcome.entity.id == 1
        assert reviewer_session.reviews_this_window == 1

    @pytest.mark.asyncio
    async def test_exhausted_is_informational(self, controller, reviewer_session):
        outcome = await controller.show(reviewer_session)
        assert outcome.exhausted
        assert outcome.state is ControllerState.NO_TARGET
        assert outcome.entity is None
        assert "No users to review" in outcome.message

    @pytest.mark.asyncio
    async def test_unverified_is_blocked(self, controller, entities, reviewer_session):
        entities.add(make_user(1))
        with pytest.raises(VerificationRequiredError):
            await controller.show(reviewer_session, verified=False)
        assert reviewer_session.state is ControllerState.BLOCKED_CAPTCHA
        assert entities.fetches == 0

    @pytest.mark.asyncio
    async def test_break_after_limit(self, controller, entities, reviewer_session, clock):
        entities.add(make_user(1))
        reviewer_session.session_start = clock.now
        reviewer_session.reviews_this_window = 50

        with pytest.raises(BreakRequiredError) as exc:
            await controller.show(reviewer_session)
        assert exc.value.retry_at == clock.now + timedelta(minutes=15)
        assert reviewer_session.state is ControllerState.BLOCKED_BREAK
        assert entities.fetches == 0

        clock.advance(minutes=14)
        with pytest.raises(BreakRequiredError):
            await controller.show(reviewer_session)

        clock.advance(minutes=1)
        outcome = await controller.show(reviewer_session)
        assert outcome.entity.id == 1

    @pytest.mark.asyncio
    async def test_banned_reviewer_gets_no_target(self, controller, entities, votes, trainee_session):
        entities.add(make_user(1))
        votes.seed_resolved(TRAINEE_ID, correct=1, wrong=9)

        with pytest.raises(BannedError):
            await controller.show(trainee_session)
        assert trainee_session.state is ControllerState.BLOCKED_BANNED
        assert entities.fetches == 0

    @pytest.mark.asyncio
    async def test_banned_reviewer_does_not_spend_review_slots(self, controller, entities, votes, trainee_session):
        entities.add(make_user(1))
        votes.seed_resolved(TRAINEE_ID, correct=1, wrong=9)

        for _ in range(60):
            with pytest.raises(BannedError):
                await controller.show(trainee_session)
        assert trainee_session.reviews_this_window == 0
        assert trainee_session.next_allowed_review_time is None

    @pytest.mark.asyncio
    async def test_history_is_sized_by_policy(self, controller, entities, policy):
        entities.add(*(make_user(n, {UserReasonType.PROFILE: 0.9 - n * 0.05}) for n in range(1, 9)))
        session = ReviewSession(reviewer_id=REVIEWER_ID, mode=ReviewMode.STANDARD)

        for _ in range(8):
            await controller.show(session)
            await controller.dispatcher.flush()
            await controller.skip(session)
        assert len(session.history.ids) == policy.max_history_size
        assert session.history.ids == [4, 5, 6, 7, 8]

    def test_new_session_uses_policy(self, controller, policy):
        session = controller.new_session(REVIEWER_ID, ReviewMode.STANDARD, default_sort=ReviewSort.RANDOM)
        assert session.max_history_size == policy.max_history_size
        assert session.mode is ReviewMode.STANDARD
        assert session.default_sort is ReviewSort.RANDOM

    @pytest.mark.asyncio
    async def test_stale_target_is_replaced(self, controller, entities, reviewer_session, clock):
        entities.add(make_user(1, {UserReasonType.PROFILE: 0.9}), make_user(2, {UserReasonType.PROFILE: 0.5}))
        await controller.show(reviewer_session)
        await controller.dispatcher.flush()

        clock.advance(minutes=11)
        outcome = await controller.show(reviewer_session)
        assert outcome.entity.id == 2
        assert "timed out after 10 minutes" in outcome.message

    @pytest.mark.asyncio
    async def test_non_reviewer_is_forced_into_training(self, controller, entities):
        entities.add(make_user(1))
        session = ReviewSession(reviewer_id=TRAINEE_ID, mode=ReviewMode.STANDARD)
        await controller.show(session)
        assert session.mode is ReviewMode.TRAINING

    @pytest.mark.asyncio
    async def test_recent_viewer_warning(self, controller, entities, dispatcher, clock):
        entities.add(make_user(1))
        other = ReviewSession(reviewer_id=OTHER_REVIEWER_ID, mode=ReviewMode.STANDARD)
        await controller.show(other)
        await dispatcher.flush()

        clock.advance(minutes=1)
        mine = ReviewSession(reviewer_id=REVIEWER_ID, mode=ReviewMode.STANDARD)
        # The other reviewer's view excludes nothing for us, so we get the same user.
        outcome = await controller.show(mine)
        assert outcome.entity.id == 1
        assert len(outcome.warnings) == 1
        assert f"<@{OTHER_REVIEWER_ID}>" in outcome.warnings[0]

    @pytest.mark.asyncio
    async def test_trainee_views_do_not_warn(self, controller, entities, dispatcher, clock):
        entities.add(make_user(1))
        await controller.show(ReviewSession(reviewer_id=TRAINEE_ID))
        await dispatcher.flush()

        outcome = await controller.show(ReviewSession(reviewer_id=REVIEWER_ID, mode=ReviewMode.STANDARD))
        assert outcome.warnings == []


# ============================================================================
# Decisions
# ============================================================================


class TestTrainingVotes:
    @pytest.mark.asyncio
    async def test_confirm_records_downvote(self, controller, entities, votes, activity, dispatcher, trainee_session):
        entities.add(make_user(1))
        await controller.show(trainee_session)
        outcome = await controller.confirm(trainee_session)

        assert outcome.state is ControllerState.NO_TARGET
        assert trainee_session.active_target is None
        vote = votes.votes[(TRAINEE_ID, EntityKind.USER, 1)]
        assert not vote.is_upvote and vote.is_training
        assert entities.stored(EntityKind.USER, 1).status is EntityStatus.FLAGGED

        await dispatcher.flush()
        [entry] = activity.of_type(ActivityType.TRAINING_DOWNVOTE)
        assert entry.details == {"upvotes": 0, "downvotes": 1}

    @pytest.mark.asyncio
    async def test_clear_records_upvote(self, controller, entities, votes, activity, dispatcher, trainee_session):
        entities.add(make_user(1, reputation=Reputation(2, 0)))
        await controller.show(trainee_session)
        await controller.clear(trainee_session)

        assert votes.votes[(TRAINEE_ID, EntityKind.USER, 1)].is_upvote
        await dispatcher.flush()
        [entry] = activity.of_type(ActivityType.TRAINING_UPVOTE)
        assert entry.details == {"upvotes": 3, "downvotes": 0}

    @pytest.mark.asyncio
    async def test_training_ignores_consensus(self, controller, entities, trainee_session):
        entities.add(make_user(1, reputation=Reputation(100, 0)))
        await controller.show(trainee_session)
        outcome = await controller.confirm(trainee_session)
        assert outcome.state is ControllerState.NO_TARGET

    @pytest.mark.asyncio
    async def test_banned_mid_session_cannot_vote(self, controller, entities, votes, trainee_session, clock):
        entities.add(make_user(1))
        await controller.show(trainee_session)
        await votes.ban(TRAINEE_ID, "manual", clock())

        with pytest.raises(BannedError):
            await controller.confirm(trainee_session)
        assert (TRAINEE_ID, EntityKind.USER, 1) not in votes.votes

    @pytest.mark.asyncio
    async def test_recount_failure_still_records_vote(
        self, controller, entities, votes, activity, dispatcher, trainee_session
    ):
        entities.add(make_user(1))
        await controller.show(trainee_session)
        entities.fail_counts = True

        outcome = await controller.confirm(trainee_session)
        assert outcome.message == "Recorded your downvote for this user."
        assert outcome.state is ControllerState.NO_TARGET
        assert not votes.votes[(TRAINEE_ID, EntityKind.USER, 1)].is_upvote

        await dispatcher.flush()
        assert ActivityType.TRAINING_DOWNVOTE in _types(activity)


class TestBindingDecisions:
    @pytest.mark.asyncio
    async def test_confirm_persists_and_logs(self, controller, entities, activity, dispatcher, reviewer_session, clock):
        entities.add(make_user(1))
        await controller.show(reviewer_session)
        outcome = await controller.confirm(reviewer_session)

        stored = entities.stored(EntityKind.USER, 1)
        assert stored.status is EntityStatus.CONFIRMED
        assert stored.verified_at == clock.now
        assert stored.reviewer_id == REVIEWER_ID
        assert outcome.state is ControllerState.NO_TARGET
        assert reviewer_session.decision_count == 1

        await dispatcher.flush()
        assert _types(activity) == [ActivityType.VIEWED, ActivityType.CONFIRMED]

    @pytest.mark.asyncio
    async def test_clear_resolves_training_votes(self, controller, entities, votes, reviewer_session, clock):
        entities.add(make_user(1))
        await votes.record_vote(TRAINEE_ID, EntityKind.USER, 1, True, True, clock())
        await votes.record_vote(OTHER_REVIEWER_ID, EntityKind.USER, 1, False, True, clock())

        await controller.show(reviewer_session)
        await controller.clear(reviewer_session)

        assert entities.stored(EntityKind.USER, 1).status is EntityStatus.CLEARED
        assert votes.votes[(TRAINEE_ID, EntityKind.USER, 1)].is_correct is True
        assert votes.votes[(OTHER_REVIEWER_ID, EntityKind.USER, 1)].is_correct is False

    @pytest.mark.asyncio
    async def test_consensus_blocks_before_any_write(self, controller, entities, activity, dispatcher, reviewer_session):
        entities.add(make_user(1, reputation=Reputation(90, 10)))
        await controller.show(reviewer_session)
        saves = entities.saves

        with pytest.raises(ConsensusBlockedError) as exc:
            await controller.confirm(reviewer_session)
        assert "90% of 100 votes" in exc.value.message
        assert entities.saves == saves
        assert entities.stored(EntityKind.USER, 1).status is EntityStatus.FLAGGED
        assert reviewer_session.active_target_id == 1

        outcome = await controller.clear(reviewer_session)
        assert outcome.entity.status is EntityStatus.CLEARED
        await dispatcher.flush()
        assert ActivityType.CONFIRMED not in _types(activity)

    @pytest.mark.asyncio
    async def test_decision_without_target(self, controller, reviewer_session):
        with pytest.raises(NotFoundError):
            await controller.confirm(reviewer_session)

    @pytest.mark.asyncio
    async def test_store_failure_is_transient(self, controller, entities, reviewer_session):
        entities.add(make_user(1))
        await controller.show(reviewer_session)
        entities.fail_saves = True

        with pytest.raises(TransientError) as exc:
            await controller.confirm(reviewer_session)
        assert "database" not in exc.value.message
        assert exc.value.message.endswith("Please try again.")

    @pytest.mark.asyncio
    async def test_failed_save_leaves_presented_target_untouched(self, controller, entities, reviewer_session):
        entities.add(make_user(1))
        await controller.show(reviewer_session)
        entities.fail_saves = True

        with pytest.raises(TransientError):
            await controller.confirm(reviewer_session)
        target = reviewer_session.active_target
        assert target.status is EntityStatus.FLAGGED
        assert target.verified_at is None
        assert target.reviewer_id is None
        assert reviewer_session.state is ControllerState.PRESENTING
        assert entities.stored(EntityKind.USER, 1).status is EntityStatus.FLAGGED

        entities.fail_saves = False
        outcome = await controller.confirm(reviewer_session)
        assert outcome.entity.status is EntityStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_failed_confirm_with_reason_keeps_reasons(self, controller, entities, reviewer_session):
        entities.add(make_user(1, {UserReasonType.PROFILE: 0.4}))
        await controller.show(reviewer_session)
        entities.fail_saves = True

        with pytest.raises(TransientError):
            await controller.confirm_with_reason(reviewer_session, "chat", "scam links", "0.95")
        target = reviewer_session.active_target
        assert UserReasonType.CHAT not in target.reasons
        assert target.confidence == 0.4
        assert target.status is EntityStatus.FLAGGED
        assert not reviewer_session.reasons.changed

    @pytest.mark.asyncio
    async def test_vote_resolution_failure_does_not_undo_decision(
        self, controller, entities, votes, activity, dispatcher, reviewer_session
    ):
        entities.add(make_user(1))
        await controller.show(reviewer_session)
        votes.fail_resolves = True

        outcome = await controller.confirm(reviewer_session)
        assert outcome.state is ControllerState.NO_TARGET
        assert reviewer_session.active_target is None
        assert entities.stored(EntityKind.USER, 1).status is EntityStatus.CONFIRMED

        await dispatcher.flush()
        assert ActivityType.CONFIRMED in _types(activity)

    @pytest.mark.asyncio
    async def test_decision_succeeds_when_audit_log_fails(self, entities, votes, oracle, policy, clock):
        failing = FailingActivityLog()
        dispatcher = AuditDispatcher(failing)
        controller = SessionController(entities, votes, failing, oracle, dispatcher, policy=policy, clock=clock)
        session = ReviewSession(reviewer_id=REVIEWER_ID, mode=ReviewMode.STANDARD)
        entities.add(make_user(1))

        await controller.show(session)
        outcome = await controller.confirm(session)
        assert outcome.state is ControllerState.NO_TARGET
        assert entities.stored(EntityKind.USER, 1).status is EntityStatus.CONFIRMED

        assert await dispatcher.flush() == 0
        assert dispatcher.stats.audit_failed == 2
        assert entities.stored(EntityKind.USER, 1).status is EntityStatus.CONFIRMED


class TestConfirmWithReason:
    @pytest.mark.asyncio
    async def test_overwrites_reason_and_confirms(self, controller, entities, activity, dispatcher, reviewer_session):
        entities.add(make_user(1, {UserReasonType.PROFILE: 0.4}))
        await controller.show(reviewer_session)
        await controller.confirm_with_reason(reviewer_session, "chat", "scam links in chat", "0.95")

        stored = entities.stored(EntityKind.USER, 1)
        assert stored.status is EntityStatus.CONFIRMED
        assert stored.reasons[UserReasonType.CHAT].confidence == 0.95
        assert stored.confidence == calculate_confidence(stored.reasons)

        await dispatcher.flush()
        [entry] = activity.of_type(ActivityType.CONFIRMED_CUSTOM)
        assert entry.details["reason_type"] == "chat"

    @pytest.mark.asyncio
    async def test_validation_happens_first(self, controller, entities, reviewer_session):
        entities.add(make_user(1))
        await controller.show(reviewer_session)
        with pytest.raises(ValidationError) as exc:
            await controller.confirm_with_reason(reviewer_session, "chat", "x", "1.7")
        assert exc.value.field == "confidence"
        with pytest.raises(ValidationError) as exc:
            await controller.confirm_with_reason(reviewer_session, "chat", "  ", "0.5")
        assert exc.value.field == "message"
        assert entities.stored(EntityKind.USER, 1).status is EntityStatus.FLAGGED

    @pytest.mark.asyncio
    async def test_requires_reviewer(self, controller, entities, trainee_session):
        entities.add(make_user(1))
        await controller.show(trainee_session)
        with pytest.raises(PermissionDeniedError):
            await controller.confirm_with_reason(trainee_session, "chat", "x", "0.5")


class TestSkip:
    @pytest.mark.asyncio
    async def test_skip_logs_and_clears(self, controller, entities, activity, dispatcher, reviewer_session):
        entities.add(make_user(1))
        await controller.show(reviewer_session)
        outcome = await controller.skip(reviewer_session)

        assert outcome.state is ControllerState.NO_TARGET
        assert entities.stored(EntityKind.USER, 1).status is EntityStatus.FLAGGED
        await dispatcher.flush()
        assert _types(activity) == [ActivityType.VIEWED, ActivityType.SKIPPED]


# ============================================================================
# Navigation
# ============================================================================


async def _review_three(controller, entities, session):
    """Show users 1, 2 and 3 in order, leaving 3 presented."""
    entities.add(
        make_user(1, {UserReasonType.PROFILE: 0.9}),
        make_user(2, {UserReasonType.PROFILE: 0.8}),
        make_user(3, {UserReasonType.PROFILE: 0.7}),
    )
    for n in range(3):
        await controller.show(session)
        await controller.dispatcher.flush()
        if n < 2:
            await controller.skip(session)


class TestNavigation:
    @pytest.mark.asyncio
    async def test_previous_walks_back(self, controller, entities, reviewer_session):
        await _review_three(controller, entities, reviewer_session)
        assert reviewer_session.history.ids == [1, 2, 3]

        outcome = await controller.previous(reviewer_session)
        assert outcome.entity.id == 2
        assert outcome.state is ControllerState.PRESENTING
        assert reviewer_session.history_index == 1

    @pytest.mark.asyncio
    async def test_previous_at_start_is_noop(self, controller, entities, reviewer_session):
        entities.add(make_user(1))
        await controller.show(reviewer_session)
        outcome = await controller.previous(reviewer_session)
        assert outcome.message == "No previous user to navigate to."
        assert outcome.entity.id == 1
        assert reviewer_session.history_index == 0

    @pytest.mark.asyncio
    async def test_previous_drops_deleted_entries(self, controller, entities, reviewer_session):
        await _review_three(controller, entities, reviewer_session)
        entities.delete(EntityKind.USER, 2)

        outcome = await controller.previous(reviewer_session)
        assert outcome.entity.id == 1
        assert reviewer_session.history.ids == [1, 3]

    @pytest.mark.asyncio
    async def test_next_moves_forward_in_history(self, controller, entities, reviewer_session):
        await _review_three(controller, entities, reviewer_session)
        await controller.previous(reviewer_session)
        await controller.previous(reviewer_session)

        outcome = await controller.next(reviewer_session)
        assert outcome.entity.id == 2

    @pytest.mark.asyncio
    async def test_next_at_end_skips_and_schedules(self, controller, entities, activity, dispatcher, reviewer_session):
        entities.add(make_user(1, {UserReasonType.PROFILE: 0.9}), make_user(2, {UserReasonType.PROFILE: 0.5}))
        await controller.show(reviewer_session)
        await dispatcher.flush()
        fetches = entities.fetches

        outcome = await controller.next(reviewer_session)
        assert outcome.entity.id == 2
        assert entities.fetches > fetches
        await dispatcher.flush()
        assert _types(activity) == [ActivityType.VIEWED, ActivityType.SKIPPED, ActivityType.VIEWED]

    @pytest.mark.asyncio
    async def test_banned_reviewer_can_still_navigate(self, controller, entities, votes, policy, clock):
        session = ReviewSession(reviewer_id=TRAINEE_ID, max_history_size=policy.max_history_size)
        await _review_three(controller, entities, session)

        votes.seed_resolved(TRAINEE_ID, correct=0, wrong=10)
        controller.accuracy.forget(TRAINEE_ID)
        assert await controller.accuracy.is_banned(TRAINEE_ID)

        outcome = await controller.previous(session)
        assert outcome.entity.id == 2
        outcome = await controller.next(session)
        assert outcome.entity.id == 3

        await controller.skip(session)
        with pytest.raises(BannedError):
            await controller.show(session)

    @pytest.mark.asyncio
    async def test_navigation_discards_unsaved_edits(self, controller, entities, reviewer_session):
        await _review_three(controller, entities, reviewer_session)
        await controller.edit_reason(reviewer_session, "chat", "spam", 0.99)

        await controller.previous(reviewer_session)
        outcome = await controller.next(reviewer_session)
        assert UserReasonType.CHAT not in outcome.entity.reasons


# ============================================================================
# Reason editing
# ============================================================================


class TestReasonEditing:
    @pytest.mark.asyncio
    async def test_edit_moves_to_awaiting_decision(self, controller, entities, activity, dispatcher, reviewer_session):
        entities.add(make_user(1))
        await controller.show(reviewer_session)
        outcome = await controller.edit_reason(reviewer_session, "friend", "bad friends", "0.6", "a\nb")

        assert outcome.state is ControllerState.AWAITING_DECISION
        entity = reviewer_session.active_target
        assert entity.reasons[UserReasonType.FRIEND].evidence == ["a", "b"]
        assert entity.confidence == calculate_confidence(entity.reasons)
        # Nothing is saved until a decision.
        assert UserReasonType.FRIEND not in entities.stored(EntityKind.USER, 1).reasons

        await dispatcher.flush()
        [entry] = activity.of_type(ActivityType.REASON_UPDATED)
        assert entry.details["reason_type"] == "friend"

    @pytest.mark.asyncio
    async def test_edits_are_saved_by_confirm(self, controller, entities, reviewer_session):
        entities.add(make_user(1))
        await controller.show(reviewer_session)
        await controller.edit_reason(reviewer_session, "friend", "bad friends", 0.6)
        await controller.confirm(reviewer_session)
        assert UserReasonType.FRIEND in entities.stored(EntityKind.USER, 1).reasons

    @pytest.mark.asyncio
    async def test_restore(self, controller, entities, activity, dispatcher, reviewer_session):
        original = make_user(1, {UserReasonType.PROFILE: 0.7, UserReasonType.OUTFIT: 0.2})
        entities.add(original)
        await controller.show(reviewer_session)
        await controller.edit_reason(reviewer_session, "profile", "", None)
        await controller.edit_reason(reviewer_session, "badges", "farmed", 0.9)

        outcome = await controller.restore_reasons(reviewer_session)
        assert outcome.state is ControllerState.PRESENTING
        assert outcome.entity.reasons == original.reasons
        assert outcome.entity.confidence == original.confidence

        await dispatcher.flush()
        assert activity.of_type(ActivityType.REASONS_RESTORED)

    @pytest.mark.asyncio
    async def test_invalid_edit_is_rejected(self, controller, entities, reviewer_session):
        entities.add(make_user(1))
        await controller.show(reviewer_session)
        with pytest.raises(ValidationError):
            await controller.edit_reason(reviewer_session, "shout", "wrong kind", 0.5)

    @pytest.mark.asyncio
    async def test_trainee_cannot_edit(self, controller, entities, trainee_session):
        entities.add(make_user(1))
        await controller.show(trainee_session)
        with pytest.raises(PermissionDeniedError):
            await controller.edit_reason(trainee_session, "chat", "spam", 0.5)


# ============================================================================
# Settings and administration
# ============================================================================


class TestSettings:
    def test_standard_mode_requires_reviewer(self, controller, trainee_session, reviewer_session):
        with pytest.raises(PermissionDeniedError):
            controller.set_mode(trainee_session, ReviewMode.STANDARD)
        assert trainee_session.mode is ReviewMode.TRAINING
        assert controller.set_mode(reviewer_session, ReviewMode.TRAINING) is ReviewMode.TRAINING

    @pytest.mark.asyncio
    async def test_switching_kind_drops_target_and_keeps_history(self, controller, entities, reviewer_session):
        entities.add(make_user(1))
        await controller.show(reviewer_session)
        controller.set_target_kind(reviewer_session, EntityKind.GROUP)

        assert reviewer_session.active_target is None
        assert len(reviewer_session.history) == 0
        controller.set_target_kind(reviewer_session, EntityKind.USER)
        assert reviewer_session.history.ids == [1]

    @pytest.mark.asyncio
    async def test_sort_and_target_mode(self, controller, entities, reviewer_session):
        entities.add(make_user(1), make_user(2, status=EntityStatus.CLEARED))
        controller.set_sort(reviewer_session, ReviewSort.LAST_VIEWED)
        controller.set_target_mode(reviewer_session, TargetMode.CLEARED)
        outcome = await controller.show(reviewer_session)
        assert outcome.entity.id == 2


class TestLiftBan:
    @pytest.mark.asyncio
    async def test_admin_lifts_ban(self, controller, votes, activity, dispatcher, clock):
        await votes.ban(TRAINEE_ID, "manual", clock())
        admin = ReviewSession(reviewer_id=ADMIN_ID)

        assert await controller.lift_ban(admin, TRAINEE_ID)
        assert not await votes.is_banned(TRAINEE_ID)
        await dispatcher.flush()
        [entry] = activity.of_type(ActivityType.REVIEWER_UNBANNED)
        assert entry.target_id == TRAINEE_ID

    @pytest.mark.asyncio
    async def test_non_admin_cannot_lift(self, controller, votes, reviewer_session, clock):
        await votes.ban(TRAINEE_ID, "manual", clock())
        with pytest.raises(PermissionDeniedError):
            await controller.lift_ban(reviewer_session, TRAINEE_ID)
        assert await votes.is_banned(TRAINEE_ID)
