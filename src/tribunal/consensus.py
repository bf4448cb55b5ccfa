from __future__ import annotations

import logging
from typing import NamedTuple

from .config import ReviewPolicy
from .models import Decision, EntityKind, Reputation, ReviewMode

log = logging.getLogger("tribunal.consensus")


class ConsensusVerdict(NamedTuple):
    allowed: bool
    reason: str = ""


class ConsensusGate:
    """Blocks a binding decision that strong community voting disagrees with.

    Upvotes oppose a confirm, downvotes oppose a clear. The gate only engages
    once enough votes exist, and never in training mode.
    """

    def __init__(self, policy: ReviewPolicy) -> None:
        self._min_votes = policy.minimum_votes_required
        self._threshold = policy.vote_consensus_threshold

    def allow(
        self,
        decision: Decision,
        reputation: Reputation,
        mode: ReviewMode = ReviewMode.STANDARD,
        kind: EntityKind = EntityKind.USER,
    ) -> ConsensusVerdict:
        if mode is ReviewMode.TRAINING:
            return ConsensusVerdict(True)

        total = reputation.total
        if total < self._min_votes or total == 0:
            return ConsensusVerdict(True)

        if decision is Decision.CONFIRM:
            share = reputation.upvotes / total
            opinion = "safe"
        else:
            share = reputation.downvotes / total
            opinion = "suspicious"

        if share < self._threshold:
            return ConsensusVerdict(True)

        reason = (
            f"Cannot {decision.value} - {share * 100:.0f}% of {total} votes "
            f"indicate this {kind.value} is {opinion}"
        )
        log.info("Consensus gate refused %s: %s", decision.value, reason)
        return ConsensusVerdict(False, reason)
