from __future__ import annotations

import copy
import logging
import math
from typing import Iterable, Mapping, Optional, Union

from .constants import CONFIDENCE_DECIMALS, MAX_EVIDENCE_ITEMS, MAX_REASON_MESSAGE_LENGTH
from .errors import ValidationError
from .models import Entity, Reason, ReasonType, parse_reason_type

log = logging.getLogger("tribunal.reasons")

# Weight of the strongest reason; the remainder goes to the mean of all reasons.
MAX_WEIGHT = 0.7


def calculate_confidence(reasons: Mapping[ReasonType, Reason]) -> float:
    """Overall confidence for a reason map.

    A blend of the strongest reason and the mean of all reasons, clamped to
    [0, 1] and rounded to two decimals. Empty maps score 0. The result never
    drops below the weakest reason, so adding a stronger reason can only
    raise it.
    """
    if not reasons:
        return 0.0
    values = [float(r.confidence) for r in reasons.values()]
    blended = MAX_WEIGHT * max(values) + (1 - MAX_WEIGHT) * (sum(values) / len(values))
    return round(min(1.0, max(0.0, blended)), CONFIDENCE_DECIMALS)


def parse_confidence(raw: Union[str, float, int, None]) -> float:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError("confidence", "Confidence is required. Must be between 0.0 and 1.0")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationError("confidence", "Invalid confidence value. Must be between 0.0 and 1.0") from None
    if math.isnan(value) or value < 0 or value > 1:
        raise ValidationError("confidence", "Invalid confidence value. Must be between 0.0 and 1.0")
    return round(value, CONFIDENCE_DECIMALS)


def clean_evidence(evidence: Optional[Iterable[str]]) -> list[str]:
    if evidence is None:
        return []
    if isinstance(evidence, str):
        evidence = evidence.splitlines()
    items = [str(e).strip() for e in evidence]
    items = [e for e in items if e]
    if len(items) > MAX_EVIDENCE_ITEMS:
        raise ValidationError("evidence", f"Too many evidence items (max {MAX_EVIDENCE_ITEMS})")
    return items


class ReasonAggregator:
    """Editable view over an entity's reasons for one presentation.

    The reasons present when the aggregator is created are kept as a deep
    snapshot so ``restore`` can undo every edit made since.
    """

    def __init__(self, entity: Entity) -> None:
        self.entity = entity
        self._original_reasons = copy.deepcopy(entity.reasons)
        self._original_confidence = entity.confidence
        self.changed = False

    def _key(self, reason_type: Union[str, ReasonType]) -> ReasonType:
        try:
            return parse_reason_type(self.entity.kind, reason_type)
        except ValueError:
            raise ValidationError("reason_type", f"Invalid reason type: {reason_type}") from None

    def upsert(
        self,
        reason_type: Union[str, ReasonType],
        message: Optional[str],
        confidence: Union[str, float, None] = None,
        evidence: Optional[Iterable[str]] = None,
    ) -> Optional[Reason]:
        """Add or replace a reason. A blank message removes it instead.

        Returns the stored reason, or None when the reason was removed.
        """
        key = self._key(reason_type)
        text = (message or "").strip()
        existing = self.entity.reasons.get(key)

        if not text:
            if existing is None:
                raise ValidationError("message", "Reason message cannot be empty")
            self.remove(key)
            return None

        if len(text) > MAX_REASON_MESSAGE_LENGTH:
            raise ValidationError("message", f"Reason message is too long (max {MAX_REASON_MESSAGE_LENGTH} characters)")

        if confidence is None and existing is not None:
            value = existing.confidence
        else:
            value = parse_confidence(confidence)

        if evidence is None and existing is not None:
            items = list(existing.evidence)
        else:
            items = clean_evidence(evidence)

        reason = Reason(message=text, confidence=value, evidence=items)
        self.entity.reasons[key] = reason
        self._recompute()
        return reason

    def remove(self, reason_type: Union[str, ReasonType]) -> bool:
        key = self._key(reason_type)
        if self.entity.reasons.pop(key, None) is None:
            return False
        self._recompute()
        return True

    def aggregate(self) -> float:
        return calculate_confidence(self.entity.reasons)

    def restore(self) -> None:
        """Roll back every edit since the entity was presented."""
        self.entity.reasons = copy.deepcopy(self._original_reasons)
        self.entity.confidence = self._original_confidence
        self.changed = False

    def _recompute(self) -> None:
        self.entity.confidence = self.aggregate()
        self.changed = True
        log.debug(
            "Reasons for %s %s now %s (confidence=%.2f)",
            self.entity.label,
            self.entity.id,
            [k.value for k in self.entity.reasons],
            self.entity.confidence,
        )
