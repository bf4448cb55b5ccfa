"""
Error taxonomy for the review engine.

Every error carries a user-facing ``message`` that the presentation layer can
show verbatim. Storage internals never leak into these messages.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional


class ReviewError(Exception):
    """Base class for all review engine errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ReviewError):
    """A target or history entry no longer exists."""


class NoTargetsError(ReviewError):
    """The candidate set is exhausted. Informational, not a failure."""


class PermissionDeniedError(ReviewError):
    """The reviewer lacks the privilege required for the action."""


class ReviewBlockedError(ReviewError):
    """A gate refused the action. The reviewer must change course."""


class ConsensusBlockedError(ReviewBlockedError):
    pass


class BannedError(ReviewBlockedError):
    pass


class BreakRequiredError(ReviewBlockedError):
    def __init__(self, message: str, retry_at: Optional[datetime] = None) -> None:
        super().__init__(message)
        self.retry_at = retry_at


class VerificationRequiredError(ReviewBlockedError):
    pass


class ValidationError(ReviewError):
    """Malformed input, rejected before any mutation."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class TransientError(ReviewError):
    """A persistence failure. Retry policy belongs to the caller."""
