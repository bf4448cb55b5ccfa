from __future__ import annotations

from typing import Final

# Review history
MAX_HISTORY_SIZE: Final[int] = 50

# Consensus gate
MINIMUM_VOTES_REQUIRED: Final[int] = 10
VOTE_CONSENSUS_THRESHOLD: Final[float] = 0.8

# Fatigue throttle
MAX_REVIEWS_BEFORE_BREAK: Final[int] = 50
MIN_BREAK_MINUTES: Final[int] = 15
REVIEW_SESSION_WINDOW_MINUTES: Final[int] = 60

# Vote accuracy ban
ACCURACY_FLOOR: Final[float] = 0.40
ACCURACY_MIN_VOTES: Final[int] = 10
ACCURACY_CACHE_TTL_SECONDS: Final[int] = 60
BAN_NOTES: Final[str] = "Automated system detection - suspicious voting patterns"

# Target selection
RECENT_EXCLUSION_LIMIT: Final[int] = 50
RECENT_VIEWER_WINDOW_MINUTES: Final[int] = 5
STALE_TARGET_MINUTES: Final[int] = 10

# Audit queue
AUDIT_MAX_BATCH: Final[int] = 8
AUDIT_EVERY_MS: Final[int] = 50
AUDIT_MAX_QUEUE_SIZE: Final[int] = 10_000

# Reason editing
CONFIDENCE_DECIMALS: Final[int] = 2
MAX_REASON_MESSAGE_LENGTH: Final[int] = 512
MAX_EVIDENCE_ITEMS: Final[int] = 25

# User-facing messages
MESSAGES = {
    "no_targets": "No {kind}s to review. Please check back later.",
    "banned": "You have been banned for suspicious voting patterns.",
    "break_required": "You have reviewed a lot in a short time. Please take a break before continuing.",
    "verification_required": "Please complete CAPTCHA verification to continue.",
    "no_previous": "No previous {kind} to navigate to.",
    "stale_target": "Previous review timed out after {minutes} minutes of inactivity. Showing new {kind}.",
    "transient": "Failed to {action}. Please try again.",
    "no_active_target": "There is no {kind} currently under review.",
}
