from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta

from . import constants as c
from .services.audit_queue import AuditPolicy


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _get_ids(name: str) -> frozenset[int]:
    raw = os.getenv(name, "").strip()
    ids: set[int] = set()
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit():
            ids.add(int(part))
    return frozenset(ids)


def _get_names(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    names = tuple(p.strip() for p in raw.split(",") if p.strip())
    return names or default


@dataclass(frozen=True)
class ReviewPolicy:
    """Thresholds shared by the review engine components."""

    max_history_size: int = c.MAX_HISTORY_SIZE
    minimum_votes_required: int = c.MINIMUM_VOTES_REQUIRED
    vote_consensus_threshold: float = c.VOTE_CONSENSUS_THRESHOLD
    max_reviews_before_break: int = c.MAX_REVIEWS_BEFORE_BREAK
    min_break_duration: timedelta = timedelta(minutes=c.MIN_BREAK_MINUTES)
    review_session_window: timedelta = timedelta(minutes=c.REVIEW_SESSION_WINDOW_MINUTES)
    accuracy_floor: float = c.ACCURACY_FLOOR
    accuracy_min_votes: int = c.ACCURACY_MIN_VOTES
    accuracy_cache_ttl_seconds: int = c.ACCURACY_CACHE_TTL_SECONDS
    recent_exclusion_limit: int = c.RECENT_EXCLUSION_LIMIT
    recent_viewer_window: timedelta = timedelta(minutes=c.RECENT_VIEWER_WINDOW_MINUTES)
    stale_target_timeout: timedelta = timedelta(minutes=c.STALE_TARGET_MINUTES)
    # Try the other lifecycle statuses when the requested one is empty.
    target_fallback: bool = False


@dataclass(frozen=True)
class Settings:
    sqlite_path: str
    log_level: str
    reviewer_ids: frozenset[int]
    admin_ids: frozenset[int]
    reviewer_role_names: tuple[str, ...]
    admin_role_name: str
    max_history_size: int
    minimum_votes_required: int
    vote_consensus_threshold: float
    max_reviews_before_break: int
    min_break_minutes: int
    review_session_window_minutes: int
    accuracy_floor: float
    accuracy_min_votes: int
    accuracy_cache_ttl_seconds: int
    recent_exclusion_limit: int
    recent_viewer_window_minutes: int
    stale_target_minutes: int
    target_fallback: bool
    audit_max_batch: int
    audit_every_ms: int
    audit_max_queue_size: int

    def review_policy(self) -> ReviewPolicy:
        return ReviewPolicy(
            max_history_size=self.max_history_size,
            minimum_votes_required=self.minimum_votes_required,
            vote_consensus_threshold=self.vote_consensus_threshold,
            max_reviews_before_break=self.max_reviews_before_break,
            min_break_duration=timedelta(minutes=self.min_break_minutes),
            review_session_window=timedelta(minutes=self.review_session_window_minutes),
            accuracy_floor=self.accuracy_floor,
            accuracy_min_votes=self.accuracy_min_votes,
            accuracy_cache_ttl_seconds=self.accuracy_cache_ttl_seconds,
            recent_exclusion_limit=self.recent_exclusion_limit,
            recent_viewer_window=timedelta(minutes=self.recent_viewer_window_minutes),
            stale_target_timeout=timedelta(minutes=self.stale_target_minutes),
            target_fallback=self.target_fallback,
        )

    def audit_policy(self) -> AuditPolicy:
        return AuditPolicy(
            max_batch=max(1, self.audit_max_batch),
            every_ms=max(1, self.audit_every_ms),
            max_queue_size=max(1, self.audit_max_queue_size),
        )


def load_settings() -> Settings:
    return Settings(
        sqlite_path=(os.getenv("SQLITE_PATH", "tribunal.sqlite3").strip() or "tribunal.sqlite3"),
        log_level=(os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"),
        reviewer_ids=_get_ids("REVIEWER_IDS"),
        admin_ids=_get_ids("ADMIN_IDS"),
        reviewer_role_names=_get_names("REVIEWER_ROLE_NAMES", ("Reviewer", "Moderator")),
        admin_role_name=(os.getenv("ADMIN_ROLE_NAME", "Admin").strip() or "Admin"),
        max_history_size=max(1, _get_int("MAX_HISTORY_SIZE", c.MAX_HISTORY_SIZE)),
        minimum_votes_required=_get_int("MINIMUM_VOTES_REQUIRED", c.MINIMUM_VOTES_REQUIRED),
        vote_consensus_threshold=_get_float("VOTE_CONSENSUS_THRESHOLD", c.VOTE_CONSENSUS_THRESHOLD),
        max_reviews_before_break=_get_int("MAX_REVIEWS_BEFORE_BREAK", c.MAX_REVIEWS_BEFORE_BREAK),
        min_break_minutes=_get_int("MIN_BREAK_MINUTES", c.MIN_BREAK_MINUTES),
        review_session_window_minutes=_get_int("REVIEW_SESSION_WINDOW_MINUTES", c.REVIEW_SESSION_WINDOW_MINUTES),
        accuracy_floor=_get_float("ACCURACY_FLOOR", c.ACCURACY_FLOOR),
        accuracy_min_votes=_get_int("ACCURACY_MIN_VOTES", c.ACCURACY_MIN_VOTES),
        accuracy_cache_ttl_seconds=_get_int("ACCURACY_CACHE_TTL_SECONDS", c.ACCURACY_CACHE_TTL_SECONDS),
        recent_exclusion_limit=_get_int("RECENT_EXCLUSION_LIMIT", c.RECENT_EXCLUSION_LIMIT),
        recent_viewer_window_minutes=_get_int("RECENT_VIEWER_WINDOW_MINUTES", c.RECENT_VIEWER_WINDOW_MINUTES),
        stale_target_minutes=_get_int("STALE_TARGET_MINUTES", c.STALE_TARGET_MINUTES),
        target_fallback=_get_bool("TARGET_FALLBACK", False),
        audit_max_batch=_get_int("AUDIT_MAX_BATCH", c.AUDIT_MAX_BATCH),
        audit_every_ms=_get_int("AUDIT_EVERY_MS", c.AUDIT_EVERY_MS),
        audit_max_queue_size=_get_int("AUDIT_MAX_QUEUE_SIZE", c.AUDIT_MAX_QUEUE_SIZE),
    )
