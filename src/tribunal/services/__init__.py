from __future__ import annotations

from .activity_store import ActivityStore
from .audit_queue import AuditDispatcher, AuditPolicy
from .entity_store import EntityStore
from .stats import RuntimeStats
from .vote_store import VoteStore

__all__ = [
    "ActivityStore",
    "AuditDispatcher",
    "AuditPolicy",
    "EntityStore",
    "RuntimeStats",
    "VoteStore",
]
