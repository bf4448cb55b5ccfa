from __future__ import annotations

import asyncio
import logging

from dotenv import load_dotenv

from .config import Settings, load_settings
from .controller import SessionController
from .database import initialize_database
from .logging_setup import setup_logging
from .permissions import StaticPermissionOracle
from .services import ActivityStore, AuditDispatcher, EntityStore, VoteStore

log = logging.getLogger("tribunal.main")


def build_controller(settings: Settings) -> SessionController:
    """Wire the SQLite stores, audit queue and id-based permissions together."""
    activity = ActivityStore(settings.sqlite_path)
    return SessionController(
        EntityStore(settings.sqlite_path),
        VoteStore(settings.sqlite_path),
        activity,
        StaticPermissionOracle.from_settings(settings),
        AuditDispatcher(activity, settings.audit_policy()),
        policy=settings.review_policy(),
    )


async def prepare_storage(settings: Settings) -> SessionController:
    controller = build_controller(settings)
    await initialize_database(settings.sqlite_path, [controller.entities, controller.votes, controller.activity])
    return controller


def main() -> None:
    load_dotenv()
    settings = load_settings()
    setup_logging(settings.log_level)

    controller = asyncio.run(prepare_storage(settings))
    policy = controller.policy
    log.info(
        "Review storage ready at %s (history=%s, consensus=%s/%s votes, break after %s reviews, audit batch=%s every %sms)",
        settings.sqlite_path,
        policy.max_history_size,
        policy.vote_consensus_threshold,
        policy.minimum_votes_required,
        policy.max_reviews_before_break,
        controller.dispatcher.policy.max_batch,
        controller.dispatcher.policy.every_ms,
    )


if __name__ == "__main__":
    main()
