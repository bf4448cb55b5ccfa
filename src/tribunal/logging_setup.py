from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(level=resolved, format=_FORMAT)
    logging.getLogger("tribunal").setLevel(resolved)

    # Library chatter stays at WARNING regardless of LOG_LEVEL.
    for noisy in ("discord", "discord.http", "discord.gateway", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
