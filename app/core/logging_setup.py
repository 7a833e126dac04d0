from __future__ import annotations

import logging

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    raw = str(level or settings.LOG_LEVEL or "INFO").strip().upper()
    resolved = logging.getLevelName(raw)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("app").setLevel(resolved)
