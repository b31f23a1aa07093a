from __future__ import annotations

import json
import logging

from app.farmhub.core.config import settings


def configure_logging(level: int | None = None) -> None:
    if level is None:
        level = logging.INFO if settings.is_production else logging.DEBUG
    logging.basicConfig(level=level, format="%(message)s")
    # SQLAlchemy echoes through its own loggers; keep them quiet unless asked.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def log_json(logger: logging.Logger, payload: dict, level: int = logging.INFO) -> None:
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
