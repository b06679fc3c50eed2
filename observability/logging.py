from __future__ import annotations

import json
import logging
import sys
import time
from typing import Any, Dict, Optional

DEFAULT_LOGGER_NAME = "deploy_transact"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_logger_name = DEFAULT_LOGGER_NAME


def configure_logging(level: str = "info", *, service_name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    Install a single stderr handler emitting one JSON object per line.

    Safe to call more than once; the handler is only attached the first time.
    """
    global _logger_name
    _logger_name = service_name or DEFAULT_LOGGER_NAME
    logger = logging.getLogger(_logger_name)
    logger.setLevel(_LEVELS.get((level or "info").strip().lower(), logging.INFO))
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
    return logger


def build_log_context(**fields: Any) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


def log_event(
    event: str,
    *,
    ctx: Optional[Dict[str, Any]] = None,
    data: Optional[Dict[str, Any]] = None,
    level: str = "info",
) -> None:
    payload = {
        "event": event,
        "ts_ms": int(time.time() * 1000),
        "ctx": ctx or {},
        "data": data or {},
    }
    logger = logging.getLogger(_logger_name)
    logger.log(_LEVELS.get(level, logging.INFO), json.dumps(payload, sort_keys=True, default=str))
