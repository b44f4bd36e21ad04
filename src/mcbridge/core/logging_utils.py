from __future__ import annotations

import json
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import LogConfig

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _coerce(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_coerce(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _coerce(v) for k, v in value.items()}
    return str(value)


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """Emit a single structured log line: ``event`` plus JSON-encoded fields.

    An ``exc`` field is rendered as ``error``/``error_type`` and, for
    error-level events, attached as exception info.
    """
    if not logger.isEnabledFor(level):
        return
    exc = fields.pop("exc", None)
    payload: dict[str, Any] = {"event": event}
    for key, value in fields.items():
        payload[key] = _coerce(value)
    if isinstance(exc, BaseException):
        payload["error"] = str(exc)
        payload["error_type"] = type(exc).__name__
    exc_info = exc if isinstance(exc, BaseException) and level >= logging.ERROR else None
    logger.log(level, json.dumps(payload, ensure_ascii=False), exc_info=exc_info)


def setup_rotating_logger(name: str, log_config: "LogConfig") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    target = os.path.abspath(log_config.path)
    for handler in logger.handlers:
        if isinstance(handler, RotatingFileHandler) and handler.baseFilename == target:
            return logger
    log_config.path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_config.path,
        maxBytes=log_config.max_bytes,
        backupCount=log_config.backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(handler)
    return logger


__all__ = ["log_event", "setup_rotating_logger"]
