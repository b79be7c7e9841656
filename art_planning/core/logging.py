"""
Structured logging for the ART planning engine.

The engine only emits records through module loggers. Hosts call
configure_logging() once; level and format default to the LOG_LEVEL /
LOG_FORMAT settings.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from art_planning.core.config import get_settings

ENGINE_LOGGER = "art_planning"

# Identifiers of the plan entity a record is about; grouped under "context"
CONTEXT_FIELDS = ("pi_id", "item_id", "story_id", "team_id", "iteration_id")

_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message"}
_LOG_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool, type(None))):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(v) for v in value]
    return None


class JSONFormatter(logging.Formatter):
    """One JSON object per record: envelope, context block, then metrics."""

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
    ):
        super().__init__()
        self._include_timestamp = include_timestamp
        self._include_level = include_level
        self._include_logger = include_logger

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {}
        if self._include_timestamp:
            entry["timestamp"] = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
        if self._include_level:
            entry["level"] = record.levelname
        if self._include_logger:
            entry["logger"] = record.name
        entry["message"] = record.getMessage()

        context: Dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            value = _jsonable(value)
            if value is None:
                continue
            if key in CONTEXT_FIELDS:
                context[key] = value
            else:
                entry[key] = value
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry)


class ContextLogger(logging.LoggerAdapter):
    """
    Adapter that carries plan context (pi_id, item_id, ...) on every record.

    Keyword arguments other than the logging ones become record extras:
    log.info("[PLANNER] done", planned=3).
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        super().__init__(logger, dict(context or {}))

    def with_context(self, **kwargs) -> "ContextLogger":
        return ContextLogger(self.logger, {**self.extra, **kwargs})

    def process(self, msg, kwargs):
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in _LOG_KWARGS}
        kwargs["extra"] = {**self.extra, **fields, **(kwargs.get("extra") or {})}
        return msg, kwargs


def configure_logging(
    log_format: Optional[str] = None,
    log_level: Optional[str] = None,
    logger_name: Optional[str] = ENGINE_LOGGER,
) -> logging.Logger:
    """
    Attach a single stdout handler to the engine logger.

    Args:
        log_format: "json" or "text"; defaults to Settings.log_format
        log_level: level name; defaults to Settings.log_level, unknown names mean INFO
        logger_name: logger to configure (None for root)

    Returns:
        The configured logger
    """
    if log_format is None or log_level is None:
        settings = get_settings()
        log_format = log_format or settings.log_format
        log_level = log_level or settings.log_level

    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    logger.addHandler(handler)
    return logger


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name))
