"""Key=value structured logging for the Brand RAG engine."""

import logging
import sys
from typing import Any

_RESERVED_FIELDS = ("timestamp", "level", "logger", "function", "message")


class StructuredFormatter(logging.Formatter):
    """Render a record as one line of key=value pairs, extra context last."""

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None)
        if request_id is not None:
            fields["request_id"] = request_id

        for key, value in getattr(record, "extra_data", {}).items():
            # Context never overwrites the core fields
            fields[f"ctx_{key}" if key in _RESERVED_FIELDS else key] = value

        line = " ".join(f"{k}={v}" for k, v in fields.items())
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _level_for_env() -> int:
    try:
        from brandrag.core.config import get_settings

        env = get_settings().BRAND_RAG_ENV
    except Exception:
        # Settings unavailable (missing env vars), fall back to INFO
        return logging.INFO
    return logging.DEBUG if env == "dev" else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger writing structured lines to stdout.

    Handlers are attached once per logger name. Level is DEBUG when
    BRAND_RAG_ENV is "dev", INFO otherwise.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.setLevel(_level_for_env())

    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """
    Log with additional key=value context fields.

    A request_id keyword is lifted onto the record so it prints before the
    other context fields.
    """
    request_id = kwargs.pop("request_id", None)
    extra: dict[str, Any] = {"extra_data": kwargs}
    if request_id is not None:
        extra["request_id"] = request_id

    logger.log(level, msg, extra=extra)


def log_stage_counts(
    logger: logging.Logger,
    query: str,
    counts: dict[str, int],
    **kwargs: Any,
) -> None:
    """
    Log how many chunks survived each retrieval stage.

    Args:
        logger: Logger instance
        query: Query the pipeline ran for (truncated to 80 chars)
        counts: Ordered mapping of stage name -> surviving chunk count
        **kwargs: Additional context fields (strategy, quality, ...)
    """
    funnel = " -> ".join(f"{stage}:{count}" for stage, count in counts.items())
    log_with_context(
        logger,
        logging.INFO,
        f"Retrieval funnel {funnel}",
        query=repr(query[:80]),
        **kwargs,
    )
