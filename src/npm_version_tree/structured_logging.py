"""
Structured logging configuration for npm-version-tree.

Provides machine-readable event logs for registry access, metadata
fetching and tree construction.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class TreeLogger:
    """Structured logger for one component of the tree builder."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"npm_version_tree.{name}")
        self._setup_logger()
        self.build_context: Dict[str, Any] = {}

    def _setup_logger(self) -> None:
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.WARNING)
            self.logger.propagate = False

    def set_build_context(
        self, root: Optional[str] = None, build_id: Optional[str] = None
    ) -> None:
        """Set build context attached to every event."""
        self.build_context = {}
        if root:
            self.build_context["root"] = root
        if build_id:
            self.build_context["build_id"] = build_id

    def clear_build_context(self) -> None:
        self.build_context.clear()

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        if not self.logger.isEnabledFor(level):
            return
        log_data = {"event_type": event_type, **self.build_context, **kwargs}
        self.logger.log(level, event_type, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        self._log(logging.INFO, event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        self._log(logging.WARNING, event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        self._log(logging.ERROR, event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        self._log(logging.DEBUG, event_type, **kwargs)


_registry_logger = TreeLogger("registry")
_fetcher_logger = TreeLogger("fetcher")
_builder_logger = TreeLogger("builder")

_ALL_LOGGERS = (_registry_logger, _fetcher_logger, _builder_logger)


def get_registry_logger() -> TreeLogger:
    """Get registry client logger."""
    return _registry_logger


def get_fetcher_logger() -> TreeLogger:
    """Get metadata fetcher logger."""
    return _fetcher_logger


def get_builder_logger() -> TreeLogger:
    """Get tree builder logger."""
    return _builder_logger


def log_registry_request(
    package_name: str,
    status_code: Optional[int],
    response_time_ms: Optional[int] = None,
) -> None:
    """Log the outcome of one registry request."""
    log_data: Dict[str, Any] = {"package_name": package_name, "status_code": status_code}
    if response_time_ms is not None:
        log_data["response_time_ms"] = response_time_ms

    if status_code is None or status_code >= 400:
        _registry_logger.warning("registry_request_failed", **log_data)
    else:
        _registry_logger.debug("registry_request_completed", **log_data)


def log_build_start(build_id: str, root: str) -> None:
    """Log the start of a top-level tree build."""
    set_build_context(root=root, build_id=build_id)
    _builder_logger.info("tree_build_started")


def log_build_complete(build_id: str, duration_ms: int, fetches: int, nodes: int) -> None:
    """Log the end of a top-level tree build."""
    _builder_logger.info(
        "tree_built",
        duration_ms=duration_ms,
        metadata_fetches=fetches,
        cached_nodes=nodes,
    )
    clear_build_context()


def set_build_context(root: Optional[str] = None, build_id: Optional[str] = None) -> None:
    """Set build context for all loggers."""
    for logger in _ALL_LOGGERS:
        logger.set_build_context(root, build_id)


def clear_build_context() -> None:
    """Clear build context for all loggers."""
    for logger in _ALL_LOGGERS:
        logger.clear_build_context()


def configure_logging(log_level: str = "WARNING") -> None:
    """Configure log levels for all npm-version-tree loggers."""
    level = getattr(logging, log_level.upper(), logging.WARNING)
    logging.getLogger("npm_version_tree").setLevel(level)
    for logger in _ALL_LOGGERS:
        logger.logger.setLevel(level)
