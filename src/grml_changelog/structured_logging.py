"""
Structured logging for grml-changelog.

Emits one JSON object per event so build logs can be grepped and parsed by the
surrounding automation.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .error_handling import sanitize_message

_RESERVED_ATTRS = {
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
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = value

        return sanitize_message(json.dumps(log_entry, default=str))


class EventLogger:
    """Structured logger for changelog run events."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"grml_changelog.{name}")
        self._setup_logger()
        self.run_context: Dict[str, Any] = {}

    def _setup_logger(self) -> None:
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.propagate = False
            self.logger.setLevel(logging.WARNING)

    def set_run_context(
        self, workspace: Optional[str] = None, job: Optional[str] = None
    ) -> None:
        self.run_context = {}
        if workspace:
            self.run_context["workspace"] = workspace
        if job:
            self.run_context["job"] = job

    def clear_run_context(self) -> None:
        self.run_context.clear()

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **self.run_context, **kwargs}
        self.logger.log(level, event_type, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        self._log(logging.INFO, event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        self._log(logging.WARNING, event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        self._log(logging.ERROR, event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        self._log(logging.DEBUG, event_type, **kwargs)


_changelog_logger = EventLogger("changelog")
_git_logger = EventLogger("git")


def get_changelog_logger() -> EventLogger:
    """Get the logger for run-level events."""
    return _changelog_logger


def get_git_logger() -> EventLogger:
    """Get the logger for git mirror operations."""
    return _git_logger


def set_run_context(workspace: Optional[str] = None, job: Optional[str] = None) -> None:
    """Set run context on all loggers."""
    for logger in (_changelog_logger, _git_logger):
        logger.set_run_context(workspace, job)


def clear_run_context() -> None:
    for logger in (_changelog_logger, _git_logger):
        logger.clear_run_context()


def log_package_list_parsed(path: str, package_count: int) -> None:
    get_changelog_logger().info(
        "package_list_parsed", path=path, package_count=package_count
    )


def log_git_command(args, cwd: str) -> None:
    get_git_logger().debug("git_command", command=" ".join(args), cwd=cwd)


def configure_logging(log_level: str = "WARNING") -> None:
    """Set the level of all grml-changelog loggers."""
    level = getattr(logging, log_level.upper(), logging.WARNING)
    logging.getLogger("grml_changelog").setLevel(level)
    for logger in (_changelog_logger, _git_logger):
        logger.logger.setLevel(level)
