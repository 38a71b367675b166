"""
Error taxonomy and error handling for grml-changelog.

Fatal conditions are raised as ChangelogError subclasses and abort the whole
run. The ErrorHandler records every handled condition with structured context
so the CLI and library callers get consistent, sanitized log output.
"""

import logging
import re
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence


class ErrorLevel(Enum):
    """Severity of a handled condition."""

    WARNING = "WARNING"
    ERROR = "ERROR"


class ErrorCategory(Enum):
    """Error categories for better classification."""

    PARSING = "PARSING"
    PROCESS = "PROCESS"
    FILESYSTEM = "FILESYSTEM"
    CONFIGURATION = "CONFIGURATION"


class ChangelogError(Exception):
    """Base class for all errors that abort a changelog run."""

    category = ErrorCategory.FILESYSTEM


class InputMissing(ChangelogError):
    """The new package list snapshot does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Could not find package list: {path}")


class SnapshotReadError(ChangelogError):
    """A package list exists but could not be read."""

    category = ErrorCategory.PARSING


class OldSnapshotUnavailable(ChangelogError):
    """The old package list is missing or unreadable.

    Never propagated out of a run: the loader reports it and continues with an
    empty snapshot.
    """

    category = ErrorCategory.PARSING


class ProcessError(ChangelogError):
    """An external command exited non-zero or timed out."""

    category = ErrorCategory.PROCESS

    def __init__(
        self,
        command: Sequence[str],
        returncode: Optional[int],
        stderr: str = "",
        message: Optional[str] = None,
    ):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        if message is None:
            message = f"Command exited with code: {returncode}"
        super().__init__(f"{message} ({sanitize_message(' '.join(self.command))})")


class OutputMissing(ChangelogError):
    """An external command succeeded but did not produce its expected output."""

    category = ErrorCategory.PROCESS


class ConfigurationError(ChangelogError):
    """Invalid configuration values."""

    category = ErrorCategory.CONFIGURATION


_SENSITIVE_PATTERNS = [
    (r"(\w+://[^@/\s:]+:)[^@/\s]+@", r"\1[REDACTED]@"),  # URLs with credentials
    (r'token["\s]*[:=]["\s]*([a-zA-Z0-9_\-+=/.]{8,})', 'token="[REDACTED]"'),
    (r'password["\s]*[:=]["\s]*([^\s"\']+)', 'password="[REDACTED]"'),
]


def sanitize_message(message: str) -> str:
    """Mask credentials embedded in git remote URLs and similar strings."""
    sanitized = message
    for pattern, replacement in _SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)
    return sanitized


@dataclass
class ErrorContext:
    """A handled condition as passed to the log and to callbacks."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    module: str
    function: str
    details: Dict[str, str] = field(default_factory=dict)
    exception: Optional[Exception] = None
    suggestions: List[str] = field(default_factory=list)


class SecureLogger:
    """Logger that sanitizes credentials before anything is emitted."""

    def __init__(self, name: str, level: int = logging.WARNING):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
            self.logger.addHandler(handler)

    def log_error_context(self, context: ErrorContext) -> None:
        """Log a handled condition at the level it carries."""
        where = f"{context.module}.{context.function}"
        log_data: Dict[str, Any] = {
            "category": context.category.value,
            "where": where,
        }
        log_data.update(
            {key: sanitize_message(str(value)) for key, value in context.details.items()}
        )
        if context.exception:
            log_data["exception"] = type(context.exception).__name__
        if context.suggestions:
            log_data["suggestions"] = context.suggestions

        self.logger.log(
            getattr(logging, context.level.value),
            f"{sanitize_message(context.message)} | {log_data}",
        )


ErrorCallback = Callable[[ErrorContext], None]


class ErrorHandler:
    """
    Centralized error handler.

    Logs every handled condition and notifies registered callbacks, so an
    embedding build system can surface warnings (such as a missing old package
    list) in its own UI.
    """

    def __init__(
        self,
        logger_name: str = "grml_changelog",
        log_level: int = logging.WARNING,
    ):
        self.logger = SecureLogger(logger_name, log_level)
        self.callbacks: List[ErrorCallback] = []

    def register_callback(self, callback: ErrorCallback) -> None:
        self.callbacks.append(callback)

    def handle_error(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        exception: Optional[Exception] = None,
        details: Optional[Dict[str, str]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> ErrorContext:
        """
        Log a handled condition and pass it to every callback.

        Args:
            level: Severity
            category: Error category
            message: Human readable message
            module: Module reporting the condition
            function: Function reporting the condition
            exception: Exception behind the condition, if any
            details: Extra key/value pairs for the log line
            suggestions: Hints for the operator

        Returns:
            ErrorContext: The context handed to the callbacks
        """
        context = ErrorContext(
            level=level,
            category=category,
            message=message,
            module=module,
            function=function,
            details=details or {},
            exception=exception,
            suggestions=suggestions or [],
        )

        self.logger.log_error_context(context)

        for callback in self.callbacks:
            try:
                callback(context)
            except Exception as cb_error:
                # Callback errors must not break the run
                self.logger.logger.error(f"Error in callback: {cb_error}")

        return context

    def warning(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        return self.handle_error(
            ErrorLevel.WARNING, category, message, module, function, **kwargs
        )

    def error(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        return self.handle_error(
            ErrorLevel.ERROR, category, message, module, function, **kwargs
        )


_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the process-wide error handler, creating it on first use."""
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def setup_error_handling(
    log_level: int = logging.WARNING, logger_name: str = "grml_changelog"
) -> ErrorHandler:
    """Replace the process-wide error handler with a freshly configured one."""
    global _global_error_handler
    _global_error_handler = ErrorHandler(logger_name, log_level)
    return _global_error_handler


def log_fatal_error(error: ChangelogError, module: str, function: str) -> ErrorContext:
    """Record a fatal error before it propagates to the caller."""
    suggestions: List[str] = []
    if isinstance(error, InputMissing):
        suggestions = ["Check that grml-live produced grml_logs/fai/dpkg.list"]
    elif isinstance(error, ProcessError):
        suggestions = [
            "Check that the git remote is reachable",
            "Verify that a tag exists for every package version",
        ]
    elif isinstance(error, OutputMissing):
        suggestions = ["Verify the git URL base and the repository name"]

    return get_error_handler().error(
        error.category,
        str(error),
        module,
        function,
        exception=error,
        suggestions=suggestions,
    )
