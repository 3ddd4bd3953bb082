"""
Centralized error reporting for npm-version-tree.

Failures are still raised to the caller; this module records them with
structured, sanitized log output.
"""

import logging
import re
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse


class ErrorLevel(Enum):
    """Error severity levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCategory(Enum):
    """Error categories for better classification."""

    NETWORK = "NETWORK"
    RESOLUTION = "RESOLUTION"
    MANIFEST = "MANIFEST"
    VALIDATION = "VALIDATION"
    CONFIGURATION = "CONFIGURATION"


@dataclass
class ErrorContext:
    """Structured error context information."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    module: str
    function: str
    details: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[BaseException] = None
    traceback_info: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error context to dictionary for logging."""
        return {
            "level": self.level.value,
            "category": self.category.value,
            "message": self.message,
            "module": self.module,
            "function": self.function,
            "details": self.details,
            "exception_type": type(self.exception).__name__ if self.exception else None,
            "exception_message": str(self.exception) if self.exception else None,
            "traceback": self.traceback_info,
            "suggestions": self.suggestions,
        }


_SENSITIVE_PATTERNS = [
    (r'token["\s]*[:=]["\s]*([a-zA-Z0-9_\-+=/.]{8,})', 'token="[REDACTED]"'),
    (r"(https?://[^@\s]+:)[^@\s]+@", r"\1[REDACTED]@"),
    (r"Authorization:\s*\w+\s+([^\s]+)", "Authorization: [REDACTED]"),
    (r"_authToken=([^\s]+)", "_authToken=[REDACTED]"),
]

_SENSITIVE_KEYS = {"token", "password", "secret", "credential", "auth"}


class SecureLogger:
    """Logger that strips credentials from messages before emitting them."""

    def __init__(self, name: str, level: int = logging.WARNING):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
            self.logger.addHandler(handler)

    def _sanitize_message(self, message: str) -> str:
        sanitized = message
        for pattern, replacement in _SENSITIVE_PATTERNS:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)
        return sanitized

    def _sanitize_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        sanitized = {}
        for key, value in data.items():
            if any(sensitive in key.lower() for sensitive in _SENSITIVE_KEYS):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_dict(value)
            elif isinstance(value, str):
                sanitized[key] = self._sanitize_message(value)
            else:
                sanitized[key] = value
        return sanitized

    def log_error_context(self, context: ErrorContext) -> None:
        """Log error context with appropriate level."""
        log_data: Dict[str, Any] = {
            "category": context.category.value,
            "module": context.module,
            "function": context.function,
            "details": self._sanitize_dict(context.details),
        }
        if context.exception:
            log_data["exception"] = type(context.exception).__name__
        if context.suggestions:
            log_data["suggestions"] = context.suggestions

        log_message = f"{self._sanitize_message(context.message)} | {log_data}"
        self.logger.log(getattr(logging, context.level.value), log_message)


class ErrorHandler:
    """
    Centralized error handler for consistent error management.

    Builds an ``ErrorContext`` for each reported problem and logs it
    through a ``SecureLogger``.
    """

    def __init__(self, logger_name: str = "npm_version_tree", log_level: int = logging.WARNING):
        self.logger = SecureLogger(logger_name, log_level)

    def handle_error(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        exception: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> ErrorContext:
        """
        Handle an error with structured, sanitized logging.

        Returns:
            ErrorContext: The created error context
        """
        context = ErrorContext(
            level=level,
            category=category,
            message=message,
            module=module,
            function=function,
            details=details or {},
            exception=exception,
            traceback_info=(
                "".join(traceback.format_exception(type(exception), exception, exception.__traceback__))
                if exception
                else None
            ),
            suggestions=suggestions or [],
        )

        self.logger.log_error_context(context)
        return context

    def warning(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        """Handle warning level error."""
        return self.handle_error(ErrorLevel.WARNING, category, message, module, function, **kwargs)

    def error(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        """Handle error level error."""
        return self.handle_error(ErrorLevel.ERROR, category, message, module, function, **kwargs)


_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def _sanitize_url(url: str) -> str:
    parsed = urlparse(url)
    sanitized = f"{parsed.scheme}://{parsed.hostname}"
    if parsed.port:
        sanitized += f":{parsed.port}"
    return sanitized + parsed.path


def log_network_error(
    message: str,
    module: str,
    function: str,
    url: Optional[str] = None,
    status_code: Optional[int] = None,
    exception: Optional[BaseException] = None,
    attempts: Optional[int] = None,
) -> None:
    """Convenience function for logging registry failures."""
    details: Dict[str, Any] = {}
    if url is not None:
        details["url"] = _sanitize_url(url)
    if status_code is not None:
        details["status_code"] = status_code
    if attempts is not None:
        details["attempts"] = attempts

    get_error_handler().error(
        ErrorCategory.NETWORK,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=[
            "Check network connectivity",
            "Verify the registry URL is correct",
            "Check whether the registry requires an auth token",
        ],
    )


def log_resolution_error(
    message: str,
    module: str,
    function: str,
    package_name: str,
    range: str,
    available_count: int,
) -> None:
    """Convenience function for logging unsatisfiable ranges."""
    get_error_handler().warning(
        ErrorCategory.RESOLUTION,
        message,
        module,
        function,
        details={
            "package_name": package_name,
            "range": range,
            "available_count": available_count,
        },
        suggestions=["Relax the version range or publish a matching version"],
    )


def log_manifest_error(
    message: str,
    module: str,
    function: str,
    file_path: Optional[str] = None,
    exception: Optional[BaseException] = None,
) -> None:
    """Convenience function for logging manifest parsing errors."""
    details: Dict[str, Any] = {}
    if file_path is not None:
        details["file_path"] = Path(file_path).name

    get_error_handler().warning(
        ErrorCategory.MANIFEST,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=["Check the manifest is valid JSON with name and version"],
    )
