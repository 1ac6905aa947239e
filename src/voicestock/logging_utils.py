"""Logging utilities with redaction and session context.

Provides:
- Secret redaction for OpenAI API keys and authorization headers
- Structured logging helpers
- Session ID context management
"""

import logging
import re
from contextvars import ContextVar
from typing import Any

# Context variable for the voice session being processed (async-safe)
_session_id_var: ContextVar[str | None] = ContextVar("session_id", default=None)

# Patterns for secret redaction
API_KEY_PATTERNS = [
    (re.compile(r"sk-proj-[A-Za-z0-9_\-]+"), "sk-proj-***REDACTED***"),  # Project keys
    (re.compile(r"sk-[A-Za-z0-9_\-]{8,}"), "sk-***REDACTED***"),  # Legacy/user keys
]

# Pattern for Authorization header values (skips the "Bearer" scheme word)
AUTH_HEADER_PATTERN = re.compile(
    r"(Authorization[:\s]+(?:Bearer\s+)?)([^\s,;]+)",
    re.IGNORECASE,
)


def redact_secrets(text: str | None) -> str:
    """Redact secrets from text (API keys, auth headers, etc.).

    Args:
        text: Text that may contain secrets

    Returns:
        Text with secrets redacted
    """
    if text is None:
        return ""

    if not isinstance(text, str):
        text = str(text)

    for pattern, replacement in API_KEY_PATTERNS:
        text = pattern.sub(replacement, text)

    text = AUTH_HEADER_PATTERN.sub(r"\1***REDACTED***", text)

    return text


def set_session_id(session_id: str | None) -> None:
    """Set the session ID for the current context."""
    _session_id_var.set(session_id)


def get_session_id() -> str | None:
    """Get the session ID for the current context."""
    return _session_id_var.get()


def clear_session_id() -> None:
    """Clear the session ID from the current context."""
    _session_id_var.set(None)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    **kwargs: Any,
) -> None:
    """Log a message with structured context (session_id, etc.).

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, logging.ERROR, etc.)
        message: Log message
        **kwargs: Additional structured fields to include
    """
    parts = [message]

    session_id = get_session_id()
    if session_id:
        parts.append(f"session_id={session_id}")

    for key, value in kwargs.items():
        safe_value = redact_secrets(str(value))
        parts.append(f"{key}={safe_value}")

    logger.log(level, " | ".join(parts))


def log_info(logger: logging.Logger, message: str, **kwargs: Any) -> None:
    """Log an info message with structured context."""
    log_with_context(logger, logging.INFO, message, **kwargs)


def log_warning(logger: logging.Logger, message: str, **kwargs: Any) -> None:
    """Log a warning message with structured context."""
    log_with_context(logger, logging.WARNING, message, **kwargs)


def log_error(logger: logging.Logger, message: str, **kwargs: Any) -> None:
    """Log an error message with structured context."""
    log_with_context(logger, logging.ERROR, message, **kwargs)


def log_debug(logger: logging.Logger, message: str, **kwargs: Any) -> None:
    """Log a debug message with structured context."""
    log_with_context(logger, logging.DEBUG, message, **kwargs)
