"""Error normalization shared by probes and vendor clients."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

UNKNOWN_ERROR_MESSAGE = "Unknown error"
UNKNOWN_ERROR_STRING = "Unknown"

# Nested paths tried in order when pulling a readable message out of a
# vendor error. Each path is walked through mappings and attributes alike.
BEST_MESSAGE_PATHS: tuple[tuple[str, ...], ...] = (
    ("details", "error", "innererror", "message"),
    ("details", "error", "innererror", "code"),
    ("details", "error", "message"),
    ("details", "error", "code"),
    ("details", "error"),
    ("error", "message"),
    ("error", "Message"),
    ("error", "code"),
    ("error",),
    ("Error", "message"),
    ("Error", "Message"),
    ("message",),
    ("details",),
)


class ServiceCallError(Exception):
    """Raised by vendor clients once the underlying failure has been described."""

    def __init__(self, service: str, message: str, *, cause: Any = None) -> None:
        super().__init__(message)
        self.service = service
        self.message = message
        self.cause = cause


def _error_string(error: Any) -> str:
    if isinstance(error, BaseException):
        text = str(error)
        return f"{type(error).__name__}: {text}" if text else type(error).__name__
    return str(error)


def normalize_error(error: Any) -> tuple[str, str]:
    """Reduce any raised value to ``(error_message, error_string)``.

    The message is the error's ``message`` attribute when it has one,
    otherwise its string form, otherwise ``"Unknown error"``. The error
    string is the full string form (``"ValueError: boom"`` for exceptions),
    otherwise ``"Unknown"``.
    """

    if error is None:
        return UNKNOWN_ERROR_MESSAGE, UNKNOWN_ERROR_STRING

    message = getattr(error, "message", None)
    if not isinstance(message, str) or not message:
        message = str(error)
    if not message:
        message = UNKNOWN_ERROR_MESSAGE

    error_string = _error_string(error) or UNKNOWN_ERROR_STRING
    return message, error_string


def _lookup(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def best_error_message(payload: Any) -> str:
    """Return the most specific readable message found in ``payload``."""

    if payload is None:
        return UNKNOWN_ERROR_MESSAGE
    for path in BEST_MESSAGE_PATHS:
        value = payload
        for key in path:
            value = _lookup(value, key)
            if value is None:
                break
        if value is None or isinstance(value, (Mapping, list)):
            continue
        text = str(value)
        if text:
            return text
    return str(payload) or UNKNOWN_ERROR_MESSAGE


def show_keys_in_errors() -> bool:
    return os.getenv("DANGER_SHOW_KEYS_IN_ERRORS", "") == "true"


def describe_setting(value: str | None, *, secret: bool = False) -> str:
    """Render a configuration value for an error checklist."""

    if not secret or show_keys_in_errors():
        return str(value)
    return "has value" if value else "no value"
