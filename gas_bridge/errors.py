"""Error codes surfaced by the browser automation core."""
from __future__ import annotations

import re
from enum import Enum

__all__ = ["ErrorCode", "CoreError", "classify_driver_error", "redact_token_values"]

# Driver messages echo the navigated URL, which may carry the session token.
TOKEN_VALUE_PATTERN = re.compile(r"(token=)[^&#\s\"']+", re.IGNORECASE)


class ErrorCode(str, Enum):
    TIMEOUT = "TIMEOUT"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGIN_INVALID_CREDENTIALS = "LOGIN_INVALID_CREDENTIALS"
    TOKEN_INVALID = "TOKEN_INVALID"
    DASHBOARD_PARSE_FAILED = "DASHBOARD_PARSE_FAILED"
    DASHBOARD_FETCH_FAILED = "DASHBOARD_FETCH_FAILED"
    LAUNCH_FAILED = "LAUNCH_FAILED"


class CoreError(RuntimeError):
    """Raised by the login and dashboard flows with a caller-facing code."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"CoreError({self.code.value}, {self.message!r})"


def redact_token_values(message: str) -> str:
    return TOKEN_VALUE_PATTERN.sub(r"\1***", message)


def classify_driver_error(exc: BaseException, *, fallback: ErrorCode) -> CoreError:
    """Wrap an unclassified driver error, promoting timeout-flavoured ones."""

    if isinstance(exc, CoreError):
        return exc
    message = redact_token_values(str(exc) or type(exc).__name__)
    if "timeout" in message.lower():
        return CoreError(ErrorCode.TIMEOUT, message)
    return CoreError(fallback, message)
