"""
Error categorization for provider and request failures.

Maps exceptions onto stable error codes with user-facing messages, and keeps
running counts of each code for the health endpoint.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from convospace.exceptions import (
    ProviderAuthError,
    ProviderNotConfiguredError,
    QuotaExceededError,
    RateLimitError,
)

logger = logging.getLogger(__name__)


@dataclass
class ProcessedError:
    """Categorized view of an exception."""

    code: str
    message: str
    user_message: str
    is_retryable: bool
    severity: str  # low | medium | high | critical
    suggested_action: Optional[str] = None
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "userMessage": self.user_message,
            "isRetryable": self.is_retryable,
            "severity": self.severity,
            "suggestedAction": self.suggested_action,
            "context": self.context,
        }


# (code, substrings, user message, retryable, severity, suggested action)
_RULES: list[tuple[str, tuple[str, ...], str, bool, str, str]] = [
    (
        "AUTH_ERROR",
        ("api key", "unauthorized", "authentication", "invalid token", "forbidden", "401", "403"),
        "Authentication failed. Please check your API key configuration.",
        False,
        "high",
        "Verify your API keys in the settings and ensure they have the correct permissions.",
    ),
    (
        "RATE_LIMIT_ERROR",
        ("rate limit", "too many requests", "429"),
        "Too many requests. The system will automatically retry with a different provider.",
        True,
        "medium",
        "Please wait a moment. The system is automatically switching to alternative providers.",
    ),
    (
        "QUOTA_ERROR",
        ("quota", "billing", "insufficient credits", "credit balance"),
        "API quota exceeded. Switching to alternative provider.",
        True,
        "medium",
        "Consider upgrading your API plan if this persists.",
    ),
    (
        "TIMEOUT_ERROR",
        ("timeout", "timed out"),
        "Request timed out. The system will retry with optimized settings.",
        True,
        "medium",
        "The request is taking longer than usual. The system will automatically retry.",
    ),
    (
        "NETWORK_ERROR",
        ("network", "connection", "fetch", "dns", "econnrefused"),
        "Connection issue detected. Checking alternative providers.",
        True,
        "medium",
        "Please check your internet connection. The system will automatically retry.",
    ),
    (
        "MODEL_ERROR",
        ("model not found", "model is not", "unsupported model", "does not exist"),
        "The selected model is currently unavailable. Trying alternative models.",
        True,
        "medium",
        "The system will automatically try compatible models from other providers.",
    ),
    (
        "VALIDATION_ERROR",
        ("invalid", "validation", "required", "malformed"),
        "Invalid input detected. Please check your request and try again.",
        False,
        "low",
        "Please review your input for any formatting issues or invalid characters.",
    ),
    (
        "SERVER_ERROR",
        ("internal server error", "service unavailable", "bad gateway", "500", "502", "503"),
        "Service temporarily unavailable. The system will try alternative providers.",
        True,
        "high",
        "This is a temporary issue. The system will automatically retry with other providers.",
    ),
    (
        "CIRCUIT_BREAKER_ERROR",
        ("circuit breaker",),
        "Service protection activated. Using alternative providers.",
        True,
        "medium",
        "The system has temporarily disabled a problematic service and is using alternatives.",
    ),
]


def _rule(code: str) -> tuple[str, tuple[str, ...], str, bool, str, str]:
    return next(rule for rule in _RULES if rule[0] == code)


def classify_error(error: BaseException, context: Optional[dict[str, Any]] = None) -> ProcessedError:
    """
    Categorize an exception.

    Typed provider errors are matched first; anything else is matched on
    its message text.

    Args:
        error: The exception to categorize
        context: Optional request context (provider, model, operation)

    Returns:
        ProcessedError describing the failure
    """
    message = str(error)
    ctx = dict(context or {})
    ctx.setdefault("timestamp", time.time())

    code: Optional[str] = None
    if isinstance(error, ProviderAuthError):
        code = "AUTH_ERROR"
    elif isinstance(error, QuotaExceededError):
        code = "QUOTA_ERROR"
    elif isinstance(error, RateLimitError):
        code = "RATE_LIMIT_ERROR"
    elif isinstance(error, ProviderNotConfiguredError):
        code = "VALIDATION_ERROR"
    else:
        lowered = message.lower()
        for rule_code, needles, *_ in _RULES:
            if any(needle in lowered for needle in needles):
                code = rule_code
                break

    if code is None:
        return ProcessedError(
            code="UNKNOWN_ERROR",
            message=message,
            user_message="An unexpected error occurred. The system will attempt to recover.",
            is_retryable=True,
            severity="medium",
            suggested_action="If the problem persists, please try again later.",
            context=ctx,
        )

    _, _, user_message, retryable, severity, action = _rule(code)
    return ProcessedError(
        code=code,
        message=message,
        user_message=user_message,
        is_retryable=retryable,
        severity=severity,
        suggested_action=action,
        context=ctx,
    )


class ErrorTracker:
    """Thread-safe running counts of processed errors by code."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counts: dict[str, int] = {}
        self._last_seen: dict[str, float] = {}

    def process(self, error: BaseException, context: Optional[dict[str, Any]] = None) -> ProcessedError:
        """Classify, count and log an error."""
        processed = classify_error(error, context)
        with self._lock:
            self._counts[processed.code] = self._counts.get(processed.code, 0) + 1
            self._last_seen[processed.code] = time.time()

        log = logger.error if processed.severity in ("high", "critical") else logger.warning
        log(f"[{processed.code}] {processed.message} context={processed.context}")
        return processed

    def stats(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {
                code: {"count": count, "lastOccurrence": self._last_seen.get(code)}
                for code, count in self._counts.items()
            }

    def frequent(self, min_count: int = 3) -> list[dict[str, Any]]:
        """Codes seen at least ``min_count`` times, most frequent first."""
        with self._lock:
            items = [
                {"code": code, "count": count}
                for code, count in self._counts.items()
                if count >= min_count
            ]
        return sorted(items, key=lambda item: item["count"], reverse=True)

    def clear(self) -> None:
        with self._lock:
            self._counts.clear()
            self._last_seen.clear()
