"""Domain errors and error classification for AI provider failures."""

from enum import Enum
from typing import Literal


class InvalidScheduleError(ValueError):
    """Raised when a schedule cannot be persisted (e.g. a recurring schedule with no days)."""


class UnresolvedScopeReference(LookupError):
    """Raised when a task's owning group or user no longer exists."""

    def __init__(self, scope_id: str, message: str | None = None) -> None:
        self.scope_id = scope_id
        super().__init__(message or f"Scope not found: {scope_id}")


class ErrorCategory(Enum):
    """Categories of errors that can occur during agent execution."""

    SERVICE_QUOTA_EXCEEDED = "service_quota_exceeded"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    AUTHENTICATION_FAILED = "authentication_failed"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


class AIServiceError(RuntimeError):
    """An AI flow failed; carries a classified category and a user-facing message."""

    def __init__(self, category: ErrorCategory, user_message: str) -> None:
        self.category = category
        self.user_message = user_message
        super().__init__(user_message)


_ERROR_PATTERNS: dict[
    Literal["quota", "rate_limit", "auth", "network"],
    dict[str, list[str] | set[str]],
] = {
    "quota": {
        "phrases": [
            "quota exceeded",
            "insufficient credits",
            "credit limit",
            "credits exhausted",
            "out of credits",
        ],
        "exception_types": set(),
    },
    "rate_limit": {
        "phrases": [
            "rate limit",
            "too many requests",
            "rate_limit_exceeded",
            "throttled",
            "429",
        ],
        "exception_types": set(),
    },
    "auth": {
        "phrases": [
            "authentication failed",
            "invalid api key",
            "unauthorized",
            "invalid token",
            "api key",
            "401",
        ],
        "exception_types": {"AuthenticationError", "PermissionError"},
    },
    "network": {
        "phrases": [
            "connection",
            "timeout",
            "network",
            "503",
            "502",
            "504",
            "unreachable",
        ],
        "exception_types": {"ConnectionError", "TimeoutError"},
    },
}

_USER_MESSAGES: dict[str, dict[ErrorCategory, str]] = {
    "uz": {
        ErrorCategory.SERVICE_QUOTA_EXCEEDED: "AI xizmati limiti tugadi. Iltimos, keyinroq qayta urinib ko'ring.",
        ErrorCategory.RATE_LIMIT_EXCEEDED: "So'rovlar juda ko'p. Biroz kuting va qayta urinib ko'ring.",
        ErrorCategory.AUTHENTICATION_FAILED: "AI xizmatiga ulanib bo'lmadi. Administratorga murojaat qiling.",
        ErrorCategory.NETWORK_ERROR: "Tarmoq xatosi yuz berdi. Internet aloqangizni tekshirib, qayta urinib ko'ring.",
        ErrorCategory.UNKNOWN: "Kutilmagan xatolik yuz berdi. Iltimos, keyinroq qayta urinib ko'ring.",
    },
    "en": {
        ErrorCategory.SERVICE_QUOTA_EXCEEDED: "The AI service quota has been exceeded. Please try again later.",
        ErrorCategory.RATE_LIMIT_EXCEEDED: "Too many requests. Please wait a moment and try again.",
        ErrorCategory.AUTHENTICATION_FAILED: "Service authentication failed. Please contact support.",
        ErrorCategory.NETWORK_ERROR: "Network error occurred. Please check your connection and try again.",
        ErrorCategory.UNKNOWN: "An unexpected error occurred. Please try again later.",
    },
}


def _match_error_pattern(
    *,
    error_str: str,
    exception_type: str,
    pattern_type: Literal["quota", "rate_limit", "auth", "network"],
) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or exception_type in patterns["exception_types"]


def classify_agent_error(exception: Exception, *, locale: str = "uz") -> tuple[ErrorCategory, str]:
    """Classify an agent execution error and return a user-friendly message.

    Args:
        exception: The exception raised during agent execution
        locale: Locale of the returned message ("uz" or "en")

    Returns:
        Tuple of (ErrorCategory, user_friendly_message)
    """
    error_str = str(exception).lower()
    exception_type = type(exception).__name__

    category = ErrorCategory.UNKNOWN
    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="quota"):
        category = ErrorCategory.SERVICE_QUOTA_EXCEEDED
    elif _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="rate_limit"):
        category = ErrorCategory.RATE_LIMIT_EXCEEDED
    elif _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="auth"):
        category = ErrorCategory.AUTHENTICATION_FAILED
    elif _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="network"):
        category = ErrorCategory.NETWORK_ERROR

    messages = _USER_MESSAGES.get(locale, _USER_MESSAGES["uz"])
    return category, messages[category]
