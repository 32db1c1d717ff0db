"""Unit tests for domain errors and AI error classification."""

import pytest

from src.core.errors import AIServiceError, ErrorCategory, UnresolvedScopeReference, classify_agent_error


@pytest.mark.unit
class TestClassifyAgentError:
    """Tests for classify_agent_error function."""

    def test_quota_exceeded(self):
        category, message = classify_agent_error(Exception("OpenRouter API error: insufficient credits"))

        assert category == ErrorCategory.SERVICE_QUOTA_EXCEEDED
        assert "limiti" in message

    def test_rate_limit(self):
        category, message = classify_agent_error(Exception("HTTP 429: Too many requests"), locale="en")

        assert category == ErrorCategory.RATE_LIMIT_EXCEEDED
        assert "too many requests" in message.lower()

    def test_missing_api_key(self):
        error = ValueError("OpenRouter API key credential not configured. Set OPENROUTER_API_KEY")
        category, _ = classify_agent_error(error)

        assert category == ErrorCategory.AUTHENTICATION_FAILED

    def test_network_error_by_type(self):
        category, message = classify_agent_error(ConnectionError("reset by peer"), locale="en")

        assert category == ErrorCategory.NETWORK_ERROR
        assert "network" in message.lower()

    def test_unknown(self):
        category, message = classify_agent_error(RuntimeError("something odd"))

        assert category == ErrorCategory.UNKNOWN
        assert message == "Kutilmagan xatolik yuz berdi. Iltimos, keyinroq qayta urinib ko'ring."

    def test_unknown_locale_falls_back_to_uzbek(self):
        _, message = classify_agent_error(RuntimeError("boom"), locale="fr")

        assert message.startswith("Kutilmagan")


@pytest.mark.unit
class TestDomainErrors:
    def test_unresolved_scope_keeps_id(self):
        error = UnresolvedScopeReference("42")

        assert error.scope_id == "42"
        assert "42" in str(error)
        assert isinstance(error, LookupError)

    def test_ai_service_error_carries_user_message(self):
        error = AIServiceError(ErrorCategory.NETWORK_ERROR, "Tarmoq xatosi")

        assert error.category == ErrorCategory.NETWORK_ERROR
        assert str(error) == "Tarmoq xatosi"
