"""Tests for provider failure classification."""

from __future__ import annotations

import pytest

from quicke.dispatch.errors import (
    NON_RETRYABLE,
    ErrorType,
    ProviderError,
    classify_error,
    describe_error,
    get_error_message,
    is_retryable,
)


class TestClassifyError:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (400, ErrorType.INVALID_FORMAT),
            (401, ErrorType.API_KEY_MISSING),
            (402, ErrorType.INSUFFICIENT_BALANCE),
            (422, ErrorType.INVALID_PARAMETERS),
            (429, ErrorType.RATE_LIMIT),
            (500, ErrorType.SERVER_ERROR),
            (503, ErrorType.SERVER_OVERLOADED),
        ],
    )
    def test_status_codes(self, status, expected):
        assert classify_error(ProviderError("upstream failure", status_code=status)) == expected

    def test_message_beats_status(self):
        error = ProviderError("This model's maximum context length is 8192 tokens", status_code=400)
        assert classify_error(error) == ErrorType.TOKEN_LIMIT_EXCEEDED

    def test_quota_on_429(self):
        error = ProviderError("You exceeded your current quota, please check your plan", status_code=429)
        assert classify_error(error) == ErrorType.INSUFFICIENT_QUOTA

    def test_openrouter_free_tier(self):
        assert classify_error("Rate limit exceeded: free-models-per-day") == ErrorType.RATE_LIMIT

    def test_insufficient_credits(self):
        assert classify_error(RuntimeError("Insufficient credits")) == ErrorType.INSUFFICIENT_BALANCE

    def test_builtin_timeout_and_connection(self):
        assert classify_error(TimeoutError()) == ErrorType.TIMEOUT
        assert classify_error(ConnectionResetError()) == ErrorType.NETWORK_ERROR

    def test_message_patterns(self):
        assert classify_error("Invalid API key provided") == ErrorType.API_KEY_MISSING
        assert classify_error("request timed out") == ErrorType.TIMEOUT
        assert classify_error("connection refused") == ErrorType.NETWORK_ERROR

    def test_explicit_type_kept(self):
        error = ProviderError("whatever", ErrorType.EMPTY_RESPONSE, status_code=500)
        assert classify_error(error) == ErrorType.EMPTY_RESPONSE

    def test_unknown(self):
        assert classify_error(RuntimeError("something odd")) == ErrorType.UNKNOWN_ERROR
        assert classify_error(None) == ErrorType.UNKNOWN_ERROR


class TestRetryPolicy:
    def test_plain_exceptions_retryable(self):
        assert is_retryable(RuntimeError("boom"))
        assert is_retryable(ValueError())

    def test_provider_error_flags(self):
        assert is_retryable(ProviderError("slow", ErrorType.SERVER_OVERLOADED))
        assert is_retryable(ProviderError("429", ErrorType.RATE_LIMIT))
        for error_type in NON_RETRYABLE:
            assert not is_retryable(ProviderError("final", error_type))


class TestErrorMessages:
    def test_api_key_message_mentions_provider(self):
        message = get_error_message(ErrorType.API_KEY_MISSING, "gpt-4o", "openai")
        assert "openai" in message
        assert "[ADD_KEY]" in message

    def test_every_type_has_message(self):
        for error_type in ErrorType:
            assert get_error_message(error_type, "m")

    def test_missing_model_name(self):
        assert "Unknown model" in get_error_message(ErrorType.TIMEOUT)


class TestDescribeError:
    def test_plain_message(self):
        assert describe_error(RuntimeError("boom")) == "boom"

    def test_empty_message_uses_default(self):
        assert describe_error(RuntimeError()) == "Request failed"
        assert describe_error(RuntimeError(), default="") == ""

    def test_broken_str_uses_class_name(self):
        class Broken(Exception):
            def __str__(self) -> str:
                raise RuntimeError("no str")

        assert describe_error(Broken()) == "Broken"
        assert classify_error(Broken()) == ErrorType.UNKNOWN_ERROR

    def test_cancelled_never_retried(self):
        assert ErrorType.CANCELLED in NON_RETRYABLE
        assert "cancelled" in get_error_message(ErrorType.CANCELLED, "gpt-4o")
