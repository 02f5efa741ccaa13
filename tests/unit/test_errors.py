"""Unit tests for src/core/errors.py — provider error classification."""

import pytest

from src.core.errors import (
    QUOTA_EXCEEDED_CODE,
    CredentialError,
    GenerationError,
    ImageGenerationError,
    ImageGenerationExhausted,
    QuotaExceededError,
    StorybookError,
    UpstreamError,
    UpstreamGenerationError,
    ValidationError,
    classify_provider_error,
)


class TestClassifyProviderError:
    def test_status_429_is_quota(self):
        error = classify_provider_error(429, "Too Many Requests")
        assert isinstance(error, QuotaExceededError)
        assert error.upstream_status == 429
        assert error.code == QUOTA_EXCEEDED_CODE

    def test_resource_exhausted_is_quota(self):
        error = classify_provider_error(400, "RESOURCE_EXHAUSTED: try later")
        assert isinstance(error, QuotaExceededError)

    @pytest.mark.parametrize(
        "message",
        [
            "You exceeded your current quota",
            "API error: 429 - rate limited",
            "Quota exceeded for metric generate_content_free_tier_requests",
        ],
    )
    def test_quota_messages(self, message):
        assert isinstance(classify_provider_error(None, message), QuotaExceededError)

    def test_other_errors_are_upstream(self):
        error = classify_provider_error(500, "API error: 500 - Internal error")
        assert type(error) is UpstreamError
        assert error.upstream_status == 500
        assert "Internal error" in error.message

    def test_network_error_without_status(self):
        error = classify_provider_error(None, "Request failed: connection reset")
        assert type(error) is UpstreamError
        assert error.upstream_status is None

    def test_empty_message_gets_default(self):
        assert classify_provider_error(503, "").message
        assert classify_provider_error(429, "").message


class TestErrorHierarchy:
    def test_status_codes(self):
        assert ValidationError("x").status_code == 400
        assert CredentialError("x").status_code == 400
        assert QuotaExceededError("x").status_code == 429
        assert UpstreamGenerationError("x").status_code == 500

    def test_quota_is_upstream(self):
        assert issubclass(QuotaExceededError, UpstreamError)

    def test_generation_error_is_fatal_story_error(self):
        assert issubclass(GenerationError, UpstreamGenerationError)

    def test_exhausted_is_image_error(self):
        assert issubclass(ImageGenerationExhausted, ImageGenerationError)

    def test_all_share_base(self):
        for cls in (ValidationError, CredentialError, UpstreamError, ImageGenerationError):
            assert issubclass(cls, StorybookError)

    def test_message_attribute(self):
        error = StorybookError("something broke")
        assert error.message == "something broke"
        assert str(error) == "something broke"
