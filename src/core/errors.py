"""
Error taxonomy for the storybook pipeline.

Provider adapters map raw HTTP failures onto these classes through
``classify_provider_error`` so nothing downstream inspects provider
error payloads directly.
"""

from typing import Optional


QUOTA_EXCEEDED_CODE = "QUOTA_EXCEEDED"


class StorybookError(Exception):
    """Base class for all pipeline errors."""

    status_code: int = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(StorybookError):
    """A required request field is missing or invalid."""

    status_code = 400


class CredentialError(StorybookError):
    """Provider credentials were not supplied."""

    status_code = 400


class UpstreamError(StorybookError):
    """A provider call failed (auth, network, rate limit, server error)."""

    def __init__(self, message: str = "", upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class QuotaExceededError(UpstreamError):
    """The provider rejected the call because of a rate or quota limit."""

    status_code = 429
    code = QUOTA_EXCEEDED_CODE


class UpstreamGenerationError(StorybookError):
    """Story structure could not be produced. Fatal for the request."""


class GenerationError(UpstreamGenerationError):
    """The LLM answered, but the answer does not match the story schema."""


class ImageGenerationError(StorybookError):
    """Raised when a single image generation attempt fails."""


class ImageGenerationExhausted(ImageGenerationError):
    """All retries and model fallbacks failed for one image."""


def classify_provider_error(status_code: Optional[int], message: str = "") -> UpstreamError:
    """
    Map a provider failure onto the error taxonomy.

    Quota detection covers HTTP 429, Google's RESOURCE_EXHAUSTED status
    and any message mentioning a quota.
    """
    text = message or ""
    lowered = text.lower()
    if (
        status_code == 429
        or "resource_exhausted" in lowered
        or "quota" in lowered
        or "429" in text
    ):
        return QuotaExceededError(text or "Provider quota exceeded", upstream_status=status_code)
    return UpstreamError(text or "Provider call failed", upstream_status=status_code)
