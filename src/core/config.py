"""
Configuration settings for the Storybook Generator.
"""

from dataclasses import dataclass, field
from typing import Literal
import os

# Default models
DEFAULT_STORY_MODEL = "gemini-2.5-flash"  # Supports structured outputs
DEFAULT_FAL_IMAGE_MODEL = "fal-ai/qwen-image"
DEFAULT_FAL_FALLBACK_MODEL = "fal-ai/flux-pro"
DEFAULT_GEMINI_IMAGE_MODEL = "gemini-3-pro-image-preview"
DEFAULT_GEMINI_FALLBACK_MODEL = "gemini-2.5-flash-image"

# Pipeline defaults (used in routes and the CLI)
DEFAULT_PAGE_COUNT = 5
MAX_PAGE_COUNT = 10

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass
class LLMConfig:
    """Configuration for the Gemini text API."""

    api_key: str = field(default_factory=lambda: os.getenv("GEMINI_API_KEY", ""))
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    model: str = field(default_factory=lambda: os.getenv("STORYBOOK_STORY_MODEL", DEFAULT_STORY_MODEL))
    temperature: float = 0.8
    timeout: float = 60.0

    def validate(self) -> bool:
        """Check if API key is configured."""
        return bool(self.api_key)


@dataclass
class ImageConfig:
    """Configuration for the image backends (fal.ai or Gemini)."""

    provider: Literal["fal", "gemini"] = "fal"
    api_key: str = field(default_factory=lambda: os.getenv("FAL_KEY", ""))

    fal_base_url: str = "https://fal.run"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # Model fallback: secondary model is tried once when the primary fails
    model: str = DEFAULT_FAL_IMAGE_MODEL
    fallback_model: str | None = DEFAULT_FAL_FALLBACK_MODEL

    width: int = 1024
    height: int = 1024
    gemini_image_size: str = "1K"
    timeout: float = 120.0

    @classmethod
    def for_gemini(cls, api_key: str) -> "ImageConfig":
        """Image config bound to Gemini image models."""
        return cls(
            provider="gemini",
            api_key=api_key,
            model=DEFAULT_GEMINI_IMAGE_MODEL,
            fallback_model=DEFAULT_GEMINI_FALLBACK_MODEL,
        )

    def validate(self) -> bool:
        """Check if API key is configured."""
        return bool(self.api_key)


@dataclass
class PipelineConfig:
    """Tuning knobs for the story + illustration pipeline."""

    default_page_count: int = DEFAULT_PAGE_COUNT
    max_page_count: int = MAX_PAGE_COUNT

    # Bounded concurrency for page illustrations
    concurrency: int = field(default_factory=lambda: _env_int("STORYBOOK_CONCURRENCY", 3))

    # Retry policy: delay before retry i is base_delay * 2**i seconds
    retry_attempts: int = field(default_factory=lambda: _env_int("STORYBOOK_RETRY_ATTEMPTS", 3))
    retry_base_delay: float = field(default_factory=lambda: _env_float("STORYBOOK_RETRY_BASE_DELAY", 0.7))


@dataclass
class GeneratorConfig:
    """Main configuration combining all settings."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    image: ImageConfig = field(default_factory=ImageConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)

    @classmethod
    def from_keys(
        cls,
        gemini_key: str,
        fal_key: str | None = None,
        pipeline: PipelineConfig | None = None,
    ) -> "GeneratorConfig":
        """
        Build a config from user-supplied provider keys.

        With a fal key the pipeline renders with fal.ai models; with only a
        Gemini key every call (text and images) goes to Gemini.
        """
        image = ImageConfig(api_key=fal_key) if fal_key else ImageConfig.for_gemini(gemini_key)
        return cls(
            llm=LLMConfig(api_key=gemini_key),
            image=image,
            pipeline=pipeline or PipelineConfig(),
        )
