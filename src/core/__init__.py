"""
Core business logic modules.
"""

from src.core.config import LLMConfig, ImageConfig, PipelineConfig, GeneratorConfig
from src.core.models import PageDraft, StoryDraft, PageResult, StoryResult
from src.core.llm_connector import GeminiClient
from src.core.story_generator import StoryGenerator
from src.core.image_generator import ImageSynthesizer, GeneratedImage
from src.core.pipeline import StoryPipeline, StoryRequest, ProviderKeys, generate_storybook

__all__ = [
    "LLMConfig",
    "ImageConfig",
    "PipelineConfig",
    "GeneratorConfig",
    "PageDraft",
    "StoryDraft",
    "PageResult",
    "StoryResult",
    "GeminiClient",
    "StoryGenerator",
    "ImageSynthesizer",
    "GeneratedImage",
    "StoryPipeline",
    "StoryRequest",
    "ProviderKeys",
    "generate_storybook",
]
