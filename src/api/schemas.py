"""
Pydantic schemas for API request/response models.

Request and response bodies use camelCase keys, matching the browser UI.
"""

from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.core.config import DEFAULT_PAGE_COUNT
from src.core.errors import QUOTA_EXCEEDED_CODE
from src.core.models import StoryResult


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiKeys(_CamelModel):
    """Provider credentials kept in the browser and forwarded per request."""
    gemini_key: Optional[str] = Field(None, description="Google Gemini API key")
    fal_key: Optional[str] = Field(None, description="fal.ai API key")


class StoryGenerateRequest(_CamelModel):
    """Request schema for storybook generation.

    Credentials come either as ``apiKeys`` (Gemini + fal.ai) or as a single
    Gemini ``apiKey`` used for text and images.
    """

    prompt: Optional[str] = Field(None, max_length=2000, description="Story idea")
    page_count: Optional[int] = Field(DEFAULT_PAGE_COUNT, description="Number of story pages")
    api_keys: Optional[ApiKeys] = Field(None, description="Gemini and fal.ai keys")
    api_key: Optional[str] = Field(None, description="Single Gemini key for text and images")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "prompt": "A brave little mouse who dreams of becoming a chef",
                    "pageCount": 3,
                    "apiKeys": {"geminiKey": "...", "falKey": "..."},
                }
            ]
        },
    )


class ImageGenerateRequest(_CamelModel):
    """Request schema for single image generation."""
    prompt: Optional[str] = Field(None, max_length=4000, description="Finished image prompt")
    api_key: Optional[str] = Field(None, description="Gemini API key")


class ImageGenerateResponse(_CamelModel):
    """Response schema for single image generation."""
    image_url: str = Field(..., description="Generated image as a data URI")


StoryGenerateResponse = StoryResult


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str


class QuotaExceededResponse(BaseModel):
    """429 body: a machine-readable code so the client can ask for another key."""
    error: str = QUOTA_EXCEEDED_CODE
    message: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    gemini_configured: bool = Field(..., description="Server-side Gemini key present")
    fal_configured: bool = Field(..., description="Server-side fal.ai key present")
    image_models: List[str] = Field(default_factory=list)
