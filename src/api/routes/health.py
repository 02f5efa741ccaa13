"""
Health check endpoint.
"""

import os
from fastapi import APIRouter

from src.api.schemas import HealthResponse
from src.core.config import ImageConfig

router = APIRouter(tags=["Health"])

API_VERSION = "1.0.0"


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Check API health and configuration status.

    Keys are normally supplied per request; the flags only report whether
    server-side defaults exist.
    """
    image_config = ImageConfig()
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        gemini_configured=bool(os.getenv("GEMINI_API_KEY")),
        fal_configured=bool(os.getenv("FAL_KEY")),
        image_models=[m for m in (image_config.model, image_config.fallback_model) if m],
    )
