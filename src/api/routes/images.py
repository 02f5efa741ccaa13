"""
Single image generation endpoint.

Used by the interactive client, which illustrates pages one at a time
and can stop between pages.
"""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from starlette.requests import Request

from src.api.schemas import (
    ImageGenerateRequest,
    ImageGenerateResponse,
    ErrorResponse,
    QuotaExceededResponse,
)
from src.api.rate_limit import limiter, IMAGE_RATE_LIMIT
from src.core.config import ImageConfig
from src.core.errors import ImageGenerationError, QuotaExceededError
from src.core.image_generator import ImageSynthesizer


logger = logging.getLogger(__name__)

router = APIRouter(tags=["Images"])


@router.post(
    "/generate-image",
    response_model=ImageGenerateResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": QuotaExceededResponse},
        500: {"model": ErrorResponse},
    },
)
@limiter.limit(IMAGE_RATE_LIMIT)
async def generate_image(request: Request, body: ImageGenerateRequest):
    """
    Generate one illustration with a Gemini image model.

    ## Response:
    - `200 {"imageUrl": "data:image/...;base64,..."}`
    - `429 {"error": "QUOTA_EXCEEDED", "message": ...}` when the key is out
      of quota; the client should ask the user for a different key
    """
    if not body.prompt or not body.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt is required")
    if not body.api_key:
        raise HTTPException(status_code=400, detail="API key is required")

    try:
        async with ImageSynthesizer(ImageConfig.for_gemini(body.api_key)) as synthesizer:
            image = await synthesizer.synthesize(body.prompt)
        return ImageGenerateResponse(image_url=image.to_data_uri())

    except QuotaExceededError as e:
        logger.warning(f"Image generation quota exceeded: {e}")
        return JSONResponse(
            status_code=429,
            content=QuotaExceededResponse(
                message="Free tier quota exceeded. Please use a paid API key."
            ).model_dump(),
        )
    except ImageGenerationError as e:
        logger.error(f"Error generating image: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate image")
    except Exception as e:
        logger.error(f"Unexpected image error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate image")
