"""
Storybook generation endpoint.

Runs the whole pipeline inside the request: structured story, cover,
then page illustrations with bounded concurrency. Results are not stored.
"""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from starlette.requests import Request

from src.api.schemas import (
    StoryGenerateRequest,
    StoryGenerateResponse,
    ErrorResponse,
    QuotaExceededResponse,
)
from src.api.rate_limit import limiter, STORY_RATE_LIMIT
from src.core.config import GeneratorConfig, PipelineConfig
from src.core.errors import (
    CredentialError,
    QuotaExceededError,
    UpstreamGenerationError,
    ValidationError,
)
from src.core.pipeline import ProviderKeys, StoryPipeline


# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter(tags=["Storybook"])


def resolve_provider_keys(body: StoryGenerateRequest) -> ProviderKeys:
    """
    Pick the credentials to use for a request.

    ``apiKeys`` needs both the Gemini and the fal.ai key; a lone ``apiKey``
    is a Gemini key used for text and images.
    """
    if body.api_keys is not None:
        if not body.api_keys.gemini_key or not body.api_keys.fal_key:
            raise CredentialError("API keys are required")
        return ProviderKeys(gemini_key=body.api_keys.gemini_key, fal_key=body.api_keys.fal_key)
    if body.api_key:
        return ProviderKeys(gemini_key=body.api_key)
    raise CredentialError("API keys are required")


def validate_story_request(body: StoryGenerateRequest, settings: PipelineConfig) -> int:
    """Check the prompt and return the page count to request."""
    if not body.prompt or not body.prompt.strip():
        raise ValidationError("Prompt is required")

    page_count = body.page_count if body.page_count is not None else settings.default_page_count
    if not 1 <= page_count <= settings.max_page_count:
        raise ValidationError(f"pageCount must be between 1 and {settings.max_page_count}")
    return page_count


@router.post(
    "/generate-story",
    response_model=StoryGenerateResponse,
    response_model_exclude_none=True,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": QuotaExceededResponse},
        500: {"model": ErrorResponse},
    },
)
@limiter.limit(STORY_RATE_LIMIT)
async def generate_story(request: Request, body: StoryGenerateRequest):
    """
    Generate an illustrated storybook from a prompt.

    ## Flow:
    1. Gemini writes a structured story (title, genre, target age, pages)
    2. A cover is illustrated (placeholder if every attempt fails)
    3. Pages are illustrated, 3 at a time, each with retry and model
       fallback; a page that still fails reuses the cover image

    The request either succeeds with an image on every page, or fails
    before any image work starts.
    """
    settings = PipelineConfig()
    try:
        page_count = validate_story_request(body, settings)
        keys = resolve_provider_keys(body)
    except (ValidationError, CredentialError) as e:
        raise HTTPException(status_code=400, detail=e.message)

    config = GeneratorConfig.from_keys(keys.gemini_key, keys.fal_key, pipeline=settings)
    pipeline = StoryPipeline(config)

    logger.info(f"[{pipeline.run_id}] Generating story: pages={page_count}, images={config.image.provider}")
    try:
        return await pipeline.run(body.prompt, page_count)
    except QuotaExceededError as e:
        logger.warning(f"[{pipeline.run_id}] Story generation hit provider quota: {e}")
        return JSONResponse(
            status_code=429,
            content=QuotaExceededResponse(
                message="Gemini quota exceeded. Please use a different API key."
            ).model_dump(),
        )
    except CredentialError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except UpstreamGenerationError as e:
        logger.error(f"[{pipeline.run_id}] Error generating story: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate story")
    except Exception as e:
        logger.error(f"[{pipeline.run_id}] Unexpected story error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to generate story")
