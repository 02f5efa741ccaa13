"""
FastAPI application for the Storybook Generator.

Run with: uvicorn src.api.app:app --reload
"""

import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from dotenv import load_dotenv

from src.api.rate_limit import limiter
from src.api.routes import health, images, stories
from src.core.cloudwatch_logging import (
    configure_logging,
    setup_cloudwatch_logging,
    flush_cloudwatch_logging,
)


# Load environment variables
load_dotenv()

configure_logging()
logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Application starting up...")

    # CloudWatch logging (pipeline logs only, opt-in via CLOUDWATCH_ENABLED=true)
    setup_cloudwatch_logging()

    if os.getenv("GEMINI_API_KEY"):
        logger.info("Server-side Gemini API key configured")
    else:
        logger.info("No server-side Gemini key - requests must supply their own keys")

    yield

    logger.info("Application shutting down...")
    flush_cloudwatch_logging()


app = FastAPI(
    title="Storybook Generator API",
    description="""
Turn a short prompt into an illustrated children's storybook.

## Features
- **Structured stories** - Gemini writes title, genre, target age and pages
- **Consistent illustrations** - one style directive repeated in every image prompt
- **Resilient rendering** - retry, model fallback, cover reuse and local placeholders

## Endpoints
1. **POST** `/api/generate-story` - Full storybook (story, cover, page images)
2. **POST** `/api/generate-image` - One image, for the page-by-page client
    """,
    version=health.API_VERSION,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS for the browser UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
        if origin.strip()
    ],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# Include routers
app.include_router(health.router, prefix="/api")
app.include_router(stories.router, prefix="/api")
app.include_router(images.router, prefix="/api")


@app.get("/", include_in_schema=False)
async def root():
    """Point to API documentation."""
    return {
        "message": "Storybook Generator API",
        "docs": "/docs",
        "redoc": "/redoc",
    }
