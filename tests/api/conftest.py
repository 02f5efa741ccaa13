"""API-specific test fixtures."""

import pytest

from httpx import AsyncClient, ASGITransport

from src.api.app import app
from src.api.rate_limit import limiter


@pytest.fixture
async def async_client():
    """Async test client for FastAPI."""
    # Rate limits are exercised separately
    limiter.enabled = False
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    limiter.enabled = True
