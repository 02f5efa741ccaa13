"""Root-level test fixtures."""

import pytest

from src.core.config import LLMConfig, ImageConfig, PipelineConfig
from src.core.models import PageDraft, StoryDraft


# Ensure no real API keys leak into tests
@pytest.fixture(autouse=True)
def _clear_env_keys(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("FAL_KEY", raising=False)
    monkeypatch.delenv("STORYBOOK_CONCURRENCY", raising=False)
    monkeypatch.delenv("STORYBOOK_RETRY_ATTEMPTS", raising=False)
    monkeypatch.delenv("STORYBOOK_RETRY_BASE_DELAY", raising=False)


@pytest.fixture
def llm_config():
    return LLMConfig(api_key="test-gemini-key")


@pytest.fixture
def image_config():
    return ImageConfig(api_key="test-fal-key")


@pytest.fixture
def fast_pipeline_config():
    """Pipeline settings without backoff delays."""
    return PipelineConfig(concurrency=3, retry_attempts=3, retry_base_delay=0)


@pytest.fixture
def sample_story_data():
    """Story JSON as returned by the structured LLM call."""
    return {
        "title": "Milo the Little Chef",
        "genre": "Adventure",
        "targetAge": "4-8",
        "pages": [
            {
                "pageNumber": 1,
                "title": "A Big Dream",
                "content": "Milo the mouse loved the smell of baking bread. He dreamed of cooking for everyone.",
                "characters": ["Milo"],
                "setting": "A cozy mouse hole under the bakery",
                "mood": "Hopeful",
            },
            {
                "pageNumber": 2,
                "title": "The Kitchen",
                "content": "One night Milo tiptoed into the bakery kitchen. Flour drifted like snow.",
                "characters": ["Milo", "Baker Rosa"],
                "setting": "The bakery kitchen at night",
                "mood": "Curious",
            },
            {
                "pageNumber": 3,
                "title": "The First Pie",
                "content": "Milo baked a tiny berry pie. Baker Rosa smiled and shared it with the town.",
                "characters": ["Milo", "Baker Rosa"],
                "setting": "The town square",
                "mood": "Joyful",
            },
        ],
    }


@pytest.fixture
def sample_draft(sample_story_data):
    return StoryDraft.model_validate(sample_story_data)


@pytest.fixture
def sample_page():
    return PageDraft(
        page_number=1,
        title="A Big Dream",
        content="Milo the mouse loved the smell of baking bread.",
        characters=["Milo"],
        setting="A cozy mouse hole",
        mood="Hopeful",
    )
