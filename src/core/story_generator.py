"""
Structured story generation.

This module provides the StoryGenerator class that asks the LLM for a
schema-conforming story and validates the answer into a StoryDraft.
"""

import json
import logging
import re
from typing import Optional

import pydantic

from src.core.config import LLMConfig
from src.core.errors import GenerationError
from src.core.llm_connector import GeminiClient
from src.core.models import StoryDraft
from src.core.prompts import build_story_prompt, get_story_response_schema


logger = logging.getLogger(__name__)


def parse_story_response(response_text: str) -> dict:
    """
    Parse the raw LLM story answer into a dict.

    Args:
        response_text: Raw text response (JSON with structured outputs)

    Returns:
        Decoded JSON object

    Raises:
        GenerationError: if no JSON object can be recovered
    """
    text = response_text.strip()

    # Try direct JSON parse first (structured outputs)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # Fallback: extract JSON from potential markdown wrapping
        json_match = re.search(r'\{[\s\S]*\}', text)
        if not json_match:
            raise GenerationError("Could not find JSON in story response")
        try:
            data = json.loads(json_match.group())
        except json.JSONDecodeError as e:
            raise GenerationError(f"Story response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise GenerationError("Story response is not a JSON object")
    return data


def normalize_story(data: dict, page_count: int) -> StoryDraft:
    """
    Validate decoded story data against the story schema.

    Pages beyond ``page_count`` are dropped; fewer pages are kept as
    returned. Page numbers are rewritten to their 1-based position.

    Raises:
        GenerationError: on schema mismatch
    """
    pages = data.get("pages")
    if isinstance(pages, list):
        if len(pages) > page_count:
            logger.warning(f"LLM returned {len(pages)} pages, truncating to {page_count}")
            pages = pages[:page_count]
        elif len(pages) < page_count:
            logger.warning(f"LLM returned {len(pages)} pages, {page_count} were requested")
        data = {
            **data,
            "pages": [
                {**page, "pageNumber": index} if isinstance(page, dict) else page
                for index, page in enumerate(pages, start=1)
            ],
        }

    try:
        return StoryDraft.model_validate(data)
    except pydantic.ValidationError as e:
        raise GenerationError(f"Story response does not match schema: {e}") from e


class StoryGenerator:
    """Generates structured children's stories with Gemini."""

    def __init__(self, config: LLMConfig, client: Optional[GeminiClient] = None):
        """
        Initialize the story generator.

        Args:
            config: LLM configuration
            client: Optional preconfigured Gemini client
        """
        self.config = config
        self.client = client or GeminiClient(config)

    async def generate_story(self, user_prompt: str, page_count: int) -> StoryDraft:
        """
        Generate a story from a user prompt in a single LLM attempt.

        Raises:
            UpstreamError: the provider call failed
            GenerationError: the answer does not match the story schema
        """
        prompt = build_story_prompt(user_prompt, page_count)

        logger.info(f"Calling LLM for story generation ({page_count} pages, structured JSON)")
        response = await self.client.generate_json(prompt, get_story_response_schema())

        draft = normalize_story(parse_story_response(response.content), page_count)
        logger.info(
            f"Story generated: '{draft.title}' with {draft.page_count} pages "
            f"({response.tokens_used} tokens)"
        )
        return draft
