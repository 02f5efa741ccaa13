"""
Prompts for LLM and Image Generation.

This module centralizes all prompts sent to Gemini and to the image
backends. Every image prompt of a book repeats the same style directive,
since image backends keep no style between calls.
"""

import re
from typing import Iterable, List

from src.core.models import PageDraft


# =============================================================================
# STYLE DIRECTIVE
# =============================================================================

IMAGE_STYLE_DIRECTIVE = """
    Consistent children's book watercolor illustration theme with soft pastel colors and gentle lighting;
    hand-painted feel with clean outlines; cute rounded proportions; consistent character designs across all pages
    (same clothes, colors, hair, and species); single cohesive art style throughout. Avoid text, letters,
    watermarks, signatures, frames, borders, photorealism, 3D rendering, pixelation, glitches, artifacts,
    distorted faces, extra fingers, extra limbs, or deformed anatomy.
"""

FALLBACK_IMAGE_PROMPT = "[FALLBACK] Used cover image due to generation failures"


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and trim."""
    return re.sub(r"\s+", " ", text).strip()


def build_style_directive() -> str:
    """Return the fixed visual style directive used for every image of a book."""
    return normalize_whitespace(IMAGE_STYLE_DIRECTIVE)


# =============================================================================
# STORY CREATION PROMPT
# =============================================================================

STORY_CREATION_PROMPT_TEMPLATE = """Create a children's storybook based on this prompt: "{user_prompt}".
The story should have exactly {page_count} pages, with each page having:
- A clear title
- 2-3 sentences of engaging content appropriate for children
- Characters involved in that scene
- Setting/location description
- Mood/atmosphere

Make it educational, fun, and age-appropriate for children aged 4-8 years."""


# Response schema for Gemini structured output (OpenAPI subset)
STORY_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "genre": {"type": "STRING"},
        "targetAge": {"type": "STRING"},
        "pages": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "pageNumber": {"type": "INTEGER"},
                    "title": {"type": "STRING"},
                    "content": {"type": "STRING"},
                    "characters": {
                        "type": "ARRAY",
                        "items": {"type": "STRING"},
                        "minItems": 1,
                    },
                    "setting": {"type": "STRING"},
                    "mood": {"type": "STRING"},
                },
                "required": ["pageNumber", "title", "content", "characters", "setting", "mood"],
                "propertyOrdering": ["pageNumber", "title", "content", "characters", "setting", "mood"],
            },
        },
    },
    "required": ["title", "genre", "targetAge", "pages"],
    "propertyOrdering": ["title", "genre", "targetAge", "pages"],
}


def build_story_prompt(user_prompt: str, page_count: int) -> str:
    """
    Build the prompt for structured story creation.

    Args:
        user_prompt: User's story idea
        page_count: Number of pages requested

    Returns:
        Formatted prompt string
    """
    return STORY_CREATION_PROMPT_TEMPLATE.format(
        user_prompt=user_prompt,
        page_count=page_count,
    )


def get_story_response_schema() -> dict:
    """Get the response schema sent with the structured story request."""
    return STORY_RESPONSE_SCHEMA


# =============================================================================
# COVER PROMPT
# =============================================================================

COVER_PROMPT_TEMPLATE = """Create a detailed cover image prompt for this children's storybook. Use a single, consistent visual theme for the entire book as specified below.

Title: {title}
Genre: {genre}
Main Characters: {characters}

Generate a prompt for a beautiful, colorful children's book cover illustration.
Enforce this exact visual theme (do not deviate across pages): {style_directive}
Include:
- Main characters in a welcoming scene
- Title placement area (but don't include text)
- Warm, inviting colors
- Child-friendly artistic style with consistent character appearance
- Storybook cover composition matching the theme

Keep it concise (max 80 words)."""


def unique_names(names: Iterable[str]) -> List[str]:
    """Drop repeated names (exact, case-sensitive match), keeping first-seen order."""
    seen = set()
    result = []
    for name in names:
        if name not in seen:
            seen.add(name)
            result.append(name)
    return result


def collect_character_names(pages: Iterable[PageDraft]) -> List[str]:
    """All character names of a story in order of first appearance."""
    return unique_names(name for page in pages for name in page.characters)


def build_cover_prompt(
    title: str,
    genre: str,
    character_names: Iterable[str],
    style_directive: str,
) -> str:
    """Build the request that asks the LLM to describe the cover illustration."""
    return COVER_PROMPT_TEMPLATE.format(
        title=title,
        genre=genre,
        characters=", ".join(unique_names(character_names)),
        style_directive=style_directive,
    )


# =============================================================================
# PAGE PROMPTS
# =============================================================================

PAGE_ILLUSTRATION_PROMPT_TEMPLATE = """Create a detailed, child-friendly illustration prompt for this storybook page. Use a single, consistent visual theme for the entire book as specified below.

Title: {title}
Content: {content}
Characters: {characters}
Setting: {setting}
Mood: {mood}

Generate a prompt for a colorful children's book illustration that captures this scene.
Enforce this exact visual theme (do not deviate across pages): {style_directive}
Ensure character consistency (same clothing, colors, and features) and coherent proportions.
Include details about:
- The characters and their expressions
- The setting and environment
- Colors and lighting that match the mood
- Important objects or elements from the story

Keep it descriptive but concise (max 80 words)."""


def build_page_illustration_request(page: PageDraft, style_directive: str) -> str:
    """Build the request that asks the LLM to describe one page's scene."""
    return PAGE_ILLUSTRATION_PROMPT_TEMPLATE.format(
        title=page.title,
        content=page.content,
        characters=", ".join(page.characters),
        setting=page.setting,
        mood=page.mood,
        style_directive=style_directive,
    )


def build_page_image_prompt(base_prompt: str, style_directive: str) -> str:
    """Append the style directive to an LLM-authored scene description."""
    return f"{base_prompt}. Visual theme: {style_directive}"
