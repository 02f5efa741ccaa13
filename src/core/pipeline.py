"""
Story + illustration pipeline.

Sequence for one request:

    COMPOSING_STORY -> RENDERING_COVER -> RENDERING_PAGES -> DONE

Only COMPOSING_STORY can fail the request. Cover and page images always
end with some image: a generated one, the cover (for pages) or a local
placeholder.
"""

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.core.concurrency import run_with_concurrency
from src.core.config import GeneratorConfig, PipelineConfig
from src.core.errors import (
    CredentialError,
    GenerationError,
    ImageGenerationExhausted,
    QuotaExceededError,
    StorybookError,
    UpstreamError,
    UpstreamGenerationError,
)
from src.core.image_generator import ImageSynthesizer
from src.core.llm_connector import GeminiClient
from src.core.models import PageDraft, PageResult, StoryDraft, StoryResult
from src.core.placeholder import make_placeholder_image
from src.core.prompts import (
    FALLBACK_IMAGE_PROMPT,
    build_cover_prompt,
    build_page_illustration_request,
    build_page_image_prompt,
    build_style_directive,
    collect_character_names,
)
from src.core.retry import retry_async
from src.core.story_generator import StoryGenerator

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    COMPOSING_STORY = "composing_story"
    RENDERING_COVER = "rendering_cover"
    RENDERING_PAGES = "rendering_pages"
    DONE = "done"


@dataclass(frozen=True)
class ProviderKeys:
    """User-supplied provider credentials. Without a fal key, Gemini draws too."""
    gemini_key: str
    fal_key: Optional[str] = None


@dataclass(frozen=True)
class StoryRequest:
    """One storybook request. Not persisted."""
    prompt: str
    keys: ProviderKeys
    page_count: int = 5


class StoryPipeline:
    """
    Orchestrates story generation and illustration for one request.

    The story generator, text client and synthesizer are injectable so
    the same pipeline runs with either provider binding.
    """

    def __init__(
        self,
        config: GeneratorConfig,
        story_generator: Optional[StoryGenerator] = None,
        text_client: Optional[GeminiClient] = None,
        synthesizer: Optional[ImageSynthesizer] = None,
    ):
        self.config = config
        self.text_client = text_client or GeminiClient(config.llm)
        self.story_generator = story_generator or StoryGenerator(config.llm, self.text_client)
        self._owns_synthesizer = synthesizer is None
        self.synthesizer = synthesizer or ImageSynthesizer(config.image)
        self.stage: Optional[PipelineStage] = None
        self.run_id = uuid.uuid4().hex[:8]

    @property
    def settings(self) -> PipelineConfig:
        return self.config.pipeline

    def _enter(self, stage: PipelineStage) -> None:
        self.stage = stage
        logger.info(f"[{self.run_id}] Stage: {stage.value}")

    async def _with_retry(self, operation, label: str):
        return await retry_async(
            operation,
            attempts=self.settings.retry_attempts,
            base_delay=self.settings.retry_base_delay,
            label=f"[{self.run_id}] {label}",
        )

    async def run(self, prompt: str, page_count: int) -> StoryResult:
        """
        Generate the full storybook.

        Raises:
            CredentialError: no Gemini key configured
            QuotaExceededError: the LLM provider rejected the story call on quota
            UpstreamGenerationError: story structure could not be produced
        """
        try:
            draft = await self._compose_story(prompt, page_count)

            self._enter(PipelineStage.RENDERING_COVER)
            style_directive = build_style_directive()
            cover_image_url = await self._render_cover(draft, style_directive)

            self._enter(PipelineStage.RENDERING_PAGES)
            pages = await self._render_pages(draft, style_directive, cover_image_url)

            self._enter(PipelineStage.DONE)
            logger.info(f"[{self.run_id}] Story generation complete: '{draft.title}'")
            return StoryResult.assemble(draft, pages, cover_image_url)
        finally:
            if self._owns_synthesizer:
                await self.synthesizer.close()

    # -------------------------------------------------------------------------
    # COMPOSING_STORY
    # -------------------------------------------------------------------------

    async def _compose_story(self, prompt: str, page_count: int) -> StoryDraft:
        self._enter(PipelineStage.COMPOSING_STORY)
        try:
            return await self.story_generator.generate_story(prompt, page_count)
        except (CredentialError, QuotaExceededError, GenerationError):
            raise
        except UpstreamError as e:
            logger.error(f"[{self.run_id}] Story generation failed: {e}")
            raise UpstreamGenerationError(f"Story generation failed: {e}") from e

    # -------------------------------------------------------------------------
    # Illustration helpers
    # -------------------------------------------------------------------------

    async def _author_image_prompt(self, request_text: str, style_directive: str, label: str) -> str:
        """Ask the LLM for a scene description and append the style directive."""
        base_prompt = await self._with_retry(
            lambda: self.text_client.generate_text(request_text),
            f"{label} prompt",
        )
        return build_page_image_prompt(base_prompt, style_directive)

    async def _render_image(self, image_prompt: str, label: str) -> str:
        """Synthesize an image (with model fallback) under retry; return its data URI."""
        try:
            image = await self._with_retry(
                lambda: self.synthesizer.synthesize(image_prompt),
                f"{label} image",
            )
        except StorybookError as e:
            raise ImageGenerationExhausted(f"{label}: {e}") from e
        return image.to_data_uri()

    # -------------------------------------------------------------------------
    # RENDERING_COVER
    # -------------------------------------------------------------------------

    async def _render_cover(self, draft: StoryDraft, style_directive: str) -> str:
        cover_request = build_cover_prompt(
            title=draft.title,
            genre=draft.genre,
            character_names=collect_character_names(draft.pages),
            style_directive=style_directive,
        )
        try:
            image_prompt = await self._author_image_prompt(cover_request, style_directive, "Cover")
            cover_image_url = await self._render_image(image_prompt, "Cover")
            logger.info(f"[{self.run_id}] Cover image generated successfully")
            return cover_image_url
        except StorybookError as e:
            logger.error(f"[{self.run_id}] Error generating cover image: {e}")
        except Exception as e:
            logger.error(f"[{self.run_id}] Cover: unexpected error: {e}", exc_info=True)
        return make_placeholder_image(draft.title)

    # -------------------------------------------------------------------------
    # RENDERING_PAGES
    # -------------------------------------------------------------------------

    async def _illustrate_page(
        self,
        page: PageDraft,
        style_directive: str,
        cover_image_url: Optional[str],
    ) -> PageResult:
        label = f"Page {page.page_number}"
        try:
            image_prompt = await self._author_image_prompt(
                build_page_illustration_request(page, style_directive),
                style_directive,
                label,
            )
            image_url = await self._render_image(image_prompt, label)
            logger.info(f"[{self.run_id}] {label}: image generated successfully")
            return PageResult.from_draft(page, image_url, image_prompt)
        except StorybookError as e:
            logger.error(f"[{self.run_id}] Image generation failed for {label.lower()} after retries: {e}")
        except Exception as e:
            logger.error(f"[{self.run_id}] {label}: unexpected error: {e}", exc_info=True)

        return PageResult.from_draft(
            page,
            cover_image_url or make_placeholder_image(page.title),
            FALLBACK_IMAGE_PROMPT,
        )

    async def _render_pages(
        self,
        draft: StoryDraft,
        style_directive: str,
        cover_image_url: Optional[str],
    ) -> list[PageResult]:
        limit = self.settings.concurrency
        logger.info(
            f"[{self.run_id}] Starting image generation for {draft.page_count} pages "
            f"(max {limit} concurrent)"
        )
        factories = [
            (lambda page=page: self._illustrate_page(page, style_directive, cover_image_url))
            for page in draft.pages
        ]
        pages = await run_with_concurrency(factories, limit)

        fallbacks = sum(1 for p in pages if p.image_prompt == FALLBACK_IMAGE_PROMPT)
        logger.info(
            f"[{self.run_id}] Image generation complete: "
            f"{len(pages) - fallbacks}/{len(pages)} generated, {fallbacks} fallbacks"
        )
        return pages


async def generate_storybook(
    request: StoryRequest,
    pipeline_config: Optional[PipelineConfig] = None,
) -> StoryResult:
    """
    Convenience function: run the pipeline bound to the request's keys.

    Args:
        request: Prompt, page count and provider keys
        pipeline_config: Pipeline tuning (defaults if not provided)

    Returns:
        The finished StoryResult
    """
    if not request.keys.gemini_key:
        raise CredentialError("A Gemini API key is required")
    config = GeneratorConfig.from_keys(
        gemini_key=request.keys.gemini_key,
        fal_key=request.keys.fal_key,
        pipeline=pipeline_config,
    )
    pipeline = StoryPipeline(config)
    return await pipeline.run(request.prompt, request.page_count)
