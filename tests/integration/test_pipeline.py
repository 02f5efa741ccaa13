"""Integration tests for src/core/pipeline.py (mocked providers)."""

import asyncio
import base64
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src.core.config import GeneratorConfig, PipelineConfig
from src.core.errors import (
    CredentialError,
    GenerationError,
    ImageGenerationError,
    QuotaExceededError,
    UpstreamError,
    UpstreamGenerationError,
)
from src.core.image_generator import GeneratedImage
from src.core.models import StoryDraft
from src.core.pipeline import (
    PipelineStage,
    ProviderKeys,
    StoryPipeline,
    StoryRequest,
    generate_storybook,
)
from src.core.placeholder import make_placeholder_image
from src.core.prompts import FALLBACK_IMAGE_PROMPT, build_style_directive


# Minimal valid 1x1 PNG for testing
MINIMAL_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8/5+hHgAHggJ/PchI7wAAAABJRU5ErkJggg=="
)
PNG_URI = f"data:image/png;base64,{base64.b64encode(MINIMAL_PNG).decode()}"


def _generated() -> GeneratedImage:
    return GeneratedImage(success=True, image_data=MINIMAL_PNG, mime_type="image/png")


@pytest.fixture
def config(fast_pipeline_config):
    return GeneratorConfig.from_keys("gem", "fal", pipeline=fast_pipeline_config)


@pytest.fixture
def story_generator(sample_draft):
    generator = MagicMock()
    generator.generate_story = AsyncMock(return_value=sample_draft)
    return generator


@pytest.fixture
def text_client():
    client = MagicMock()
    client.generate_text = AsyncMock(return_value="A cheerful scene")
    return client


@pytest.fixture
def synthesizer():
    synth = MagicMock()
    synth.synthesize = AsyncMock(return_value=_generated())
    synth.close = AsyncMock()
    return synth


@pytest.fixture
def pipeline(config, story_generator, text_client, synthesizer):
    return StoryPipeline(
        config,
        story_generator=story_generator,
        text_client=text_client,
        synthesizer=synthesizer,
    )


class TestPipelineHappyPath:
    async def test_three_page_book(self, pipeline, story_generator):
        result = await pipeline.run("A brave little mouse who dreams of becoming a chef", 3)

        story_generator.generate_story.assert_awaited_once_with(
            "A brave little mouse who dreams of becoming a chef", 3
        )
        assert result.title == "Milo the Little Chef"
        assert result.cover_image_url == PNG_URI
        assert [p.page_number for p in result.pages] == [1, 2, 3]
        assert all(p.image_url == PNG_URI for p in result.pages)
        assert pipeline.stage == PipelineStage.DONE

    async def test_page_prompts_carry_style_directive(self, pipeline):
        result = await pipeline.run("prompt", 3)

        directive = build_style_directive()
        for page in result.pages:
            assert page.image_prompt == f"A cheerful scene. Visual theme: {directive}"

    async def test_one_synthesis_per_image(self, pipeline, synthesizer, text_client):
        await pipeline.run("prompt", 3)

        # cover + 3 pages
        assert synthesizer.synthesize.await_count == 4
        assert text_client.generate_text.await_count == 4

    async def test_cover_request_lists_characters(self, pipeline, text_client):
        await pipeline.run("prompt", 3)

        cover_request = text_client.generate_text.await_args_list[0].args[0]
        assert "Main Characters: Milo, Baker Rosa" in cover_request

    async def test_order_kept_when_pages_finish_out_of_order(self, pipeline, text_client, sample_draft):
        titles = [p.title for p in sample_draft.pages]
        delays = {titles[0]: 0.03, titles[1]: 0.0, titles[2]: 0.015}

        async def describe(request_text):
            for title in titles:
                if f"Title: {title}\n" in request_text and "Content:" in request_text:
                    await asyncio.sleep(delays[title])
                    return f"Scene for {title}"
            return "Cover scene"

        text_client.generate_text.side_effect = describe

        result = await pipeline.run("prompt", 3)

        for page, title in zip(result.pages, titles):
            assert page.title == title
            assert page.image_prompt.startswith(f"Scene for {title}.")

    async def test_concurrency_limit(self, config, story_generator, text_client, sample_story_data):
        pages = [dict(sample_story_data["pages"][0], pageNumber=i) for i in range(1, 7)]
        story_generator.generate_story.return_value = StoryDraft.model_validate(
            {**sample_story_data, "pages": pages}
        )
        in_flight = 0
        peak = 0

        async def synthesize(prompt):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return _generated()

        synth = MagicMock()
        synth.synthesize = AsyncMock(side_effect=synthesize)
        config.pipeline.concurrency = 2
        pipeline = StoryPipeline(config, story_generator, text_client, synth)

        result = await pipeline.run("prompt", 6)

        assert len(result.pages) == 6
        assert peak == 2


class TestPipelineImageFailures:
    async def test_every_image_fails(self, pipeline, synthesizer, sample_draft):
        synthesizer.synthesize.side_effect = ImageGenerationError("boom")

        result = await pipeline.run("prompt", 3)

        placeholder = make_placeholder_image(sample_draft.title)
        assert result.cover_image_url == placeholder
        for page in result.pages:
            assert page.image_url == placeholder
            assert page.image_prompt == FALLBACK_IMAGE_PROMPT
        # 3 attempts for the cover and for each page
        assert synthesizer.synthesize.await_count == 12

    async def test_image_provider_out_of_quota(self, pipeline, synthesizer):
        synthesizer.synthesize.side_effect = QuotaExceededError("RESOURCE_EXHAUSTED", 429)

        result = await pipeline.run("prompt", 3)

        assert len(result.pages) == 3
        assert all(p.image_url.startswith("data:image/svg+xml;base64,") for p in result.pages)

    async def test_failed_page_reuses_cover(self, pipeline, text_client, sample_draft):
        failing_title = sample_draft.pages[1].title

        async def describe(request_text):
            if f"Title: {failing_title}\nContent:" in request_text:
                raise UpstreamError("API error: 500")
            return "A cheerful scene"

        text_client.generate_text.side_effect = describe

        result = await pipeline.run("prompt", 3)

        assert result.pages[0].image_url == PNG_URI
        assert result.pages[1].image_url == result.cover_image_url == PNG_URI
        assert result.pages[1].image_prompt == FALLBACK_IMAGE_PROMPT
        assert result.pages[2].image_prompt != FALLBACK_IMAGE_PROMPT

    async def test_transient_failure_retried(self, pipeline, synthesizer):
        synthesizer.synthesize.side_effect = [ImageGenerationError("flaky")] + [_generated()] * 4

        result = await pipeline.run("prompt", 3)

        assert result.cover_image_url == PNG_URI
        assert all(p.image_prompt != FALLBACK_IMAGE_PROMPT for p in result.pages)

    async def test_unexpected_error_falls_back(self, pipeline, synthesizer):
        synthesizer.synthesize.side_effect = RuntimeError("bug")

        result = await pipeline.run("prompt", 3)

        assert all(p.image_url for p in result.pages)

    async def test_page_without_cover_gets_placeholder(self, pipeline, synthesizer, sample_page):
        synthesizer.synthesize.side_effect = ImageGenerationError("boom")

        page = await pipeline._illustrate_page(sample_page, "STYLE", None)

        assert page.image_url == make_placeholder_image(sample_page.title)
        assert page.image_prompt == FALLBACK_IMAGE_PROMPT


class TestPipelineStoryFailures:
    async def test_upstream_failure_is_fatal(self, pipeline, story_generator, synthesizer):
        story_generator.generate_story.side_effect = UpstreamError("API error: 500")

        with pytest.raises(UpstreamGenerationError):
            await pipeline.run("prompt", 3)

        synthesizer.synthesize.assert_not_awaited()
        assert pipeline.stage == PipelineStage.COMPOSING_STORY

    async def test_schema_failure_propagates(self, pipeline, story_generator):
        story_generator.generate_story.side_effect = GenerationError("bad schema")

        with pytest.raises(GenerationError):
            await pipeline.run("prompt", 3)

    async def test_quota_failure_propagates(self, pipeline, story_generator):
        story_generator.generate_story.side_effect = QuotaExceededError("quota", 429)

        with pytest.raises(QuotaExceededError):
            await pipeline.run("prompt", 3)

    async def test_story_not_retried(self, pipeline, story_generator):
        story_generator.generate_story.side_effect = UpstreamError("API error: 500")

        with pytest.raises(UpstreamGenerationError):
            await pipeline.run("prompt", 3)
        assert story_generator.generate_story.await_count == 1


class TestSynthesizerOwnership:
    async def test_injected_synthesizer_not_closed(self, pipeline, synthesizer):
        await pipeline.run("prompt", 3)
        synthesizer.close.assert_not_awaited()

    async def test_owned_synthesizer_closed(self, config, story_generator, text_client):
        with patch("src.core.pipeline.ImageSynthesizer") as synth_cls:
            synth = synth_cls.return_value
            synth.synthesize = AsyncMock(return_value=_generated())
            synth.close = AsyncMock()

            pipeline = StoryPipeline(config, story_generator, text_client)
            await pipeline.run("prompt", 3)

        synth.close.assert_awaited_once()
        synth_cls.assert_called_once_with(config.image)


class TestGenerateStorybook:
    async def test_requires_gemini_key(self):
        request = StoryRequest(prompt="prompt", keys=ProviderKeys(gemini_key=""))
        with pytest.raises(CredentialError):
            await generate_storybook(request)

    async def test_binds_keys(self, sample_draft):
        request = StoryRequest(prompt="prompt", keys=ProviderKeys("gem", "fal"), page_count=3)
        with patch("src.core.pipeline.StoryPipeline") as pipeline_cls:
            pipeline_cls.return_value.run = AsyncMock(return_value="result")

            result = await generate_storybook(request, PipelineConfig(retry_base_delay=0))

        assert result == "result"
        config = pipeline_cls.call_args.args[0]
        assert config.llm.api_key == "gem"
        assert config.image.api_key == "fal"
        pipeline_cls.return_value.run.assert_awaited_once_with("prompt", 3)
