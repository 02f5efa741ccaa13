"""Unit tests for src/core/models.py."""

import pydantic
import pytest

from src.core.models import PageDraft, PageResult, StoryDraft, StoryResult


class TestPageDraft:
    def test_accepts_camel_case(self):
        page = PageDraft.model_validate({
            "pageNumber": 2,
            "title": "T",
            "content": "C",
            "characters": ["A"],
            "setting": "S",
            "mood": "M",
        })
        assert page.page_number == 2

    def test_requires_a_character(self, sample_page):
        data = sample_page.model_dump()
        data["characters"] = []
        with pytest.raises(pydantic.ValidationError):
            PageDraft(**data)

    def test_requires_content(self, sample_page):
        data = sample_page.model_dump()
        data["content"] = ""
        with pytest.raises(pydantic.ValidationError):
            PageDraft(**data)

    def test_page_number_positive(self, sample_page):
        data = sample_page.model_dump()
        data["page_number"] = 0
        with pytest.raises(pydantic.ValidationError):
            PageDraft(**data)

    def test_frozen(self, sample_page):
        with pytest.raises(pydantic.ValidationError):
            sample_page.title = "Changed"


class TestStoryDraft:
    def test_page_count(self, sample_draft):
        assert sample_draft.page_count == 3
        assert sample_draft.target_age == "4-8"

    def test_requires_pages(self, sample_story_data):
        data = {**sample_story_data, "pages": []}
        with pytest.raises(pydantic.ValidationError):
            StoryDraft.model_validate(data)

    def test_requires_title(self, sample_story_data):
        data = {**sample_story_data, "title": ""}
        with pytest.raises(pydantic.ValidationError):
            StoryDraft.model_validate(data)

    def test_missing_field(self, sample_story_data):
        data = dict(sample_story_data)
        del data["genre"]
        with pytest.raises(pydantic.ValidationError):
            StoryDraft.model_validate(data)


class TestResults:
    def test_page_result_from_draft(self, sample_page):
        result = PageResult.from_draft(sample_page, "data:image/png;base64,AAA", "prompt")
        assert result.title == sample_page.title
        assert result.characters == sample_page.characters
        assert result.image_url == "data:image/png;base64,AAA"
        assert result.image_prompt == "prompt"

    def test_story_result_serializes_camel_case(self, sample_draft):
        pages = [PageResult.from_draft(p, "url", "prompt") for p in sample_draft.pages]
        result = StoryResult.assemble(sample_draft, pages, "cover")

        data = result.model_dump(by_alias=True)
        assert data["targetAge"] == "4-8"
        assert data["coverImageUrl"] == "cover"
        assert data["pages"][0]["pageNumber"] == 1
        assert data["pages"][0]["imageUrl"] == "url"
        assert data["pages"][0]["imagePrompt"] == "prompt"

    def test_exclude_none_drops_missing_images(self, sample_draft):
        pages = [PageResult.from_draft(p, None, None) for p in sample_draft.pages]
        result = StoryResult.assemble(sample_draft, pages, None)

        data = result.model_dump(by_alias=True, exclude_none=True)
        assert "coverImageUrl" not in data
        assert "imageUrl" not in data["pages"][0]
