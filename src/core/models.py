"""
Story data models.

Drafts are validated once, when the LLM answer is ingested, and are
immutable afterwards. Results carry the illustration outcome. All models
serialize with the camelCase field names the page-flip UI reads.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _StoryModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class PageDraft(_StoryModel):
    """One story page as written by the LLM, before illustration."""

    page_number: int = Field(..., ge=1)
    title: str
    content: str = Field(..., min_length=1)
    characters: List[str] = Field(..., min_length=1)
    setting: str
    mood: str


class StoryDraft(_StoryModel):
    """Validated structured story, in narrative page order."""

    title: str = Field(..., min_length=1)
    genre: str
    target_age: str
    pages: List[PageDraft] = Field(..., min_length=1)

    @property
    def page_count(self) -> int:
        return len(self.pages)


class PageResult(PageDraft):
    """A page plus its illustration outcome."""

    image_url: Optional[str] = None
    image_prompt: Optional[str] = None

    @classmethod
    def from_draft(
        cls,
        page: PageDraft,
        image_url: Optional[str],
        image_prompt: Optional[str],
    ) -> "PageResult":
        return cls(**page.model_dump(), image_url=image_url, image_prompt=image_prompt)


class StoryResult(_StoryModel):
    """The finished storybook returned to the caller."""

    title: str
    genre: str
    target_age: str
    pages: List[PageResult]
    cover_image_url: Optional[str] = None

    @classmethod
    def assemble(
        cls,
        draft: StoryDraft,
        pages: List[PageResult],
        cover_image_url: Optional[str],
    ) -> "StoryResult":
        return cls(
            title=draft.title,
            genre=draft.genre,
            target_age=draft.target_age,
            pages=pages,
            cover_image_url=cover_image_url,
        )
