"""
Sequential, cancellable page illustration.

This is the interactive client mode: pages are illustrated one at a time
(one request in flight) and the user can stop the loop between pages.
It is a separate code path from the bounded-concurrency server pipeline,
which has no cancellation.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence

import httpx

from src.core.errors import (
    ImageGenerationError,
    QuotaExceededError,
    StorybookError,
    ValidationError,
    QUOTA_EXCEEDED_CODE,
)
from src.core.models import PageDraft, PageResult
from src.core.placeholder import make_placeholder_image
from src.core.prompts import build_page_image_prompt, build_style_directive

logger = logging.getLogger(__name__)

ImageRenderer = Callable[[str], Awaitable[str]]


class CancellationToken:
    """Cooperative stop flag, checked between pages."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class SequentialOutcome:
    """Pages in story order; pages never reached keep ``image_url=None``."""
    pages: List[PageResult] = field(default_factory=list)
    cancelled: bool = False
    quota_exceeded: bool = False
    error: Optional[str] = None

    @property
    def completed(self) -> int:
        return sum(1 for p in self.pages if p.image_url)


def build_scene_image_prompt(page: PageDraft, style_directive: str) -> str:
    """Image prompt written straight from page data, without an LLM round trip."""
    scene = (
        f"{page.title}: {page.content} "
        f"Characters: {', '.join(page.characters)}. "
        f"Setting: {page.setting}. Mood: {page.mood}"
    )
    return build_page_image_prompt(scene, style_directive)


async def illustrate_sequentially(
    pages: Sequence[PageDraft],
    render_image: ImageRenderer,
    cancel_token: CancellationToken,
    on_page: Optional[Callable[[PageResult], None]] = None,
) -> SequentialOutcome:
    """
    Illustrate pages one by one until done, cancelled or out of quota.

    A page whose image fails gets a placeholder and the loop continues.
    A quota error stops the loop so the caller can ask for another key.
    """
    style_directive = build_style_directive()
    outcome = SequentialOutcome()
    stopped = False

    for page in pages:
        if not stopped and cancel_token.cancelled:
            logger.info(f"Image generation stopped before page {page.page_number}")
            outcome.cancelled = True
            stopped = True

        if stopped:
            outcome.pages.append(PageResult.from_draft(page, None, None))
            continue

        image_prompt = build_scene_image_prompt(page, style_directive)
        try:
            image_url = await render_image(image_prompt)
        except QuotaExceededError as e:
            logger.warning(f"Quota exceeded on page {page.page_number}: {e}")
            outcome.quota_exceeded = True
            outcome.error = str(e)
            stopped = True
            outcome.pages.append(PageResult.from_draft(page, None, image_prompt))
            continue
        except StorybookError as e:
            logger.error(f"Image generation failed for page {page.page_number}: {e}")
            image_url = make_placeholder_image(page.title)

        result = PageResult.from_draft(page, image_url, image_prompt)
        outcome.pages.append(result)
        if on_page:
            on_page(result)

    return outcome


def _json_body(response: httpx.Response) -> dict:
    """Decoded JSON object body, or an empty dict when the body is not one."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def remote_image_renderer(
    base_url: str,
    api_key: str,
    client: Optional[httpx.AsyncClient] = None,
) -> ImageRenderer:
    """
    Renderer that calls a running server's ``POST /api/generate-image``.

    Maps the server's 429 ``QUOTA_EXCEEDED`` answer back to
    ``QuotaExceededError``.
    """
    url = f"{base_url.rstrip('/')}/api/generate-image"

    async def render(prompt: str) -> str:
        async def _send(http: httpx.AsyncClient) -> httpx.Response:
            return await http.post(url, json={"prompt": prompt, "apiKey": api_key})

        try:
            if client is not None:
                response = await _send(client)
            else:
                async with httpx.AsyncClient(timeout=180.0) as http:
                    response = await _send(http)
        except httpx.RequestError as e:
            raise ImageGenerationError(f"Request failed: {e}") from e

        if response.status_code == 429:
            body = _json_body(response)
            if body.get("error") == QUOTA_EXCEEDED_CODE:
                raise QuotaExceededError(body.get("message", "Quota exceeded"), upstream_status=429)
        if response.status_code == 400:
            raise ValidationError(response.text)
        if response.is_error:
            raise ImageGenerationError(f"Server error: {response.status_code}")

        image_url = _json_body(response).get("imageUrl")
        if not isinstance(image_url, str) or not image_url:
            raise ImageGenerationError("Server response has no imageUrl")
        return image_url

    return render


def local_image_renderer(synthesizer) -> ImageRenderer:
    """Renderer that calls an ``ImageSynthesizer`` in-process."""

    async def render(prompt: str) -> str:
        image = await synthesizer.synthesize(prompt)
        return image.to_data_uri()

    return render
