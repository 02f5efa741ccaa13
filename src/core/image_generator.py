"""
Image Generator for storybook illustrations.

This module wraps the image backends (fal.ai REST and Gemini image
models) behind a single ``ImageSynthesizer`` that tries a primary model
and, only if it fails, one fallback model.
"""

from __future__ import annotations

import io
import json
import base64
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from PIL import Image, UnidentifiedImageError

from src.core.config import ImageConfig
from src.core.errors import (
    ImageGenerationError,
    QuotaExceededError,
    classify_provider_error,
)
from src.core.llm_connector import extract_error_message
from src.core.retry import async_retry

logger = logging.getLogger(__name__)

DOWNLOAD_ATTEMPTS = 2
DOWNLOAD_BACKOFF = 0.5


@dataclass
class GeneratedImage:
    """Result of image generation."""
    success: bool
    image_data: Optional[bytes] = None
    mime_type: str = "image/png"
    error: Optional[str] = None
    status_code: Optional[int] = None
    prompt_used: Optional[str] = None
    model: Optional[str] = None

    def to_data_uri(self) -> str:
        """Encode the image as a base64 data URI."""
        if not self.image_data:
            raise ImageGenerationError("No image data to encode")
        encoded = base64.b64encode(self.image_data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def detect_image_mime(raw: bytes) -> str:
    """Validate image bytes with PIL and return their real mime type.

    Backends may return JPEG or WebP regardless of what they announce.
    """
    img = Image.open(io.BytesIO(raw))
    img.verify()  # raises early on corrupt data
    return Image.MIME.get(img.format or "", "image/png")


def _validated_image(raw: bytes, prompt: str, model: str) -> GeneratedImage:
    try:
        mime_type = detect_image_mime(raw)
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.error(f"Image validation failed: {e}")
        return GeneratedImage(success=False, error=f"Image validation failed: {e}", model=model)
    return GeneratedImage(
        success=True,
        image_data=raw,
        mime_type=mime_type,
        prompt_used=prompt,
        model=model,
    )


def _decode_data_uri(data_uri: str) -> bytes:
    """Parse data URL: "data:image/png;base64,ENCODED_DATA"."""
    _header, encoded = data_uri.split(",", 1)
    return base64.b64decode(encoded)


class _HTTPImageBackend:
    """Shared HTTP client handling for image backends.

    Reuses a single httpx.AsyncClient across all requests of a book.
    Call ``close()`` when done generating images.
    """

    def __init__(self, config: ImageConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout)
        self._closed = False

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        self._closed = True
        if self._owns_client:
            await self._client.aclose()

    def _closed_result(self, model: str) -> GeneratedImage:
        return GeneratedImage(
            success=False,
            error="HTTP client has been closed; create a new image generator",
            model=model,
        )

    @staticmethod
    def _http_error_result(e: httpx.HTTPStatusError, model: str) -> GeneratedImage:
        message = extract_error_message(e.response)
        logger.error(f"{model} HTTP error: {e.response.status_code} - {message[:500]}")
        return GeneratedImage(
            success=False,
            error=f"API error: {e.response.status_code} - {message}",
            status_code=e.response.status_code,
            model=model,
        )


class FalImageGenerator(_HTTPImageBackend):
    """Generate images with fal.ai hosted models (synchronous REST endpoint)."""

    @property
    def headers(self) -> dict:
        return {
            "Authorization": f"Key {self.config.api_key}",
            "Content-Type": "application/json",
        }

    @async_retry(max_attempts=DOWNLOAD_ATTEMPTS, backoff_base=DOWNLOAD_BACKOFF)
    async def _download(self, url: str) -> bytes:
        """Fetch a hosted result image; the CDN URL can lag behind the response."""
        download = await self._client.get(url)
        download.raise_for_status()
        return download.content

    async def generate(self, prompt: str, model: Optional[str] = None) -> GeneratedImage:
        """Generate one image from prompt with the given fal model."""
        model = model or self.config.model
        if self._closed:
            return self._closed_result(model)

        payload = {
            "prompt": prompt,
            "image_size": {"width": self.config.width, "height": self.config.height},
            "num_images": 1,
            "sync_mode": True,
        }

        try:
            response = await self._client.post(
                f"{self.config.fal_base_url}/{model}",
                headers=self.headers,
                json=payload,
            )
            response.raise_for_status()

            images = response.json().get("images") or []
            image_url = images[0].get("url", "") if images else ""
            if not image_url:
                logger.warning(f"{model}: no image in response")
                return GeneratedImage(success=False, error="No image in response", model=model)

            if image_url.startswith("data:"):
                raw = _decode_data_uri(image_url)
            else:
                raw = await self._download(image_url)

            return _validated_image(raw, prompt, model)

        except httpx.HTTPStatusError as e:
            return self._http_error_result(e, model)
        except (httpx.RequestError, ValueError, KeyError, AttributeError) as e:
            logger.error(f"{model} request exception: {str(e)}")
            return GeneratedImage(success=False, error=f"Request failed: {str(e)}", model=model)


class GeminiImageGenerator(_HTTPImageBackend):
    """Generate images with Gemini image models.

    Uses the streaming endpoint and keeps only the first inline image;
    the rest of the stream is discarded.
    """

    @property
    def headers(self) -> dict:
        return {
            "x-goog-api-key": self.config.api_key,
            "Content-Type": "application/json",
        }

    def _payload(self, prompt: str, model: str) -> dict:
        image_config: dict = {"aspectRatio": "1:1"}
        if model.startswith("gemini-3"):
            image_config["imageSize"] = self.config.gemini_image_size
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": image_config,
            },
        }

    @staticmethod
    def _first_inline_data(chunk: dict) -> Optional[dict]:
        for candidate in chunk.get("candidates") or []:
            for part in (candidate.get("content") or {}).get("parts") or []:
                if part.get("inlineData"):
                    return part["inlineData"]
        return None

    async def generate(self, prompt: str, model: Optional[str] = None) -> GeneratedImage:
        """Generate one image from prompt with the given Gemini model."""
        model = model or self.config.model
        if self._closed:
            return self._closed_result(model)

        url = f"{self.config.gemini_base_url}/models/{model}:streamGenerateContent"
        try:
            async with self._client.stream(
                "POST",
                url,
                params={"alt": "sse"},
                headers=self.headers,
                json=self._payload(prompt, model),
            ) as response:
                if response.is_error:
                    await response.aread()
                response.raise_for_status()

                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    inline = self._first_inline_data(json.loads(line[len("data:"):].strip()))
                    if inline:
                        raw = base64.b64decode(inline["data"])
                        return _validated_image(raw, prompt, model)

            logger.warning(f"{model}: stream ended without an image")
            return GeneratedImage(success=False, error="No image generated", model=model)

        except httpx.HTTPStatusError as e:
            return self._http_error_result(e, model)
        except (httpx.RequestError, ValueError, KeyError) as e:
            logger.error(f"{model} request exception: {str(e)}")
            return GeneratedImage(success=False, error=f"Request failed: {str(e)}", model=model)


def create_image_backend(
    config: ImageConfig,
    client: Optional[httpx.AsyncClient] = None,
) -> _HTTPImageBackend:
    """Build the backend matching ``config.provider``."""
    if config.provider == "gemini":
        return GeminiImageGenerator(config, client)
    return FalImageGenerator(config, client)


class ImageSynthesizer:
    """
    Turns a finished prompt into image bytes.

    Tries ``config.model`` first and, only on failure, ``config.fallback_model``
    once. Raises ``QuotaExceededError`` when either attempt was rejected on
    quota, ``ImageGenerationError`` otherwise.
    """

    def __init__(self, config: ImageConfig, backend: Optional[_HTTPImageBackend] = None):
        self.config = config
        self.backend = backend or create_image_backend(config)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_exc):
        await self.close()

    async def close(self) -> None:
        await self.backend.close()

    async def synthesize(self, prompt: str) -> GeneratedImage:
        result = await self.backend.generate(prompt, self.config.model)
        failures = [result]
        if not result.success and self.config.fallback_model:
            logger.warning(
                f"Primary model {self.config.model} failed ({result.error}), "
                f"trying fallback: {self.config.fallback_model}"
            )
            result = await self.backend.generate(prompt, self.config.fallback_model)
            failures.append(result)

        if result.success:
            return result

        for failure in failures:
            classified = classify_provider_error(failure.status_code, failure.error or "")
            if isinstance(classified, QuotaExceededError):
                raise classified
        raise ImageGenerationError(result.error or "Unknown image generation error")
