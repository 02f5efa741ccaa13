"""
Gemini LLM Connector.

This module handles communication with the Gemini API for story
generation and illustration prompt writing.
"""

import httpx
import json
import logging
from typing import Optional
from dataclasses import dataclass

from src.core.config import LLMConfig
from src.core.errors import CredentialError, classify_provider_error

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM API."""
    content: str
    tokens_used: int
    success: bool
    error: Optional[str] = None
    status_code: Optional[int] = None


def extract_error_message(response: httpx.Response) -> str:
    """Pull the provider's error message out of an error body."""
    try:
        data = response.json()
    except ValueError:
        return response.text
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        parts = [str(error.get("status", "")), str(error.get("message", ""))]
        return " ".join(p for p in parts if p).strip() or response.text
    return response.text


class GeminiClient:
    """Client for the Gemini generateContent API."""

    def __init__(self, config: LLMConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.headers = {
            "x-goog-api-key": config.api_key,
            "Content-Type": "application/json",
        }
        self._client = client

    async def _post(self, url: str, payload: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, headers=self.headers, json=payload)
        async with httpx.AsyncClient(timeout=self.config.timeout) as client:
            return await client.post(url, headers=self.headers, json=payload)

    async def _call_llm(
        self,
        prompt: str,
        response_schema: Optional[dict] = None,
        model_override: Optional[str] = None,
    ) -> LLMResponse:
        """
        Make a call to the LLM API.

        Args:
            prompt: The prompt to send
            response_schema: Optional schema for structured JSON output
            model_override: Optional model to use instead of config.model

        Returns:
            LLMResponse with the result
        """
        if not self.config.validate():
            return LLMResponse(
                content="",
                tokens_used=0,
                success=False,
                error="Gemini API key not configured. Set GEMINI_API_KEY or pass a key with the request.",
            )

        model = model_override or self.config.model
        generation_config: dict = {"temperature": self.config.temperature}
        if response_schema:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = response_schema

        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

        try:
            response = await self._post(
                f"{self.config.base_url}/models/{model}:generateContent",
                payload,
            )
            response.raise_for_status()

            data = response.json()
            parts = data["candidates"][0]["content"]["parts"]
            content = "".join(part.get("text", "") for part in parts)
            tokens = data.get("usageMetadata", {}).get("totalTokenCount", 0)

            return LLMResponse(
                content=content.strip(),
                tokens_used=tokens,
                success=True,
            )

        except httpx.HTTPStatusError as e:
            return LLMResponse(
                content="",
                tokens_used=0,
                success=False,
                error=f"API error: {e.response.status_code} - {extract_error_message(e.response)}",
                status_code=e.response.status_code,
            )
        except httpx.RequestError as e:
            return LLMResponse(
                content="",
                tokens_used=0,
                success=False,
                error=f"Request failed: {str(e)}",
            )
        except (KeyError, IndexError, TypeError, json.JSONDecodeError) as e:
            return LLMResponse(
                content="",
                tokens_used=0,
                success=False,
                error=f"Invalid response format: {str(e)}",
            )

    def _raise_for_failure(self, response: LLMResponse) -> None:
        if response.success:
            return
        if not self.config.validate():
            raise CredentialError(response.error or "Gemini API key not configured")
        logger.error(f"LLM call failed: {response.error}")
        raise classify_provider_error(response.status_code, response.error or "")

    async def generate_text(self, prompt: str) -> str:
        """Generate free text. Raises UpstreamError on provider failure."""
        response = await self._call_llm(prompt)
        self._raise_for_failure(response)
        if not response.content:
            raise classify_provider_error(None, "Empty response from LLM")
        return response.content

    async def generate_json(self, prompt: str, response_schema: dict) -> LLMResponse:
        """Generate schema-constrained JSON. Raises UpstreamError on provider failure."""
        response = await self._call_llm(prompt, response_schema=response_schema)
        self._raise_for_failure(response)
        return response
