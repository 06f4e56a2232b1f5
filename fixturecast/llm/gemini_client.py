"""
Google Gemini API client for match predictions.

Requests JSON output (responseMimeType) so the reply can be validated directly.
"""

import logging
import time
from typing import Optional

import httpx

from fixturecast.config import get_settings
from fixturecast.llm.base import LLMClient, LLMResult
from fixturecast.llm.errors import ProviderErrorKind, classify_exception, classify_status

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODEL = "gemini-2.5-flash"


class GeminiClient(LLMClient):
    """Async client for Google Gemini API."""

    provider = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.api_key = (api_key if api_key is not None else settings.GEMINI_API_KEY or "").strip()
        self.model = model or settings.GEMINI_MODEL or DEFAULT_MODEL
        self.timeout = settings.LLM_TIMEOUT_SECONDS
        self.max_tokens = settings.GEMINI_MAX_TOKENS
        self.temperature = settings.LLM_TEMPERATURE
        self.top_p = settings.LLM_TOP_P

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={
                    "Content-Type": "application/json",
                    "x-goog-api-key": self.api_key,
                },
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def generate(self, prompt: str, model: Optional[str] = None) -> LLMResult:
        """
        Generate a JSON prediction using Gemini API.

        Args:
            prompt: The prompt to send to the model.
            model: Override the default model id.

        Returns:
            LLMResult with generated text, or the classified failure.
        """
        model = model or self.model
        if not self.api_key:
            return LLMResult(
                status="ERROR",
                text="",
                exec_ms=0,
                model_version=model,
                error="GEMINI_API_KEY not configured",
                error_kind=ProviderErrorKind.AUTH_FAILURE,
            )

        client = await self._get_client()
        url = f"{GEMINI_BASE_URL}/{model}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": self.max_tokens,
                "temperature": self.temperature,
                "topP": self.top_p,
                "responseMimeType": "application/json",
            },
        }

        start_time = time.time()
        try:
            response = await client.post(url, json=payload)
        except httpx.TimeoutException:
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.error(f"Gemini API timeout after {elapsed_ms}ms")
            return LLMResult(
                status="TIMEOUT",
                text="",
                exec_ms=elapsed_ms,
                model_version=model,
                error="Request timed out",
                error_kind=ProviderErrorKind.UNAVAILABLE,
            )
        except httpx.HTTPError as e:
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.error(f"Gemini API transport error: {e}")
            return LLMResult(
                status="ERROR",
                text="",
                exec_ms=elapsed_ms,
                model_version=model,
                error=str(e),
                error_kind=classify_exception(e),
            )

        elapsed_ms = int((time.time() - start_time) * 1000)
        if response.status_code != 200:
            error_text = response.text[:500]
            logger.error(f"Gemini API error {response.status_code}: {error_text}")
            return LLMResult(
                status="ERROR",
                text="",
                exec_ms=elapsed_ms,
                model_version=model,
                error=f"HTTP {response.status_code}: {error_text}",
                error_kind=classify_status(response.status_code),
                http_status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            return LLMResult(
                status="ERROR",
                text="",
                exec_ms=elapsed_ms,
                model_version=model,
                error="Response body is not JSON",
                error_kind=ProviderErrorKind.MALFORMED,
                http_status=200,
            )

        text, finish_reason = self._extract_text_and_reason(data)
        usage = data.get("usageMetadata", {})

        if finish_reason and finish_reason != "STOP":
            logger.warning(
                f"Gemini finishReason={finish_reason} (tokens_out={usage.get('candidatesTokenCount', 0)}, "
                f"max_tokens={self.max_tokens}, text_len={len(text)})"
            )

        if not text:
            return LLMResult(
                status="ERROR",
                text="",
                exec_ms=elapsed_ms,
                model_version=model,
                error=f"Empty candidate (finishReason={finish_reason})",
                error_kind=ProviderErrorKind.MALFORMED,
                http_status=200,
                finish_reason=finish_reason,
            )

        return LLMResult(
            status="COMPLETED",
            text=text,
            exec_ms=elapsed_ms,
            model_version=data.get("modelVersion", model),
            tokens_in=usage.get("promptTokenCount", 0),
            tokens_out=usage.get("candidatesTokenCount", 0),
            http_status=200,
            finish_reason=finish_reason,
        )

    def _extract_text_and_reason(self, response: dict) -> tuple[str, Optional[str]]:
        """Extract text and finishReason from Gemini response."""
        candidates = response.get("candidates", [])
        if not candidates:
            return "", None

        candidate = candidates[0]
        finish_reason = candidate.get("finishReason")

        parts = candidate.get("content", {}).get("parts", [])
        if not parts:
            return "", finish_reason

        return parts[0].get("text", ""), finish_reason
