"""DeepSeek client (OpenAI-compatible chat completions API)."""

import logging
import time
from typing import Optional

import httpx

from fixturecast.config import get_settings
from fixturecast.llm.base import LLMClient, LLMResult
from fixturecast.llm.errors import ProviderErrorKind, classify_exception, classify_status

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a football prediction engine. Reply with a single JSON object only."


class DeepSeekClient(LLMClient):
    """Async client for the DeepSeek chat completions endpoint."""

    provider = "deepseek"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.api_key = (api_key if api_key is not None else settings.DEEPSEEK_API_KEY or "").strip()
        self.model = model or settings.DEEPSEEK_MODEL
        self.base_url = (base_url or settings.DEEPSEEK_BASE_URL).rstrip("/")
        self.timeout = settings.LLM_TIMEOUT_SECONDS
        self.max_tokens = settings.GEMINI_MAX_TOKENS
        self.temperature = settings.LLM_TEMPERATURE

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={"Authorization": f"Bearer {self.api_key}"},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _error(self, model: str, elapsed_ms: int, error: str, kind: ProviderErrorKind,
               http_status: Optional[int] = None) -> LLMResult:
        return LLMResult(
            status="TIMEOUT" if error == "Request timed out" else "ERROR",
            text="",
            exec_ms=elapsed_ms,
            model_version=model,
            error=error,
            error_kind=kind,
            http_status=http_status,
        )

    async def generate(self, prompt: str, model: Optional[str] = None) -> LLMResult:
        model = model or self.model
        if not self.api_key:
            return self._error(model, 0, "DEEPSEEK_API_KEY not configured", ProviderErrorKind.AUTH_FAILURE)

        client = await self._get_client()
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "response_format": {"type": "json_object"},
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

        start_time = time.time()
        try:
            response = await client.post("/chat/completions", json=payload)
        except httpx.TimeoutException:
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.error(f"DeepSeek API timeout after {elapsed_ms}ms")
            return self._error(model, elapsed_ms, "Request timed out", ProviderErrorKind.UNAVAILABLE)
        except httpx.HTTPError as e:
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.error(f"DeepSeek API transport error: {e}")
            return self._error(model, elapsed_ms, str(e), classify_exception(e))

        elapsed_ms = int((time.time() - start_time) * 1000)
        if response.status_code != 200:
            error_text = response.text[:500]
            logger.error(f"DeepSeek API error {response.status_code}: {error_text}")
            return self._error(
                model,
                elapsed_ms,
                f"HTTP {response.status_code}: {error_text}",
                classify_status(response.status_code),
                http_status=response.status_code,
            )

        try:
            data = response.json()
            choice = data["choices"][0]
            text = choice["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError):
            return self._error(model, elapsed_ms, "Unexpected response shape",
                               ProviderErrorKind.MALFORMED, http_status=200)

        if not text:
            return self._error(model, elapsed_ms, "Empty completion",
                               ProviderErrorKind.MALFORMED, http_status=200)

        usage = data.get("usage") or {}
        return LLMResult(
            status="COMPLETED",
            text=text,
            exec_ms=elapsed_ms,
            model_version=data.get("model", model),
            tokens_in=usage.get("prompt_tokens", 0),
            tokens_out=usage.get("completion_tokens", 0),
            http_status=200,
            finish_reason=choice.get("finish_reason"),
        )
