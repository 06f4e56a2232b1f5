"""
Prediction provider chain.

Tiers, in order:
1. primary: the requested model, retried with exponential backoff on
   retriable errors (rate limited / unavailable)
2. alternate: one attempt on another model of the same provider family
3. cross_provider: one attempt on another configured provider

A non-retriable primary failure (auth, malformed output, unknown) is raised
immediately without falling back.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from fixturecast.config import LLM_MODELS, ConfigurationError, get_settings, provider_for_model
from fixturecast.etl.base import FixtureMatch
from fixturecast.llm.base import LLMClient
from fixturecast.llm.errors import ProviderError, ProviderErrorKind
from fixturecast.llm.prompts import PredictionParseError, build_prediction_prompt, parse_prediction
from fixturecast.schemas import PredictionPayload
from fixturecast.telemetry import record_llm_request, record_llm_retry

logger = logging.getLogger(__name__)

TIER_PRIMARY = "primary"
TIER_ALTERNATE = "alternate"
TIER_CROSS_PROVIDER = "cross_provider"


@dataclass
class PredictionOutcome:
    """A successful prediction and how it was obtained."""

    payload: PredictionPayload
    model: str
    provider: str
    tier: str
    attempts: int

    @property
    def retried(self) -> bool:
        return self.attempts > 1


class ProviderChain:
    """Runs a prediction through the primary / alternate / cross-provider tiers."""

    def __init__(
        self,
        clients: dict[str, LLMClient],
        default_model: Optional[str] = None,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_jitter: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        settings = get_settings()
        self.clients = clients
        self.default_model = default_model or settings.GEMINI_MODEL
        self.max_attempts = max_attempts or settings.PREDICTION_MAX_ATTEMPTS
        self.backoff_base = (
            backoff_base if backoff_base is not None else settings.PREDICTION_BACKOFF_BASE_SECONDS
        )
        self.backoff_jitter = (
            backoff_jitter if backoff_jitter is not None else settings.PREDICTION_BACKOFF_JITTER_SECONDS
        )
        self._sleep = sleep
        self._rng = rng or random.Random()

    # -------------------------------------------------------------------------
    # Model resolution
    # -------------------------------------------------------------------------

    def _client_for(self, model: str) -> Optional[LLMClient]:
        return self.clients.get(provider_for_model(model))

    def require_configured(self, model: Optional[str] = None) -> str:
        """Return the primary model, or raise ConfigurationError if its provider has no credentials."""
        model = model or self.default_model
        client = self._client_for(model)
        if client is None or not client.is_configured():
            raise ConfigurationError(
                f"Prediction provider '{provider_for_model(model)}' for model {model} is not configured"
            )
        return model

    def alternate_model(self, model: str) -> Optional[str]:
        """Lowest-ranked other catalog model of the same provider family."""
        family = provider_for_model(model)
        client = self.clients.get(family)
        if client is None or not client.is_configured():
            return None
        candidates = sorted(
            (info["fallback_rank"], model_id)
            for model_id, info in LLM_MODELS.items()
            if info["provider"] == family and model_id != model
        )
        return candidates[0][1] if candidates else None

    def cross_provider_model(self, model: str) -> Optional[str]:
        """Default model of the first other configured provider."""
        family = provider_for_model(model)
        for provider, client in self.clients.items():
            if provider != family and client.is_configured():
                return getattr(client, "model", None)
        return None

    def backoff_seconds(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        return self.backoff_base * (2 ** (attempt - 1)) + self._rng.uniform(0, self.backoff_jitter)

    # -------------------------------------------------------------------------
    # Calls
    # -------------------------------------------------------------------------

    async def _call(self, match: FixtureMatch, model: str) -> PredictionPayload:
        provider = provider_for_model(model)
        client = self.clients.get(provider)
        if client is None:
            raise ProviderError(
                ProviderErrorKind.AUTH_FAILURE, "No client for provider", provider=provider, model=model
            )

        result = await client.generate(build_prediction_prompt(match), model=model)
        if not result.ok:
            kind = result.error_kind or ProviderErrorKind.UNKNOWN
            record_llm_request(provider, kind.value, result.exec_ms)
            raise ProviderError(kind, result.error or "request failed", provider=provider, model=model)

        try:
            payload = parse_prediction(result.text)
        except PredictionParseError as e:
            record_llm_request(provider, ProviderErrorKind.MALFORMED.value, result.exec_ms)
            raise ProviderError(ProviderErrorKind.MALFORMED, str(e), provider=provider, model=model) from e

        record_llm_request(provider, "ok", result.exec_ms)
        return payload

    async def predict(
        self, match: FixtureMatch, preferred_model: Optional[str] = None
    ) -> PredictionOutcome:
        """
        Generate a prediction for one match.

        Raises:
            ProviderError: every tier failed, or the primary failed with a
                non-retriable kind. `attempts` holds the total call count.
        """
        model = preferred_model or self.default_model
        attempts = 0
        rate_limited = False
        last_error: Optional[ProviderError] = None

        for attempt in range(1, self.max_attempts + 1):
            attempts += 1
            try:
                payload = await self._call(match, model)
                return PredictionOutcome(payload, model, provider_for_model(model), TIER_PRIMARY, attempts)
            except ProviderError as e:
                e.attempts = attempts
                if not e.retriable:
                    logger.error(f"Match {match.match_id}: non-retriable failure: {e}")
                    raise
                rate_limited = rate_limited or e.rate_limited
                last_error = e
                record_llm_retry(e.provider or "unknown", e.kind.value)
                if attempt < self.max_attempts:
                    wait = self.backoff_seconds(attempt)
                    logger.warning(
                        f"Match {match.match_id}: {e.kind.value} on attempt {attempt}/{self.max_attempts}, "
                        f"retrying in {wait:.2f}s"
                    )
                    await self._sleep(wait)

        fallbacks = (
            (TIER_ALTERNATE, self.alternate_model(model)),
            (TIER_CROSS_PROVIDER, self.cross_provider_model(model)),
        )
        for tier, fallback_model in fallbacks:
            if not fallback_model:
                continue
            attempts += 1
            logger.info(f"Match {match.match_id}: falling back to {fallback_model} ({tier})")
            try:
                payload = await self._call(match, fallback_model)
                return PredictionOutcome(
                    payload, fallback_model, provider_for_model(fallback_model), tier, attempts
                )
            except ProviderError as e:
                e.attempts = attempts
                rate_limited = rate_limited or e.rate_limited
                last_error = e
                logger.warning(f"Match {match.match_id}: {tier} fallback failed: {e}")

        logger.error(f"Match {match.match_id}: all provider tiers failed after {attempts} attempts")
        last_error.rate_limited = rate_limited
        raise last_error

    async def close(self) -> None:
        for client in self.clients.values():
            await client.close()
