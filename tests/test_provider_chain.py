"""Tests for the primary / alternate / cross-provider prediction chain."""

import random

import pytest

from conftest import ScriptedLLMClient, SleepRecorder, error_result, make_match, ok_result
from fixturecast.config import ConfigurationError
from fixturecast.llm.errors import ProviderError, ProviderErrorKind
from fixturecast.llm.provider_chain import (
    TIER_ALTERNATE,
    TIER_CROSS_PROVIDER,
    TIER_PRIMARY,
    ProviderChain,
)

RATE_LIMITED = error_result(ProviderErrorKind.RATE_LIMITED)


def build_chain(gemini, deepseek=None, max_attempts=3, sleep=None):
    clients = {"gemini": gemini}
    if deepseek is not None:
        clients["deepseek"] = deepseek
    return ProviderChain(
        clients,
        default_model="gemini-2.5-flash",
        max_attempts=max_attempts,
        backoff_base=1.0,
        backoff_jitter=0.0,
        sleep=sleep or SleepRecorder(),
        rng=random.Random(7),
    )


class TestPrimaryTier:

    @pytest.mark.asyncio
    async def test_first_attempt_success(self):
        gemini = ScriptedLLMClient()
        outcome = await build_chain(gemini).predict(make_match(1))

        assert outcome.tier == TIER_PRIMARY
        assert outcome.model == "gemini-2.5-flash"
        assert outcome.provider == "gemini"
        assert outcome.attempts == 1
        assert outcome.retried is False
        assert outcome.payload.predicted_score == "2-1"

    @pytest.mark.asyncio
    async def test_retries_with_exponential_backoff(self):
        """Two rate limits then success: backoff 1s, 2s and three attempts."""
        sleeper = SleepRecorder()
        gemini = ScriptedLLMClient(script=[RATE_LIMITED, RATE_LIMITED, ok_result()])
        outcome = await build_chain(gemini, max_attempts=5, sleep=sleeper).predict(make_match(1))

        assert outcome.tier == TIER_PRIMARY
        assert outcome.attempts == 3
        assert outcome.retried is True
        assert sleeper.calls == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_unavailable_is_retried(self):
        gemini = ScriptedLLMClient(script=[error_result(ProviderErrorKind.UNAVAILABLE), ok_result()])
        outcome = await build_chain(gemini).predict(make_match(1))

        assert outcome.attempts == 2
        assert outcome.tier == TIER_PRIMARY

    @pytest.mark.asyncio
    async def test_auth_failure_is_not_retried_or_escalated(self):
        gemini = ScriptedLLMClient(script=[error_result(ProviderErrorKind.AUTH_FAILURE)])
        deepseek = ScriptedLLMClient(provider="deepseek", model="deepseek-chat")

        with pytest.raises(ProviderError) as exc_info:
            await build_chain(gemini, deepseek).predict(make_match(1))

        assert exc_info.value.kind == ProviderErrorKind.AUTH_FAILURE
        assert exc_info.value.attempts == 1
        assert len(gemini.calls) == 1
        assert deepseek.calls == []

    @pytest.mark.asyncio
    async def test_unparseable_reply_is_malformed(self):
        bad = ok_result()
        bad.text = "I think the home side will win."
        gemini = ScriptedLLMClient(script=[bad])

        with pytest.raises(ProviderError) as exc_info:
            await build_chain(gemini).predict(make_match(1))

        assert exc_info.value.kind == ProviderErrorKind.MALFORMED
        assert len(gemini.calls) == 1

    @pytest.mark.asyncio
    async def test_preferred_model_overrides_default(self):
        gemini = ScriptedLLMClient()
        outcome = await build_chain(gemini).predict(make_match(1), preferred_model="gemini-2.0-flash")

        assert outcome.model == "gemini-2.0-flash"
        assert gemini.models_called == ["gemini-2.0-flash"]


class TestFallbackTiers:

    @pytest.mark.asyncio
    async def test_alternate_model_after_exhausted_retries(self):
        def only_alternate(prompt, model):
            if model == "gemini-2.0-flash":
                return ok_result(model=model)
            return RATE_LIMITED

        gemini = ScriptedLLMClient(default=only_alternate)
        outcome = await build_chain(gemini, max_attempts=2).predict(make_match(1))

        assert outcome.tier == TIER_ALTERNATE
        assert outcome.model == "gemini-2.0-flash"
        assert outcome.attempts == 3
        assert gemini.models_called == ["gemini-2.5-flash", "gemini-2.5-flash", "gemini-2.0-flash"]

    @pytest.mark.asyncio
    async def test_cross_provider_after_alternate_fails(self):
        gemini = ScriptedLLMClient(default=RATE_LIMITED)
        deepseek = ScriptedLLMClient(provider="deepseek", model="deepseek-chat")
        outcome = await build_chain(gemini, deepseek, max_attempts=2).predict(make_match(1))

        assert outcome.tier == TIER_CROSS_PROVIDER
        assert outcome.provider == "deepseek"
        assert outcome.model == "deepseek-chat"
        assert outcome.attempts == 4

    @pytest.mark.asyncio
    async def test_all_tiers_fail_raises_last_error(self):
        gemini = ScriptedLLMClient(default=RATE_LIMITED)
        deepseek = ScriptedLLMClient(
            provider="deepseek",
            model="deepseek-chat",
            default=error_result(ProviderErrorKind.UNAVAILABLE, model="deepseek-chat"),
        )

        with pytest.raises(ProviderError) as exc_info:
            await build_chain(gemini, deepseek, max_attempts=2).predict(make_match(1))

        assert exc_info.value.kind == ProviderErrorKind.UNAVAILABLE
        assert exc_info.value.provider == "deepseek"
        assert exc_info.value.attempts == 4
        assert exc_info.value.rate_limited

    @pytest.mark.asyncio
    async def test_rate_limit_is_remembered_when_a_later_tier_fails_differently(self):
        gemini = ScriptedLLMClient(default=RATE_LIMITED)
        deepseek = ScriptedLLMClient(
            provider="deepseek",
            model="deepseek-chat",
            default=error_result(ProviderErrorKind.MALFORMED, model="deepseek-chat"),
        )

        with pytest.raises(ProviderError) as exc_info:
            await build_chain(gemini, deepseek, max_attempts=2).predict(make_match(1))

        assert exc_info.value.kind == ProviderErrorKind.MALFORMED
        assert exc_info.value.rate_limited

    @pytest.mark.asyncio
    async def test_failure_without_rate_limit_is_not_flagged(self):
        gemini = ScriptedLLMClient(default=error_result(ProviderErrorKind.UNAVAILABLE))

        with pytest.raises(ProviderError) as exc_info:
            await build_chain(gemini, max_attempts=2).predict(make_match(1))

        assert not exc_info.value.rate_limited

    @pytest.mark.asyncio
    async def test_unconfigured_cross_provider_is_skipped(self):
        gemini = ScriptedLLMClient(default=RATE_LIMITED)
        deepseek = ScriptedLLMClient(provider="deepseek", model="deepseek-chat", configured=False)

        with pytest.raises(ProviderError) as exc_info:
            await build_chain(gemini, deepseek, max_attempts=1).predict(make_match(1))

        assert exc_info.value.kind == ProviderErrorKind.RATE_LIMITED
        assert deepseek.calls == []


class TestModelResolution:

    def test_require_configured_returns_model(self):
        chain = build_chain(ScriptedLLMClient())
        assert chain.require_configured() == "gemini-2.5-flash"
        assert chain.require_configured("gemini-2.0-flash") == "gemini-2.0-flash"

    def test_require_configured_raises_without_credentials(self):
        chain = build_chain(ScriptedLLMClient(configured=False))
        with pytest.raises(ConfigurationError):
            chain.require_configured()

    def test_require_configured_raises_for_unknown_provider(self):
        chain = build_chain(ScriptedLLMClient())
        with pytest.raises(ConfigurationError):
            chain.require_configured("deepseek-chat")

    def test_alternate_model_uses_lowest_rank(self):
        chain = build_chain(ScriptedLLMClient())
        assert chain.alternate_model("gemini-2.5-flash") == "gemini-2.0-flash"
        assert chain.alternate_model("gemini-2.0-flash") == "gemini-2.5-flash"

    def test_cross_provider_model(self):
        chain = build_chain(ScriptedLLMClient(), ScriptedLLMClient(provider="deepseek", model="deepseek-chat"))
        assert chain.cross_provider_model("gemini-2.5-flash") == "deepseek-chat"
        assert chain.cross_provider_model("deepseek-chat") == "gemini-2.5-flash"

    def test_backoff_is_exponential(self):
        chain = build_chain(ScriptedLLMClient())
        assert [chain.backoff_seconds(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_close_closes_clients(self):
        gemini = ScriptedLLMClient()
        deepseek = ScriptedLLMClient(provider="deepseek", model="deepseek-chat")
        await build_chain(gemini, deepseek).close()
        assert gemini.closed and deepseek.closed
