"""Prediction providers: LLM clients, prompts and the fallback chain."""

from fixturecast.llm.base import LLMClient, LLMResult
from fixturecast.llm.deepseek_client import DeepSeekClient
from fixturecast.llm.errors import ProviderError, ProviderErrorKind
from fixturecast.llm.gemini_client import GeminiClient
from fixturecast.llm.prompts import PredictionParseError, build_prediction_prompt, parse_prediction
from fixturecast.llm.provider_chain import PredictionOutcome, ProviderChain

__all__ = [
    "LLMClient",
    "LLMResult",
    "DeepSeekClient",
    "GeminiClient",
    "ProviderError",
    "ProviderErrorKind",
    "PredictionParseError",
    "build_prediction_prompt",
    "parse_prediction",
    "PredictionOutcome",
    "ProviderChain",
]
