"""Shared singletons for the FixtureCast application.

Singleton-by-import pattern: main.py, the scheduler and the routers take
their collaborators from here so they share one store, one fixture client
and one provider chain. Routes resolve them through FastAPI dependencies,
which tests replace via `app.dependency_overrides`.
"""

import logging
from typing import Optional

from fixturecast.accuracy.engine import AccuracyEngine
from fixturecast.config import get_settings
from fixturecast.etl.api_football import APIFootballSource
from fixturecast.etl.base import FixtureSource
from fixturecast.llm.deepseek_client import DeepSeekClient
from fixturecast.llm.gemini_client import GeminiClient
from fixturecast.llm.provider_chain import ProviderChain
from fixturecast.pipeline.orchestrator import BatchOrchestrator
from fixturecast.storage.base import StateStore
from fixturecast.storage.memory import InMemoryStateStore
from fixturecast.storage.sql_store import SQLStateStore

logger = logging.getLogger(__name__)

_store: Optional[StateStore] = None
_fixtures: Optional[FixtureSource] = None
_chain: Optional[ProviderChain] = None


def get_state_store() -> StateStore:
    global _store
    if _store is None:
        backend = get_settings().STATE_STORE_BACKEND.lower()
        if backend == "memory":
            logger.warning("Using in-memory state store: state is lost on restart")
            _store = InMemoryStateStore()
        else:
            _store = SQLStateStore()
    return _store


def get_fixture_source() -> FixtureSource:
    global _fixtures
    if _fixtures is None:
        _fixtures = APIFootballSource()
    return _fixtures


def get_provider_chain() -> ProviderChain:
    global _chain
    if _chain is None:
        # Insertion order is the cross-provider fallback order
        _chain = ProviderChain({
            "gemini": GeminiClient(),
            "deepseek": DeepSeekClient(),
        })
    return _chain


def get_orchestrator() -> BatchOrchestrator:
    return BatchOrchestrator(get_state_store(), get_fixture_source(), get_provider_chain())


def get_accuracy_engine() -> AccuracyEngine:
    return AccuracyEngine(get_state_store(), get_fixture_source())


async def close_all() -> None:
    """Close HTTP clients and database connections."""
    global _store, _fixtures, _chain
    if _chain is not None:
        await _chain.close()
        _chain = None
    if _fixtures is not None:
        await _fixtures.close()
        _fixtures = None
    if _store is not None:
        await _store.close()
        _store = None
