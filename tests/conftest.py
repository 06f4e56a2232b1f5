"""Shared fakes for pipeline tests."""

import json
from typing import Callable, Optional, Union

import pytest

from fixturecast.etl.base import FinishedMatch, FixtureFetchError, FixtureMatch, FixtureSource
from fixturecast.llm.base import LLMClient, LLMResult
from fixturecast.llm.errors import ProviderErrorKind
from fixturecast.pipeline.controller import ControllerConfig, WaveController
from fixturecast.storage.memory import InMemoryStateStore

GOOD_PREDICTION = {
    "outcome": "Home Win",
    "homeWinProbability": 55,
    "drawProbability": 25,
    "awayWinProbability": 20,
    "predictedScore": "2-1",
    "btts": "Yes",
    "overUnder": "Over 2.5",
    "confidence": "Medium",
    "analysis": "Home side presses high and should control midfield.",
}


def make_match(match_id: int, league_id: int = 39, **kwargs) -> FixtureMatch:
    return FixtureMatch(
        match_id=match_id,
        league_id=league_id,
        league_name=kwargs.pop("league_name", "Premier League"),
        season=kwargs.pop("season", 2024),
        home_team=kwargs.pop("home_team", f"Home {match_id}"),
        away_team=kwargs.pop("away_team", f"Away {match_id}"),
        **kwargs,
    )


def make_finished(match_id: int, home_score: int, away_score: int, league_id: int = 39, **kwargs) -> FinishedMatch:
    return FinishedMatch(
        match_id=match_id,
        league_id=league_id,
        league_name=kwargs.pop("league_name", "Premier League"),
        season=2024,
        home_team=f"Home {match_id}",
        away_team=f"Away {match_id}",
        home_score=home_score,
        away_score=away_score,
        **kwargs,
    )


def ok_result(payload: Optional[dict] = None, model: str = "gemini-2.5-flash") -> LLMResult:
    return LLMResult(
        status="COMPLETED",
        text=json.dumps(payload or GOOD_PREDICTION),
        exec_ms=5,
        model_version=model,
        http_status=200,
    )


def error_result(kind: ProviderErrorKind, model: str = "gemini-2.5-flash") -> LLMResult:
    return LLMResult(
        status="ERROR",
        text="",
        exec_ms=5,
        model_version=model,
        error=f"simulated {kind.value}",
        error_kind=kind,
    )


ScriptItem = Union[LLMResult, Callable[[str, str], LLMResult]]


class ScriptedLLMClient(LLMClient):
    """Replays scripted results, then falls back to `default` for every further call."""

    def __init__(
        self,
        provider: str = "gemini",
        model: str = "gemini-2.5-flash",
        script: Optional[list] = None,
        default: Optional[ScriptItem] = None,
        configured: bool = True,
    ):
        self.provider = provider
        self.model = model
        self.script = list(script or [])
        self.default = default
        self.configured = configured
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def is_configured(self) -> bool:
        return self.configured

    async def generate(self, prompt: str, model: Optional[str] = None) -> LLMResult:
        model = model or self.model
        self.calls.append((model, prompt))
        item = self.script.pop(0) if self.script else self.default
        if item is None:
            return ok_result(model=model)
        if callable(item):
            return item(prompt, model)
        return item

    @property
    def models_called(self) -> list[str]:
        return [model for model, _ in self.calls]

    async def close(self) -> None:
        self.closed = True


class FakeFixtureSource(FixtureSource):
    def __init__(
        self,
        fixtures: Optional[list[FixtureMatch]] = None,
        finished: Optional[dict[str, list[FinishedMatch]]] = None,
        failing_dates: Optional[set[str]] = None,
    ):
        self.fixtures = list(fixtures or [])
        self.finished = finished or {}
        self.failing_dates = failing_dates or set()
        self.fixture_calls: list[tuple[str, bool]] = []

    async def get_fixtures(self, date: str, featured_only: bool = False) -> list[FixtureMatch]:
        self.fixture_calls.append((date, featured_only))
        if date in self.failing_dates:
            raise FixtureFetchError(f"fixtures unavailable for {date}")
        return list(self.fixtures)

    async def get_finished_matches(self, date: str) -> list[FinishedMatch]:
        if date in self.failing_dates:
            raise FixtureFetchError(f"results unavailable for {date}")
        return list(self.finished.get(date, []))


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


TEST_CONTROLLER_CONFIG = ControllerConfig(
    min_concurrency=1,
    max_concurrency=4,
    initial_concurrency=2,
    base_delay_ms=100,
    max_delay_ms=1600,
    multiplier=2.0,
    decay=0.5,
    break_threshold=5,
    break_backoff_seconds=90.0,
)


@pytest.fixture
def store():
    return InMemoryStateStore()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def controller(sleeper):
    return WaveController(config=TEST_CONTROLLER_CONFIG, sleep=sleeper)
