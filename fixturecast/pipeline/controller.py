"""
Adaptive wave controller with a rate-limit circuit breaker.

After every wave the controller folds the per-match outcomes (in issue order)
into the consecutive rate-limit counter and picks one of three transitions:

- break:   the counter reached the threshold. Persist, sleep a fixed long
           backoff, reset the counter, raise the delay, shrink concurrency.
- backoff: some call was rate limited or needed a retry. Raise the delay,
           shrink concurrency.
- recover: clean wave. Decay the delay toward its floor, grow concurrency.

State lives in an explicit ControllerState passed through the wave loop.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Iterable, Optional

from fixturecast.config import get_settings
from fixturecast.schemas import ProgressState
from fixturecast.storage.base import StateStore
from fixturecast.storage.keys import pause_until_key
from fixturecast.telemetry import record_circuit_break, set_wave_state
from fixturecast.utils.dates import parse_iso_datetime, utc_now

logger = logging.getLogger(__name__)

DECISION_BREAK = "break"
DECISION_BACKOFF = "backoff"
DECISION_RECOVER = "recover"


@dataclass(frozen=True)
class ControllerConfig:
    min_concurrency: int = 1
    max_concurrency: int = 4
    initial_concurrency: int = 4
    base_delay_ms: float = 500
    max_delay_ms: float = 8000
    multiplier: float = 2.0
    decay: float = 0.5
    break_threshold: int = 5
    break_backoff_seconds: float = 90.0

    @classmethod
    def from_settings(cls) -> "ControllerConfig":
        settings = get_settings()
        return cls(
            min_concurrency=settings.WAVE_MIN_CONCURRENCY,
            max_concurrency=settings.WAVE_MAX_CONCURRENCY,
            initial_concurrency=settings.WAVE_INITIAL_CONCURRENCY,
            base_delay_ms=settings.WAVE_BASE_DELAY_MS,
            max_delay_ms=settings.WAVE_MAX_DELAY_MS,
            multiplier=settings.WAVE_DELAY_MULTIPLIER,
            decay=settings.WAVE_DELAY_DECAY,
            break_threshold=settings.CIRCUIT_BREAK_THRESHOLD,
            break_backoff_seconds=settings.CIRCUIT_BREAK_BACKOFF_SECONDS,
        )


@dataclass
class ControllerState:
    concurrency: int
    delay_ms: float
    consecutive_rate_limited: int = 0
    circuit_open: bool = False
    circuit_breaks: int = 0

    @classmethod
    def initial(cls, config: ControllerConfig) -> "ControllerState":
        return cls(concurrency=config.initial_concurrency, delay_ms=config.base_delay_ms)

    @classmethod
    def from_progress(cls, progress: ProgressState, config: ControllerConfig) -> "ControllerState":
        """Restore pacing from a stored run, clamped to the configured bounds."""
        concurrency = min(max(progress.concurrency, config.min_concurrency), config.max_concurrency)
        delay_ms = min(max(progress.delay_ms, config.base_delay_ms), config.max_delay_ms)
        return cls(
            concurrency=concurrency,
            delay_ms=delay_ms,
            consecutive_rate_limited=progress.consecutive_rate_limited,
            circuit_breaks=progress.circuit_breaks,
        )

    def snapshot(self) -> dict:
        return {
            "concurrency": self.concurrency,
            "delay_ms": self.delay_ms,
            "consecutive_rate_limited": self.consecutive_rate_limited,
            "circuit_open": self.circuit_open,
            "circuit_breaks": self.circuit_breaks,
        }


@dataclass(frozen=True)
class WaveOutcome:
    """Result of one match call as seen by the controller."""

    match_id: int
    success: bool
    rate_limited: bool = False
    retried: bool = False


@dataclass
class FoldResult:
    tripped: bool = False
    any_rate_limited: bool = False
    any_retried: bool = False
    rate_limited: int = 0
    succeeded: int = 0
    failed: int = 0
    match_ids: list = field(default_factory=list)


class WaveController:
    """Applies the per-wave pacing rules to a ControllerState."""

    def __init__(
        self,
        config: Optional[ControllerConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config or ControllerConfig.from_settings()
        self._sleep = sleep
        self._clock = clock

    def new_state(self, progress: Optional[ProgressState] = None) -> ControllerState:
        if progress is not None:
            return ControllerState.from_progress(progress, self.config)
        return ControllerState.initial(self.config)

    def fold(self, state: ControllerState, outcomes: Iterable[WaveOutcome]) -> FoldResult:
        """Fold outcomes into the consecutive counter, in issue order."""
        result = FoldResult()
        for outcome in outcomes:
            result.match_ids.append(outcome.match_id)
            if outcome.retried:
                result.any_retried = True
            if outcome.success:
                result.succeeded += 1
                state.consecutive_rate_limited = 0
                continue
            result.failed += 1
            if outcome.rate_limited:
                result.any_rate_limited = True
                result.rate_limited += 1
                state.consecutive_rate_limited += 1
                if state.consecutive_rate_limited >= self.config.break_threshold:
                    result.tripped = True
        return result

    def _slow_down(self, state: ControllerState) -> None:
        state.delay_ms = min(state.delay_ms * self.config.multiplier, self.config.max_delay_ms)
        state.concurrency = max(state.concurrency - 1, self.config.min_concurrency)

    def _speed_up(self, state: ControllerState) -> None:
        state.delay_ms = max(state.delay_ms * self.config.decay, self.config.base_delay_ms)
        state.concurrency = min(state.concurrency + 1, self.config.max_concurrency)

    def observe(self, state: ControllerState, outcomes: Iterable[WaveOutcome]) -> str:
        """Apply the transition for a finished wave (no sleeping). Returns the decision."""
        folded = self.fold(state, outcomes)

        if folded.tripped:
            state.consecutive_rate_limited = 0
            state.circuit_open = True
            state.circuit_breaks += 1
            self._slow_down(state)
            decision = DECISION_BREAK
        elif folded.any_rate_limited or folded.any_retried:
            self._slow_down(state)
            decision = DECISION_BACKOFF
        else:
            self._speed_up(state)
            decision = DECISION_RECOVER

        set_wave_state(state.concurrency, state.delay_ms)
        logger.info(
            f"Wave observed: ok={folded.succeeded} failed={folded.failed} "
            f"rate_limited={folded.rate_limited} -> {decision} "
            f"(concurrency={state.concurrency}, delay_ms={state.delay_ms:.0f})"
        )
        return decision

    async def after_wave(
        self,
        state: ControllerState,
        outcomes: Iterable[WaveOutcome],
        persist: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> str:
        """Observe a wave; on a break, persist then sit out the breaker backoff."""
        decision = self.observe(state, outcomes)
        if decision == DECISION_BREAK:
            record_circuit_break()
            logger.warning(
                f"Circuit breaker tripped (break #{state.circuit_breaks}), "
                f"backing off {self.config.break_backoff_seconds}s"
            )
            if persist is not None:
                await persist()
            await self._sleep(self.config.break_backoff_seconds)
            state.circuit_open = False
        return decision

    async def pace(self, state: ControllerState) -> None:
        """Inter-wave delay."""
        await self._sleep(state.delay_ms / 1000)

    async def paused_until(self, store: StateStore, date: str) -> Optional[str]:
        """Return the pause deadline if the date is paused right now."""
        value = await store.get(pause_until_key(date))
        if not value:
            return None
        deadline = parse_iso_datetime(value if isinstance(value, str) else value.get("until"))
        if deadline is not None and deadline > self._clock():
            return deadline.isoformat()
        return None
