"""
Batch orchestrator: one prediction run for one date.

Flow:
1. Validate the date, require a configured primary provider, fetch fixtures
2. Load the stored DailyAggregate / ProgressState
3. Skip if the day was already generated (unless force / resume)
4. Pick the working set (featured, else a bounded fallback slice); resume
   drops match ids already in the aggregate; wave_size truncates it
5. Run waves through the provider chain under the WaveController,
   persisting records, the merged aggregate and progress after every wave
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel, Field

from fixturecast.config import get_settings
from fixturecast.etl.base import FixtureMatch, FixtureSource
from fixturecast.etl.competitions import is_featured
from fixturecast.llm.errors import ProviderError, ProviderErrorKind
from fixturecast.llm.provider_chain import ProviderChain
from fixturecast.pipeline.controller import ControllerState, WaveController, WaveOutcome
from fixturecast.schemas import DailyAggregate, PredictionFailure, PredictionRecord, ProgressState
from fixturecast.storage.base import StateStore
from fixturecast.storage.keys import daily_aggregate_key, daily_progress_key, prediction_key
from fixturecast.telemetry import record_prediction_failure, record_prediction_generated
from fixturecast.utils.dates import parse_target_date, utc_now

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_PARTIAL = "partial"
STATUS_PAUSED = "paused"
STATUS_SKIPPED = "skipped"
STATUS_NO_MATCHES = "no-matches"


@dataclass
class RunOptions:
    force: bool = False
    resume: bool = False
    wave_size: Optional[int] = None
    featured_only: Optional[bool] = None  # None: FEATURED_ONLY_FETCH setting
    preferred_model: Optional[str] = None


class RunResult(BaseModel):
    """Structured outcome of a run, returned even on partial failure."""

    date: str
    status: str
    reason: Optional[str] = None
    model: Optional[str] = None
    processed: int = 0
    generated: int = 0
    failures: list[PredictionFailure] = Field(default_factory=list)
    models_used: dict[str, int] = Field(default_factory=dict)
    remaining_after_wave: int = 0
    total_matches: int = 0
    featured_matches: int = 0
    using_fallback_all_matches: bool = False
    fetch_mode: str = "global"
    waves: int = 0
    paused_until: Optional[str] = None
    controller: dict = Field(default_factory=dict)


def merge_predictions(
    existing: list[PredictionRecord], new_records: list[PredictionRecord]
) -> list[PredictionRecord]:
    """Union keyed by match id. A new record replaces an existing one in place."""
    merged = list(existing)
    index = {record.match_id: i for i, record in enumerate(merged)}
    for record in new_records:
        position = index.get(record.match_id)
        if position is None:
            index[record.match_id] = len(merged)
            merged.append(record)
        else:
            merged[position] = record
    return merged


@dataclass
class _RunContext:
    """Per-invocation bookkeeping shared by the wave loop helpers."""

    date: str
    model: str
    total_matches: int
    featured_matches: int
    using_fallback: bool
    fetch_mode: str
    remaining_after_wave: int
    prior_waves: int = 0
    waves: int = 0
    pending: int = 0


class BatchOrchestrator:
    """Drives a date's prediction run through the provider chain in waves."""

    def __init__(
        self,
        store: StateStore,
        fixtures: FixtureSource,
        chain: ProviderChain,
        controller: Optional[WaveController] = None,
        clock: Callable[[], datetime] = utc_now,
        fallback_limit: Optional[int] = None,
    ):
        self.store = store
        self.fixtures = fixtures
        self.chain = chain
        self.controller = controller or WaveController()
        self._clock = clock
        self.fallback_limit = fallback_limit or get_settings().FALLBACK_MATCH_LIMIT

    # -------------------------------------------------------------------------
    # State access
    # -------------------------------------------------------------------------

    async def load_aggregate(self, date: str) -> Optional[DailyAggregate]:
        raw = await self.store.get(daily_aggregate_key(date))
        return DailyAggregate.model_validate(raw) if raw else None

    async def load_progress(self, date: str) -> Optional[ProgressState]:
        raw = await self.store.get(daily_progress_key(date))
        return ProgressState.model_validate(raw) if raw else None

    async def _merge_aggregate(
        self,
        ctx: _RunContext,
        new_records: list[PredictionRecord],
        failed_ids: set[int],
    ) -> Optional[DailyAggregate]:
        """Re-read, merge and write the day's aggregate.

        Zero new records leaves the stored aggregate untouched.
        """
        current = await self.load_aggregate(ctx.date)
        if not new_records:
            return current

        now = self._clock().isoformat()
        predictions = merge_predictions(current.predictions if current else [], new_records)
        predicted_ids = {p.match_id for p in predictions}
        previously_failed = set(current.failed_match_ids) if current else set()
        unresolved = sorted((previously_failed | failed_ids) - predicted_ids)

        aggregate = DailyAggregate(
            date=ctx.date,
            generated_at=current.generated_at if current else now,
            updated_at=now,
            model=ctx.model,
            total_matches=ctx.total_matches,
            featured_matches=ctx.featured_matches,
            processed=len(predicted_ids),
            failures=len(unresolved),
            failed_match_ids=unresolved,
            models_used=dict(Counter(p.model for p in predictions)),
            fetch_mode=ctx.fetch_mode,
            using_fallback_all_matches=ctx.using_fallback,
            version=(current.version + 1) if current else 1,
            predictions=predictions,
        )
        await self.store.put(daily_aggregate_key(ctx.date), aggregate.model_dump(mode="json"))
        return aggregate

    async def _save_progress(
        self,
        ctx: _RunContext,
        state: ControllerState,
        aggregate: Optional[DailyAggregate],
        failures: dict[int, PredictionFailure],
        last_status: Optional[str] = None,
    ) -> ProgressState:
        remaining = ctx.pending + ctx.remaining_after_wave
        predicted_ids = aggregate.match_ids() if aggregate else set()
        unresolved = [mid for mid in failures if mid not in predicted_ids]
        progress = ProgressState(
            date=ctx.date,
            predicted=len(predicted_ids),
            remaining=remaining,
            failures=len(unresolved),
            delay_ms=state.delay_ms,
            concurrency=state.concurrency,
            consecutive_rate_limited=state.consecutive_rate_limited,
            circuit_open=state.circuit_open,
            circuit_breaks=state.circuit_breaks,
            waves=ctx.prior_waves + ctx.waves,
            done=remaining == 0 and not unresolved,
            last_status=last_status,
            updated_at=self._clock().isoformat(),
        )
        await self.store.put(daily_progress_key(ctx.date), progress.model_dump(mode="json"))
        return progress

    # -------------------------------------------------------------------------
    # Per-match work
    # -------------------------------------------------------------------------

    async def _predict_one(
        self, match: FixtureMatch, date: str, model: str
    ) -> tuple[Optional[PredictionRecord], Optional[PredictionFailure], WaveOutcome]:
        try:
            outcome = await self.chain.predict(match, preferred_model=model)
        except ProviderError as e:
            record_prediction_failure(e.kind.value)
            failure = PredictionFailure(
                match_id=match.match_id, error=str(e), kind=e.kind.value, attempts=e.attempts
            )
            return None, failure, WaveOutcome(
                match_id=match.match_id,
                success=False,
                rate_limited=e.rate_limited,
                retried=e.attempts > 1,
            )

        record_prediction_generated(outcome.provider, outcome.tier)
        record = PredictionRecord(
            match_id=match.match_id,
            model=outcome.model,
            provider=outcome.provider,
            tier=outcome.tier,
            date=date,
            generated_at=self._clock().isoformat(),
            attempts=outcome.attempts,
            prediction=outcome.payload,
            **match.context(),
        )
        return record, None, WaveOutcome(
            match_id=match.match_id, success=True, retried=outcome.retried
        )

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def _select_working_set(self, matches: list[FixtureMatch]) -> tuple[list[FixtureMatch], int]:
        """Featured matches, else the first `fallback_limit` matches. Deduplicated by id."""
        seen: set[int] = set()
        unique = []
        for match in matches:
            if match.match_id not in seen:
                seen.add(match.match_id)
                unique.append(match)
        featured = [m for m in unique if is_featured(m.league_id)]
        if featured:
            return featured, len(featured)
        return unique[: self.fallback_limit], 0

    async def run_wave(self, date: Optional[str] = None, options: Optional[RunOptions] = None) -> RunResult:
        """
        Run (or resume) prediction generation for a date.

        Raises:
            InvalidDateError: date is not YYYY-MM-DD.
            ConfigurationError: the primary provider has no credentials.
            FixtureFetchError: the fixture lookup failed.
            StateStoreError: the store could not be read or written.
        """
        date = parse_target_date(date)
        options = options or RunOptions()
        model = self.chain.require_configured(options.preferred_model)
        featured_only = (
            options.featured_only if options.featured_only is not None
            else get_settings().FEATURED_ONLY_FETCH
        )
        fetch_mode = "featured-only" if featured_only else "global"

        matches = await self.fixtures.get_fixtures(date, featured_only=featured_only)
        if not matches:
            logger.info(f"No matches found for {date}")
            return RunResult(date=date, status=STATUS_NO_MATCHES, model=model, fetch_mode=fetch_mode)

        existing = await self.load_aggregate(date)
        progress = await self.load_progress(date)

        if existing is not None and not options.force and not options.resume:
            logger.info(f"Skipping {date}: daily aggregate exists (use force or resume)")
            return RunResult(
                date=date,
                status=STATUS_SKIPPED,
                reason="already-generated",
                model=existing.model,
                processed=existing.processed,
                models_used=existing.models_used,
                total_matches=existing.total_matches,
                featured_matches=existing.featured_matches,
                using_fallback_all_matches=existing.using_fallback_all_matches,
                fetch_mode=existing.fetch_mode,
            )

        working, featured_count = self._select_working_set(matches)
        if options.resume and existing is not None:
            done_ids = existing.match_ids()
            working = [m for m in working if m.match_id not in done_ids]

        remaining_after_wave = 0
        if options.wave_size and len(working) > options.wave_size:
            remaining_after_wave = len(working) - options.wave_size
            working = working[: options.wave_size]

        logger.info(
            f"Run {date}: featured={featured_count} total={len(matches)} "
            f"using={len(working)} remaining_after_wave={remaining_after_wave} mode={fetch_mode}"
        )

        resuming = options.resume and progress is not None
        state = self.controller.new_state(progress if resuming else None)
        ctx = _RunContext(
            date=date,
            model=model,
            total_matches=len(matches),
            featured_matches=featured_count,
            using_fallback=featured_count == 0,
            fetch_mode=fetch_mode,
            remaining_after_wave=remaining_after_wave,
            prior_waves=progress.waves if resuming else 0,
            pending=len(working),
        )

        aggregate = existing
        generated: list[PredictionRecord] = []
        failures: dict[int, PredictionFailure] = {}
        pending = list(working)
        paused_until: Optional[str] = None

        while pending:
            if ctx.waves > 0:
                await self.controller.pace(state)
            paused_until = await self.controller.paused_until(self.store, date)
            if paused_until:
                logger.info(f"Run {date} paused until {paused_until}")
                break

            wave = pending[: state.concurrency]
            pending = pending[len(wave):]
            ctx.pending = len(pending)

            results = await asyncio.gather(*(self._predict_one(m, date, model) for m in wave))

            wave_records = []
            outcomes = []
            for record, failure, outcome in results:
                outcomes.append(outcome)
                if record is not None:
                    wave_records.append(record)
                    failures.pop(record.match_id, None)
                else:
                    failures[failure.match_id] = failure
            ctx.waves += 1

            for record in wave_records:
                await self.store.put(
                    prediction_key(record.match_id, record.model, date),
                    record.model_dump(mode="json"),
                )
            generated.extend(wave_records)
            aggregate = await self._merge_aggregate(ctx, wave_records, set(failures))

            async def persist_break(agg=aggregate):
                await self._save_progress(ctx, state, agg, failures, last_status="circuit-open")

            await self.controller.after_wave(state, outcomes, persist=persist_break)
            await self._save_progress(ctx, state, aggregate, failures, last_status="running")

        if paused_until:
            status = STATUS_PAUSED
        elif pending or remaining_after_wave or failures:
            status = STATUS_PARTIAL
        else:
            status = STATUS_COMPLETED

        # Final write also covers runs with an empty working set
        aggregate = await self.load_aggregate(date)
        await self._save_progress(ctx, state, aggregate, failures, last_status=status)

        models_used = dict(Counter(r.model for r in generated))
        logger.info(
            f"Run {date} {status}: generated={len(generated)} failures={len(failures)} "
            f"processed={aggregate.processed if aggregate else 0} waves={ctx.waves}"
        )
        return RunResult(
            date=date,
            status=status,
            model=model,
            processed=aggregate.processed if aggregate else 0,
            generated=len(generated),
            failures=list(failures.values()),
            models_used=models_used,
            remaining_after_wave=remaining_after_wave + len(pending),
            total_matches=len(matches),
            featured_matches=featured_count,
            using_fallback_all_matches=featured_count == 0,
            fetch_mode=fetch_mode,
            waves=ctx.waves,
            paused_until=paused_until,
            controller=state.snapshot(),
        )
