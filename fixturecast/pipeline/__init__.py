"""Prediction run orchestration and wave pacing."""

from fixturecast.pipeline.controller import (
    ControllerConfig,
    ControllerState,
    WaveController,
    WaveOutcome,
)
from fixturecast.pipeline.orchestrator import (
    BatchOrchestrator,
    RunOptions,
    RunResult,
    merge_predictions,
)

__all__ = [
    "ControllerConfig",
    "ControllerState",
    "WaveController",
    "WaveOutcome",
    "BatchOrchestrator",
    "RunOptions",
    "RunResult",
    "merge_predictions",
]
