"""Finite-state tracking of the five extraction stages.

All transitions go through :func:`transition`, a pure function over an
immutable stage tuple. :class:`StageTracker` holds the current tuple and the
highest progress seen so far.
"""

from dataclasses import dataclass, replace
from enum import Enum

from inspection_import.pipeline.exceptions import StageTransitionError


class StageStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ProcessingStage:
    name: str
    description: str
    status: StageStatus = StageStatus.PENDING


STAGE_DEFINITIONS: tuple[tuple[str, str], ...] = (
    ("Document Upload", "Uploading and validating document"),
    ("Layout Analysis", "Detecting tables and structured content"),
    ("Text Recognition", "Reading and extracting text content"),
    ("Content Analysis", "Analyzing content for quality issues"),
    ("Data Integration", "Preparing data for inspection record"),
)

# Upper bounds (exclusive) of the progress band that keeps each stage active.
_STAGE_THRESHOLDS = (20, 40, 60, 80, 95)


@dataclass(frozen=True)
class ProgressAdvanced:
    percent: int


@dataclass(frozen=True)
class CompletionConfirmed:
    pass


@dataclass(frozen=True)
class StageFailed:
    index: int


StageEvent = ProgressAdvanced | CompletionConfirmed | StageFailed
Stages = tuple[ProcessingStage, ...]


def initial_stages() -> Stages:
    return tuple(ProcessingStage(name, description) for name, description in STAGE_DEFINITIONS)


def stage_for_progress(percent: int) -> int | None:
    """Index of the stage active at ``percent``; None for the 95-99 hold band."""
    if percent == 100:
        return len(_STAGE_THRESHOLDS) - 1
    for index, threshold in enumerate(_STAGE_THRESHOLDS):
        if percent < threshold:
            return index
    return None


def _floor_index(stages: Stages) -> int:
    for index, stage in enumerate(stages):
        if stage.status is not StageStatus.COMPLETE:
            return index
    return len(stages)


def transition(stages: Stages, event: StageEvent) -> Stages:
    """Apply one event to the stage tuple and return the new tuple.

    Raises:
        StageTransitionError: on out-of-range input, a second failure, or a
            failure reported for an already completed stage.
    """
    halted = any(s.status is StageStatus.ERROR for s in stages)

    if isinstance(event, StageFailed):
        if halted:
            raise StageTransitionError("A stage has already failed")
        if not 0 <= event.index < len(stages):
            raise StageTransitionError(f"No stage at index {event.index}")
        if stages[event.index].status is StageStatus.COMPLETE:
            raise StageTransitionError(
                f"Stage '{stages[event.index].name}' is complete and cannot fail"
            )
        return tuple(
            replace(s, status=StageStatus.ERROR) if i == event.index else s
            for i, s in enumerate(stages)
        )

    if halted:
        return stages

    if isinstance(event, CompletionConfirmed):
        return tuple(replace(s, status=StageStatus.COMPLETE) for s in stages)

    if not 0 <= event.percent <= 100:
        raise StageTransitionError(f"Progress must be within 0-100, got {event.percent}")
    target = stage_for_progress(event.percent)
    if target is None or target < _floor_index(stages):
        return stages
    return tuple(
        replace(s, status=StageStatus.COMPLETE) if i < target
        else replace(s, status=StageStatus.IN_PROGRESS) if i == target
        else s
        for i, s in enumerate(stages)
    )


class StageTracker:
    """Tracks stage statuses from monotonically increasing progress signals."""

    def __init__(self) -> None:
        self._stages: Stages = initial_stages()
        self._progress = 0

    @property
    def stages(self) -> Stages:
        return self._stages

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def current_index(self) -> int | None:
        for index, stage in enumerate(self._stages):
            if stage.status is StageStatus.IN_PROGRESS:
                return index
        return None

    @property
    def is_halted(self) -> bool:
        return any(s.status is StageStatus.ERROR for s in self._stages)

    @property
    def is_complete(self) -> bool:
        return all(s.status is StageStatus.COMPLETE for s in self._stages)

    def advance(self, progress_percent: int) -> Stages:
        """Move to the stage matching ``progress_percent``; lower values are ignored."""
        if progress_percent < self._progress or self.is_halted:
            return self._stages
        self._stages = transition(self._stages, ProgressAdvanced(progress_percent))
        self._progress = progress_percent
        return self._stages

    def finalize(self) -> Stages:
        """Flip every stage to complete at once (after the completion grace period)."""
        self._stages = transition(self._stages, CompletionConfirmed())
        if not self.is_halted:
            self._progress = 100
        return self._stages

    def mark_error(self, stage_index: int | None = None) -> Stages:
        """Fail ``stage_index`` (default: the active or next pending stage)."""
        if stage_index is None:
            stage_index = self.current_index
        if stage_index is None:
            stage_index = min(_floor_index(self._stages), len(self._stages) - 1)
        self._stages = transition(self._stages, StageFailed(stage_index))
        return self._stages
