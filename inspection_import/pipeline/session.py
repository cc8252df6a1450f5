"""Submission session lifecycle as an explicit state machine.

    Idle -> FileSelected -> Submitting -> Complete | Failed -> Idle
    Complete -> RecordCreating -> RecordCreated | HandshakeFailed
    HandshakeFailed -> RecordCreating

Each state is a frozen variant carrying exactly the data valid in it, so a
record can only be requested from a state that holds a completed result.
"""

from dataclasses import dataclass

from inspection_import.findings.models import Analytics, Finding
from inspection_import.pipeline.exceptions import IllegalTransitionError, PipelineError
from inspection_import.pipeline.models import PipelineResult, UploadedFile
from inspection_import.pipeline.stages import StageTracker
from inspection_import.pipeline.stream import ResultStream
from inspection_import.records.exceptions import HandshakeError
from inspection_import.records.models import RecordRef


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class FileSelected:
    upload: UploadedFile


@dataclass(frozen=True)
class Submitting:
    upload: UploadedFile
    generation: int


@dataclass(frozen=True)
class Complete:
    upload: UploadedFile
    result: PipelineResult


@dataclass(frozen=True)
class Failed:
    upload: UploadedFile
    error: PipelineError
    result: PipelineResult | None = None


@dataclass(frozen=True)
class RecordCreating:
    upload: UploadedFile
    result: PipelineResult


@dataclass(frozen=True)
class RecordCreated:
    upload: UploadedFile
    result: PipelineResult
    record: RecordRef


@dataclass(frozen=True)
class HandshakeFailed:
    upload: UploadedFile
    result: PipelineResult
    error: HandshakeError


SessionState = (
    Idle
    | FileSelected
    | Submitting
    | Complete
    | Failed
    | RecordCreating
    | RecordCreated
    | HandshakeFailed
)


@dataclass(frozen=True)
class FileChosen:
    upload: UploadedFile


@dataclass(frozen=True)
class SubmissionStarted:
    generation: int


@dataclass(frozen=True)
class SubmissionSucceeded:
    result: PipelineResult


@dataclass(frozen=True)
class SubmissionFailed:
    error: PipelineError
    result: PipelineResult | None = None


@dataclass(frozen=True)
class RecordRequested:
    pass


@dataclass(frozen=True)
class RecordAcknowledged:
    record: RecordRef


@dataclass(frozen=True)
class RecordRejected:
    error: HandshakeError


@dataclass(frozen=True)
class Closed:
    pass


SessionEvent = (
    FileChosen
    | SubmissionStarted
    | SubmissionSucceeded
    | SubmissionFailed
    | RecordRequested
    | RecordAcknowledged
    | RecordRejected
    | Closed
)

_FILE_SELECTABLE = (Idle, FileSelected, Submitting, Complete, Failed, RecordCreated, HandshakeFailed)


def transition(state: SessionState, event: SessionEvent) -> SessionState:
    """Return the state reached from ``state`` on ``event``.

    Raises:
        IllegalTransitionError: if the lifecycle does not allow the move.
    """
    if isinstance(event, Closed):
        return Idle()
    if isinstance(event, FileChosen) and isinstance(state, _FILE_SELECTABLE):
        return FileSelected(event.upload)
    if isinstance(event, SubmissionStarted) and isinstance(state, FileSelected):
        return Submitting(state.upload, event.generation)
    if isinstance(state, Submitting):
        if isinstance(event, SubmissionSucceeded):
            return Complete(state.upload, event.result)
        if isinstance(event, SubmissionFailed):
            return Failed(state.upload, event.error, event.result)
    if isinstance(event, RecordRequested) and isinstance(state, (Complete, HandshakeFailed)):
        return RecordCreating(state.upload, state.result)
    if isinstance(state, RecordCreating):
        if isinstance(event, RecordAcknowledged):
            return RecordCreated(state.upload, state.result, event.record)
        if isinstance(event, RecordRejected):
            return HandshakeFailed(state.upload, state.result, event.error)
    raise IllegalTransitionError(
        f"{type(event).__name__} is not allowed in state {type(state).__name__}"
    )


class SubmissionSession:
    """Owns one upload's stages, preview stream, and lifecycle state."""

    def __init__(self) -> None:
        self.stages = StageTracker()
        self.stream = ResultStream()
        self._state: SessionState = Idle()
        self._history: list[SessionState] = [self._state]

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def history(self) -> tuple[SessionState, ...]:
        return tuple(self._history)

    def apply(self, event: SessionEvent) -> SessionState:
        self._state = transition(self._state, event)
        self._history.append(self._state)
        return self._state

    @property
    def upload(self) -> UploadedFile | None:
        return getattr(self._state, "upload", None)

    @property
    def result(self) -> PipelineResult | None:
        return getattr(self._state, "result", None)

    @property
    def findings(self) -> tuple[Finding, ...]:
        result = self.result
        return result.findings if result is not None else ()

    @property
    def analytics(self) -> Analytics | None:
        result = self.result
        return result.analytics if result is not None else None

    @property
    def is_processing(self) -> bool:
        return isinstance(self._state, Submitting)

    @property
    def show_preview(self) -> bool:
        return isinstance(self._state, Submitting) and len(self.stream) > 0

    @property
    def can_create_record(self) -> bool:
        return isinstance(self._state, (Complete, HandshakeFailed))

    @property
    def is_creating_record(self) -> bool:
        return isinstance(self._state, RecordCreating)
