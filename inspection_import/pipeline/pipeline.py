"""Orchestrates one document submission end to end.

submit -> recognition backend -> validate -> classify/reconcile -> aggregate
-> complete stages. While the backend call is in flight, synthesized
progress ticks drive the StageTracker and the ResultStream preview.

Only one submission is active per pipeline. Every submit() bumps a
generation counter; work belonging to an older generation finishes in the
background but never touches the current session.
"""

import asyncio
import random
from dataclasses import replace

from inspection_import.config.settings import Settings
from inspection_import.findings.analytics import AnalyticsAggregator
from inspection_import.findings.classifier import classify
from inspection_import.findings.models import Finding, FindingCategory, Severity
from inspection_import.findings.reconciler import TableReconciler
from inspection_import.logging.logger import Log
from inspection_import.pipeline.exceptions import (
    InvalidInputError,
    MalformedResponseError,
    PipelineError,
    PipelineNetworkError,
    PipelineServiceError,
    SubmissionSupersededError,
)
from inspection_import.pipeline.models import PipelineResult, SubmissionHandle, UploadedFile
from inspection_import.pipeline.response_validator import (
    extract_error_detail,
    parse_recognition_body,
)
from inspection_import.pipeline.session import (
    Closed,
    FileChosen,
    RecordAcknowledged,
    RecordRejected,
    RecordRequested,
    SubmissionFailed,
    SubmissionSession,
    SubmissionStarted,
    SubmissionSucceeded,
)
from inspection_import.recognition.base import BaseRecognitionClient
from inspection_import.recognition.exceptions import RecognitionError
from inspection_import.recognition.factory import RecognitionClientFactory
from inspection_import.records.exceptions import ChannelUnavailableError, HandshakeError
from inspection_import.records.handshake import RecordCreationHandshake
from inspection_import.records.models import InspectionContext, RecordRef

STATUS_DEPARTMENT = "System"
PROGRESS_CAP = 95
PREVIEW_LIMIT = 3
PREVIEW_TEXT_LIMIT = 120

_PROGRESS_MESSAGES: tuple[tuple[int, str], ...] = (
    (20, "Analyzing document structure..."),
    (40, "Scanning for tables and formatted content..."),
    (60, "Processing text and extracting quality issues..."),
    (80, "Categorizing findings by department and severity..."),
)


class SubmissionPipeline:
    """Runs uploads through recognition and exposes the session they populate."""

    def __init__(
        self,
        client: BaseRecognitionClient,
        *,
        reconciler: TableReconciler | None = None,
        aggregator: AnalyticsAggregator | None = None,
        progress_tick_ms: int = 800,
        completion_grace_ms: int = 500,
        max_upload_size_bytes: int = 10 * 1024 * 1024,
        rng: random.Random | None = None,
    ) -> None:
        self._client = client
        self._reconciler = reconciler or TableReconciler()
        self._aggregator = aggregator or AnalyticsAggregator()
        self._tick_seconds = progress_tick_ms / 1000
        self._grace_seconds = completion_grace_ms / 1000
        self._max_upload_size = max_upload_size_bytes
        self._rng = rng or random.Random()

        self._generation = 0
        self._session = SubmissionSession()
        self._inspection_type: str | None = None
        self._ticker: asyncio.Task[None] | None = None
        self._runs: dict[int, asyncio.Task[PipelineResult]] = {}
        self._abandoned: set[asyncio.Task[PipelineResult]] = set()

    @property
    def client(self) -> BaseRecognitionClient:
        return self._client

    @property
    def session(self) -> SubmissionSession:
        return self._session

    @property
    def generation(self) -> int:
        return self._generation

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit(self, upload: UploadedFile, inspection_type: str | None = None) -> SubmissionHandle:
        """Start processing ``upload`` in a fresh session.

        Must be called from a running event loop.

        Raises:
            InvalidInputError: before any network call, for an empty, oversized,
                or non-image/non-PDF file.
        """
        self._validate(upload)
        self._abandon_current()

        self._generation += 1
        generation = self._generation
        session = SubmissionSession()
        session.apply(FileChosen(upload))
        session.apply(SubmissionStarted(generation))
        session.stages.advance(0)
        self._session = session
        self._inspection_type = inspection_type

        Log.info(
            f"Submission started: {upload.filename}",
            generation=generation,
            media_type=upload.media_type,
            size=upload.size,
            inspection_type=inspection_type,
        )
        self._status(session, f"Processing document: {upload.filename}", 1.0)
        if inspection_type:
            self._status(session, f"Using {inspection_type} inspection context for analysis", 0.95)

        loop = asyncio.get_running_loop()
        self._ticker = loop.create_task(self._synthesize_progress(generation, session))
        self._runs[generation] = loop.create_task(
            self._run(generation, session, upload, inspection_type)
        )
        return SubmissionHandle(generation=generation, filename=upload.filename)

    async def await_result(self, handle: SubmissionHandle) -> PipelineResult:
        """Wait for a submission to finish.

        Returns the completed (possibly degraded) result. A malformed backend
        response is reported through ``PipelineResult.error`` and not raised.

        Raises:
            PipelineNetworkError: backend unreachable.
            PipelineServiceError: backend answered with an error.
            SubmissionSupersededError: a newer submission or close() replaced it.
        """
        task = self._runs.get(handle.generation)
        if task is None or handle.generation != self._generation:
            raise SubmissionSupersededError(
                f"Submission {handle.generation} ({handle.filename}) was superseded"
            )
        result = await task
        if handle.generation != self._generation:
            raise SubmissionSupersededError(
                f"Submission {handle.generation} ({handle.filename}) was superseded"
            )
        return result

    def close(self) -> None:
        """Stop progress synthesis and discard the session (dialog closed).

        An already dispatched backend request keeps running; its response is
        ignored.
        """
        self._abandon_current()
        self._generation += 1
        if not self._session.stream.closed:
            self._session.stream.close()
        self._session.apply(Closed())
        Log.info("Submission session closed", generation=self._generation)

    async def create_record(
        self,
        handshake: RecordCreationHandshake,
        context: InspectionContext | None = None,
    ) -> RecordRef:
        """Create an inspection record from the completed finding set.

        Allowed once the session is Complete, and again after a failed
        handshake. The context defaults to the submission's inspection type.

        Raises:
            IllegalTransitionError: no completed result to create a record from.
            HandshakeError: the handshake failed; the session keeps its result.
        """
        session = self._session
        generation = self._generation
        session.apply(RecordRequested())
        if context is None and self._inspection_type:
            context = InspectionContext(inspection_type=self._inspection_type)
        try:
            record = await handshake.create_record(session.findings, context)
        except HandshakeError as exc:
            if generation == self._generation:
                session.apply(RecordRejected(exc))
            raise
        except asyncio.CancelledError:
            if generation == self._generation:
                session.apply(
                    RecordRejected(ChannelUnavailableError("Record creation was cancelled"))
                )
            raise
        if generation == self._generation:
            session.apply(RecordAcknowledged(record))
        return record

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def _run(
        self,
        generation: int,
        session: SubmissionSession,
        upload: UploadedFile,
        inspection_type: str | None,
    ) -> PipelineResult:
        try:
            response = await self._client.analyze(upload, inspection_type)
        except RecognitionError as exc:
            self._ensure_current(generation)
            error = PipelineNetworkError(f"Recognition service unreachable: {exc}")
            self._fail(session, error)
            raise error from exc

        self._ensure_current(generation)
        self._stop_ticker()

        if not response.ok:
            detail = extract_error_detail(response.body)
            error = PipelineServiceError(
                detail or f"Recognition service returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
            self._fail(session, error)
            raise error

        try:
            payload = parse_recognition_body(response.body)
        except MalformedResponseError as exc:
            return self._degrade(session, exc)
        except PipelineServiceError as exc:
            exc.status_code = response.status_code
            self._fail(session, exc)
            raise

        try:
            document = self._reconciler.reconcile(payload.fragments, inspection_type)
            findings = tuple(document.findings)
            analytics = self._aggregator.aggregate(findings)
        except Exception as exc:
            error = PipelineServiceError(
                f"Could not process recognition response: {exc}",
                status_code=response.status_code,
            )
            self._fail(session, error)
            raise error from exc

        result = PipelineResult(findings=findings, analytics=analytics, document=document)
        self._preview(session, findings)

        session.stages.advance(100)
        await asyncio.sleep(self._grace_seconds)
        self._ensure_current(generation)
        session.stages.finalize()
        session.stream.close()
        session.apply(SubmissionSucceeded(result))
        Log.info(
            f"Submission complete with {len(findings)} findings",
            generation=generation,
            confidence=round(analytics.confidence, 3),
        )
        return result

    def _degrade(self, session: SubmissionSession, error: MalformedResponseError) -> PipelineResult:
        Log.warning(
            f"Malformed recognition response, continuing with no findings: {error}",
            generation=self._generation,
        )
        result = PipelineResult(findings=(), analytics=self._aggregator.aggregate(()), error=error)
        self._fail(session, error, result)
        return result

    def _fail(
        self,
        session: SubmissionSession,
        error: PipelineError,
        result: PipelineResult | None = None,
    ) -> None:
        self._stop_ticker()
        if not session.stages.is_halted:
            session.stages.mark_error()
        self._status(
            session,
            f"Error: {error}",
            0.5,
            severity=Severity.CRITICAL,
        )
        session.stream.close()
        session.apply(SubmissionFailed(error, result))
        Log.error(f"Submission failed: {error}", generation=self._generation, kind=error.kind)

    # ------------------------------------------------------------------
    # Progress synthesis and preview
    # ------------------------------------------------------------------

    async def _synthesize_progress(self, generation: int, session: SubmissionSession) -> None:
        progress = 0
        while progress < PROGRESS_CAP:
            await asyncio.sleep(self._tick_seconds)
            if generation != self._generation or not session.is_processing:
                return
            previous = progress
            progress = min(progress + self._rng.randint(5, 14), PROGRESS_CAP)
            session.stages.advance(progress)
            for boundary, message in _PROGRESS_MESSAGES:
                if previous < boundary <= progress:
                    self._status(session, message, 0.9)

    def _preview(self, session: SubmissionSession, findings: tuple[Finding, ...]) -> None:
        if not findings:
            self._status(session, "Document analysis complete - no quality issues detected", 0.9)
            return
        self._status(
            session, f"Successfully analyzed document with {len(findings)} findings", 0.98
        )
        for finding in findings[:PREVIEW_LIMIT]:
            text = finding.text
            if len(text) > PREVIEW_TEXT_LIMIT:
                text = text[:PREVIEW_TEXT_LIMIT] + "..."
            session.stream.append(replace(finding, text=text))
        remaining = len(findings) - PREVIEW_LIMIT
        if remaining > 0:
            self._status(
                session, f"{remaining} more items detected - see detailed findings", 0.95
            )

    def _status(
        self,
        session: SubmissionSession,
        text: str,
        confidence: float,
        severity: Severity = Severity.MINOR,
    ) -> None:
        if session.stream.closed:
            return
        session.stream.append(
            classify(
                text,
                FindingCategory.UNCATEGORIZED,
                severity,
                STATUS_DEPARTMENT,
                confidence=confidence,
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate(self, upload: UploadedFile) -> None:
        if upload.size == 0:
            raise InvalidInputError(f"File '{upload.filename}' is empty")
        if upload.size > self._max_upload_size:
            raise InvalidInputError(
                f"File '{upload.filename}' exceeds {self._max_upload_size} bytes"
            )
        if not upload.is_accepted_type:
            raise InvalidInputError(
                f"Unsupported media type '{upload.media_type}': "
                "only images and PDF documents are accepted"
            )

    def _ensure_current(self, generation: int) -> None:
        if generation != self._generation:
            Log.info("Discarding late response of superseded submission", generation=generation)
            raise SubmissionSupersededError(f"Submission {generation} was superseded")

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _abandon_current(self) -> None:
        self._stop_ticker()
        task = self._runs.pop(self._generation, None)
        if task is not None and not task.done():
            self._abandoned.add(task)
            task.add_done_callback(self._forget_abandoned)

    def _forget_abandoned(self, task: asyncio.Task[PipelineResult]) -> None:
        self._abandoned.discard(task)
        if not task.cancelled():
            # Retrieve the outcome so a superseded failure is not reported as unhandled.
            task.exception()


def build_pipeline(settings: Settings) -> SubmissionPipeline:
    """Build a SubmissionPipeline with the configured recognition adapter."""
    return SubmissionPipeline(
        RecognitionClientFactory.create(settings),
        progress_tick_ms=settings.progress_tick_ms,
        completion_grace_ms=settings.completion_grace_ms,
        max_upload_size_bytes=settings.max_upload_size_bytes,
    )
