import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from inspection_import.config.settings import Settings
from inspection_import.findings.models import Finding
from inspection_import.logging.logger import Log
from inspection_import.messaging.base import BaseMessageBus, Message
from inspection_import.messaging.exceptions import MessageBusError, MessageTooLargeError
from inspection_import.messaging.request_reply import RequestReplyChannel
from inspection_import.records.exceptions import (
    ChannelUnavailableError,
    DraftTooLargeError,
    HandshakeRejectedError,
    HandshakeTimeoutError,
)
from inspection_import.records.models import (
    DEFAULT_ASSIGNEE,
    DEFAULT_LOCATION,
    DefectEntry,
    InspectionContext,
    InspectionDraft,
    RecordRef,
)

DEFAULT_TIMEOUT_MS = 5000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_draft(
    findings: Sequence[Finding],
    context: InspectionContext,
    now: datetime,
) -> InspectionDraft:
    """One open defect per finding, under the context's inspection header."""
    found_at = now.isoformat()
    defects = tuple(
        DefectEntry(
            description=f.text,
            location=f.location or DEFAULT_LOCATION,
            severity=f.severity.value,
            assigned_to=f.department or DEFAULT_ASSIGNEE,
            date_found=found_at,
        )
        for f in findings
    )
    return InspectionDraft(
        type=context.inspection_type,
        project_number=f"OCR-{now.date().isoformat()}",
        inspection_date=now,
        inspector=context.inspector,
        production_line=context.production_line,
        part_number=context.part_number,
        defects_found=defects,
    )


class RecordCreationHandshake:
    """Creates an inspection record from a finding set over a request/reply channel.

    Not idempotent: each call sends a new request with a new id, so the same
    finding set submitted twice creates two records. Failures are never
    retried here.
    """

    def __init__(
        self,
        channel: RequestReplyChannel,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._channel = channel
        self._timeout_seconds = timeout_ms / 1000
        self._clock = clock

    async def create_record(
        self,
        findings: Sequence[Finding],
        context: InspectionContext | None = None,
    ) -> RecordRef:
        """Send the creation request and wait for the correlated acknowledgement.

        Raises:
            HandshakeTimeoutError: no acknowledgement within the timeout.
            DraftTooLargeError: the draft exceeds what the message bus can carry.
            ChannelUnavailableError: the message bus is closed or failing.
            HandshakeRejectedError: the reply is not a 'created' acknowledgement.
        """
        draft = build_draft(tuple(findings), context or InspectionContext(), self._clock())
        request_id = str(uuid.uuid4())
        message: Message = {"type": "create", "requestId": request_id, "payload": draft.to_dict()}
        Log.info(
            f"Requesting {draft.type} inspection record with {len(draft.defects_found)} defects",
            request_id=request_id,
        )

        try:
            reply = await self._channel.request(message, self._timeout_seconds)
        except TimeoutError as exc:
            Log.error("Record creation timed out", request_id=request_id)
            raise HandshakeTimeoutError(
                f"No acknowledgement within {self._timeout_seconds * 1000:.0f} ms"
            ) from exc
        except MessageTooLargeError as exc:
            Log.error(
                f"Inspection draft with {len(draft.defects_found)} defects is too large: {exc}",
                request_id=request_id,
            )
            raise DraftTooLargeError(str(exc)) from exc
        except MessageBusError as exc:
            Log.error(f"Record creation channel unavailable: {exc}", request_id=request_id)
            raise ChannelUnavailableError(str(exc)) from exc

        record_id = reply.get("recordId")
        if reply.get("type") != "created" or record_id in (None, ""):
            raise HandshakeRejectedError(
                f"Unexpected reply to request {request_id}: type={reply.get('type')!r}"
            )
        Log.info(f"Inspection record {record_id} created", request_id=request_id)
        return RecordRef(record_id=str(record_id), request_id=request_id)


def build_handshake(settings: Settings, bus: BaseMessageBus) -> RecordCreationHandshake:
    channel = RequestReplyChannel(
        bus,
        request_topic=settings.record_request_topic,
        reply_topic=settings.record_reply_topic,
    )
    return RecordCreationHandshake(channel, timeout_ms=settings.handshake_timeout_ms)
