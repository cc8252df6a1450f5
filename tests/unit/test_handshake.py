import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from inspection_import.config.settings import Settings
from inspection_import.findings.classifier import classify
from inspection_import.findings.models import Finding
from inspection_import.messaging.base import Message
from inspection_import.messaging.exceptions import MessageTooLargeError
from inspection_import.messaging.memory_bus import InMemoryMessageBus
from inspection_import.messaging.request_reply import RequestReplyChannel
from inspection_import.records.exceptions import (
    ChannelUnavailableError,
    DraftTooLargeError,
    HandshakeRejectedError,
    HandshakeTimeoutError,
)
from inspection_import.records.handshake import (
    RecordCreationHandshake,
    build_draft,
    build_handshake,
)
from inspection_import.records.models import InspectionContext

REQUEST_TOPIC = "quality_inspection_create"
REPLY_TOPIC = "quality_inspection_created"
FIXED_NOW = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


def _make_findings() -> list[Finding]:
    return [
        classify("Bent bracket", inspection_type="final-qc"),
        classify("Critical weld crack", department="Welding", location="Frame"),
    ]


async def _responder(
    bus: InMemoryMessageBus,
    *,
    delay: float = 0.0,
    reply_type: str = "created",
    received: list[Message] | None = None,
) -> None:
    async def on_request(message: Message) -> None:
        if received is not None:
            received.append(message)
        await asyncio.sleep(delay)
        await bus.publish(
            REPLY_TOPIC,
            {
                "type": reply_type,
                "requestId": message["requestId"],
                "recordId": f"rec-{message['requestId']}",
            },
        )

    await bus.subscribe(REQUEST_TOPIC, on_request)


def _make_handshake(bus: InMemoryMessageBus, timeout_ms: int = 200) -> RecordCreationHandshake:
    channel = RequestReplyChannel(bus, REQUEST_TOPIC, REPLY_TOPIC)
    return RecordCreationHandshake(channel, timeout_ms=timeout_ms, clock=lambda: FIXED_NOW)


class TestBuildDraft:
    def test_one_open_defect_per_finding(self) -> None:
        draft = build_draft(_make_findings(), InspectionContext(), FIXED_NOW)

        assert draft.to_dict() == {
            "type": "final-qc",
            "status": "open",
            "projectNumber": "OCR-2026-03-14",
            "partNumber": "",
            "inspector": "System OCR",
            "inspectionDate": "2026-03-14T09:30:00+00:00",
            "productionLine": "Assembly",
            "defects": 2,
            "results": {
                "checklistItems": [],
                "defectsFound": [
                    {
                        "description": "Bent bracket",
                        "location": "Unknown",
                        "severity": "minor",
                        "assignedTo": "Quality Control",
                        "status": "open",
                        "notes": "",
                        "dateFound": "2026-03-14T09:30:00+00:00",
                    },
                    {
                        "description": "Critical weld crack",
                        "location": "Frame",
                        "severity": "critical",
                        "assignedTo": "Welding",
                        "status": "open",
                        "notes": "",
                        "dateFound": "2026-03-14T09:30:00+00:00",
                    },
                ],
            },
        }

    def test_context_overrides_header(self) -> None:
        context = InspectionContext(inspection_type="pdi", inspector="J. Doe", part_number="P-7")
        draft = build_draft([], context, FIXED_NOW)
        assert (draft.type, draft.inspector, draft.part_number) == ("pdi", "J. Doe", "P-7")
        assert draft.to_dict()["defects"] == 0


class TestRecordCreationHandshake:
    def test_acknowledged_request_returns_record(self) -> None:
        async def scenario() -> tuple[str, str, list[Message]]:
            bus = InMemoryMessageBus()
            received: list[Message] = []
            await _responder(bus, received=received)
            ref = await _make_handshake(bus).create_record(_make_findings())
            return ref.record_id, ref.request_id, received

        record_id, request_id, received = asyncio.run(scenario())

        assert record_id == f"rec-{request_id}"
        (message,) = received
        assert message["type"] == "create"
        assert message["requestId"] == request_id
        assert message["payload"]["type"] == "final-qc"
        assert message["payload"]["defects"] == 2

    def test_acknowledgement_just_inside_timeout(self) -> None:
        async def scenario() -> str:
            bus = InMemoryMessageBus()
            await _responder(bus, delay=0.05)
            ref = await _make_handshake(bus, timeout_ms=300).create_record(_make_findings())
            return ref.record_id

        assert asyncio.run(scenario()).startswith("rec-")

    def test_no_acknowledgement_times_out(self) -> None:
        async def scenario() -> None:
            bus = InMemoryMessageBus()
            await _make_handshake(bus, timeout_ms=30).create_record(_make_findings())

        with pytest.raises(HandshakeTimeoutError, match="30 ms"):
            asyncio.run(scenario())

    def test_late_acknowledgement_times_out(self) -> None:
        async def scenario() -> None:
            bus = InMemoryMessageBus()
            await _responder(bus, delay=0.2)
            await _make_handshake(bus, timeout_ms=30).create_record(_make_findings())

        with pytest.raises(HandshakeTimeoutError):
            asyncio.run(scenario())

    def test_default_timeout_is_five_seconds(self) -> None:
        async def scenario() -> None:
            bus = InMemoryMessageBus()
            await _responder(bus)
            channel = RequestReplyChannel(bus, REQUEST_TOPIC, REPLY_TOPIC)
            await RecordCreationHandshake(channel).create_record(_make_findings())

        with patch(
            "inspection_import.messaging.request_reply.asyncio.wait_for",
            wraps=asyncio.wait_for,
        ) as wait_for:
            asyncio.run(scenario())

        assert wait_for.call_args.args[1] == 5.0

    def test_closed_bus_is_channel_unavailable(self) -> None:
        async def scenario() -> None:
            bus = InMemoryMessageBus()
            await bus.close()
            await _make_handshake(bus).create_record(_make_findings())

        with pytest.raises(ChannelUnavailableError):
            asyncio.run(scenario())

    def test_channel_closed_while_waiting_is_channel_unavailable(self) -> None:
        async def scenario() -> None:
            bus = InMemoryMessageBus()
            channel = RequestReplyChannel(bus, REQUEST_TOPIC, REPLY_TOPIC)
            handshake = RecordCreationHandshake(channel, timeout_ms=5000)
            pending = asyncio.create_task(handshake.create_record(_make_findings()))
            await asyncio.sleep(0.01)
            await channel.close()
            await pending

        with pytest.raises(ChannelUnavailableError, match="channel closed"):
            asyncio.run(scenario())

    def test_large_finding_set_is_acknowledged(self) -> None:
        findings = [classify(f"Scratch on panel {i} near the left hinge") for i in range(120)]

        async def scenario() -> list[Message]:
            bus = InMemoryMessageBus()
            received: list[Message] = []
            await _responder(bus, received=received)
            await _make_handshake(bus).create_record(findings)
            return received

        (message,) = asyncio.run(scenario())
        assert message["payload"]["defects"] == 120

    def test_oversized_draft_is_reported_as_too_large(self) -> None:
        channel = MagicMock()
        channel.request = AsyncMock(side_effect=MessageTooLargeError("above the limit"))
        handshake = RecordCreationHandshake(channel)
        findings = [classify(f"Scratch {i}") for i in range(500)]

        with pytest.raises(DraftTooLargeError, match="above the limit") as exc_info:
            asyncio.run(handshake.create_record(findings))
        assert exc_info.value.kind == "too_large"

    def test_unexpected_reply_is_rejected(self) -> None:
        async def scenario() -> None:
            bus = InMemoryMessageBus()
            await _responder(bus, reply_type="error")
            await _make_handshake(bus).create_record(_make_findings())

        with pytest.raises(HandshakeRejectedError):
            asyncio.run(scenario())

    def test_not_idempotent(self) -> None:
        async def scenario() -> tuple[set[str], int]:
            bus = InMemoryMessageBus()
            received: list[Message] = []
            await _responder(bus, received=received)
            handshake = _make_handshake(bus)
            findings = _make_findings()
            first = await handshake.create_record(findings)
            second = await handshake.create_record(findings)
            return {first.record_id, second.record_id}, len(received)

        record_ids, requests = asyncio.run(scenario())

        assert len(record_ids) == 2
        assert requests == 2

    def test_concurrent_handshakes_do_not_cross_deliver(self) -> None:
        async def scenario() -> list[tuple[str, str]]:
            bus = InMemoryMessageBus()
            pending: list[Message] = []

            async def on_request(message: Message) -> None:
                pending.append(message)
                if len(pending) == 2:
                    # Reply in reverse order of arrival.
                    for request in reversed(pending):
                        await bus.publish(
                            REPLY_TOPIC,
                            {
                                "type": "created",
                                "requestId": request["requestId"],
                                "recordId": f"rec-{request['requestId']}",
                            },
                        )

            await bus.subscribe(REQUEST_TOPIC, on_request)
            first = _make_handshake(bus)
            second = _make_handshake(bus)
            refs = await asyncio.gather(
                first.create_record(_make_findings()),
                second.create_record(_make_findings()[:1]),
            )
            return [(r.record_id, r.request_id) for r in refs]

        refs = asyncio.run(scenario())

        assert all(record_id == f"rec-{request_id}" for record_id, request_id in refs)
        assert refs[0][1] != refs[1][1]


class TestBuildHandshake:
    def test_uses_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HANDSHAKE_TIMEOUT_MS", "1500")
        monkeypatch.setenv("RECORD_REPLY_TOPIC", "acks")

        async def scenario() -> None:
            bus = InMemoryMessageBus()
            handshake = build_handshake(Settings(), bus)
            with pytest.raises(HandshakeTimeoutError, match="1500 ms"):
                with patch(
                    "inspection_import.messaging.request_reply.asyncio.wait_for",
                    side_effect=asyncio.TimeoutError,
                ):
                    await handshake.create_record([])

        asyncio.run(scenario())
