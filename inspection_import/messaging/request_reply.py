"""Correlated request/reply over a publish/subscribe bus.

Every request carries a fresh ``requestId``; one subscription on the reply
topic routes replies to the future registered under that id. Replies with an
unknown or expired id are dropped, so concurrent requests never receive each
other's replies.
"""

import asyncio
import uuid

from inspection_import.logging.logger import Log
from inspection_import.messaging.base import BaseMessageBus, Message, Subscription
from inspection_import.messaging.exceptions import MessageBusError

CORRELATION_KEY = "requestId"


class RequestReplyChannel:
    def __init__(self, bus: BaseMessageBus, request_topic: str, reply_topic: str) -> None:
        self._bus = bus
        self._request_topic = request_topic
        self._reply_topic = reply_topic
        self._pending: dict[str, asyncio.Future[Message]] = {}
        self._subscription: Subscription | None = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def request(self, message: Message, timeout_seconds: float) -> Message:
        """Publish ``message`` and wait for the reply carrying the same request id.

        Raises:
            MessageBusError: if the bus is unavailable.
            TimeoutError: if no correlated reply arrives within the timeout.
        """
        if not self._bus.is_connected:
            raise MessageBusError("Message bus is not connected")
        await self._ensure_subscribed()

        request_id = str(message.get(CORRELATION_KEY) or uuid.uuid4())
        future: asyncio.Future[Message] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._bus.publish(self._request_topic, {**message, CORRELATION_KEY: request_id})
            return await asyncio.wait_for(future, timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise TimeoutError(
                f"No reply on '{self._reply_topic}' for request {request_id} "
                f"within {timeout_seconds:g}s"
            ) from exc
        finally:
            self._pending.pop(request_id, None)

    async def close(self) -> None:
        if self._subscription is not None:
            self._bus.unsubscribe(self._subscription)
            self._subscription = None
        for future in self._pending.values():
            if not future.done():
                future.set_exception(MessageBusError("Request/reply channel closed"))
        self._pending.clear()

    async def _ensure_subscribed(self) -> None:
        if self._subscription is None:
            self._subscription = await self._bus.subscribe(self._reply_topic, self._on_reply)

    def _on_reply(self, message: Message) -> None:
        request_id = message.get(CORRELATION_KEY)
        future = self._pending.get(str(request_id)) if request_id is not None else None
        if future is None or future.done():
            Log.debug(f"Dropping uncorrelated reply for request {request_id}")
            return
        future.set_result(message)
