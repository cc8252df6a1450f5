import asyncio
import json

from inspection_import.messaging.base import BaseMessageBus, Message
from inspection_import.messaging.exceptions import MessageBusError


class InMemoryMessageBus(BaseMessageBus):
    """In-process bus; delivery happens on a later loop iteration, like a real transport."""

    def __init__(self) -> None:
        super().__init__()
        self._closed = False
        self._deliveries: set[asyncio.Task[None]] = set()

    @property
    def is_connected(self) -> bool:
        return not self._closed

    async def publish(self, topic: str, message: Message) -> None:
        if self._closed:
            raise MessageBusError("Message bus is closed")
        try:
            # Subscribers receive an isolated copy, as they would over the wire.
            payload = json.loads(json.dumps(message))
        except (TypeError, ValueError) as exc:
            raise MessageBusError(f"Message is not JSON-serializable: {exc}") from exc
        task = asyncio.get_running_loop().create_task(self._dispatch(topic, payload))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def close(self) -> None:
        self._closed = True
        for task in list(self._deliveries):
            task.cancel()
        self._handlers.clear()
