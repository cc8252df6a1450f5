import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from inspection_import.logging.logger import Log

Message = dict[str, Any]
MessageHandler = Callable[[Message], Awaitable[None] | None]


@dataclass(frozen=True)
class Subscription:
    topic: str
    handler: MessageHandler


class BaseMessageBus(ABC):
    """Contract for process-wide publish/subscribe transports."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[MessageHandler]] = {}

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether publish() can currently succeed."""

    @abstractmethod
    async def publish(self, topic: str, message: Message) -> None:
        """Send a JSON-serializable message to every subscriber of ``topic``.

        Raises:
            MessageBusError: if the bus is closed or rejects the message.
        """

    async def connect(self) -> None:
        """Open underlying resources. No-op for in-process buses."""

    async def close(self) -> None:
        """Release underlying resources."""

    async def subscribe(self, topic: str, handler: MessageHandler) -> Subscription:
        self._handlers.setdefault(topic, []).append(handler)
        return Subscription(topic=topic, handler=handler)

    def unsubscribe(self, subscription: Subscription) -> None:
        handlers = self._handlers.get(subscription.topic, [])
        if subscription.handler in handlers:
            handlers.remove(subscription.handler)

    async def _dispatch(self, topic: str, message: Message) -> None:
        for handler in list(self._handlers.get(topic, [])):
            try:
                result = handler(message)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                Log.error(f"Handler for topic '{topic}' failed: {exc}")
