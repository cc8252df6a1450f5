from inspection_import.config.settings import Settings
from inspection_import.messaging.base import BaseMessageBus
from inspection_import.messaging.memory_bus import InMemoryMessageBus
from inspection_import.messaging.postgres_bus import PostgresMessageBus


class MessageBusFactory:
    """Creates the configured message bus."""

    BACKENDS = ("memory", "postgres")

    @classmethod
    def create(cls, settings: Settings) -> BaseMessageBus:
        backend = settings.message_bus.lower()
        if backend == "memory":
            return InMemoryMessageBus()
        if backend == "postgres":
            return PostgresMessageBus.from_settings(settings)
        raise ValueError(
            f"Unknown message bus '{backend}'. Choose from: {list(cls.BACKENDS)}"
        )
