from inspection_import.messaging.base import BaseMessageBus
from inspection_import.messaging.factory import MessageBusFactory
from inspection_import.messaging.memory_bus import InMemoryMessageBus
from inspection_import.messaging.request_reply import RequestReplyChannel

__all__ = ["BaseMessageBus", "InMemoryMessageBus", "MessageBusFactory", "RequestReplyChannel"]
