class MessageBusError(Exception):
    """Raised when the message bus cannot accept or deliver a message."""


class MessageTooLargeError(MessageBusError):
    """Raised when a message exceeds what the transport can carry."""
