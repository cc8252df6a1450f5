class HandshakeError(Exception):
    """Base exception for record-creation handshake failures.

    The finding set is untouched, so the caller may retry creation without
    re-running extraction.
    """

    kind: str = "handshake"


class HandshakeTimeoutError(HandshakeError):
    """Raised when no correlated acknowledgement arrives within the timeout."""

    kind = "timeout"


class ChannelUnavailableError(HandshakeError):
    """Raised when the message bus is closed or refuses the request."""

    kind = "channel_unavailable"


class HandshakeRejectedError(HandshakeError):
    """Raised when the correlated reply is not a 'created' acknowledgement."""

    kind = "rejected"


class DraftTooLargeError(HandshakeError):
    """Raised when the inspection draft is larger than the message bus can carry."""

    kind = "too_large"
