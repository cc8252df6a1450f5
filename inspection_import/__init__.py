"""Quality-control document import: extraction pipeline and record handshake."""

__version__ = "0.1.0"
