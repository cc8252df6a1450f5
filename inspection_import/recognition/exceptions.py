class RecognitionError(Exception):
    """Raised when a recognition backend call fails."""


class RecognitionNetworkError(RecognitionError):
    """Raised when the recognition backend cannot be reached or times out."""
