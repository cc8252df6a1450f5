from abc import ABC, abstractmethod

from inspection_import.pipeline.models import UploadedFile
from inspection_import.recognition.models import RecognitionResponse


class BaseRecognitionClient(ABC):
    """Contract for all recognition backend adapters."""

    @abstractmethod
    async def analyze(
        self,
        upload: UploadedFile,
        inspection_type: str | None = None,
    ) -> RecognitionResponse:
        """Submit a document for recognition.

        Args:
            upload: The validated file to analyze.
            inspection_type: Optional inspection context forwarded to the backend.

        Returns:
            RecognitionResponse whose body follows the
            ``{results, analytics}`` / ``{error, details}`` contract.

        Raises:
            RecognitionNetworkError: on transport failure.
        """

    async def aclose(self) -> None:
        """Release network resources, if any."""
