from inspection_import.recognition.base import BaseRecognitionClient
from inspection_import.recognition.factory import RecognitionClientFactory
from inspection_import.recognition.http_client_adapter import HttpRecognitionClient

__all__ = ["BaseRecognitionClient", "HttpRecognitionClient", "RecognitionClientFactory"]
