from inspection_import.config.settings import Settings
from inspection_import.recognition.base import BaseRecognitionClient
from inspection_import.recognition.example_client_adapter import ExampleClientAdapter
from inspection_import.recognition.http_client_adapter import HttpRecognitionClient
from inspection_import.recognition.pdfplumber_adapter import PdfPlumberRecognitionClient
from inspection_import.recognition.pymupdf_adapter import PyMuPdfRecognitionClient


class RecognitionClientFactory:
    """Creates the configured recognition backend adapter."""

    LOCAL_ADAPTERS: dict[str, type[BaseRecognitionClient]] = {
        "example": ExampleClientAdapter,
        "pdfplumber": PdfPlumberRecognitionClient,
        "pymupdf": PyMuPdfRecognitionClient,
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseRecognitionClient:
        engine = settings.recognition_engine.lower()
        if engine == "http":
            return HttpRecognitionClient(
                base_url=settings.recognition_base_url,
                timeout_seconds=settings.recognition_timeout_seconds,
                analyze_path=settings.recognition_analyze_path,
                template_path=settings.recognition_template_path,
            )
        adapter_cls = cls.LOCAL_ADAPTERS.get(engine)
        if adapter_cls is None:
            raise ValueError(
                f"Unknown recognition engine '{engine}'. "
                f"Choose from: {['http', *cls.LOCAL_ADAPTERS]}"
            )
        return adapter_cls()
