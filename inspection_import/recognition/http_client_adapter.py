import httpx

from inspection_import.logging.logger import Log
from inspection_import.pipeline.models import UploadedFile
from inspection_import.recognition.base import BaseRecognitionClient
from inspection_import.recognition.exceptions import RecognitionError, RecognitionNetworkError
from inspection_import.recognition.models import (
    TEMPLATE_MEDIA_TYPE,
    RecognitionResponse,
    TemplateArtifact,
)


class HttpRecognitionClient(BaseRecognitionClient):
    """Recognition adapter for the remote document-analysis service."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: int,
        analyze_path: str = "/api/ocr/analyze",
        template_path: str = "/api/manufacturing/quality/template",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._analyze_path = analyze_path
        self._template_path = template_path
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
        )

    async def analyze(
        self,
        upload: UploadedFile,
        inspection_type: str | None = None,
    ) -> RecognitionResponse:
        data = {"inspectionType": inspection_type} if inspection_type else None
        Log.debug(
            f"POST {self._analyze_path}: {upload.filename} "
            f"({upload.media_type}, {upload.size} bytes)"
        )
        try:
            response = await self._client.post(
                self._analyze_path,
                files={"file": (upload.filename, upload.content, upload.media_type)},
                data=data,
                headers={"Accept": "application/json"},
            )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise RecognitionNetworkError(f"Recognition service network error: {exc}") from exc
        except httpx.HTTPError as exc:
            raise RecognitionNetworkError(f"Recognition service transport error: {exc}") from exc
        Log.info(f"Recognition service answered HTTP {response.status_code}")
        return RecognitionResponse(status_code=response.status_code, body=response.text)

    async def download_template(self) -> TemplateArtifact:
        """Fetch the blank inspection spreadsheet under its fixed filename."""
        try:
            response = await self._client.get(self._template_path)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RecognitionError(
                f"Template download failed with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RecognitionNetworkError(f"Template download network error: {exc}") from exc
        media_type = response.headers.get("content-type", TEMPLATE_MEDIA_TYPE)
        return TemplateArtifact(content=response.content, media_type=media_type)

    async def aclose(self) -> None:
        await self._client.aclose()
