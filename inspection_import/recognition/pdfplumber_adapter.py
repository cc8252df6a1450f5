import asyncio
import io

import pdfplumber

from inspection_import.logging.logger import Log
from inspection_import.pipeline.models import UploadedFile
from inspection_import.recognition.base import BaseRecognitionClient
from inspection_import.recognition.layout import (
    error_response,
    inside,
    line_result,
    success_response,
    table_result,
    unsupported_media_response,
)
from inspection_import.recognition.models import RecognitionResponse


class PdfPlumberRecognitionClient(BaseRecognitionClient):
    """Reads text lines and ruled tables from PDFs with embedded text, using pdfplumber."""

    async def analyze(
        self,
        upload: UploadedFile,
        inspection_type: str | None = None,
    ) -> RecognitionResponse:
        if upload.media_type.lower() != "application/pdf":
            return unsupported_media_response(upload.media_type, "pdfplumber")
        try:
            results = await asyncio.to_thread(self._extract, upload.content)
        except Exception as exc:
            Log.error(f"pdfplumber extraction failed for {upload.filename}: {exc}")
            return error_response(
                500, "Failed to process document", f"pdfplumber extraction failed: {exc}"
            )
        return success_response(results)

    @staticmethod
    def _extract(pdf_bytes: bytes) -> list[dict[str, object]]:
        results: list[dict[str, object]] = []
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            for page in pdf.pages:
                table_boxes = []
                for table in page.find_tables():
                    rows = table.extract()
                    if rows:
                        table_boxes.append(table.bbox)
                        results.append(table_result(rows, table.bbox))
                for line in page.extract_text_lines():
                    text = line["text"].strip()
                    bbox = (line["x0"], line["top"], line["x1"], line["bottom"])
                    if text and not any(inside(bbox, box) for box in table_boxes):
                        results.append(line_result(text, bbox))
        return results
