import asyncio

import pymupdf

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


class PyMuPdfRecognitionClient(BaseRecognitionClient):
    """Reads text lines and tables from PDFs with embedded text, using PyMuPDF."""

    async def analyze(
        self,
        upload: UploadedFile,
        inspection_type: str | None = None,
    ) -> RecognitionResponse:
        if upload.media_type.lower() != "application/pdf":
            return unsupported_media_response(upload.media_type, "pymupdf")
        try:
            results = await asyncio.to_thread(self._extract, upload.content)
        except Exception as exc:
            Log.error(f"pymupdf extraction failed for {upload.filename}: {exc}")
            return error_response(
                500, "Failed to process document", f"pymupdf extraction failed: {exc}"
            )
        return success_response(results)

    @staticmethod
    def _extract(pdf_bytes: bytes) -> list[dict[str, object]]:
        results: list[dict[str, object]] = []
        with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
            for page in doc:
                table_boxes = []
                for table in page.find_tables().tables:
                    rows = table.extract()
                    if rows:
                        bbox = tuple(table.bbox)
                        table_boxes.append(bbox)
                        results.append(table_result(rows, bbox))
                for block in page.get_text("dict")["blocks"]:
                    if block.get("type") != 0:
                        continue
                    for line in block["lines"]:
                        text = "".join(span["text"] for span in line["spans"]).strip()
                        bbox = tuple(line["bbox"])
                        if text and not any(inside(bbox, box) for box in table_boxes):
                            results.append(line_result(text, bbox))
        return results
