"""Builds the recognition JSON contract from locally extracted PDF layout."""

import json
from collections.abc import Sequence

from inspection_import.recognition.models import RecognitionResponse

TEXT_CONFIDENCE = 0.95
TABLE_CELL_CONFIDENCE = 0.9

BBox = tuple[float, float, float, float]


def quad(bbox: BBox) -> list[float]:
    """Axis-aligned (x0, top, x1, bottom) box as 8 corner coordinates, clockwise."""
    x0, top, x1, bottom = bbox
    return [x0, top, x1, top, x1, bottom, x0, bottom]


def inside(inner: BBox, outer: BBox) -> bool:
    return (
        inner[0] >= outer[0]
        and inner[1] >= outer[1]
        and inner[2] <= outer[2]
        and inner[3] <= outer[3]
    )


def line_result(text: str, bbox: BBox) -> dict[str, object]:
    return {"text": text, "confidence": TEXT_CONFIDENCE, "boundingBox": quad(bbox)}


def table_result(rows: Sequence[Sequence[str | None]], bbox: BBox) -> dict[str, object]:
    cells = [
        {
            "rowIndex": row_index,
            "columnIndex": column_index,
            "text": (value or "").strip(),
            "confidence": TABLE_CELL_CONFIDENCE,
        }
        for row_index, row in enumerate(rows)
        for column_index, value in enumerate(row)
    ]
    return {
        "text": "",
        "confidence": TABLE_CELL_CONFIDENCE,
        "boundingBox": quad(bbox),
        "isTable": True,
        "tableCells": cells,
    }


def success_response(results: list[dict[str, object]]) -> RecognitionResponse:
    return RecognitionResponse(status_code=200, body=json.dumps({"results": results}))


def error_response(status_code: int, error: str, details: str) -> RecognitionResponse:
    return RecognitionResponse(
        status_code=status_code,
        body=json.dumps({"error": error, "details": details}),
    )


def unsupported_media_response(media_type: str, engine: str) -> RecognitionResponse:
    return error_response(
        415,
        "Unsupported media type",
        f"The {engine} engine reads PDF documents only, got '{media_type}'",
    )
