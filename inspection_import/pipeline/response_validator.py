"""Validates a recognition backend body and builds raw fragments from it."""

import json
from dataclasses import dataclass
from typing import Any

from inspection_import.findings.models import DEFAULT_CONFIDENCE, RawFragment, TableCell
from inspection_import.logging.logger import Log
from inspection_import.pipeline.exceptions import MalformedResponseError, PipelineServiceError

_BOUNDING_BOX_SIZE = 8


@dataclass(frozen=True)
class RecognitionPayload:
    fragments: list[RawFragment]
    skipped: int = 0


def parse_recognition_body(body: str) -> RecognitionPayload:
    """Parse a 2xx body into validated fragments.

    Raises:
        MalformedResponseError: body empty, not JSON, not an object, or
            without a ``results`` array.
        PipelineServiceError: body is an ``{error, details}`` object.
    """
    data = _load_object(body)
    if data.get("error"):
        raise PipelineServiceError(str(data.get("details") or data["error"]))
    results = data.get("results")
    if not isinstance(results, list):
        raise MalformedResponseError("Response is missing a results array")

    fragments: list[RawFragment] = []
    for index, raw in enumerate(results):
        fragment = _build_fragment(raw, index)
        if fragment is not None:
            fragments.append(fragment)
    skipped = len(results) - len(fragments)
    if skipped:
        Log.warning(f"Skipped {skipped} unusable result(s) in recognition response")
    return RecognitionPayload(fragments=fragments, skipped=skipped)


def extract_error_detail(body: str) -> str | None:
    """Backend-provided detail of an error body, if there is one."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(data, dict):
        return None
    detail = data.get("details") or data.get("error")
    return str(detail) if detail else None


def _load_object(body: str) -> dict[str, Any]:
    if not body or not body.strip():
        raise MalformedResponseError("Server returned an empty response")
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Server returned an invalid JSON response: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedResponseError("Server returned an invalid response format")
    return data


def _build_fragment(raw: Any, index: int) -> RawFragment | None:
    if not isinstance(raw, dict):
        Log.debug(f"Result at index {index} is not an object")
        return None
    is_table = raw.get("isTable") is True
    cells = _build_cells(raw.get("tableCells"))
    text = raw.get("text")
    text = text.strip() if isinstance(text, str) else ""
    if not text and not (is_table or cells):
        Log.debug(f"Result at index {index} has no text")
        return None
    return RawFragment(
        text=text,
        confidence=_confidence(raw.get("confidence")),
        bounding_box=_bounding_box(raw.get("boundingBox")),
        category=_optional_str(raw.get("category")),
        severity=_optional_str(raw.get("severity")),
        department=_optional_str(raw.get("department")),
        location=_optional_str(raw.get("location")),
        is_table=is_table,
        is_structured_row=bool(raw.get("isStructuredTableRow") or raw.get("isStructuredRow")),
        table_cells=cells,
    )


def _confidence(raw: Any) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, float(raw)))


def _bounding_box(raw: Any) -> tuple[float, ...] | None:
    if not isinstance(raw, list) or len(raw) != _BOUNDING_BOX_SIZE:
        return None
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in raw):
        return None
    return tuple(float(v) for v in raw)


def _optional_str(raw: Any) -> str | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    return raw.strip()


def _build_cells(raw: Any) -> tuple[TableCell, ...]:
    if not isinstance(raw, list):
        return ()
    cells: list[TableCell] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        row = item.get("rowIndex")
        column = item.get("columnIndex")
        if not isinstance(row, int) or not isinstance(column, int) or row < 0 or column < 0:
            continue
        text = item.get("text")
        cells.append(
            TableCell(
                row_index=row,
                column_index=column,
                text=text if isinstance(text, str) else "",
                confidence=_confidence(item.get("confidence")),
            )
        )
    return tuple(cells)
