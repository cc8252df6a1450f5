"""Separates table-derived findings from free-text findings.

A raw table whose header row names an issue-description column is flattened
into one structured-row finding per data row. The table itself stays in the
table view, so a fragment may be visible in both views; only the
authoritative finding set avoids counting a flattened table twice.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, replace

from inspection_import.findings.classifier import classify
from inspection_import.findings.models import (
    Finding,
    InspectionType,
    RawFragment,
    TableCell,
)
from inspection_import.logging.logger import Log

_DESCRIPTION_HEADERS = ("issue description", "description", "defect")
_LOCATION_HEADERS = ("location", "position", "area")
_ASSIGNMENT_HEADERS = ("assignment", "department", "assigned to", "responsible")


@dataclass(frozen=True)
class ColumnLayout:
    """Column indices recognized from a table header row."""

    description: int
    location: int | None = None
    assignment: int | None = None


@dataclass(frozen=True)
class ReconciledDocument:
    """The three views over one document's fragments."""

    structured_rows: tuple[Finding, ...]
    tables: tuple[Finding, ...]
    free_text: tuple[Finding, ...]
    flattened_tables: tuple[Finding, ...] = ()

    @property
    def findings(self) -> list[Finding]:
        """Authoritative finding set: rows, unflattened tables, free text."""
        unflattened = [t for t in self.tables if t not in self.flattened_tables]
        return [*self.structured_rows, *unflattened, *self.free_text]


def detect_columns(cells: Iterable[TableCell]) -> ColumnLayout | None:
    """Find description/location/assignment columns in header row 0."""
    description: int | None = None
    location: int | None = None
    assignment: int | None = None
    for cell in sorted(cells, key=lambda c: c.column_index):
        if cell.row_index != 0:
            continue
        header = cell.text.lower()
        if description is None and any(k in header for k in _DESCRIPTION_HEADERS):
            description = cell.column_index
        if location is None and any(k in header for k in _LOCATION_HEADERS):
            location = cell.column_index
        if assignment is None and any(k in header for k in _ASSIGNMENT_HEADERS):
            assignment = cell.column_index
    if description is None:
        return None
    return ColumnLayout(description=description, location=location, assignment=assignment)


class TableReconciler:
    """Partitions a document's fragments into structured rows, tables and free text."""

    def reconcile(
        self,
        fragments: Iterable[RawFragment],
        inspection_type: str | InspectionType | None = None,
    ) -> ReconciledDocument:
        structured: list[Finding] = []
        tables: list[Finding] = []
        flattened: list[Finding] = []
        free_text: list[Finding] = []

        for fragment in fragments:
            if fragment.is_structured_row and fragment.text:
                structured.append(self._classify_row_fragment(fragment, inspection_type))
            elif fragment.is_table or fragment.table_cells:
                table = self._summarize_table(fragment, inspection_type)
                tables.append(table)
                rows = self._flatten_rows(fragment, inspection_type)
                if rows:
                    structured.extend(rows)
                    flattened.append(table)
            else:
                free_text.append(self._classify_text(fragment, inspection_type))

        Log.debug(
            f"Reconciled fragments: {len(structured)} structured rows, "
            f"{len(tables)} tables ({len(flattened)} flattened), "
            f"{len(free_text)} free-text"
        )
        return ReconciledDocument(
            structured_rows=tuple(structured),
            tables=tuple(tables),
            free_text=tuple(free_text),
            flattened_tables=tuple(flattened),
        )

    @staticmethod
    def _classify_text(
        fragment: RawFragment,
        inspection_type: str | InspectionType | None,
    ) -> Finding:
        return classify(
            fragment.text,
            fragment.category,
            fragment.severity,
            fragment.department,
            inspection_type=inspection_type,
            confidence=fragment.confidence,
            bounding_box=fragment.bounding_box,
            location=fragment.location,
        )

    def _classify_row_fragment(
        self,
        fragment: RawFragment,
        inspection_type: str | InspectionType | None,
    ) -> Finding:
        finding = self._classify_text(fragment, inspection_type)
        return replace(
            finding,
            is_structured_row=True,
            is_table=fragment.is_table,
            table_cells=fragment.table_cells,
        )

    @staticmethod
    def _summarize_table(
        fragment: RawFragment,
        inspection_type: str | InspectionType | None,
    ) -> Finding:
        cells = fragment.table_cells
        cell_text = " ".join(c.text for c in cells if c.text.strip())
        if cells:
            confidence = math.fsum(c.confidence for c in cells) / len(cells)
            rows = len({c.row_index for c in cells})
            columns = len({c.column_index for c in cells})
        else:
            confidence = fragment.confidence
            rows = columns = 0
        text = fragment.text.strip() or f"Table with {rows} rows and {columns} columns"
        summary = classify(
            cell_text or text,
            fragment.category,
            fragment.severity,
            fragment.department,
            inspection_type=inspection_type,
            confidence=confidence,
            bounding_box=fragment.bounding_box,
            location=fragment.location,
        )
        return replace(summary, text=text, is_table=True, table_cells=cells)

    @staticmethod
    def _flatten_rows(
        fragment: RawFragment,
        inspection_type: str | InspectionType | None,
    ) -> list[Finding]:
        layout = detect_columns(fragment.table_cells)
        if layout is None:
            return []

        by_position = {(c.row_index, c.column_index): c for c in fragment.table_cells}
        row_indices = sorted({c.row_index for c in fragment.table_cells if c.row_index > 0})
        rows: list[Finding] = []
        for row_index in row_indices:
            description = by_position.get((row_index, layout.description))
            if description is None or not description.text.strip():
                continue
            aligned = [description]
            location = None
            if layout.location is not None:
                location = by_position.get((row_index, layout.location))
            assignment = None
            if layout.assignment is not None:
                assignment = by_position.get((row_index, layout.assignment))
            aligned.extend(c for c in (location, assignment) if c is not None)

            finding = classify(
                description.text,
                department=assignment.text if assignment else None,
                inspection_type=inspection_type,
                confidence=description.confidence,
                location=location.text if location else None,
            )
            rows.append(
                replace(
                    finding,
                    is_structured_row=True,
                    table_cells=tuple(
                        TableCell(
                            row_index=row_index,
                            column_index=c.column_index,
                            text=c.text.strip(),
                            confidence=c.confidence,
                        )
                        for c in aligned
                    ),
                )
            )
        return rows
