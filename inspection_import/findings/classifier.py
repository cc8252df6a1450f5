"""Keyword heuristics that turn a recognized fragment into a typed Finding.

Category and severity resolve to the explicit value supplied by the recognition
backend, then the keyword heuristic over the fragment text. Department resolves
to the explicit value, then the inspection-context department, then department
keywords in the text, then "Quality Control". All functions here are pure.
"""

import re
from collections.abc import Sequence

from inspection_import.findings.models import (
    DEFAULT_CONFIDENCE,
    Finding,
    FindingCategory,
    InspectionType,
    Severity,
)

_CATEGORY_KEYWORDS: tuple[tuple[str, FindingCategory], ...] = (
    ("material", FindingCategory.MATERIAL_DEFECT),
    ("assembly", FindingCategory.ASSEMBLY_ISSUE),
    ("process", FindingCategory.PROCESS_DEVIATION),
)

_SEVERITY_KEYWORDS: tuple[tuple[tuple[str, ...], Severity], ...] = (
    (("critical", "severe"), Severity.CRITICAL),
    (("major", "significant"), Severity.MAJOR),
)

_CONTEXT_DEPARTMENTS: dict[InspectionType, str] = {
    InspectionType.IN_PROCESS: "Manufacturing",
    InspectionType.FINAL_QC: "Quality Control",
    InspectionType.EXECUTIVE_REVIEW: "Management",
    InspectionType.PDI: "Pre-Delivery",
}

_DEPARTMENT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Manufacturing", ("manufacturing", "production", "assembly", "fabrication")),
    ("Quality Control", ("quality", "inspection", "qc", "qa", "test")),
    ("Engineering", ("engineering", "design", "development", "specification")),
    ("Electrical", ("electrical", "electronic", "wiring", "circuit", "power")),
    ("Mechanical", ("mechanical", "structural", "physical", "hardware")),
    ("Materials", ("material", "composition", "supply")),
    ("Safety", ("safety", "hazard", "protection", "risk", "compliance")),
)

DEFAULT_DEPARTMENT = "Quality Control"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def _token(value: str) -> str:
    return _NON_ALNUM_RE.sub("", value.lower())


_CATEGORY_TOKENS: dict[str, FindingCategory] = {
    **{_token(c.value): c for c in FindingCategory},
    **{_token(c.name): c for c in FindingCategory},
}


def parse_inspection_type(value: str | InspectionType | None) -> InspectionType | None:
    """Return the InspectionType for a wire value, or None when absent or unknown."""
    if value is None or isinstance(value, InspectionType):
        return value
    try:
        return InspectionType(value.strip().lower())
    except ValueError:
        return None


def parse_category(value: str | FindingCategory | None) -> FindingCategory | None:
    if value is None or isinstance(value, FindingCategory):
        return value
    return _CATEGORY_TOKENS.get(_token(value))


def parse_severity(value: str | Severity | None) -> Severity | None:
    if value is None or isinstance(value, Severity):
        return value
    try:
        return Severity(value.strip().lower())
    except ValueError:
        return None


def infer_category(text: str) -> FindingCategory:
    lowered = text.lower()
    for keyword, category in _CATEGORY_KEYWORDS:
        if keyword in lowered:
            return category
    return FindingCategory.QUALITY_STANDARD_VIOLATION


def infer_severity(text: str) -> Severity:
    lowered = text.lower()
    for keywords, severity in _SEVERITY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return severity
    return Severity.MINOR


def context_department(inspection_type: str | InspectionType | None) -> str:
    """Department implied by the inspection context."""
    parsed = parse_inspection_type(inspection_type)
    if parsed is None:
        return DEFAULT_DEPARTMENT
    return _CONTEXT_DEPARTMENTS[parsed]


def infer_department(text: str, inspection_type: str | InspectionType | None = None) -> str:
    """Context department when the context is known, else the first keyword match."""
    parsed = parse_inspection_type(inspection_type)
    if parsed is not None:
        return _CONTEXT_DEPARTMENTS[parsed]
    lowered = text.lower()
    for department, keywords in _DEPARTMENT_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return department
    return DEFAULT_DEPARTMENT


def classify(
    text: str,
    category: str | FindingCategory | None = None,
    severity: str | Severity | None = None,
    department: str | None = None,
    *,
    inspection_type: str | InspectionType | None = None,
    confidence: float = DEFAULT_CONFIDENCE,
    bounding_box: Sequence[float] | None = None,
    location: str | None = None,
) -> Finding:
    """Classify one recognized fragment into a Finding.

    Args:
        text: Recognized content; also the input of the keyword heuristics.
        category: Explicit category from the backend, if any.
        severity: Explicit severity from the backend, if any.
        department: Explicit department from the backend, if any.
        inspection_type: Context used for the department when none is explicit.
        confidence: Recognition confidence, clamped into [0, 1].
        bounding_box: Optional quadrilateral of 8 numbers.
        location: Optional location on the inspected part.

    Returns:
        A fully populated Finding.
    """
    cleaned = text.strip()
    resolved_department = (department or "").strip() or infer_department(cleaned, inspection_type)
    return Finding(
        text=cleaned,
        confidence=max(0.0, min(1.0, float(confidence))),
        category=parse_category(category) or infer_category(cleaned),
        severity=parse_severity(severity) or infer_severity(cleaned),
        department=resolved_department,
        location=(location or "").strip() or None,
        bounding_box=tuple(float(v) for v in bounding_box) if bounding_box else None,
    )
