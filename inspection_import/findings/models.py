from dataclasses import dataclass, field
from enum import Enum

DEFAULT_CONFIDENCE = 0.8
NO_ISSUES_BUCKET = "No Issues Detected"


class FindingCategory(str, Enum):
    """Issue type assigned to a finding."""

    MATERIAL_DEFECT = "Material Defect"
    ASSEMBLY_ISSUE = "Assembly Issue"
    QUALITY_STANDARD_VIOLATION = "Quality Standard Violation"
    PROCESS_DEVIATION = "Process Deviation"
    UNCATEGORIZED = "Uncategorized"


class Severity(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class InspectionType(str, Enum):
    """Inspection context a document is imported under."""

    IN_PROCESS = "in-process"
    FINAL_QC = "final-qc"
    EXECUTIVE_REVIEW = "executive-review"
    PDI = "pdi"


@dataclass(frozen=True)
class TableCell:
    """One recognized table cell with its row/column provenance."""

    row_index: int
    column_index: int
    text: str
    confidence: float = 0.9


@dataclass(frozen=True)
class Finding:
    """One recognized, classified unit of evidence."""

    text: str
    confidence: float
    category: FindingCategory
    severity: Severity
    department: str
    location: str | None = None
    bounding_box: tuple[float, ...] | None = None
    is_table: bool = False
    table_cells: tuple[TableCell, ...] = ()
    is_structured_row: bool = False

    def __post_init__(self) -> None:
        if not self.text.strip():
            raise ValueError("Finding.text must be a non-empty string")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(
                f"Finding.confidence must be within [0, 1], got {self.confidence}"
            )
        if self.bounding_box is not None and len(self.bounding_box) != 8:
            raise ValueError(
                f"Finding.bounding_box must hold 8 numbers, got {len(self.bounding_box)}"
            )


@dataclass(frozen=True)
class RawFragment:
    """A recognition backend result after shape validation, before classification."""

    text: str
    confidence: float = DEFAULT_CONFIDENCE
    bounding_box: tuple[float, ...] | None = None
    category: str | None = None
    severity: str | None = None
    department: str | None = None
    location: str | None = None
    is_table: bool = False
    is_structured_row: bool = False
    table_cells: tuple[TableCell, ...] = ()


@dataclass(frozen=True)
class Analytics:
    """Distribution summary over a completed finding set."""

    issue_types: dict[str, int] = field(default_factory=dict)
    severity_distribution: dict[str, int] = field(default_factory=dict)
    confidence: float = DEFAULT_CONFIDENCE

    def to_dict(self) -> dict[str, object]:
        return {
            "issueTypes": dict(self.issue_types),
            "severityDistribution": dict(self.severity_distribution),
            "confidence": self.confidence,
        }
