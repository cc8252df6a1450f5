from dataclasses import dataclass, field
from datetime import datetime

from inspection_import.findings.models import InspectionType

DEFAULT_LOCATION = "Unknown"
DEFAULT_ASSIGNEE = "Quality Control"


@dataclass(frozen=True)
class InspectionContext:
    """Header values of the inspection record created from a finding set."""

    inspection_type: str = InspectionType.FINAL_QC.value
    inspector: str = "System OCR"
    production_line: str = "Assembly"
    part_number: str = ""


@dataclass(frozen=True)
class DefectEntry:
    description: str
    location: str
    severity: str
    assigned_to: str
    date_found: str
    status: str = "open"
    notes: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "description": self.description,
            "location": self.location,
            "severity": self.severity,
            "assignedTo": self.assigned_to,
            "status": self.status,
            "notes": self.notes,
            "dateFound": self.date_found,
        }


@dataclass(frozen=True)
class InspectionDraft:
    """Payload of a record-creation request."""

    type: str
    project_number: str
    inspection_date: datetime
    inspector: str
    production_line: str
    part_number: str = ""
    status: str = "open"
    defects_found: tuple[DefectEntry, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, object]:
        return {
            "type": self.type,
            "status": self.status,
            "projectNumber": self.project_number,
            "partNumber": self.part_number,
            "inspector": self.inspector,
            "inspectionDate": self.inspection_date.isoformat(),
            "productionLine": self.production_line,
            "defects": len(self.defects_found),
            "results": {
                "checklistItems": [],
                "defectsFound": [d.to_dict() for d in self.defects_found],
            },
        }


@dataclass(frozen=True)
class RecordRef:
    """Reference to an inspection record created downstream."""

    record_id: str
    request_id: str
