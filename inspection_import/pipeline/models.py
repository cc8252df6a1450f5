from dataclasses import dataclass, field

from inspection_import.findings.models import Analytics, Finding
from inspection_import.findings.reconciler import ReconciledDocument
from inspection_import.pipeline.exceptions import MalformedResponseError

ACCEPTED_MEDIA_PREFIXES = ("image/",)
ACCEPTED_MEDIA_TYPES = frozenset({"application/pdf"})


@dataclass(frozen=True)
class UploadedFile:
    """A file selected for import."""

    filename: str
    media_type: str
    content: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def is_accepted_type(self) -> bool:
        media_type = self.media_type.lower()
        return media_type in ACCEPTED_MEDIA_TYPES or media_type.startswith(
            ACCEPTED_MEDIA_PREFIXES
        )


@dataclass(frozen=True)
class SubmissionHandle:
    """Identifies one submission; stale once a newer submission starts."""

    generation: int
    filename: str


@dataclass(frozen=True)
class PipelineResult:
    """Completed finding set of a submission.

    ``error`` is set when the backend response was malformed and the result
    was degraded to an empty finding set.
    """

    findings: tuple[Finding, ...]
    analytics: Analytics
    document: ReconciledDocument | None = None
    error: MalformedResponseError | None = None

    @property
    def degraded(self) -> bool:
        return self.error is not None
