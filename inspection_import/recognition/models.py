from dataclasses import dataclass, field

TEMPLATE_FILENAME = "quality_inspection_template.xlsx"
TEMPLATE_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(frozen=True)
class RecognitionResponse:
    """Raw answer of a recognition backend: HTTP-like status plus body text."""

    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class TemplateArtifact:
    """Blank inspection template, passed through unchanged."""

    content: bytes = field(repr=False)
    filename: str = TEMPLATE_FILENAME
    media_type: str = TEMPLATE_MEDIA_TYPE
