import mimetypes
from pathlib import Path

from inspection_import.pipeline.models import UploadedFile

_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"%PDF", "application/pdf"),
    (b"\xff\xd8", "image/jpeg"),
    (b"\x89PNG", "image/png"),
    (b"II*\x00", "image/tiff"),
    (b"MM\x00*", "image/tiff"),
)

UNKNOWN_MEDIA_TYPE = "application/octet-stream"


def sniff_media_type(content: bytes) -> str | None:
    """Media type from the file signature, for PDF and common image formats."""
    for signature, media_type in _SIGNATURES:
        if content.startswith(signature):
            return media_type
    return None


class FileLoader:
    """Reads a document from disk into an UploadedFile."""

    def load(self, path: Path) -> UploadedFile:
        """Read file bytes and resolve the media type.

        Raises:
            FileNotFoundError: if the file does not exist.
        """
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        content = path.read_bytes()
        media_type, _ = mimetypes.guess_type(path.name)
        if media_type is None:
            media_type = sniff_media_type(content) or UNKNOWN_MEDIA_TYPE
        return UploadedFile(filename=path.name, media_type=media_type, content=content)
