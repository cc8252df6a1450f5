from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from inspection_import.main import EXIT_INPUT_ERROR, EXIT_PROCESSING_ERROR, app
from inspection_import.recognition.exceptions import RecognitionError
from inspection_import.recognition.models import TemplateArtifact

runner = CliRunner()


@pytest.fixture(autouse=True)
def _local_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RECOGNITION_ENGINE", "pdfplumber")
    monkeypatch.setenv("COMPLETION_GRACE_MS", "0")
    monkeypatch.setenv("MESSAGE_BUS", "memory")
    monkeypatch.setenv("HANDSHAKE_TIMEOUT_MS", "20")
    # The runner swaps stdout per invocation; keep the shared logger's handlers untouched.
    monkeypatch.setattr("inspection_import.main.Log.configure", MagicMock())


class TestAnalyzeCommand:
    def test_analyzes_pdf(self, tmp_path: Path, sample_pdf_bytes: bytes) -> None:
        path = tmp_path / "report.pdf"
        path.write_bytes(sample_pdf_bytes)

        result = runner.invoke(app, ["analyze", str(path), "--inspection-type", "in-process"])

        assert result.exit_code == 0

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["analyze", str(tmp_path / "missing.pdf")])
        assert result.exit_code == EXIT_INPUT_ERROR

    def test_unsupported_file(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.txt"
        path.write_text("not a document")

        result = runner.invoke(app, ["analyze", str(path)])

        assert result.exit_code == EXIT_INPUT_ERROR

    def test_service_error(self, tmp_path: Path) -> None:
        path = tmp_path / "scan.png"
        path.write_bytes(b"\x89PNG\r\n\x1a\n....")

        result = runner.invoke(app, ["analyze", str(path)])

        assert result.exit_code == EXIT_PROCESSING_ERROR

    def test_record_creation_without_acknowledgement(self, tmp_path: Path, sample_pdf_bytes: bytes) -> None:
        path = tmp_path / "report.pdf"
        path.write_bytes(sample_pdf_bytes)

        result = runner.invoke(app, ["analyze", str(path), "--create-record"])

        assert result.exit_code == EXIT_PROCESSING_ERROR


class TestTemplateCommand:
    def test_saves_template(self, tmp_path: Path) -> None:
        client = MagicMock()
        client.download_template = AsyncMock(return_value=TemplateArtifact(content=b"PK\x03\x04"))
        client.aclose = AsyncMock()

        with patch("inspection_import.main.HttpRecognitionClient", return_value=client):
            result = runner.invoke(app, ["template", str(tmp_path / "out")])

        assert result.exit_code == 0
        assert (tmp_path / "out" / "quality_inspection_template.xlsx").read_bytes() == b"PK\x03\x04"
        client.aclose.assert_awaited_once()

    def test_download_failure(self, tmp_path: Path) -> None:
        client = MagicMock()
        client.download_template = AsyncMock(side_effect=RecognitionError("HTTP 503"))
        client.aclose = AsyncMock()

        with patch("inspection_import.main.HttpRecognitionClient", return_value=client):
            result = runner.invoke(app, ["template", str(tmp_path)])

        assert result.exit_code == EXIT_PROCESSING_ERROR
