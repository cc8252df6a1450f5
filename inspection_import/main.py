import asyncio
import json
from pathlib import Path

import typer

from inspection_import.config.settings import Settings
from inspection_import.logging.logger import Log
from inspection_import.messaging.factory import MessageBusFactory
from inspection_import.pipeline.exceptions import PipelineError
from inspection_import.pipeline.file_loader import FileLoader
from inspection_import.pipeline.models import PipelineResult
from inspection_import.pipeline.pipeline import build_pipeline
from inspection_import.recognition.exceptions import RecognitionError
from inspection_import.recognition.http_client_adapter import HttpRecognitionClient
from inspection_import.records.exceptions import HandshakeError
from inspection_import.records.handshake import build_handshake

EXIT_SUCCESS = 0
EXIT_INPUT_ERROR = 1
EXIT_PROCESSING_ERROR = 3

app = typer.Typer(
    name="inspection-import",
    help="Import quality inspection findings from scanned documents.",
    add_completion=False,
)


def _log_result(result: PipelineResult) -> None:
    for finding in result.findings:
        Log.info(
            f"[{finding.severity.value}] {finding.category.value} / {finding.department}: "
            f"{finding.text} (confidence {finding.confidence:.2f})"
        )
    Log.info(f"Analytics: {json.dumps(result.analytics.to_dict())}")


async def _analyze(settings: Settings, path: Path, inspection_type: str, create_record: bool) -> int:
    upload = FileLoader().load(path)
    pipeline = build_pipeline(settings)
    try:
        handle = pipeline.submit(upload, inspection_type)
        result = await pipeline.await_result(handle)
        _log_result(result)
        if result.degraded:
            Log.warning(f"Recognition response was malformed: {result.error}")
            return EXIT_PROCESSING_ERROR
        if not create_record:
            return EXIT_SUCCESS

        bus = MessageBusFactory.create(settings)
        await bus.connect()
        try:
            record = await pipeline.create_record(build_handshake(settings, bus))
        finally:
            await bus.close()
        Log.info(f"Created inspection record {record.record_id}")
        return EXIT_SUCCESS
    finally:
        pipeline.close()
        await pipeline.client.aclose()


async def _download_template(settings: Settings, dest_dir: Path) -> Path:
    client = HttpRecognitionClient(
        base_url=settings.recognition_base_url,
        timeout_seconds=settings.recognition_timeout_seconds,
        template_path=settings.recognition_template_path,
    )
    try:
        artifact = await client.download_template()
    finally:
        await client.aclose()
    dest_dir.mkdir(parents=True, exist_ok=True)
    target = dest_dir / artifact.filename
    target.write_bytes(artifact.content)
    return target


@app.command()
def analyze(
    path: Path = typer.Argument(..., help="Scanned inspection document (PDF or image)"),
    inspection_type: str | None = typer.Option(
        None, "--inspection-type", "-t", help="in-process, final-qc, executive-review or pdi"
    ),
    create_record: bool = typer.Option(
        False, "--create-record", help="Create an inspection record from the findings"
    ),
) -> None:
    """Extract findings from a document and optionally create an inspection record."""
    settings = Settings()
    Log.configure(settings.log_level)
    try:
        code = asyncio.run(
            _analyze(settings, path, inspection_type or settings.default_inspection_type, create_record)
        )
    except FileNotFoundError as exc:
        Log.error(str(exc))
        raise typer.Exit(EXIT_INPUT_ERROR) from None
    except PipelineError as exc:
        Log.error(f"Analysis failed ({exc.kind}): {exc}")
        code = EXIT_INPUT_ERROR if exc.kind == "invalid_input" else EXIT_PROCESSING_ERROR
        raise typer.Exit(code) from None
    except HandshakeError as exc:
        Log.error(f"Record creation failed ({exc.kind}): {exc}")
        raise typer.Exit(EXIT_PROCESSING_ERROR) from None
    raise typer.Exit(code)


@app.command()
def template(
    dest_dir: Path = typer.Argument(Path("."), help="Directory to save the blank template in"),
) -> None:
    """Download the blank quality inspection spreadsheet."""
    settings = Settings()
    Log.configure(settings.log_level)
    try:
        target = asyncio.run(_download_template(settings, dest_dir))
    except RecognitionError as exc:
        Log.error(str(exc))
        raise typer.Exit(EXIT_PROCESSING_ERROR) from None
    Log.info(f"Template saved to {target}")


def main() -> None:
    """Entry point of the inspection-import command."""
    app()


if __name__ == "__main__":
    main()
