import io

import pytest
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas
from reportlab.platypus import Table, TableStyle


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """Generate a single-page inspection report with known text lines."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "Critical crack in material near weld seam")
    c.drawString(72, 700, "Minor scratch on cover panel")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def table_pdf_bytes() -> bytes:
    """Generate a report with one ruled defect table below a text line."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 740, "Final inspection report")
    table = Table(
        [
            ["Issue Description", "Location", "Assignment"],
            ["Major assembly gap", "Door frame", "Manufacturing"],
            ["Loose bolt", "Hinge", "Maintenance"],
        ],
        colWidths=[200, 120, 120],
    )
    table.setStyle(TableStyle([("GRID", (0, 0), (-1, -1), 1, colors.black)]))
    _, height = table.wrapOn(c, 440, 200)
    table.drawOn(c, 72, 680 - height)
    c.save()
    return buf.getvalue()


@pytest.fixture()
def empty_pdf_bytes() -> bytes:
    """Generate a valid PDF with no text content (blank page)."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.showPage()
    c.save()
    return buf.getvalue()
