import io

import docx
import pytest
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
CONTRACT_ADDRESS = "0xdbF03B407c01E7cD3CBea99509d93f8DDDC8C6FB"

REQUIRED_ENV = {
    "ENCRYPTION_SECRET": "test-deployment-secret",
    "IPFS_API_URL": "http://ipfs.test:5001",
    "LEDGER_RPC_URL": "http://ledger.test:8545",
    "LEDGER_PRIVATE_KEY": TEST_PRIVATE_KEY,
    "LEDGER_CONTRACT_ADDRESS": CONTRACT_ADDRESS,
}


@pytest.fixture()
def required_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set every required setting so Settings() can be constructed."""
    for key, value in REQUIRED_ENV.items():
        monkeypatch.setenv(key, value)
    return REQUIRED_ENV


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """Generate a minimal single-page PDF with known text content."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "Glucose 95 mg per dl")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def multi_page_pdf_bytes() -> bytes:
    """Generate a two-page lab report PDF with known text on each page."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "Lab Report Page One")
    c.drawString(72, 700, "Hemoglobin 13.5 g/dl")
    c.showPage()
    c.drawString(72, 720, "Lab Report Page Two")
    c.drawString(72, 700, "Glucose 95 mg dl")
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


@pytest.fixture()
def sample_docx_bytes() -> bytes:
    """Generate a DOCX with two paragraphs and a one-row table."""
    document = docx.Document()
    document.add_paragraph("Discharge Summary")
    document.add_paragraph("Patient stable on admission")
    table = document.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Creatinine"
    table.rows[0].cells[1].text = "1.1 mg/dl"
    buf = io.BytesIO()
    document.save(buf)
    return buf.getvalue()
