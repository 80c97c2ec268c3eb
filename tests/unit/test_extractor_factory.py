import time
from unittest.mock import MagicMock

import pytest

from medchain.extraction.docx_adapter import DocxAdapter
from medchain.extraction.factory import DocumentExtractor, ExtractorFactory
from medchain.extraction.pdfplumber_adapter import PdfPlumberAdapter
from medchain.extraction.pymupdf_adapter import PyMuPdfAdapter
from medchain.pipeline.exceptions import ExtractionError, InputError


def _make_extractor(timeout_seconds: float = 5.0) -> tuple[DocumentExtractor, MagicMock, MagicMock]:
    pdf_adapter = MagicMock()
    docx_adapter = MagicMock()
    extractor = DocumentExtractor(
        {".pdf": pdf_adapter, ".docx": docx_adapter},
        timeout_seconds=timeout_seconds,
    )
    return extractor, pdf_adapter, docx_adapter


class TestExtractorFactory:
    def test_default_engine_is_pdfplumber(self) -> None:
        settings = MagicMock(pdf_engine="pdfplumber", extraction_timeout_seconds=60.0)
        extractor = ExtractorFactory.create(settings)

        assert isinstance(extractor._adapters[".pdf"], PdfPlumberAdapter)
        assert isinstance(extractor._adapters[".docx"], DocxAdapter)
        extractor.close()

    def test_pymupdf_engine_case_insensitive(self) -> None:
        settings = MagicMock(pdf_engine="PyMuPDF", extraction_timeout_seconds=60.0)
        extractor = ExtractorFactory.create(settings)

        assert isinstance(extractor._adapters[".pdf"], PyMuPdfAdapter)
        extractor.close()

    def test_supported_extensions(self) -> None:
        settings = MagicMock(pdf_engine="pdfplumber", extraction_timeout_seconds=60.0)
        extractor = ExtractorFactory.create(settings)

        assert extractor.supported_extensions == frozenset({".pdf", ".docx"})
        extractor.close()

    def test_unknown_engine_raises(self) -> None:
        settings = MagicMock(pdf_engine="tesseract", extraction_timeout_seconds=60.0)
        with pytest.raises(ValueError, match="Unknown PDF engine 'tesseract'"):
            ExtractorFactory.create(settings)


class TestDocumentExtractor:
    def test_routes_by_extension(self) -> None:
        extractor, pdf_adapter, docx_adapter = _make_extractor()
        docx_adapter.extract.return_value = "docx text"

        assert extractor.extract(b"data", ".docx") == "docx text"
        docx_adapter.extract.assert_called_once_with(b"data")
        pdf_adapter.extract.assert_not_called()
        extractor.close()

    def test_extension_match_is_case_insensitive(self) -> None:
        extractor, pdf_adapter, _ = _make_extractor()
        pdf_adapter.extract.return_value = "pdf text"

        assert extractor.extract(b"data", ".PDF") == "pdf text"
        extractor.close()

    def test_unsupported_extension_raises_input_error(self) -> None:
        extractor, pdf_adapter, docx_adapter = _make_extractor()

        with pytest.raises(InputError, match="Unsupported file type '.txt'"):
            extractor.extract(b"plain text", ".txt")
        pdf_adapter.extract.assert_not_called()
        docx_adapter.extract.assert_not_called()
        extractor.close()

    def test_adapter_error_propagates(self) -> None:
        extractor, pdf_adapter, _ = _make_extractor()
        pdf_adapter.extract.side_effect = ExtractionError("corrupt")

        with pytest.raises(ExtractionError, match="corrupt"):
            extractor.extract(b"data", ".pdf")
        extractor.close()

    def test_slow_extraction_times_out(self) -> None:
        extractor, pdf_adapter, _ = _make_extractor(timeout_seconds=0.05)
        pdf_adapter.extract.side_effect = lambda data: time.sleep(0.5) or "late"

        with pytest.raises(ExtractionError, match="exceeded 0.05s"):
            extractor.extract(b"data", ".pdf")
        extractor.close()

    def test_extracts_real_pdf(self, sample_pdf_bytes: bytes) -> None:
        extractor = DocumentExtractor({".pdf": PdfPlumberAdapter()}, timeout_seconds=30.0)

        assert "Glucose" in extractor.extract(sample_pdf_bytes, ".pdf")
        extractor.close()
