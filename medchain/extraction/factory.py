from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import ClassVar

from medchain.config.settings import Settings
from medchain.extraction.base import BaseTextExtractor
from medchain.extraction.docx_adapter import DocxAdapter
from medchain.extraction.pdfplumber_adapter import PdfPlumberAdapter
from medchain.extraction.pymupdf_adapter import PyMuPdfAdapter
from medchain.pipeline.exceptions import ExtractionError, InputError


class DocumentExtractor:
    """Routes a document to the adapter registered for its file extension.

    Each extraction runs on a worker thread so it can be abandoned once the
    timeout passes; the abandoned parse finishes in the background.
    """

    def __init__(
        self,
        adapters: dict[str, BaseTextExtractor],
        timeout_seconds: float,
    ) -> None:
        self._adapters = adapters
        self._timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="extract")

    @property
    def supported_extensions(self) -> frozenset[str]:
        return frozenset(self._adapters)

    def extract(self, data: bytes, extension: str) -> str:
        """Extract raw text.

        Raises:
            InputError: if the extension has no adapter.
            ExtractionError: if parsing fails or exceeds the timeout.
        """
        adapter = self._adapters.get(extension.lower())
        if adapter is None:
            raise InputError(
                f"Unsupported file type '{extension}'. "
                f"Supported: {sorted(self._adapters)}"
            )
        future = self._executor.submit(adapter.extract, data)
        try:
            return future.result(timeout=self._timeout_seconds)
        except FutureTimeoutError as exc:
            future.cancel()
            raise ExtractionError(
                f"Text extraction exceeded {self._timeout_seconds}s"
            ) from exc

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


class ExtractorFactory:
    """Creates the document extractor based on settings."""

    PDF_ADAPTERS: ClassVar[dict[str, type[BaseTextExtractor]]] = {
        "pdfplumber": PdfPlumberAdapter,
        "pymupdf": PyMuPdfAdapter,
    }

    @classmethod
    def create(cls, settings: Settings) -> DocumentExtractor:
        engine = settings.pdf_engine.lower()
        pdf_adapter_cls = cls.PDF_ADAPTERS.get(engine)
        if pdf_adapter_cls is None:
            raise ValueError(
                f"Unknown PDF engine '{engine}'. Choose from: {list(cls.PDF_ADAPTERS)}"
            )
        return DocumentExtractor(
            adapters={
                ".pdf": pdf_adapter_cls(),
                ".docx": DocxAdapter(),
            },
            timeout_seconds=settings.extraction_timeout_seconds,
        )
