from abc import ABC, abstractmethod


class BaseTextExtractor(ABC):
    """Contract for all document text extraction adapters."""

    @abstractmethod
    def extract(self, data: bytes) -> str:
        """Extract plain text from document bytes.

        Args:
            data: Raw file content.

        Returns:
            Extracted text, pages or paragraphs joined with newlines.

        Raises:
            ExtractionError: if extraction fails for any reason.
        """
