"""Text extraction from uploaded documents."""

import io
import logging
from typing import Optional

from pypdf import PdfReader

from chatbot_rag.core.exceptions import ExtractionError, UnsupportedFormatError

logger = logging.getLogger(__name__)

PDF = "pdf"
TEXT = "text"

CONTENT_TYPE_FORMATS = {
    "application/pdf": PDF,
    "application/x-pdf": PDF,
    "text/plain": TEXT,
    "text/csv": TEXT,
    "application/csv": TEXT,
    "text/markdown": TEXT,
    "text/x-markdown": TEXT,
}

EXTENSION_FORMATS = {
    ".pdf": PDF,
    ".txt": TEXT,
    ".text": TEXT,
    ".csv": TEXT,
    ".md": TEXT,
    ".markdown": TEXT,
}

GENERIC_CONTENT_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


class TextExtractor:
    """Converts raw document bytes into plain text."""

    def resolve_format(
        self, content_type: Optional[str], filename: Optional[str] = None
    ) -> str:
        """
        Resolve the document format from a MIME hint or filename.

        Args:
            content_type: Declared content type, possibly with parameters.
            filename: Original filename, used when the hint is missing or generic.

        Returns:
            Format identifier.

        Raises:
            UnsupportedFormatError: If neither hint identifies a supported format.
        """
        mime = (content_type or "").split(";")[0].strip().lower()
        if mime in CONTENT_TYPE_FORMATS:
            return CONTENT_TYPE_FORMATS[mime]

        if mime in GENERIC_CONTENT_TYPES and filename:
            lowered = filename.lower()
            for extension, fmt in EXTENSION_FORMATS.items():
                if lowered.endswith(extension):
                    return fmt

        raise UnsupportedFormatError(
            f"Unsupported document format: content_type={content_type!r}, filename={filename!r}"
        )

    def extract(
        self, data: bytes, content_type: Optional[str], filename: Optional[str] = None
    ) -> str:
        """
        Extract plain text from document bytes.

        Args:
            data: Raw document bytes.
            content_type: Declared content type hint.
            filename: Original filename.

        Returns:
            Extracted text.

        Raises:
            UnsupportedFormatError: If the format is not recognized.
            ExtractionError: If parsing fails.
        """
        fmt = self.resolve_format(content_type, filename)
        if fmt == PDF:
            return self._extract_pdf(data)
        return self._decode_text(data)

    def _extract_pdf(self, data: bytes) -> str:
        try:
            reader = PdfReader(io.BytesIO(data))
            pages = [page.extract_text() or "" for page in reader.pages]
        except Exception as e:
            raise ExtractionError(f"Failed to parse PDF: {str(e)}") from e

        return "\n\n".join(page.strip() for page in pages if page.strip())

    def _decode_text(self, data: bytes) -> str:
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Document is not valid UTF-8, decoding bytes as latin-1")
            return data.decode("latin-1")
