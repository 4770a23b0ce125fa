"""Tests for text extraction."""

import io

import pytest
from pypdf import PdfWriter

from chatbot_rag.core.exceptions import ExtractionError, UnsupportedFormatError
from chatbot_rag.services.extraction import PDF, TEXT, TextExtractor


@pytest.fixture
def extractor():
    return TextExtractor()


def _blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=72, height=72)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class TestFormatResolution:
    @pytest.mark.parametrize("content_type,expected", [
        ("application/pdf", PDF),
        ("text/plain; charset=utf-8", TEXT),
        ("text/csv", TEXT),
        ("TEXT/MARKDOWN", TEXT),
    ])
    def test_content_type_hint(self, extractor, content_type, expected):
        assert extractor.resolve_format(content_type) == expected

    def test_generic_hint_falls_back_to_extension(self, extractor):
        assert extractor.resolve_format("application/octet-stream", "Manual.PDF") == PDF
        assert extractor.resolve_format(None, "faq.csv") == TEXT

    def test_unknown_format_rejected(self, extractor):
        with pytest.raises(UnsupportedFormatError):
            extractor.resolve_format("image/png", "logo.png")

    def test_specific_hint_wins_over_extension(self, extractor):
        with pytest.raises(UnsupportedFormatError):
            extractor.resolve_format("application/zip", "notes.txt")


class TestTextExtraction:
    def test_utf8_text(self, extractor):
        assert extractor.extract("Grüße\n\nHallo".encode("utf-8"), "text/plain") == "Grüße\n\nHallo"

    def test_csv_is_text(self, extractor):
        data = b"question,answer\nhours,9-5\n"
        assert extractor.extract(data, "text/csv") == "question,answer\nhours,9-5\n"

    def test_invalid_utf8_is_coerced_not_rejected(self, extractor):
        data = b"caf\xe9 menu"
        assert extractor.extract(data, "text/plain") == "café menu"


class TestPdfExtraction:
    def test_corrupt_pdf_raises_extraction_error(self, extractor):
        with pytest.raises(ExtractionError):
            extractor.extract(b"definitely not a pdf", "application/pdf")

    def test_blank_pdf_yields_empty_text(self, extractor):
        assert extractor.extract(_blank_pdf(), "application/pdf") == ""
