"""Tests for attachment text extraction."""

from unittest.mock import MagicMock, patch

import fitz
import pytest

from engagement_hub.config.app_config import clear_config_cache
from engagement_hub.core.document_extractor import (
    NO_TEXT,
    extract_document_text,
    extract_pdf_text,
    is_pdf_file,
)

ENGLISH = (
    "Photosynthesis converts light energy into chemical energy stored in glucose. "
    "Plants, algae and some bacteria rely on it to grow."
)


@pytest.fixture(autouse=True)
def default_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    clear_config_cache()
    yield
    clear_config_cache()


def make_pdf(pages: list[str]) -> bytes:
    """Build an in-memory PDF with one text block per page."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_textbox(fitz.Rect(50, 50, 550, 800), text, fontsize=10)
    data = doc.tobytes()
    doc.close()
    return data


class TestIsPdfFile:
    """Tests for is_pdf_file."""

    def test_by_extension_or_content_type(self):
        assert is_pdf_file("Paper.PDF")
        assert is_pdf_file("upload", "application/pdf")
        assert not is_pdf_file("notes.txt", "text/plain")


class TestExtractPdfText:
    """Tests for extract_pdf_text."""

    def test_pages_marked(self):
        result = extract_pdf_text(make_pdf([ENGLISH, "Second page text"]))

        assert result.success is True
        assert result.page_count == 2
        assert result.pages_processed == 2
        assert "--- Page 1 ---\nPhotosynthesis converts" in result.text
        assert "--- Page 2 ---\nSecond page text" in result.text
        assert result.detected_language == "en"

    def test_whitespace_collapsed(self):
        result = extract_pdf_text(make_pdf(["spaced    out\n\nwords"]))
        assert "spaced out words" in result.text

    def test_page_limit_note(self):
        result = extract_pdf_text(make_pdf([f"Page {i}" for i in range(5)]), max_pages=2)

        assert result.page_count == 5
        assert result.pages_processed == 2
        assert "--- Page 3 ---" not in result.text
        assert "only the first 2 pages were processed" in result.text

    def test_truncated(self):
        result = extract_pdf_text(make_pdf([ENGLISH * 3]), max_chars=50)

        assert result.truncated is True
        assert result.text.startswith("--- Page 1 ---")
        assert "[Document truncated - Full document has" in result.text
        assert result.total_chars > 50

    def test_blank_pdf(self):
        result = extract_pdf_text(make_pdf([""]))
        assert result.text == NO_TEXT
        assert result.success is False

    def test_corrupt_pdf(self):
        result = extract_pdf_text(b"not a pdf at all")
        assert result.success is False
        assert result.text.startswith("[PDF text extraction failed")

    def test_document_closed_on_error(self):
        doc = MagicMock()
        doc.__enter__.return_value = doc
        doc.__exit__.return_value = False
        doc.__len__.side_effect = RuntimeError("broken page tree")

        with patch("engagement_hub.core.document_extractor.fitz.open", return_value=doc):
            with pytest.raises(RuntimeError):
                extract_pdf_text(b"%PDF-1.4")

        doc.__exit__.assert_called_once()


class TestExtractDocumentText:
    """Tests for extract_document_text dispatch."""

    def test_pdf(self):
        result = extract_document_text("paper.pdf", make_pdf(["Hello"]))
        assert "--- Page 1 ---" in result.text

    def test_plain_text(self):
        result = extract_document_text("notes.md", ENGLISH.encode("utf-8"))
        assert result.text == ENGLISH
        assert result.total_chars == len(ENGLISH)
        assert result.detected_language == "en"

    def test_short_text_has_no_language(self):
        assert extract_document_text("a.txt", b"hi").detected_language is None

    def test_unsupported(self):
        result = extract_document_text("slides.pptx", b"\x00\x01")
        assert result.success is False
        assert "not supported" in result.text
