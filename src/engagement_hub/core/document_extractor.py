"""Text extraction for chat attachments.

PDF text is pulled with PyMuPDF, page by page, so it can be sent to the
model alongside a prompt. Plain-text formats are decoded as UTF-8.

Dependencies:
- pymupdf (fitz)
- langdetect
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath

import fitz
import structlog
from langdetect import DetectorFactory, detect
from langdetect.lang_detect_exception import LangDetectException

from engagement_hub.config.app_config import load_app_config

# Make langdetect deterministic
DetectorFactory.seed = 0

logger = structlog.get_logger(__name__)

TEXT_EXTENSIONS = {".txt", ".md", ".csv"}
PDF_CONTENT_TYPE = "application/pdf"
MIN_CHARS_FOR_LANGUAGE = 20
LANGUAGE_SAMPLE_CHARS = 10000

PAGE_FAILED = "[Text extraction failed for this page]"
NO_TEXT = "[No text could be extracted from this PDF]"

_WHITESPACE = re.compile(r"\s+")


@dataclass
class ExtractedDocument:
    """Text extracted from an uploaded file."""

    text: str
    page_count: int = 0
    pages_processed: int = 0
    total_chars: int = 0
    truncated: bool = False
    detected_language: str | None = None
    success: bool = True


def is_pdf_file(file_name: str, content_type: str | None = None) -> bool:
    return content_type == PDF_CONTENT_TYPE or file_name.lower().endswith(".pdf")


def extract_document_text(
    file_name: str,
    data: bytes,
    content_type: str | None = None,
) -> ExtractedDocument:
    """Extract prompt-ready text from an uploaded file.

    Never raises: failures are reported as bracketed placeholder text with
    success=False.
    """
    if is_pdf_file(file_name, content_type):
        return extract_pdf_text(data, file_name=file_name)

    extension = PurePath(file_name).suffix.lower()
    if extension in TEXT_EXTENSIONS:
        text = data.decode("utf-8", errors="replace")
        return ExtractedDocument(
            text=text,
            total_chars=len(text),
            detected_language=_detect_language(text),
        )

    logger.info("document_extractor.unsupported", file_name=file_name)
    return ExtractedDocument(
        text=f"[File type not supported for text extraction: {file_name}]",
        success=False,
    )


def extract_pdf_text(
    data: bytes,
    file_name: str = "document.pdf",
    max_pages: int | None = None,
    max_chars: int | None = None,
) -> ExtractedDocument:
    """Extract text from the first pages of a PDF.

    Each page is introduced by a "--- Page N ---" marker. Text longer than
    max_chars is cut and followed by a note giving the full size.

    Args:
        data: Raw PDF bytes
        file_name: Used for logging only
        max_pages: Pages to read (defaults to hub.max_pdf_pages)
        max_chars: Character cap (defaults to hub.max_extracted_chars)
    """
    hub = load_app_config().hub
    max_pages = max_pages or hub.max_pdf_pages
    max_chars = max_chars or hub.max_extracted_chars

    logger.info("document_extractor.pdf_start", file_name=file_name, size=len(data))

    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        logger.warning("document_extractor.pdf_failed", file_name=file_name, error=str(e))
        return ExtractedDocument(text=f"[PDF text extraction failed: {e}]", success=False)

    with doc:
        total_pages = len(doc)
        pages_to_read = min(total_pages, max_pages)
        parts = []

        for page_num in range(pages_to_read):
            try:
                page_text = _collapse(doc[page_num].get_text())
            except Exception as e:
                logger.warning(
                    "document_extractor.page_failed",
                    file_name=file_name,
                    page=page_num + 1,
                    error=str(e),
                )
                parts.append(f"--- Page {page_num + 1} ---\n{PAGE_FAILED}")
                continue

            if page_text:
                parts.append(f"--- Page {page_num + 1} ---\n{page_text}")

    if total_pages > pages_to_read:
        parts.append(
            f"--- Note ---\nThis PDF has {total_pages} pages, but only the first "
            f"{pages_to_read} pages were processed for performance reasons."
        )

    text = "\n\n".join(parts)
    total_chars = len(text)
    truncated = total_chars > max_chars
    if truncated:
        text = (
            f"{text[:max_chars]}...\n\n[Document truncated - Full document has "
            f"{total_chars} characters from {total_pages} pages]"
        )

    logger.info(
        "document_extractor.pdf_done",
        file_name=file_name,
        total_pages=total_pages,
        pages_processed=pages_to_read,
        chars=total_chars,
        truncated=truncated,
    )

    return ExtractedDocument(
        text=text or NO_TEXT,
        page_count=total_pages,
        pages_processed=pages_to_read,
        total_chars=total_chars,
        truncated=truncated,
        detected_language=_detect_language(text),
        success=bool(text),
    )


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _detect_language(text: str) -> str | None:
    """Detect language of text using langdetect.

    Returns:
        ISO 639-1 language code, or None for short or undetectable text
    """
    if len(text.strip()) < MIN_CHARS_FOR_LANGUAGE:
        return None
    try:
        return detect(text[:LANGUAGE_SAMPLE_CHARS])
    except LangDetectException as e:
        logger.debug("document_extractor.language_detection_failed", error=str(e))
        return None
