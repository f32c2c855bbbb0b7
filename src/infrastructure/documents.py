from __future__ import annotations

import io
import logging
import time
from pathlib import PurePath

import pdfplumber

from domain.errors import DocumentError

logger = logging.getLogger(__name__)

MAX_DOCUMENT_BYTES = 10 * 1024 * 1024

_TEXT_SUFFIXES = {".txt", ".csv", ".text"}
_IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".tif", ".tiff", ".webp", ".heic"}


def _is_pdf(suffix: str, content_type: str, data: bytes) -> bool:
    return suffix == ".pdf" or content_type == "application/pdf" or data.startswith(b"%PDF")


def extract_pdf_text(data: bytes) -> str:
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            if not pdf.pages:
                raise DocumentError("PDF has no pages")
            pages = [page.extract_text() or "" for page in pdf.pages]
    except DocumentError:
        raise
    except Exception as exc:
        raise DocumentError(f"Could not read PDF: {exc}") from exc
    return "\n".join(p for p in pages if p.strip())


def extract_document_text(filename: str, content_type: str, data: bytes) -> str:
    """
    Turn an uploaded receipt or statement into plain text for the parser.

    PDFs go through pdfplumber page by page; text files are decoded as UTF-8.
    Images are rejected since no OCR engine is wired in.
    """
    started = time.perf_counter()
    suffix = PurePath(filename or "").suffix.lower()
    content_type = (content_type or "").split(";")[0].strip().lower()

    if not data:
        raise DocumentError("Uploaded file is empty")
    if len(data) > MAX_DOCUMENT_BYTES:
        raise DocumentError(f"Uploaded file exceeds {MAX_DOCUMENT_BYTES // (1024 * 1024)} MB")

    if _is_pdf(suffix, content_type, data):
        text = extract_pdf_text(data)
        kind = "pdf"
    elif suffix in _IMAGE_SUFFIXES or content_type.startswith("image/"):
        raise DocumentError("Image uploads need OCR; upload a PDF or a text file instead")
    elif suffix in _TEXT_SUFFIXES or content_type.startswith("text/") or not suffix:
        text = data.decode("utf-8", errors="replace")
        kind = "text"
    else:
        raise DocumentError(f"Unsupported file type: {suffix or content_type}")

    if not text.strip():
        raise DocumentError("Could not extract text from document")
    logger.info(
        "Documents extracted kind=%s file=%s chars=%d in %.3fs",
        kind, filename, len(text), time.perf_counter() - started,
    )
    return text
