# parsers.py
from __future__ import annotations
import io
import logging
import mimetypes
from typing import List, Optional

from docx import Document
from pypdf import PdfReader

from errors import ExtractionError

LOG = logging.getLogger("parsers")

# ----------------------------
# Accepted documents
# ----------------------------
PDF = "application/pdf"
DOC = "application/msword"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

ALLOWED_TYPES = {PDF, DOC, DOCX}
EXT_TO_TYPE = {"pdf": PDF, "doc": DOC, "docx": DOCX}
MAX_FILE_BYTES = 5 * 1024 * 1024  # 5 MB

# ----------------------------
# Helpers
# ----------------------------
def guess_content_type(filename: str, content_type: Optional[str] = None) -> str:
    """Trust an explicit, recognized content type; otherwise go by extension."""
    ct = (content_type or "").split(";")[0].strip().lower()
    if ct in ALLOWED_TYPES:
        return ct
    ext = filename.rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""
    if ext in EXT_TO_TYPE:
        return EXT_TO_TYPE[ext]
    return ct or mimetypes.guess_type(filename or "")[0] or ""

def check_document(filename: str, content_type: str, size: int) -> None:
    if content_type not in ALLOWED_TYPES:
        raise ExtractionError(
            "Please upload a PDF or Word document",
            {"filename": filename, "content_type": content_type},
        )
    if size > MAX_FILE_BYTES:
        raise ExtractionError(
            "File size must be less than 5MB",
            {"filename": filename, "size": size},
        )
    if size == 0:
        raise ExtractionError("File is empty", {"filename": filename})

def _clean_text(b: bytes) -> str:
    """Best-effort decode for legacy .doc binaries (no real Word parser)."""
    try:
        return b.decode("utf-8")
    except UnicodeDecodeError:
        return b.decode("latin1", errors="ignore")

def _extract_text_from_pdf(file_bytes: bytes) -> str:
    """Page text in page order; lines inside a page are joined by spaces.

    Images are ignored (no OCR).
    """
    try:
        reader = PdfReader(io.BytesIO(file_bytes))
        pages: List[str] = []
        for page in reader.pages:
            t = page.extract_text() or ""
            pages.append(" ".join(ln.strip() for ln in t.splitlines() if ln.strip()))
    except Exception as e:
        LOG.warning("[parsers] PdfReader failed: %s", e)
        raise ExtractionError("Could not read PDF document", {"reason": str(e)}) from e
    text = "\n".join(pages)
    LOG.info("[parsers] PDF pages=%d text length=%d chars", len(pages), len(text))
    return text

def _extract_text_from_docx(file_bytes: bytes) -> str:
    try:
        doc = Document(io.BytesIO(file_bytes))
    except Exception as e:
        LOG.warning("[parsers] python-docx failed: %s", e)
        raise ExtractionError("Could not read Word document", {"reason": str(e)}) from e
    text = "\n".join(p.text for p in doc.paragraphs if p.text.strip())
    LOG.info("[parsers] DOCX text length=%d chars", len(text))
    return text

# ----------------------------
# Main entry
# ----------------------------
def extract_text(filename: str, data: bytes, content_type: Optional[str] = None) -> str:
    """Return the plain text of a resume document.

    Raises ExtractionError for unsupported types, files over 5 MB, and
    documents that cannot be read.
    """
    ct = guess_content_type(filename, content_type)
    check_document(filename, ct, len(data or b""))

    if ct == PDF:
        return _extract_text_from_pdf(data)
    if ct == DOCX:
        return _extract_text_from_docx(data)
    return _clean_text(data)
