import re
import threading
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

import fitz
from loguru import logger

from deckforge.errors import DecodeFailure
from deckforge.schemas import DocumentMetadata, DocumentSection, ParsedDocument

INTRODUCTION = "Introduction"
MAX_HEADER_LENGTH = 100
MAX_TITLE_LENGTH = 200

FITZ_LOCK = threading.Lock()

# Order matters: the first pattern that matches decides title and level.
HEADER_PATTERNS = [
    re.compile(r"^(\d+\.)\s+(.+)$"),  # 1. Section Name
    re.compile(r"^(\d+\.\d+)\s+(.+)$"),  # 1.1 Subsection
    re.compile(r"^([A-Z][A-Z\s]+)$"),  # ALL CAPS HEADERS
    re.compile(
        r"^(Executive Summary|Introduction|Background|Methodology|Findings|Recommendations|Conclusion|Appendix)",
        re.IGNORECASE,
    ),
]

PDF_DATE = re.compile(r"^D:(\d{4})(\d{2})?(\d{2})?(\d{2})?(\d{2})?(\d{2})?")


def match_header(line: str) -> Optional[Tuple[str, int]]:
    """Returns (title, level) when a trimmed line looks like a section header."""
    if len(line) >= MAX_HEADER_LENGTH:
        return None
    for pattern in HEADER_PATTERNS:
        match = pattern.match(line)
        if not match:
            continue
        if match.lastindex and match.lastindex >= 2:
            level = 2 if "." in match.group(1) else 1
            return match.group(2).strip(), level
        return line, 1
    return None


def split_sections(text: str) -> List[DocumentSection]:
    spans: List[Tuple[str, int, List[str]]] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        header = match_header(line)
        if header is not None:
            spans.append((header[0], header[1], []))
        elif spans:
            spans[-1][2].append(line)
        else:
            # Text before the first header
            spans.append((INTRODUCTION, 1, [line]))

    sections = [
        DocumentSection(id=str(uuid.uuid4()), title=title, content="\n".join(lines), level=level)
        for title, level, lines in spans
        if lines
    ]
    if not sections and text.strip():
        body = "\n".join(line.strip() for line in text.splitlines() if line.strip())
        sections.append(DocumentSection(id=str(uuid.uuid4()), title=INTRODUCTION, content=body, level=1))
    return sections


def infer_title(text: str) -> Optional[str]:
    for line in text.splitlines():
        candidate = line.strip()
        if candidate:
            return candidate if len(candidate) < MAX_TITLE_LENGTH else None
    return None


def parse_pdf_date(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    match = PDF_DATE.match(value.strip())
    if not match:
        return None
    parts = [int(p) if p else default for p, default in zip(match.groups(), (1, 1, 1, 0, 0, 0))]
    return datetime(*parts).isoformat()


def _read_metadata(doc) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Best-effort (title, author, created_at); any failure yields empty fields."""
    try:
        info = doc.metadata or {}
    except Exception as e:
        logger.debug(f"PDF metadata unavailable: {e}")
        return None, None, None

    title = (info.get("title") or "").strip() or None
    author = (info.get("author") or "").strip() or None
    try:
        created_at = parse_pdf_date(info.get("creationDate"))
    except (TypeError, ValueError) as e:
        logger.debug(f"Ignoring unparseable PDF creation date: {e}")
        created_at = None
    return title, author, created_at


def _extract(buffer: bytes) -> Tuple[str, int, Tuple[Optional[str], Optional[str], Optional[str]]]:
    try:
        doc = fitz.open(stream=buffer, filetype="pdf")
    except Exception as e:
        raise DecodeFailure("Failed to open PDF document", cause=e) from e

    try:
        try:
            text = "\n".join(page.get_text() for page in doc).strip()
            page_count = doc.page_count
        except Exception as e:
            raise DecodeFailure("Failed to extract text from PDF document", cause=e) from e
        return text, page_count, _read_metadata(doc)
    finally:
        doc.close()


def parse_pdf(buffer: bytes) -> ParsedDocument:
    # MuPDF is not thread-safe; section splitting below runs outside the lock
    with FITZ_LOCK:
        text, page_count, (meta_title, author, created_at) = _extract(buffer)

    if not text:
        raise DecodeFailure("PDF document contains no extractable text")

    sections = split_sections(text)
    logger.info(f"Parsed PDF: {page_count} pages, {len(text)} chars, {len(sections)} sections")
    return ParsedDocument(
        text=text,
        metadata=DocumentMetadata(
            page_count=page_count,
            title=meta_title or infer_title(text),
            author=author,
            created_at=created_at,
        ),
        sections=sections,
    )
