import io
import re
import uuid
from html import escape
from typing import List, Optional, Tuple

import docx
from bs4 import BeautifulSoup
from docx.oxml.ns import qn
from docx.table import Table
from docx.text.paragraph import Paragraph
from loguru import logger

from deckforge.errors import DecodeFailure
from deckforge.schemas import DocumentMetadata, DocumentSection, ParsedDocument

FALLBACK_SECTION_TITLE = "Document Content"
HEADING_STYLE = re.compile(r"^Heading\s+(\d+)$", re.IGNORECASE)
HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
MAX_STRONG_TITLE_LENGTH = 100
MAX_TITLE_LENGTH = 200


def _heading_level(paragraph: Paragraph) -> Optional[int]:
    style = paragraph.style
    name = (style.name if style is not None else None) or ""
    if name.lower() == "title":
        return 1
    match = HEADING_STYLE.match(name)
    if match:
        return min(max(int(match.group(1)), 1), 6)
    return None


def _paragraph_html(paragraph: Paragraph) -> str:
    level = _heading_level(paragraph)
    if level is not None:
        return f"<h{level}>{escape(paragraph.text)}</h{level}>"
    parts = []
    for run in paragraph.runs:
        if not run.text:
            continue
        if run.bold:
            parts.append(f"<strong>{escape(run.text)}</strong>")
        else:
            parts.append(escape(run.text))
    return f"<p>{''.join(parts)}</p>"


def _table_html(table: Table) -> Tuple[str, List[str]]:
    rows_html, lines = [], []
    for row in table.rows:
        cells = [cell.text for cell in row.cells]
        lines.extend(c for c in cells if c.strip())
        rows_html.append("<tr>" + "".join(f"<td>{escape(c)}</td>" for c in cells) + "</tr>")
    return "<table>" + "".join(rows_html) + "</table>", lines


def render_document(document) -> Tuple[str, str]:
    """Walks the body once, returning (raw_text, html) in document order."""
    lines, html_parts = [], []
    for child in document.element.body.iterchildren():
        if child.tag == qn("w:p"):
            paragraph = Paragraph(child, document)
            lines.append(paragraph.text)
            if paragraph.text.strip():
                html_parts.append(_paragraph_html(paragraph))
        elif child.tag == qn("w:tbl"):
            table_html, table_lines = _table_html(Table(child, document))
            lines.extend(table_lines)
            html_parts.append(table_html)
    return "\n".join(lines).strip(), "".join(html_parts)


def _collapse(text: str) -> str:
    return " ".join(text.split())


def extract_sections(html: str, full_text: str) -> List[DocumentSection]:
    soup = BeautifulSoup(html, "html.parser")
    spans: List[Tuple[str, int, List[str]]] = []
    for element in soup.children:
        name = getattr(element, "name", None)
        if name in HEADING_TAGS:
            title = _collapse(element.get_text(" "))
            if title:
                spans.append((title, int(name[1]), []))
        elif spans:
            # Content before the first heading belongs to no section
            spans[-1][2].append(element.get_text(" "))

    if not spans:
        return [DocumentSection(id=str(uuid.uuid4()), title=FALLBACK_SECTION_TITLE, content=full_text, level=1)]

    return [
        DocumentSection(id=str(uuid.uuid4()), title=title, content=_collapse(" ".join(parts)), level=level)
        for title, level, parts in spans
    ]


def extract_title(html: str, full_text: str) -> Optional[str]:
    soup = BeautifulSoup(html, "html.parser")
    h1 = soup.find("h1")
    if h1 is not None and h1.get_text(strip=True):
        return h1.get_text(strip=True)
    strong = soup.find("strong")
    if strong is not None:
        text = strong.get_text(strip=True)
        if text and len(text) < MAX_STRONG_TITLE_LENGTH:
            return text
    for line in full_text.splitlines():
        candidate = line.strip()
        if candidate:
            return candidate if len(candidate) < MAX_TITLE_LENGTH else None
    return None


def _core_metadata(document) -> Tuple[Optional[str], Optional[str]]:
    try:
        props = document.core_properties
        author = props.author or None
        created_at = props.created.isoformat() if props.created else None
        return author, created_at
    except Exception as e:
        logger.debug(f"DOCX core properties unavailable: {e}")
        return None, None


def parse_docx(buffer: bytes) -> ParsedDocument:
    try:
        document = docx.Document(io.BytesIO(buffer))
        text, html = render_document(document)
    except Exception as e:
        raise DecodeFailure("Failed to parse DOCX document", cause=e) from e

    if not text:
        raise DecodeFailure("DOCX document contains no extractable text")

    author, created_at = _core_metadata(document)
    sections = extract_sections(html, text)
    logger.info(f"Parsed DOCX: {len(text)} chars, {len(sections)} sections")
    return ParsedDocument(
        text=text,
        metadata=DocumentMetadata(title=extract_title(html, text), author=author, created_at=created_at),
        sections=sections,
    )
