from loguru import logger

from deckforge.errors import UnsupportedFormat
from deckforge.parsers.docx_parser import parse_docx
from deckforge.parsers.pdf_parser import parse_pdf
from deckforge.parsers.pptx_parser import extract_pptx_text, extract_theme_style, parse_pptx
from deckforge.schemas import ParsedDocument

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PPTX_MIME = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

SUPPORTED_MIME_TYPES = (PDF_MIME, DOCX_MIME, PPTX_MIME)


def decode(buffer: bytes, mime_type: str, file_name: str) -> ParsedDocument:
    """Decodes an uploaded PDF, DOCX or PPTX buffer into a ParsedDocument."""
    logger.debug(f"Decoding {file_name!r} ({mime_type}, {len(buffer)} bytes)")
    if mime_type == PDF_MIME:
        return parse_pdf(buffer)
    if mime_type == DOCX_MIME:
        return parse_docx(buffer)
    if mime_type == PPTX_MIME:
        return parse_pptx(buffer, file_name)
    raise UnsupportedFormat(f"Unsupported file type: {mime_type}")


__all__ = [
    "decode",
    "parse_pdf",
    "parse_docx",
    "parse_pptx",
    "extract_pptx_text",
    "extract_theme_style",
    "PDF_MIME",
    "DOCX_MIME",
    "PPTX_MIME",
    "SUPPORTED_MIME_TYPES",
]
