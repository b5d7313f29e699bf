import os
import re
import time
from typing import Optional, Sequence

from deckforge.parsers import DOCX_MIME, PDF_MIME, PPTX_MIME
from deckforge.schemas import UploadedDocument

DOCUMENT_SEPARATOR = "\n\n---\n\n"

EXTENSION_MIME_TYPES = {
    ".pdf": PDF_MIME,
    ".docx": DOCX_MIME,
    ".pptx": PPTX_MIME,
}


def guess_mime_type(file_name: str, declared: Optional[str] = None) -> str:
    """Prefer the browser-declared type; fall back to the file extension."""
    if declared:
        return declared
    extension = os.path.splitext(file_name or "")[1].lower()
    return EXTENSION_MIME_TYPES.get(extension, "application/octet-stream")


def combine_documents(documents: Sequence[UploadedDocument]) -> str:
    # Each document is labelled with its file name
    return DOCUMENT_SEPARATOR.join(f"[{doc.name}]\n{doc.content}" for doc in documents)


def export_filename(title: str, timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    safe_title = re.sub(r"[^a-zA-Z0-9]", "_", title or "")
    return f"{safe_title}_{timestamp_ms}.pptx"
