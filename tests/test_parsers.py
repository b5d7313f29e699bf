import io

import docx
import pytest

from deckforge.errors import DecodeFailure, DeckForgeError, UnsupportedFormat
from deckforge.parsers import DOCX_MIME, PDF_MIME, decode


def test_plain_text_is_unsupported():
    with pytest.raises(UnsupportedFormat) as exc_info:
        decode(b"hello", "text/plain", "notes.txt")
    assert "text/plain" in str(exc_info.value)
    assert isinstance(exc_info.value, DeckForgeError)


def test_decode_dispatches_on_mime_type():
    document = docx.Document()
    document.add_heading("Summary", level=1)
    document.add_paragraph("All good")
    buffer = io.BytesIO()
    document.save(buffer)

    parsed = decode(buffer.getvalue(), DOCX_MIME, "summary.docx")
    assert parsed.sections[0].title == "Summary"


def test_decode_failure_keeps_cause():
    with pytest.raises(DecodeFailure) as exc_info:
        decode(b"not a zip archive", DOCX_MIME, "broken.docx")
    assert exc_info.value.cause is not None
    assert "caused by" in str(exc_info.value)


def test_broken_pdf_is_a_decode_failure():
    with pytest.raises(DecodeFailure):
        decode(b"not a pdf", PDF_MIME, "broken.pdf")
