import io

import docx
import pytest

from deckforge.errors import DecodeFailure
from deckforge.parsers.docx_parser import extract_sections, extract_title, parse_docx


def _docx_bytes(build) -> bytes:
    document = docx.Document()
    build(document)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def test_headings_become_sections():
    def build(document):
        document.add_heading("Introduction", level=1)
        document.add_paragraph("Intro text")
        document.add_heading("Findings", level=1)
        document.add_paragraph("Finding text")

    parsed = parse_docx(_docx_bytes(build))
    assert [(s.title, s.content, s.level) for s in parsed.sections] == [
        ("Introduction", "Intro text", 1),
        ("Findings", "Finding text", 1),
    ]
    assert parsed.metadata.title == "Introduction"
    assert "Finding text" in parsed.text


def test_subheadings_keep_their_level():
    def build(document):
        document.add_paragraph("Preamble that belongs to no section")
        document.add_heading("Scope", level=1)
        document.add_paragraph("In scope")
        document.add_heading("Out of scope", level=2)
        document.add_paragraph("Legacy systems")

    parsed = parse_docx(_docx_bytes(build))
    assert [(s.title, s.level) for s in parsed.sections] == [("Scope", 1), ("Out of scope", 2)]
    assert all("Preamble" not in s.content for s in parsed.sections)
    assert "Preamble" in parsed.text


def test_document_without_headings_is_one_section():
    def build(document):
        document.add_paragraph("First paragraph")
        document.add_paragraph("Second paragraph")

    parsed = parse_docx(_docx_bytes(build))
    assert len(parsed.sections) == 1
    assert parsed.sections[0].title == "Document Content"
    assert parsed.sections[0].content == parsed.text == "First paragraph\nSecond paragraph"


def test_tables_contribute_text():
    def build(document):
        document.add_heading("Pricing", level=1)
        table = document.add_table(rows=1, cols=2)
        table.cell(0, 0).text = "Tier"
        table.cell(0, 1).text = "Gold"

    parsed = parse_docx(_docx_bytes(build))
    assert "Gold" in parsed.text
    assert "Tier" in parsed.sections[0].content


def test_title_falls_back_to_bold_then_first_line():
    assert extract_title("<p><strong>Bold Title</strong> rest</p>", "Bold Title rest") == "Bold Title"
    assert extract_title("<p>plain</p>", "\n  First line  \nSecond") == "First line"
    assert extract_title("<p>x</p>", "y" * 250) is None


def test_sections_whitespace_is_collapsed():
    sections = extract_sections("<h2>Risks</h2><p>one\n   two</p><p>three</p>", "")
    assert sections[0].content == "one two three"
    assert sections[0].level == 2


def test_invalid_and_empty_documents():
    with pytest.raises(DecodeFailure):
        parse_docx(b"not a zip")
    with pytest.raises(DecodeFailure):
        parse_docx(_docx_bytes(lambda document: None))
