import json

import pytest

from deckforge.assembler import DEFAULT_DECK_TITLE, assemble, assemble_from_payload, coerce_slide
from deckforge.errors import ValidationFailure
from deckforge.schemas import BrandColors, BrandStyle, SlideType
from deckforge.styles import DARK_CORPORATE_STYLE


def _records():
    return [
        {"id": "slide-1", "type": "title", "title": "Q3 Review", "subtitle": "Board pack", "order": 9},
        {
            "type": "executive-summary",
            "title": "Margins recovered on pricing",
            "content": [{"type": "bullets", "data": {"items": [{"text": "Price up 4%"}]}}],
            "order": 9,
        },
        {"type": "roadmap", "title": "Next steps", "content": None},
    ]


def test_assemble_renumbers_and_coerces():
    deck = assemble("Q3 Review", _records(), source_documents=["doc-1"])
    assert [s.order for s in deck.slides] == [1, 2, 3]
    assert deck.slides[0].id == "slide-1"
    assert deck.slides[1].id  # generated
    assert deck.slides[2].type == SlideType.CONTENT
    assert deck.slides[2].content == []
    assert deck.source_documents == ["doc-1"]
    assert deck.created_at.tzinfo is not None
    assert deck.style.primary_color == "#003366"


def test_assemble_applies_partial_style():
    partial = {"colors": {"primary": "#112233"}}
    deck = assemble("Deck", _records(), partial_style=partial, default_style=DARK_CORPORATE_STYLE)
    assert deck.style.primary_color == "#112233"
    assert deck.style.secondary_color == "#1E293B"

    deck = assemble("Deck", _records(), partial_style=BrandStyle(colors=BrandColors(accent="#445566")))
    assert deck.style.accent_color == "#445566"


def test_empty_title_falls_back():
    assert assemble("", _records()).title == DEFAULT_DECK_TITLE
    assert assemble(None, _records()).title == DEFAULT_DECK_TITLE


def test_no_slides_is_rejected():
    with pytest.raises(ValidationFailure):
        assemble("Deck", [])


def test_slide_without_title_is_rejected():
    with pytest.raises(ValidationFailure):
        coerce_slide({"type": "content", "title": "  "})
    with pytest.raises(ValidationFailure):
        coerce_slide({"type": "content"})


def test_malformed_block_is_rejected():
    record = {"title": "Chart", "content": [{"type": "chart", "data": {"data": "not a list"}}]}
    with pytest.raises(ValidationFailure) as exc_info:
        coerce_slide(record)
    assert exc_info.value.cause is not None


def test_validation_failure_is_a_value_error():
    with pytest.raises(ValueError):
        assemble("Deck", [])


def test_assemble_from_json_payload():
    payload = json.dumps({"title": "From JSON", "slides": _records()})
    deck = assemble_from_payload(payload)
    assert deck.title == "From JSON"
    assert len(deck.slides) == 3


@pytest.mark.parametrize("payload", ["[1, 2]", "{not json", {"title": "No slides"}, {"slides": "nope"}])
def test_bad_payloads_are_rejected(payload):
    with pytest.raises(ValidationFailure):
        assemble_from_payload(payload)
