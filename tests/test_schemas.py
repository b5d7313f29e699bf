from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from deckforge.schemas import (
    BrandColors,
    BulletContent,
    ChartContent,
    ChartKind,
    GeneratedDeck,
    ParsedDocument,
    SlideContent,
    SlideType,
    TableContent,
    normalize_hex,
    renumber,
)
from deckforge.styles import resolve_style


def test_slide_content_validation():
    data = {
        "id": "s1",
        "type": "executive-summary",
        "title": "Revenue grew 12% on new accounts",
        "content": [
            {
                "type": "bullets",
                "data": {"items": [{"text": "Point 1", "subItems": ["Detail"]}, {"text": "Point 2"}]},
            },
            {"type": "chart", "data": {"chartType": "donut", "data": [{"label": "A", "value": 3}]}},
        ],
    }
    slide = SlideContent(**data)
    assert slide.type == SlideType.EXECUTIVE_SUMMARY
    bullets = slide.content[0].data
    assert isinstance(bullets, BulletContent)
    assert bullets.items[0].sub_items == ["Detail"]
    chart = slide.content[1].data
    assert isinstance(chart, ChartContent)
    assert chart.chart_type == ChartKind.DONUT
    assert chart.data[0].value == 3.0


def test_snake_case_names_are_accepted():
    slide = SlideContent(
        id="s1",
        title="T",
        content=[{"type": "bullets", "data": {"items": [{"text": "a", "sub_items": ["b"]}]}}],
    )
    assert slide.content[0].data.items[0].sub_items == ["b"]
    dumped = slide.model_dump(by_alias=True)
    assert "subItems" in dumped["content"][0]["data"]["items"][0]


def test_table_cells_are_stringified():
    table = TableContent(headers=["Metric", "Value"], rows=[["Revenue", 12]])
    assert table.rows == [["Revenue", "12"]]


def test_blank_title_is_rejected():
    with pytest.raises(ValidationError):
        SlideContent(id="s1", title="   ")


def test_renumber_uses_one_based_positions():
    slides = [SlideContent(id=str(i), title=f"Slide {i}", order=7) for i in range(3)]
    assert [s.order for s in renumber(slides)] == [1, 2, 3]
    # originals untouched
    assert [s.order for s in slides] == [7, 7, 7]


def test_deck_rejects_order_mismatch():
    slides = [SlideContent(id="a", title="A", order=1), SlideContent(id="b", title="B", order=3)]
    with pytest.raises(ValidationError):
        GeneratedDeck(id="d", title="Deck", slides=slides, style=resolve_style(None))


def test_deck_is_immutable():
    deck = GeneratedDeck(
        id="d",
        title="Deck",
        slides=renumber([SlideContent(id="a", title="A")]),
        style=resolve_style(None),
        created_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
    )
    with pytest.raises(ValidationError):
        deck.title = "Other"


def test_parsed_document_with_text_needs_sections():
    with pytest.raises(ValidationError):
        ParsedDocument(text="some text", sections=[])
    assert ParsedDocument(text="", sections=[]).sections == []


def test_hex_colors():
    assert normalize_hex("003366") == "#003366"
    assert normalize_hex("#00a3e0") == "#00a3e0"
    with pytest.raises(ValueError):
        normalize_hex("navy")
    with pytest.raises(ValidationError):
        BrandColors(primary="dark blue")
