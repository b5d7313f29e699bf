import pytest

from deckforge.schemas import BrandColors, BrandStyle, BrandTypography, HeadingSizes
from deckforge.styles import (
    DARK_CORPORATE_STYLE,
    DEFAULT_STYLE,
    MCKINSEY_STYLE,
    get_preset,
    resolve_style,
)


def test_missing_partial_matches_default():
    assert resolve_style(None) == resolve_style(BrandStyle())
    style = resolve_style(None)
    assert style.primary_color == "#003366"
    assert style.foreground == "#333333"
    assert style.font_family.heading == "Georgia"
    assert style.font_size.title == 44
    assert style.font_size.caption == 10


def test_fields_resolve_independently():
    partial = BrandStyle(
        colors=BrandColors(primary="#112233"),
        typography=BrandTypography(body_font="Verdana", heading_sizes=HeadingSizes(h2=28)),
    )
    style = resolve_style(partial)
    default = resolve_style(None)
    assert style.primary_color == "#112233"
    assert style.font_family.body == "Verdana"
    assert style.font_size.heading == 28
    assert style.secondary_color == default.secondary_color
    assert style.font_family.heading == default.font_family.heading
    assert style.font_size.title == default.font_size.title


def test_fully_specified_partial_ignores_default():
    assert resolve_style(DARK_CORPORATE_STYLE, MCKINSEY_STYLE) == resolve_style(DARK_CORPORATE_STYLE, DARK_CORPORATE_STYLE)


def test_resolution_is_idempotent():
    partial = BrandStyle(colors=BrandColors(accent="#ABCDEF"))
    assert resolve_style(partial) == resolve_style(partial)


def test_presets():
    assert get_preset("mckinsey") is DEFAULT_STYLE
    assert get_preset("Dark-Corporate") is DARK_CORPORATE_STYLE
    with pytest.raises(ValueError):
        get_preset("neon")
