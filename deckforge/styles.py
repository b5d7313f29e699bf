from typing import Dict, Optional

from loguru import logger

from deckforge.schemas import (
    BodySizes,
    BrandColors,
    BrandStyle,
    BrandTypography,
    FontFamily,
    FontSizes,
    HeadingSizes,
    SlideStyle,
)

MCKINSEY_STYLE = BrandStyle(
    id="mckinsey-default",
    name="McKinsey Style",
    colors=BrandColors(
        primary="#003366",
        secondary="#0066CC",
        accent="#00A3E0",
        background="#FFFFFF",
        text="#333333",
        text_light="#666666",
    ),
    typography=BrandTypography(
        heading_font="Georgia",
        body_font="Arial",
        heading_sizes=HeadingSizes(h1=44, h2=32, h3=24, h4=20),
        body_sizes=BodySizes(large=18, normal=14, small=12, caption=10),
        line_height=1.4,
    ),
)

DARK_CORPORATE_STYLE = BrandStyle(
    id="dark-corporate",
    name="Dark Corporate",
    colors=BrandColors(
        primary="#0F172A",
        secondary="#1E293B",
        accent="#38BDF8",
        background="#0B1120",
        text="#FFFFFF",
        text_light="#94A3B8",
    ),
    typography=BrandTypography(
        heading_font="Calibri",
        body_font="Calibri",
        heading_sizes=HeadingSizes(h1=40, h2=30, h3=22, h4=18),
        body_sizes=BodySizes(large=18, normal=14, small=12, caption=10),
        line_height=1.3,
    ),
)

DEFAULT_STYLE = MCKINSEY_STYLE

PRESETS: Dict[str, BrandStyle] = {
    "mckinsey": MCKINSEY_STYLE,
    "dark-corporate": DARK_CORPORATE_STYLE,
}


def get_preset(name: str) -> BrandStyle:
    try:
        return PRESETS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown style preset: {name!r}. Choose from {sorted(PRESETS)}")


def _pick(explicit, fallback, field: str):
    if explicit is not None:
        return explicit
    if fallback is None:
        raise ValueError(f"Default style is missing '{field}'")
    return fallback


def resolve_style(partial: Optional[BrandStyle], default: BrandStyle = DEFAULT_STYLE) -> SlideStyle:
    """Resolves a concrete SlideStyle, taking each field from `partial` when set and from `default` otherwise."""
    partial = partial or BrandStyle()
    pc, dc = partial.colors, default.colors
    pt, dt = partial.typography, default.typography

    style = SlideStyle(
        primary_color=_pick(pc.primary, dc.primary, "colors.primary"),
        secondary_color=_pick(pc.secondary, dc.secondary, "colors.secondary"),
        accent_color=_pick(pc.accent, dc.accent, "colors.accent"),
        background_color=_pick(pc.background, dc.background, "colors.background"),
        foreground=pc.text if pc.text is not None else dc.text,
        font_family=FontFamily(
            heading=_pick(pt.heading_font, dt.heading_font, "typography.heading_font"),
            body=_pick(pt.body_font, dt.body_font, "typography.body_font"),
        ),
        font_size=FontSizes(
            title=_pick(pt.heading_sizes.h1, dt.heading_sizes.h1, "typography.heading_sizes.h1"),
            heading=_pick(pt.heading_sizes.h2, dt.heading_sizes.h2, "typography.heading_sizes.h2"),
            subheading=_pick(pt.heading_sizes.h3, dt.heading_sizes.h3, "typography.heading_sizes.h3"),
            body=_pick(pt.body_sizes.normal, dt.body_sizes.normal, "typography.body_sizes.normal"),
            caption=_pick(pt.body_sizes.caption, dt.body_sizes.caption, "typography.body_sizes.caption"),
        ),
    )
    logger.debug(f"Resolved style {style.primary_color}/{style.secondary_color}/{style.accent_color}")
    return style
