import io
import re
import uuid
import zipfile
from typing import Dict, List, Optional

from loguru import logger
from lxml import etree

from deckforge.errors import DecodeFailure
from deckforge.schemas import BrandColors, BrandStyle, BrandTypography, DocumentMetadata, DocumentSection, ParsedDocument

A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
NSMAP = {"a": A_NS}

SLIDE_ENTRY = re.compile(r"^ppt/slides/slide(\d+)\.xml$")
THEME_ENTRY = re.compile(r"^ppt/theme/theme(\d+)\.xml$")
SLIDE_SEPARATOR = "\n\n---\n\n"
SECTION_TITLE = "Presentation Content"

# theme color slot -> brand color role
THEME_COLOR_ROLES = {
    "dk1": "text",
    "lt1": "background",
    "accent1": "primary",
    "accent2": "secondary",
    "accent3": "accent",
}

_parser = etree.XMLParser(resolve_entities=False, no_network=True)


def _indexed_entries(archive: zipfile.ZipFile, pattern: re.Pattern) -> List[str]:
    """Entry names matching `pattern`, sorted by their numeric index rather than listing order."""
    indexed = []
    for name in archive.namelist():
        match = pattern.match(name)
        if match:
            indexed.append((int(match.group(1)), name))
    return [name for _, name in sorted(indexed)]


def _slide_text(xml: bytes) -> str:
    root = etree.fromstring(xml, _parser)
    runs = ((node.text or "").strip() for node in root.iter(f"{{{A_NS}}}t"))
    return "\n".join(run for run in runs if run)


def extract_pptx_text(buffer: bytes) -> str:
    try:
        with zipfile.ZipFile(io.BytesIO(buffer)) as archive:
            parts = []
            for entry in _indexed_entries(archive, SLIDE_ENTRY):
                text = _slide_text(archive.read(entry))
                if text:
                    parts.append(text)
    except Exception as e:
        raise DecodeFailure("Failed to extract text from PPTX", cause=e) from e
    return SLIDE_SEPARATOR.join(parts)


def parse_pptx(buffer: bytes, file_name: str) -> ParsedDocument:
    text = extract_pptx_text(buffer)
    if not text.strip():
        raise DecodeFailure("PPTX document contains no extractable text")

    title = re.sub(r"\.pptx$", "", file_name or "", flags=re.IGNORECASE) or None
    logger.info(f"Parsed PPTX {file_name!r}: {len(text)} chars")
    return ParsedDocument(
        text=text,
        metadata=DocumentMetadata(title=title),
        sections=[DocumentSection(id=str(uuid.uuid4()), title=SECTION_TITLE, content=text, level=1)],
    )


def _color_value(slot) -> Optional[str]:
    if slot is None:
        return None
    srgb = slot.find("a:srgbClr", NSMAP)
    if srgb is not None:
        value = srgb.get("val")
    else:
        sys_clr = slot.find("a:sysClr", NSMAP)
        value = sys_clr.get("lastClr") if sys_clr is not None else None
    if value and re.fullmatch(r"[0-9A-Fa-f]{6}", value):
        return f"#{value.upper()}"
    return None


def _typeface(root, path: str) -> Optional[str]:
    node = root.find(path, NSMAP)
    if node is None:
        return None
    return node.get("typeface") or None


def extract_theme_style(buffer: bytes) -> BrandStyle:
    """Reads theme colors and major/minor fonts into a partial BrandStyle; absent entries stay unset."""
    try:
        with zipfile.ZipFile(io.BytesIO(buffer)) as archive:
            themes = _indexed_entries(archive, THEME_ENTRY)
            if not themes:
                logger.info("PPTX has no theme entry; no style extracted")
                return BrandStyle()
            root = etree.fromstring(archive.read(themes[0]), _parser)
    except Exception as e:
        raise DecodeFailure("Failed to read PPTX theme", cause=e) from e

    colors: Dict[str, str] = {}
    scheme = root.find(".//a:clrScheme", NSMAP)
    if scheme is not None:
        for slot_name, role in THEME_COLOR_ROLES.items():
            value = _color_value(scheme.find(f"a:{slot_name}", NSMAP))
            if value:
                colors[role] = value

    heading_font = _typeface(root, ".//a:fontScheme/a:majorFont/a:latin")
    body_font = _typeface(root, ".//a:fontScheme/a:minorFont/a:latin")
    logger.info(f"Extracted theme style: {len(colors)} colors, fonts {heading_font}/{body_font}")
    return BrandStyle(
        name=scheme.get("name") if scheme is not None else None,
        colors=BrandColors(**colors),
        typography=BrandTypography(heading_font=heading_font, body_font=body_font),
    )
