import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

HEX_COLOR = re.compile(r"^#?([0-9A-Fa-f]{6})$")


class CamelModel(BaseModel):
    # JSON uses camelCase, Python attributes stay snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_hex(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    match = HEX_COLOR.match(value.strip())
    if not match:
        raise ValueError(f"Expected a #RRGGBB color, got {value!r}")
    return f"#{match.group(1)}"


# --- Documents ---

class DocumentMetadata(CamelModel):
    page_count: Optional[int] = None
    title: Optional[str] = None
    author: Optional[str] = None
    created_at: Optional[str] = None


class DocumentSection(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str
    level: int = Field(default=1, ge=1)


class ParsedDocument(CamelModel):
    text: str
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    sections: List[DocumentSection] = Field(default_factory=list)

    @model_validator(mode="after")
    def _sections_cover_text(self):
        if self.text.strip() and not self.sections:
            raise ValueError("a document with text must have at least one section")
        return self


class DocumentKind(str, Enum):
    RFP = "rfp"
    PROPOSAL = "proposal"
    STYLE_GUIDE = "style-guide"
    REFERENCE_DECK = "reference-deck"


class UploadedDocument(CamelModel):
    id: str
    name: str
    kind: DocumentKind = DocumentKind.RFP
    mime_type: str
    size: int
    content: str
    parsed: ParsedDocument
    uploaded_at: datetime = Field(default_factory=_utcnow)


# --- Slides ---

class SlideType(str, Enum):
    TITLE = "title"
    EXECUTIVE_SUMMARY = "executive-summary"
    AGENDA = "agenda"
    SECTION_HEADER = "section-header"
    CONTENT = "content"
    TWO_COLUMN = "two-column"
    CHART = "chart"
    COMPARISON = "comparison"
    TIMELINE = "timeline"
    KEY_TAKEAWAYS = "key-takeaways"
    APPENDIX = "appendix"


class BlockType(str, Enum):
    TEXT = "text"
    BULLETS = "bullets"
    NUMBERED_LIST = "numbered-list"
    CHART = "chart"
    TABLE = "table"
    IMAGE = "image"
    QUOTE = "quote"


class TextContent(CamelModel):
    text: str
    style: Optional[str] = None  # normal | emphasis | highlight


class BulletItem(CamelModel):
    text: str
    sub_items: Optional[List[str]] = None
    icon: Optional[str] = None


class BulletContent(CamelModel):
    items: List[BulletItem] = Field(default_factory=list)


class ChartKind(str, Enum):
    BAR = "bar"
    LINE = "line"
    PIE = "pie"
    DONUT = "donut"
    AREA = "area"


class ChartDataPoint(CamelModel):
    label: str
    value: float
    color: Optional[str] = None

    @field_validator("color")
    @classmethod
    def _hex_color(cls, v):
        return normalize_hex(v)


class ChartContent(CamelModel):
    chart_type: ChartKind = ChartKind.BAR
    title: Optional[str] = None
    data: List[ChartDataPoint] = Field(default_factory=list)
    labels: Optional[List[str]] = None


class TableContent(CamelModel):
    headers: List[str] = Field(default_factory=list)
    rows: List[List[str]] = Field(default_factory=list)

    @field_validator("rows", mode="before")
    @classmethod
    def _stringify_cells(cls, v):
        if isinstance(v, list):
            return [[str(cell) for cell in row] if isinstance(row, list) else row for row in v]
        return v


class QuoteContent(CamelModel):
    text: str
    author: Optional[str] = None
    source: Optional[str] = None


class ImageContent(CamelModel):
    url: Optional[str] = None
    alt: Optional[str] = None
    caption: Optional[str] = None


BlockData = Union[BulletContent, ChartContent, TableContent, TextContent, QuoteContent, ImageContent]

BLOCK_PAYLOADS = {
    BlockType.TEXT: TextContent,
    BlockType.BULLETS: BulletContent,
    BlockType.NUMBERED_LIST: BulletContent,
    BlockType.CHART: ChartContent,
    BlockType.TABLE: TableContent,
    BlockType.IMAGE: ImageContent,
    BlockType.QUOTE: QuoteContent,
}


class SlideContentBlock(CamelModel):
    type: BlockType
    data: BlockData

    @model_validator(mode="before")
    @classmethod
    def _parse_payload_for_tag(cls, values: Any) -> Any:
        """Parses `data` with the payload model selected by `type`."""
        if not isinstance(values, dict):
            return values
        try:
            kind = BlockType(values.get("type"))
        except ValueError:
            return values
        payload_model = BLOCK_PAYLOADS[kind]
        payload = values.get("data")
        if not isinstance(payload, payload_model):
            values = dict(values)
            values["data"] = payload_model.model_validate(payload if payload is not None else {})
        return values


class SlideContent(CamelModel):
    id: str
    type: SlideType = SlideType.CONTENT
    title: str = Field(min_length=1)
    subtitle: Optional[str] = None
    content: List[SlideContentBlock] = Field(default_factory=list)
    notes: Optional[str] = None
    order: int = Field(default=0, ge=0)

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("slide title must not be blank")
        return v


def renumber(slides: Sequence[SlideContent]) -> List[SlideContent]:
    """Overwrites every slide's order with its 1-based position."""
    return [slide.model_copy(update={"order": i}) for i, slide in enumerate(slides, start=1)]


# --- Styles ---

class FontFamily(CamelModel):
    heading: str
    body: str


class FontSizes(CamelModel):
    title: float
    heading: float
    subheading: float
    body: float
    caption: float


class SlideStyle(CamelModel):
    primary_color: str
    secondary_color: str
    accent_color: str
    background_color: str
    foreground: Optional[str] = None
    font_family: FontFamily
    font_size: FontSizes

    @field_validator("primary_color", "secondary_color", "accent_color", "background_color", "foreground")
    @classmethod
    def _hex_colors(cls, v):
        return normalize_hex(v)


class BrandColors(CamelModel):
    primary: Optional[str] = None
    secondary: Optional[str] = None
    accent: Optional[str] = None
    background: Optional[str] = None
    text: Optional[str] = None
    text_light: Optional[str] = None

    @field_validator("*")
    @classmethod
    def _hex_colors(cls, v):
        return normalize_hex(v)


class HeadingSizes(CamelModel):
    h1: Optional[float] = None
    h2: Optional[float] = None
    h3: Optional[float] = None
    h4: Optional[float] = None


class BodySizes(CamelModel):
    large: Optional[float] = None
    normal: Optional[float] = None
    small: Optional[float] = None
    caption: Optional[float] = None


class BrandTypography(CamelModel):
    heading_font: Optional[str] = None
    body_font: Optional[str] = None
    heading_sizes: HeadingSizes = Field(default_factory=HeadingSizes)
    body_sizes: BodySizes = Field(default_factory=BodySizes)
    line_height: Optional[float] = None


class BrandStyle(CamelModel):
    id: Optional[str] = None
    name: Optional[str] = None
    colors: BrandColors = Field(default_factory=BrandColors)
    typography: BrandTypography = Field(default_factory=BrandTypography)
    guidelines: Optional[str] = None


# --- Deck ---

class GeneratedDeck(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    slides: List[SlideContent]
    style: SlideStyle
    created_at: datetime = Field(default_factory=_utcnow)
    source_documents: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _order_matches_position(self):
        for i, slide in enumerate(self.slides, start=1):
            if slide.order != i:
                raise ValueError(f"slide {slide.id!r} has order {slide.order}, expected {i}")
        return self


class GenerationOptions(CamelModel):
    slide_count: Optional[int] = Field(default=None, ge=1)
    focus_areas: Optional[List[str]] = None
    tone: str = "executive"  # formal | casual | executive
