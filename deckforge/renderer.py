import io
import math
import re
import zipfile
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger
from lxml import etree
from pptx import Presentation
from pptx.chart.data import CategoryChartData
from pptx.dml.color import RGBColor
from pptx.enum.chart import XL_CHART_TYPE, XL_LEGEND_POSITION
from pptx.enum.shapes import MSO_CONNECTOR, MSO_SHAPE
from pptx.enum.text import MSO_ANCHOR, PP_ALIGN
from pptx.oxml.ns import qn
from pptx.util import Inches, Pt

from deckforge.errors import RenderFailure
from deckforge.schemas import (
    BlockType,
    BulletContent,
    ChartContent,
    ChartKind,
    GeneratedDeck,
    SlideContent,
    SlideContentBlock,
    SlideStyle,
    SlideType,
    TableContent,
    TextContent,
)

# Canvas, in inches (16:9)
SLIDE_WIDTH = 10.0
SLIDE_HEIGHT = 5.625
BLANK_LAYOUT = 6

AUTHOR = "DeckForge AI"
COMPANY = "DeckForge AI"
SUBJECT = "Generated Presentation"

WHITE = "#FFFFFF"
MUTED = "#666666"
CAPTION_GREY = "#CCCCCC"
PANEL_GREY = "#F5F5F5"

CONTENT_X = 0.5
CONTENT_WIDTH = 9.0
CONTENT_TOP = 1.2
CHART_TOP = 1.3
LIST_TOP = 1.4

HEADER_HEIGHT = 1.0
BULLET_LINE_HEIGHT = 0.35
MAX_BULLET_HEIGHT = 3.5
BLOCK_GAP = 0.2
TEXT_BLOCK_HEIGHT = 0.8
TEXT_BLOCK_ADVANCE = 0.9
TABLE_ROW_HEIGHT = 0.4
TABLE_GAP = 0.3
CHART_HEIGHT = 3.5

COLUMN_WIDTH = 4.2
LEFT_COLUMN_X = 0.5
RIGHT_COLUMN_X = 5.2
COLUMN_DIVIDER_X = 4.9

BULLET_CHAR = "•"
SUB_BULLET_CHAR = "–"

BULLET_BLOCKS = (BlockType.BULLETS, BlockType.NUMBERED_LIST)

CHART_TYPES = {
    ChartKind.BAR: XL_CHART_TYPE.COLUMN_CLUSTERED,
    ChartKind.LINE: XL_CHART_TYPE.LINE,
    ChartKind.PIE: XL_CHART_TYPE.PIE,
}


# Characters XML 1.0 cannot carry: C0 controls other than tab/LF/CR, lone surrogates, U+FFFE/U+FFFF
_XML_ILLEGAL = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def xml_safe(text: Optional[str]) -> Optional[str]:
    if not text:
        return text
    return _XML_ILLEGAL.sub("", text)


def _rgb(hex_color: str) -> RGBColor:
    return RGBColor.from_string(hex_color.lstrip("#").upper())


def _body_color(style: SlideStyle) -> str:
    return style.foreground or style.primary_color


def chart_type_for(kind: ChartKind) -> XL_CHART_TYPE:
    # donut and area have no pathway of their own and render as bar
    return CHART_TYPES.get(kind, XL_CHART_TYPE.COLUMN_CLUSTERED)


def bullet_lines(bullets: BulletContent) -> List[Tuple[str, int]]:
    """Flattens items into (text, indent level) lines, each item followed by its own sub-items."""
    lines = []
    for item in bullets.items:
        lines.append((item.text, 0))
        for sub_item in item.sub_items or []:
            lines.append((sub_item, 1))
    return lines


# --- primitives ---

def _add_text(
    slide,
    text: str,
    x: float,
    y: float,
    w: float,
    h: float,
    *,
    size: float,
    font: str,
    color: str,
    bold: bool = False,
    align=PP_ALIGN.LEFT,
    anchor=MSO_ANCHOR.TOP,
):
    box = slide.shapes.add_textbox(Inches(x), Inches(y), Inches(w), Inches(h))
    frame = box.text_frame
    frame.word_wrap = True
    frame.vertical_anchor = anchor
    paragraph = frame.paragraphs[0]
    paragraph.alignment = align
    run = paragraph.add_run()
    run.text = xml_safe(text)
    run.font.size = Pt(size)
    run.font.name = font
    run.font.bold = bold
    run.font.color.rgb = _rgb(color)
    return box


def _add_rect(slide, x: float, y: float, w: float, h: float, fill: str, line: Optional[str] = None, line_width: float = 2):
    shape = slide.shapes.add_shape(MSO_SHAPE.RECTANGLE, Inches(x), Inches(y), Inches(w), Inches(h))
    shape.fill.solid()
    shape.fill.fore_color.rgb = _rgb(fill)
    if line:
        shape.line.color.rgb = _rgb(line)
        shape.line.width = Pt(line_width)
    else:
        shape.line.fill.background()
    shape.shadow.inherit = False
    return shape


def _add_line(slide, x1: float, y1: float, x2: float, y2: float, color: str, width: float = 1):
    connector = slide.shapes.add_connector(MSO_CONNECTOR.STRAIGHT, Inches(x1), Inches(y1), Inches(x2), Inches(y2))
    connector.line.color.rgb = _rgb(color)
    connector.line.width = Pt(width)
    return connector


def _set_bullet(paragraph, level: int, numbered: bool) -> None:
    pPr = paragraph._p.get_or_add_pPr()
    pPr.set("marL", str(Inches(0.25 + 0.3 * level)))
    pPr.set("indent", str(-Inches(0.2)))
    for child in list(pPr):
        if child.tag in (qn("a:buNone"), qn("a:buAutoNum"), qn("a:buChar"), qn("a:buFont")):
            pPr.remove(child)
    if numbered:
        etree.SubElement(pPr, qn("a:buAutoNum")).set("type", "arabicPeriod")
        return
    bu_font = etree.SubElement(pPr, qn("a:buFont"))
    bu_font.set("typeface", "Arial")
    etree.SubElement(pPr, qn("a:buChar")).set("char", SUB_BULLET_CHAR if level else BULLET_CHAR)


# --- content blocks ---

def add_bullets(
    slide,
    bullets: BulletContent,
    start_y: float,
    style: SlideStyle,
    numbered: bool = False,
    x: float = CONTENT_X,
    width: float = CONTENT_WIDTH,
    color: Optional[str] = None,
) -> float:
    lines = bullet_lines(bullets)
    estimated_height = len(lines) * BULLET_LINE_HEIGHT
    if lines:
        box = slide.shapes.add_textbox(
            Inches(x), Inches(start_y), Inches(width), Inches(min(estimated_height, MAX_BULLET_HEIGHT))
        )
        frame = box.text_frame
        frame.word_wrap = True
        frame.vertical_anchor = MSO_ANCHOR.TOP
        for i, (text, level) in enumerate(lines):
            paragraph = frame.paragraphs[0] if i == 0 else frame.add_paragraph()
            paragraph.level = level
            paragraph.space_before = Pt(6 if level == 0 else 2)
            paragraph.space_after = Pt(3 if level == 0 else 2)
            run = paragraph.add_run()
            run.text = xml_safe(text)
            run.font.name = style.font_family.body
            run.font.size = Pt(style.font_size.body if level == 0 else style.font_size.body - 2)
            run.font.color.rgb = _rgb((color or _body_color(style)) if level == 0 else MUTED)
            _set_bullet(paragraph, level, numbered and level == 0)
    # Overflow past the slide bottom is accepted; the cursor is not capped
    return start_y + estimated_height + BLOCK_GAP


def add_text_block(
    slide, text: TextContent, start_y: float, style: SlideStyle, x: float = CONTENT_X, width: float = CONTENT_WIDTH
) -> float:
    emphasis = text.style == "emphasis"
    color = style.accent_color if text.style == "highlight" else _body_color(style)
    if text.text.strip():
        _add_text(
            slide,
            text.text,
            x,
            start_y,
            width,
            TEXT_BLOCK_HEIGHT,
            size=style.font_size.body + 2 if emphasis else style.font_size.body,
            font=style.font_family.body,
            color=color,
            bold=emphasis,
        )
    return start_y + TEXT_BLOCK_ADVANCE


def _style_cell(cell, text: str, *, size: float, font: str, color: str, fill: str, bold: bool = False) -> None:
    cell.text = xml_safe(text)
    cell.fill.solid()
    cell.fill.fore_color.rgb = _rgb(fill)
    cell.vertical_anchor = MSO_ANCHOR.MIDDLE
    for paragraph in cell.text_frame.paragraphs:
        paragraph.alignment = PP_ALIGN.LEFT
        for run in paragraph.runs:
            run.font.size = Pt(size)
            run.font.name = font
            run.font.bold = bold
            run.font.color.rgb = _rgb(color)


def add_table(
    slide, table: TableContent, start_y: float, style: SlideStyle, x: float = CONTENT_X, width: float = CONTENT_WIDTH
) -> float:
    column_count = len(table.headers)
    if column_count == 0:
        logger.debug("Skipping table without headers")
        return start_y
    row_count = len(table.rows) + 1
    shape = slide.shapes.add_table(
        row_count, column_count, Inches(x), Inches(start_y), Inches(width), Inches(row_count * TABLE_ROW_HEIGHT)
    )
    grid = shape.table
    for column in grid.columns:
        column.width = Inches(width / column_count)

    for c, header in enumerate(table.headers):
        _style_cell(
            grid.cell(0, c),
            header,
            size=style.font_size.body,
            font=style.font_family.body,
            color=WHITE,
            fill=style.primary_color,
            bold=True,
        )
    for r, row in enumerate(table.rows, start=1):
        # Rows are padded or cut to the header count
        cells = (list(row) + [""] * column_count)[:column_count]
        for c, value in enumerate(cells):
            _style_cell(
                grid.cell(r, c),
                value,
                size=style.font_size.body - 1,
                font=style.font_family.body,
                color=_body_color(style),
                fill=style.background_color,
            )
    return start_y + row_count * TABLE_ROW_HEIGHT + TABLE_GAP


def chart_categories(chart: ChartContent) -> List[str]:
    # Explicit labels win only when they pair one-to-one with the data points
    if chart.labels and len(chart.labels) == len(chart.data):
        return list(chart.labels)
    return [point.label for point in chart.data]


def add_chart(
    slide, chart: ChartContent, start_y: float, style: SlideStyle, x: float = 1.0, width: float = 8.0
) -> float:
    if not chart.data:
        logger.debug("Skipping chart without data points")
        return start_y
    chart_data = CategoryChartData()
    chart_data.categories = [xml_safe(label) for label in chart_categories(chart)]
    chart_data.add_series(xml_safe(chart.title) or "Data", [point.value for point in chart.data])

    frame = slide.shapes.add_chart(
        chart_type_for(chart.chart_type), Inches(x), Inches(start_y), Inches(width), Inches(CHART_HEIGHT), chart_data
    )
    graph = frame.chart
    graph.has_legend = True
    graph.legend.position = XL_LEGEND_POSITION.BOTTOM
    graph.legend.include_in_layout = False
    if chart.title:
        graph.has_title = True
        graph.chart_title.text_frame.text = xml_safe(chart.title)
        title_font = graph.chart_title.text_frame.paragraphs[0].font
        title_font.size = Pt(style.font_size.body)
        title_font.color.rgb = _rgb(style.primary_color)
    else:
        graph.has_title = False

    series = graph.plots[0].series[0]
    for i, point in enumerate(chart.data):
        if point.color:
            point_format = series.points[i].format
            point_format.fill.solid()
            point_format.fill.fore_color.rgb = _rgb(point.color)
    return start_y + CHART_HEIGHT + BLOCK_GAP


def render_block(
    slide,
    block: SlideContentBlock,
    y: float,
    style: SlideStyle,
    x: float = CONTENT_X,
    width: float = CONTENT_WIDTH,
    numbered: bool = False,
) -> float:
    """Draws one content block at the cursor and returns the advanced cursor."""
    if block.type in BULLET_BLOCKS:
        return add_bullets(slide, block.data, y, style, numbered or block.type == BlockType.NUMBERED_LIST, x, width)
    if block.type == BlockType.TEXT:
        return add_text_block(slide, block.data, y, style, x, width)
    if block.type == BlockType.TABLE:
        return add_table(slide, block.data, y, style, x, width)
    if block.type == BlockType.CHART:
        return add_chart(slide, block.data, y, style, x + 0.5, width - 1.0)
    # image and quote blocks are not drawn
    return y


def _render_blocks(
    slide,
    blocks: Sequence[SlideContentBlock],
    start_y: float,
    style: SlideStyle,
    x: float = CONTENT_X,
    width: float = CONTENT_WIDTH,
    numbered: bool = False,
    only: Optional[Sequence[BlockType]] = None,
) -> float:
    y = start_y
    for block in blocks:
        if only is not None and block.type not in only:
            continue
        y = render_block(slide, block, y, style, x, width, numbered)
    return y


# --- slide skeleton ---

def add_slide_header(slide, title: str, style: SlideStyle) -> None:
    _add_rect(slide, 0, 0, SLIDE_WIDTH, HEADER_HEIGHT, style.secondary_color)
    _add_text(
        slide,
        title,
        0.5,
        0.15,
        9,
        0.7,
        size=max(style.font_size.heading - 6, 8),
        font=style.font_family.heading,
        color=WHITE,
        bold=True,
        anchor=MSO_ANCHOR.MIDDLE,
    )
    _add_line(slide, 0, HEADER_HEIGHT, SLIDE_WIDTH, HEADER_HEIGHT, style.accent_color, width=2)


def add_slide_footer(slide, order: int, style: SlideStyle) -> None:
    _add_line(slide, 0.5, 5.2, 9.5, 5.2, style.accent_color)
    _add_text(
        slide,
        str(order),
        9,
        5.3,
        0.5,
        0.3,
        size=10,
        font=style.font_family.body,
        color=_body_color(style),
        align=PP_ALIGN.RIGHT,
    )


def _fill_background(slide, color: str) -> None:
    fill = slide.background.fill
    fill.solid()
    fill.fore_color.rgb = _rgb(color)


# --- strategies ---

def create_title_slide(slide, content: SlideContent, deck: GeneratedDeck) -> None:
    style = deck.style
    _fill_background(slide, style.primary_color)
    _add_text(
        slide,
        content.title,
        0.6,
        1.6,
        8.8,
        1.2,
        size=style.font_size.title,
        font=style.font_family.heading,
        color=WHITE,
        bold=True,
        anchor=MSO_ANCHOR.BOTTOM,
    )
    if content.subtitle:
        _add_text(
            slide,
            content.subtitle,
            0.6,
            2.9,
            8.8,
            0.6,
            size=style.font_size.subheading,
            font=style.font_family.body,
            color=style.accent_color,
        )
    _add_text(
        slide,
        deck.created_at.strftime("%B %Y"),
        0.6,
        4.8,
        5,
        0.4,
        size=style.font_size.caption,
        font=style.font_family.body,
        color=CAPTION_GREY,
    )
    # Brand glyph
    _add_rect(slide, 9.2, 0.4, 0.4, 0.4, style.accent_color)


def create_content_slide(slide, content: SlideContent, deck: GeneratedDeck) -> None:
    add_slide_header(slide, content.title, deck.style)
    _render_blocks(slide, content.content, CONTENT_TOP, deck.style)


def create_chart_slide(slide, content: SlideContent, deck: GeneratedDeck) -> None:
    add_slide_header(slide, content.title, deck.style)
    _render_blocks(slide, content.content, CHART_TOP, deck.style, only=[BlockType.CHART])


def create_agenda_slide(slide, content: SlideContent, deck: GeneratedDeck) -> None:
    add_slide_header(slide, content.title, deck.style)
    _render_blocks(slide, content.content, LIST_TOP, deck.style, numbered=True)


def create_key_takeaways_slide(slide, content: SlideContent, deck: GeneratedDeck) -> None:
    _add_rect(slide, 0, 0, 0.3, SLIDE_HEIGHT, deck.style.accent_color)
    add_slide_header(slide, content.title, deck.style)
    _render_blocks(slide, content.content, LIST_TOP, deck.style, numbered=True)


def create_section_header_slide(slide, content: SlideContent, deck: GeneratedDeck) -> None:
    style = deck.style
    _add_rect(slide, 0, 2, SLIDE_WIDTH, 1.5, style.secondary_color)
    _add_text(
        slide,
        content.title,
        0.5,
        2.2,
        9,
        1,
        size=style.font_size.heading,
        font=style.font_family.heading,
        color=WHITE,
        bold=True,
        anchor=MSO_ANCHOR.MIDDLE,
    )
    if content.subtitle:
        _add_text(
            slide,
            content.subtitle,
            0.5,
            3.6,
            9,
            0.5,
            size=style.font_size.body,
            font=style.font_family.body,
            color=style.primary_color,
        )


def create_two_column_slide(slide, content: SlideContent, deck: GeneratedDeck) -> None:
    style = deck.style
    add_slide_header(slide, content.title, style)
    middle = math.ceil(len(content.content) / 2)
    _render_blocks(slide, content.content[:middle], CONTENT_TOP, style, LEFT_COLUMN_X, COLUMN_WIDTH)
    _render_blocks(slide, content.content[middle:], CONTENT_TOP, style, RIGHT_COLUMN_X, COLUMN_WIDTH)
    _add_line(slide, COLUMN_DIVIDER_X, CONTENT_TOP, COLUMN_DIVIDER_X, CONTENT_TOP + 3.8, style.accent_color)


def create_comparison_slide(slide, content: SlideContent, deck: GeneratedDeck) -> None:
    style = deck.style
    add_slide_header(slide, content.title, style)
    _add_rect(slide, 0.5, 1.2, 4.2, 3.5, PANEL_GREY, line=style.primary_color)
    _add_rect(slide, 5.3, 1.2, 4.2, 3.5, PANEL_GREY, line=style.secondary_color)
    # Only the first two blocks are compared
    for box_x, block in zip((0.7, 5.5), content.content[:2]):
        if block.type in BULLET_BLOCKS:
            add_bullets(slide, block.data, 1.4, style, False, box_x, 3.8, color=style.primary_color)


SlideStrategy = Callable[[object, SlideContent, GeneratedDeck], None]

STRATEGIES: Dict[SlideType, SlideStrategy] = {
    SlideType.TITLE: create_title_slide,
    SlideType.EXECUTIVE_SUMMARY: create_content_slide,
    SlideType.AGENDA: create_agenda_slide,
    SlideType.SECTION_HEADER: create_section_header_slide,
    SlideType.CONTENT: create_content_slide,
    SlideType.TWO_COLUMN: create_two_column_slide,
    SlideType.CHART: create_chart_slide,
    SlideType.COMPARISON: create_comparison_slide,
    SlideType.KEY_TAKEAWAYS: create_key_takeaways_slide,
}


def render_slide(slide, content: SlideContent, deck: GeneratedDeck) -> None:
    strategy = STRATEGIES.get(content.type, create_content_slide)
    if content.type != SlideType.TITLE:
        _fill_background(slide, deck.style.background_color)
    strategy(slide, content, deck)
    if content.type != SlideType.TITLE:
        add_slide_footer(slide, content.order, deck.style)
    if content.notes:
        slide.notes_slide.notes_text_frame.text = xml_safe(content.notes)


# --- container ---

EXTENDED_PROPS_NS = "http://schemas.openxmlformats.org/officeDocument/2006/extended-properties"
APP_PROPS_ENTRY = "docProps/app.xml"


def _with_company(app_xml: bytes, company: str) -> bytes:
    root = etree.fromstring(app_xml)
    node = root.find(f"{{{EXTENDED_PROPS_NS}}}Company")
    if node is None:
        node = etree.SubElement(root, f"{{{EXTENDED_PROPS_NS}}}Company")
    node.text = company
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", standalone=True)


def stamp_company(data: bytes, company: str = COMPANY) -> bytes:
    """Sets the Company extended property, which python-pptx does not expose."""
    output = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(data)) as source, zipfile.ZipFile(output, "w", zipfile.ZIP_DEFLATED) as target:
        if APP_PROPS_ENTRY not in source.namelist():
            logger.debug("No extended properties part; company not stamped")
            return data
        for item in source.infolist():
            payload = source.read(item.filename)
            if item.filename == APP_PROPS_ENTRY:
                payload = _with_company(payload, company)
            target.writestr(item, payload)
    return output.getvalue()


def new_presentation(deck: GeneratedDeck):
    prs = Presentation()
    prs.slide_width = Inches(SLIDE_WIDTH)
    prs.slide_height = Inches(SLIDE_HEIGHT)
    props = prs.core_properties
    props.author = AUTHOR
    props.title = xml_safe(deck.title)
    props.subject = SUBJECT
    return prs


def render(deck: GeneratedDeck) -> bytes:
    """Renders the deck into .pptx bytes."""
    try:
        prs = new_presentation(deck)
        for content in deck.slides:
            slide = prs.slides.add_slide(prs.slide_layouts[BLANK_LAYOUT])
            render_slide(slide, content, deck)
        buffer = io.BytesIO()
        prs.save(buffer)
        data = stamp_company(buffer.getvalue())
    except Exception as e:
        raise RenderFailure(f"Failed to render deck '{deck.title}'", cause=e) from e
    logger.info(f"Rendered deck {deck.id}: {len(deck.slides)} slides, {len(data)} bytes")
    return data


def render_to_file(deck: GeneratedDeck, output_path: str) -> None:
    with open(output_path, "wb") as f:
        f.write(render(deck))
