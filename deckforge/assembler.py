import json
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from loguru import logger
from pydantic import ValidationError

from deckforge.errors import ValidationFailure
from deckforge.schemas import BrandStyle, GeneratedDeck, SlideContent, SlideType, renumber
from deckforge.styles import DEFAULT_STYLE, resolve_style

DEFAULT_DECK_TITLE = "Generated Presentation"

SlideRecord = Union[SlideContent, Mapping[str, Any]]


def _coerce_type(value: Any) -> SlideType:
    try:
        return SlideType(value)
    except (ValueError, TypeError):
        logger.warning(f"Unknown slide type {value!r}; using 'content'")
        return SlideType.CONTENT


def coerce_slide(record: SlideRecord) -> SlideContent:
    """Validates one generator-supplied slide record into a SlideContent."""
    if isinstance(record, SlideContent):
        data = record.model_dump()
    elif isinstance(record, Mapping):
        data = dict(record)
    else:
        raise ValidationFailure(f"Slide must be an object, got {type(record).__name__}")

    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValidationFailure(f"Slide {data.get('id') or '<no id>'} has an empty title")

    data["type"] = _coerce_type(data.get("type"))
    if not data.get("id"):
        data["id"] = str(uuid.uuid4())
    if data.get("content") is None:
        data["content"] = []
    # Generator numbering is never trusted
    data["order"] = 0

    try:
        return SlideContent.model_validate(data)
    except ValidationError as e:
        raise ValidationFailure(f"Slide {title!r} is malformed", cause=e) from e


def _coerce_style(partial_style: Union[BrandStyle, Mapping[str, Any], None]) -> Optional[BrandStyle]:
    if partial_style is None or isinstance(partial_style, BrandStyle):
        return partial_style
    try:
        return BrandStyle.model_validate(partial_style)
    except ValidationError as e:
        raise ValidationFailure("Style input is malformed", cause=e) from e


def assemble(
    generated_title: Optional[str],
    generated_slides: Sequence[SlideRecord],
    partial_style: Union[BrandStyle, Mapping[str, Any], None] = None,
    default_style: BrandStyle = DEFAULT_STYLE,
    source_documents: Iterable[str] = (),
) -> GeneratedDeck:
    """Builds a GeneratedDeck from already-generated slide records."""
    if generated_title is not None and not isinstance(generated_title, str):
        raise ValidationFailure(f"Deck title must be a string, got {type(generated_title).__name__}")
    if not generated_slides:
        raise ValidationFailure("Generated content contains no slides")

    slides = renumber([coerce_slide(record) for record in generated_slides])
    style = resolve_style(_coerce_style(partial_style), default_style)

    deck = GeneratedDeck(
        id=str(uuid.uuid4()),
        title=(generated_title or "").strip() or DEFAULT_DECK_TITLE,
        slides=slides,
        style=style,
        created_at=datetime.now(timezone.utc),
        source_documents=list(source_documents),
    )
    logger.info(f"Assembled deck {deck.id} '{deck.title}' with {len(slides)} slides")
    return deck


def assemble_from_payload(
    payload: Union[str, Mapping[str, Any]],
    partial_style: Union[BrandStyle, Mapping[str, Any], None] = None,
    default_style: BrandStyle = DEFAULT_STYLE,
    source_documents: Iterable[str] = (),
) -> GeneratedDeck:
    """Assembles a deck from the generator's raw `{title, slides}` JSON."""
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValidationFailure("Generated content is not valid JSON", cause=e) from e
    if not isinstance(payload, Mapping):
        raise ValidationFailure("Generated content must be a JSON object")

    slides = payload.get("slides")
    if not isinstance(slides, list):
        raise ValidationFailure("Generated content is missing a 'slides' list")
    return assemble(payload.get("title"), slides, partial_style, default_style, source_documents)
