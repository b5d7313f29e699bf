import math
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import List, NamedTuple, Optional, Sequence, Tuple

from loguru import logger

from deckforge import parsers
from deckforge.assembler import assemble_from_payload, coerce_slide
from deckforge.config import Settings, get_settings
from deckforge.errors import UploadRejected, ValidationFailure
from deckforge.llm_client import SlideGenerator
from deckforge.renderer import render
from deckforge.schemas import (
    BrandStyle,
    DocumentKind,
    GeneratedDeck,
    GenerationOptions,
    UploadedDocument,
    renumber,
)
from deckforge.styles import get_preset
from deckforge.utils import combine_documents, export_filename

MIN_SLIDES = 5
MAX_SLIDES = 15


class Upload(NamedTuple):
    buffer: bytes
    file_name: str
    mime_type: str
    kind: DocumentKind = DocumentKind.RFP


def ingest_upload(
    buffer: bytes,
    file_name: str,
    mime_type: str,
    kind: DocumentKind = DocumentKind.RFP,
    settings: Optional[Settings] = None,
) -> UploadedDocument:
    """Checks an upload against the MIME allow-list and size cap, then decodes it."""
    settings = settings or get_settings()
    if mime_type not in parsers.SUPPORTED_MIME_TYPES:
        raise UploadRejected(f"Invalid file type for {file_name!r}. Use PDF, DOCX, or PPTX.")
    if len(buffer) > settings.max_upload_bytes:
        raise UploadRejected(f"File {file_name!r} is too large. Max {settings.max_upload_mb}MB.")

    parsed = parsers.decode(buffer, mime_type, file_name)
    return UploadedDocument(
        id=str(uuid.uuid4()),
        name=file_name,
        kind=kind,
        mime_type=mime_type,
        size=len(buffer),
        content=parsed.text,
        parsed=parsed,
    )


def decode_uploads(uploads: Sequence[Upload], settings: Optional[Settings] = None) -> List[UploadedDocument]:
    """Decodes independent uploads concurrently; results keep input order and the first failure is raised."""
    settings = settings or get_settings()
    if not uploads:
        return []
    with ThreadPoolExecutor(max_workers=max(1, min(settings.decode_workers, len(uploads)))) as pool:
        futures = [
            pool.submit(ingest_upload, u.buffer, u.file_name, u.mime_type, u.kind, settings) for u in uploads
        ]
        documents = [future.result() for future in futures]
    logger.info(f"Decoded {len(documents)} uploads")
    return documents


def recommend_slide_count(documents: Sequence[UploadedDocument]) -> int:
    total_chars = sum(len(doc.content or "") for doc in documents)
    total_sections = sum(len(doc.parsed.sections) for doc in documents)

    # title + summary + takeaways
    count = 3
    count += math.ceil(total_sections / 1.5)
    count += min(math.ceil(total_chars / 2000), 5)
    # room for an agenda
    if count > 4:
        count += 1
    return max(MIN_SLIDES, min(MAX_SLIDES, count))


def style_from_upload(
    buffer: bytes, file_name: str, mime_type: str, generator: Optional[SlideGenerator] = None
) -> BrandStyle:
    """Reads a brand style from a reference deck's theme, or asks the generator to read guideline text."""
    if mime_type == parsers.PPTX_MIME:
        return parsers.extract_theme_style(buffer)
    if generator is None:
        raise ValidationFailure(f"Cannot read a style from {file_name!r} without a generator")
    guidelines = parsers.decode(buffer, mime_type, file_name).text
    return generator.extract_style(guidelines)


def build_deck(
    documents: Sequence[UploadedDocument],
    generator: SlideGenerator,
    style: Optional[BrandStyle] = None,
    options: Optional[GenerationOptions] = None,
    settings: Optional[Settings] = None,
) -> GeneratedDeck:
    settings = settings or get_settings()
    options = options or GenerationOptions()
    sources = [doc for doc in documents if doc.kind != DocumentKind.STYLE_GUIDE]
    if not sources:
        raise ValidationFailure("No documents provided")

    slide_count = options.slide_count or recommend_slide_count(sources)
    logger.info(f"Generating {slide_count} slides from {len(sources)} documents ({options.tone})")
    payload = generator.generate_slides(
        combine_documents(sources),
        slide_count,
        focus_areas=options.focus_areas,
        tone=options.tone,
    )
    return assemble_from_payload(
        payload,
        partial_style=style,
        default_style=get_preset(settings.style_preset),
        source_documents=[doc.id for doc in sources],
    )


def refine_deck_slide(
    deck: GeneratedDeck,
    slide_id: str,
    feedback: str,
    generator: SlideGenerator,
    document_context: str = "",
) -> GeneratedDeck:
    """Regenerates one slide from feedback and returns a new deck with it swapped in."""
    for position, current in enumerate(deck.slides):
        if current.id == slide_id:
            break
    else:
        raise ValidationFailure(f"No slide with id {slide_id!r}")

    refined = coerce_slide(generator.refine_slide(current, feedback, document_context))
    refined = refined.model_copy(update={"id": current.id})
    slides = list(deck.slides)
    slides[position] = refined
    return deck.model_copy(update={"slides": renumber(slides)})


def export_deck(deck: GeneratedDeck) -> Tuple[str, bytes]:
    return export_filename(deck.title), render(deck)


def documents_context(documents: Sequence[UploadedDocument], limit: Optional[int] = 8000) -> str:
    text = combine_documents(documents)
    return text if limit is None else text[:limit]
