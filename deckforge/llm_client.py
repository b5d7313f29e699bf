import json
import re
from typing import Any, Dict, List, Optional, Union

from loguru import logger
from openai import OpenAI

from deckforge.config import Settings, get_settings
from deckforge.errors import GenerationFailure
from deckforge.schemas import BrandColors, BrandStyle, BrandTypography, SlideContent, normalize_hex

SYSTEM_PROMPT = """You are an expert presentation designer writing McKinsey-style executive decks.
You MUST answer with a single valid JSON object and nothing else.
You MUST only use the slide types and content block types listed in the instructions.
"""

SLIDE_TYPES_GUIDE = """Slide types:
- title: opening slide with the presentation title and a subtitle
- executive-summary: key takeaways and recommendations
- agenda: outline of the presentation
- section-header: transition into a new section
- content: standard slide with bullets or text
- two-column: side-by-side content
- chart: data visualization
- comparison: two options or before/after
- timeline: sequential events or milestones
- key-takeaways: summary of the main points
- appendix: supporting details

Content block types: text {"text", "style"}, bullets {"items": [{"text", "subItems"}]},
numbered-list (same shape as bullets), chart {"chartType": bar|line|pie|donut|area, "title",
"data": [{"label", "value"}]}, table {"headers", "rows"}."""

GENERATE_SLIDES_PROMPT = """Create a professional slide deck from this document:

<document>
{document}
</document>

Requirements:
- Generate exactly {slide_count} slides
- Every title is an action-oriented sentence stating the key insight, not a topic
- Lead with the conclusion, then support it; 3-5 bullets per slide
- Use specific numbers from the document where available
- Focus areas: {focus_areas}
- Tone: {tone}

{guide}

Return JSON shaped like:
{{"title": "Presentation title", "slides": [{{"id": "slide-1", "type": "title", "title": "...",
"subtitle": "...", "content": [], "notes": "Speaker notes"}}, {{"id": "slide-2",
"type": "executive-summary", "title": "...", "content": [{{"type": "bullets", "data": {{"items":
[{{"text": "Key point", "subItems": ["Supporting detail"]}}]}}}}], "notes": "..."}}]}}"""

REFINE_SLIDE_PROMPT = """Refine one slide of a McKinsey-style presentation.

Current slide:
{slide}

User feedback: {feedback}

Document context:
<document>
{context}
</document>

{guide}

Keep an action-oriented headline and concise, data-driven content.
Return only the updated slide as JSON with the keys id, type, title, subtitle, content, notes."""

EXTRACT_STYLE_PROMPT = """Extract presentation styling from these brand guidelines.

<guidelines>
{guidelines}
</guidelines>

Return JSON shaped like:
{{"brandName": "...", "colors": {{"primary": "#RRGGBB", "secondary": "#RRGGBB", "accent": "#RRGGBB",
"background": "#RRGGBB", "text": "#RRGGBB", "textLight": "#RRGGBB"}},
"typography": {{"headingFont": "...", "bodyFont": "..."}}}}
Use null for anything the guidelines do not state."""

COLOR_KEYS = {
    "primary": "primary",
    "secondary": "secondary",
    "accent": "accent",
    "background": "background",
    "text": "text",
    "textLight": "text_light",
    "text_light": "text_light",
}

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_BARE_OBJECT = re.compile(r"\{[\s\S]*\}")


def parse_json_object(text: str) -> Dict[str, Any]:
    """Parses the model reply, tolerating a fenced code block or prose around the object."""
    text = (text or "").strip()
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        match = _FENCED_JSON.search(text) or _BARE_OBJECT.search(text)
        if not match:
            raise ValueError("No JSON object found in model response")
        value = json.loads(match.group(1) if match.lastindex else match.group(0))
    if not isinstance(value, dict):
        raise ValueError(f"Expected a JSON object, got {type(value).__name__}")
    return value


def _clean_colors(raw: Any) -> Dict[str, str]:
    colors = {}
    if not isinstance(raw, dict):
        return colors
    for key, value in raw.items():
        field = COLOR_KEYS.get(key)
        if field is None or not value:
            continue
        try:
            colors[field] = normalize_hex(str(value).strip())
        except ValueError:
            logger.warning(f"Dropping non-hex brand color {key}={value!r}")
    return colors


class SlideGenerator:
    """Text-generation collaborator backed by OpenAI chat completions in JSON mode."""

    def __init__(self, client: OpenAI, model: str = "gpt-4o-2024-08-06", max_retries: int = 2):
        self.client = client
        self.model = model
        self.max_retries = max_retries

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SlideGenerator":
        settings = settings or get_settings()
        client = OpenAI(api_key=settings.openai_api_key) if settings.openai_api_key else OpenAI()
        return cls(client, model=settings.model, max_retries=settings.max_retries)

    def generate_slides(
        self,
        document_text: str,
        slide_count: int,
        focus_areas: Optional[List[str]] = None,
        tone: str = "executive",
    ) -> Dict[str, Any]:
        prompt = GENERATE_SLIDES_PROMPT.format(
            document=document_text,
            slide_count=slide_count,
            focus_areas=", ".join(focus_areas) if focus_areas else "general overview",
            tone=tone,
            guide=SLIDE_TYPES_GUIDE,
        )
        payload = self._call_llm_with_retries(prompt, required_key="slides")
        logger.info(f"Generated {len(payload['slides'])} slides (requested {slide_count})")
        return payload

    def refine_slide(
        self, slide: Union[SlideContent, Dict[str, Any]], feedback: str, document_context: str = ""
    ) -> Dict[str, Any]:
        if isinstance(slide, SlideContent):
            slide_json = slide.model_dump_json(by_alias=True, indent=2)
        else:
            slide_json = json.dumps(slide, indent=2, default=str)
        prompt = REFINE_SLIDE_PROMPT.format(
            slide=slide_json, feedback=feedback, context=document_context, guide=SLIDE_TYPES_GUIDE
        )
        return self._call_llm_with_retries(prompt, required_key="title")

    def extract_style(self, guidelines_text: str) -> BrandStyle:
        prompt = EXTRACT_STYLE_PROMPT.format(guidelines=guidelines_text)
        result = self._call_llm_with_retries(prompt)

        typography = result.get("typography") or {}
        if not isinstance(typography, dict):
            typography = {}
        # Unset fields are filled from the default style at assembly time
        return BrandStyle(
            name=result.get("brandName") or None,
            colors=BrandColors(**_clean_colors(result.get("colors"))),
            typography=BrandTypography(
                heading_font=typography.get("headingFont") or None,
                body_font=typography.get("bodyFont") or None,
            ),
            guidelines=guidelines_text,
        )

    def _call_llm_with_retries(self, prompt_text: str, required_key: Optional[str] = None) -> Dict[str, Any]:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt_text},
        ]

        for attempt in range(self.max_retries + 1):
            try:
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    response_format={"type": "json_object"},
                    temperature=0.3,
                )
                content = response.choices[0].message.content
                result = parse_json_object(content)
                if required_key is not None and required_key not in result:
                    raise ValueError(f"Response is missing the '{required_key}' key")
                if required_key == "slides" and not isinstance(result["slides"], list):
                    raise ValueError("'slides' must be a list")
                return result
            except Exception as e:
                logger.warning(f"Generation attempt {attempt + 1}/{self.max_retries + 1} failed: {e}")
                if attempt == self.max_retries:
                    raise GenerationFailure(
                        f"Failed to get valid JSON after {self.max_retries} retries", cause=e
                    ) from e
                # Feed the error back for the retry
                messages.append({"role": "assistant", "content": "The generated JSON was invalid."})
                messages.append(
                    {
                        "role": "user",
                        "content": f"The JSON failed with error: {e}. Return one corrected JSON object.",
                    }
                )
