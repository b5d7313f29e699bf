import json
from types import SimpleNamespace

import pytest

from deckforge.config import Settings
from deckforge.errors import GenerationFailure
from deckforge.llm_client import SlideGenerator, parse_json_object
from deckforge.schemas import SlideContent

DECK_JSON = json.dumps(
    {"title": "Growth Plan", "slides": [{"id": "slide-1", "type": "title", "title": "Growth Plan"}]}
)


class FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append({**kwargs, "messages": list(kwargs["messages"])})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


class FakeClient:
    def __init__(self, replies):
        self.chat = SimpleNamespace(completions=FakeCompletions(replies))

    @property
    def calls(self):
        return self.chat.completions.calls


def test_generate_slides_returns_payload():
    client = FakeClient([DECK_JSON])
    generator = SlideGenerator(client, model="test-model")
    payload = generator.generate_slides("Some RFP text", 6, focus_areas=["pricing", "risk"], tone="formal")

    assert payload["title"] == "Growth Plan"
    call = client.calls[0]
    assert call["model"] == "test-model"
    assert call["response_format"] == {"type": "json_object"}
    prompt = call["messages"][-1]["content"]
    assert "Generate exactly 6 slides" in prompt
    assert "pricing, risk" in prompt
    assert "Some RFP text" in prompt


def test_malformed_reply_is_retried_with_feedback():
    client = FakeClient(["not json", '{"title": "No slides"}', DECK_JSON])
    generator = SlideGenerator(client, max_retries=2)
    payload = generator.generate_slides("doc", 5)

    assert payload["slides"][0]["id"] == "slide-1"
    assert len(client.calls) == 3
    retry_messages = client.calls[1]["messages"]
    assert len(retry_messages) == 4
    assert "failed with error" in retry_messages[-1]["content"]


def test_exhausted_retries_raise_generation_failure():
    client = FakeClient(["nope", RuntimeError("rate limited"), "still nope"])
    generator = SlideGenerator(client, max_retries=2)
    with pytest.raises(GenerationFailure) as exc_info:
        generator.generate_slides("doc", 5)
    assert len(client.calls) == 3
    assert exc_info.value.cause is not None


def test_refine_slide_sends_current_slide():
    refined = {"id": "s2", "type": "content", "title": "Sharper headline", "content": []}
    client = FakeClient([json.dumps(refined)])
    slide = SlideContent(id="s2", title="Old headline")
    result = SlideGenerator(client).refine_slide(slide, "Make it punchy", "context text")

    assert result["title"] == "Sharper headline"
    prompt = client.calls[0]["messages"][-1]["content"]
    assert "Old headline" in prompt
    assert "Make it punchy" in prompt


def test_extract_style_keeps_only_hex_colors():
    reply = {
        "brandName": "Acme",
        "colors": {"primary": "#112233", "secondary": "dark gray", "textLight": "AABBCC", "accent": None},
        "typography": {"headingFont": "Georgia", "bodyFont": None},
    }
    client = FakeClient([json.dumps(reply)])
    style = SlideGenerator(client).extract_style("Use navy and Georgia")

    assert style.name == "Acme"
    assert style.colors.primary == "#112233"
    assert style.colors.secondary is None
    assert style.colors.text_light == "#AABBCC"
    assert style.typography.heading_font == "Georgia"
    assert style.typography.body_font is None
    assert style.guidelines == "Use navy and Georgia"


def test_parse_json_object_tolerates_fences_and_prose():
    assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}
    assert parse_json_object('Here you go: {"a": {"b": 2}} thanks') == {"a": {"b": 2}}
    with pytest.raises(ValueError):
        parse_json_object("[1, 2]")
    with pytest.raises(ValueError):
        parse_json_object("no json here")


def test_from_settings():
    settings = Settings(openai_api_key="sk-test", model="gpt-test", max_retries=4)
    generator = SlideGenerator.from_settings(settings)
    assert generator.model == "gpt-test"
    assert generator.max_retries == 4
