import streamlit as st

from deckforge.config import get_settings, setup_logging
from deckforge.errors import DeckForgeError
from deckforge.llm_client import SlideGenerator
from deckforge.parsers import PPTX_MIME
from deckforge.pipeline import (
    Upload,
    build_deck,
    decode_uploads,
    documents_context,
    export_deck,
    recommend_slide_count,
    refine_deck_slide,
    style_from_upload,
)
from deckforge.schemas import DocumentKind, GenerationOptions
from deckforge.styles import PRESETS
from deckforge.utils import guess_mime_type

settings = get_settings()
setup_logging(settings.log_level)

st.set_page_config(page_title="DeckForge", layout="wide")

# Initialize Session State
for key, default in [
    ("documents", []),
    ("brand_style", None),
    ("deck_history", []),
    ("current_deck_idx", -1),
    ("ppt_file", None),
]:
    if key not in st.session_state:
        st.session_state[key] = default


def get_generator() -> SlideGenerator:
    if "generator" not in st.session_state:
        st.session_state.generator = SlideGenerator.from_settings(settings)
    return st.session_state.generator


def show_deck(deck):
    st.session_state.ppt_file = export_deck(deck)


# --- Sidebar ---
st.sidebar.title("Settings")
auto_count = st.sidebar.checkbox("Recommend slide count", value=True)
slide_count = st.sidebar.number_input("Target Slide Count", min_value=1, max_value=30, value=8, disabled=auto_count)
tone = st.sidebar.selectbox("Tone", ["executive", "formal", "casual"])
preset_names = sorted(PRESETS)
preset = st.sidebar.selectbox(
    "Style Preset",
    preset_names,
    index=preset_names.index(settings.style_preset) if settings.style_preset in PRESETS else 0,
)
focus = st.sidebar.text_input("Focus areas (comma separated)")

if st.sidebar.button("Clear Session"):
    st.session_state.documents = []
    st.session_state.brand_style = None
    st.session_state.deck_history = []
    st.session_state.current_deck_idx = -1
    st.session_state.ppt_file = None
    st.sidebar.success("Session cleared.")
    st.rerun()

# --- Main Flow ---
st.title("DeckForge")

# Step 1: Upload documents
st.header("Step 1: Upload Documents")
uploaded_files = st.file_uploader(
    "Upload RFPs, proposals or reports (.pdf, .docx, .pptx)",
    type=["pdf", "docx", "pptx"],
    accept_multiple_files=True,
    key="uploader",
)
style_file = st.file_uploader(
    "Optional: brand guidelines or a reference deck", type=["pdf", "docx", "pptx"], key="style_uploader"
)

if st.button("Process Documents", disabled=not uploaded_files):
    with st.spinner("Reading documents..."):
        uploads = [
            Upload(f.getvalue(), f.name, guess_mime_type(f.name, f.type), DocumentKind.RFP) for f in uploaded_files
        ]
        try:
            st.session_state.documents = decode_uploads(uploads, settings)
            if style_file is not None:
                mime_type = guess_mime_type(style_file.name, style_file.type)
                generator = None if mime_type == PPTX_MIME else get_generator()
                st.session_state.brand_style = style_from_upload(
                    style_file.getvalue(), style_file.name, mime_type, generator
                )
            st.success(f"Loaded {len(st.session_state.documents)} document(s).")
        except DeckForgeError as e:
            st.error(f"Upload failed: {e}")

if st.session_state.documents:
    with st.expander("Detected Sections"):
        for doc in st.session_state.documents:
            st.markdown(f"**{doc.parsed.metadata.title or doc.name}** ({len(doc.content)} chars)")
            for section in doc.parsed.sections:
                st.markdown(f"{'  ' * (section.level - 1)}- {section.title}")
    st.caption(f"Recommended slide count: {recommend_slide_count(st.session_state.documents)}")

    # Step 2: Generate
    st.header("Step 2: Generate Deck")
    if st.button("Generate Deck"):
        if not settings.openai_api_key:
            st.error("OPENAI_API_KEY environment variable is not set.")
        else:
            options = GenerationOptions(
                slide_count=None if auto_count else int(slide_count),
                focus_areas=[f.strip() for f in focus.split(",") if f.strip()] or None,
                tone=tone,
            )
            with st.spinner("Generating deck... This may take up to 20-30 seconds."):
                try:
                    deck = build_deck(
                        st.session_state.documents,
                        get_generator(),
                        style=st.session_state.brand_style,
                        options=options,
                        settings=settings.model_copy(update={"style_preset": preset}),
                    )
                    st.session_state.deck_history = [deck]
                    st.session_state.current_deck_idx = 0
                    show_deck(deck)
                    st.success("Generation complete!")
                except DeckForgeError as e:
                    st.error(f"Generation failed: {e}")

# Step 3: Review, refine, download
if st.session_state.deck_history:
    st.divider()
    st.header("Step 3: Refine and Download")

    current_deck = st.session_state.deck_history[st.session_state.current_deck_idx]
    col1, col2 = st.columns([1, 1])

    with col1:
        st.markdown("### Outline")
        st.markdown(f"**Deck Title:** {current_deck.title}")
        for slide in current_deck.slides:
            st.markdown("---")
            st.markdown(f"**{slide.order}. {slide.title}** ({slide.type.value})")
            for block in slide.content:
                if block.type.value in ("bullets", "numbered-list"):
                    for item in block.data.items:
                        st.markdown(f"- {item.text}")
                elif block.type.value == "text":
                    st.markdown(block.data.text)

    with col2:
        st.markdown("### Actions")
        if st.session_state.ppt_file:
            file_name, data = st.session_state.ppt_file
            st.download_button(
                label="Download PPTX",
                data=data,
                file_name=file_name,
                mime=PPTX_MIME,
                type="primary",
            )

        st.markdown("#### Refine a Slide")
        labels = {f"{s.order}. {s.title}": s.id for s in current_deck.slides}
        target = st.selectbox("Slide", list(labels))
        feedback = st.text_input("E.g., 'Make the headline more punchy'")
        if st.button("Apply Feedback"):
            if feedback.strip() and settings.openai_api_key:
                with st.spinner("Refining slide..."):
                    try:
                        new_deck = refine_deck_slide(
                            current_deck,
                            labels[target],
                            feedback,
                            get_generator(),
                            documents_context(st.session_state.documents),
                        )
                        # Keep max 5 history states
                        history = st.session_state.deck_history[: st.session_state.current_deck_idx + 1]
                        history.append(new_deck)
                        st.session_state.deck_history = history[-5:]
                        st.session_state.current_deck_idx = len(st.session_state.deck_history) - 1
                        show_deck(new_deck)
                        st.rerun()
                    except DeckForgeError as e:
                        st.error(f"Refinement failed: {e}")
            else:
                st.warning("Please provide feedback and ensure the API key is set.")

        if len(st.session_state.deck_history) > 1:
            st.markdown("#### History")
            cols = st.columns(len(st.session_state.deck_history))
            for i, deck in enumerate(st.session_state.deck_history):
                with cols[i]:
                    if st.button(f"v{i + 1}", disabled=(i == st.session_state.current_deck_idx), key=f"btn_v{i}"):
                        st.session_state.current_deck_idx = i
                        show_deck(deck)
                        st.rerun()
