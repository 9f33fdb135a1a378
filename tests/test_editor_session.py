"""Tests for the per-document editor session."""

from __future__ import annotations

import pytest

from cutline.core.formatting import (
    EmphasisRange,
    FormattingData,
    HighlightColor,
    HighlightRange,
    MinimizedRange,
)
from cutline.editor.cursor_mapper import CaretOffsets
from cutline.editor.keymap import KeyEvent
from cutline.editor.overlay import Rect
from cutline.editor.session import EditorSession
from cutline.editor.surface import PlainTextSurface, SegmentTreeSurface
from cutline.events import (
    FormattingChanged,
    HighlightPickerToggled,
    InsertionOpened,
    ItemInserted,
    TextChanged,
)
from cutline.services.persistence import DocumentPayload, SaveStatus
from cutline.services.settings import EngineSettings

TEXT = "The quick brown fox"


class _RecordingSink:
    def __init__(self) -> None:
        self.saved: list[DocumentPayload] = []

    async def save(self, payload: DocumentPayload) -> None:
        self.saved.append(payload)


def _session(text: str = TEXT, **kwargs) -> tuple[EditorSession, SegmentTreeSurface]:
    surface = SegmentTreeSurface(text)
    return EditorSession(surface, document_id="doc-1", text=text, **kwargs), surface


def _node_texts(surface: SegmentTreeSurface) -> list[str]:
    return [node.text for node in surface.nodes]


# =============================================================================
# Formatting commands
# =============================================================================


class TestFormattingCommands:
    def test_emphasis_applies_to_selection_and_keeps_caret(self, event_bus, recorded_events) -> None:
        changes = recorded_events(FormattingChanged)
        session, surface = _session(event_bus=event_bus)
        surface.select_offsets(4, 9)

        assert session.handle_key(KeyEvent("e", ctrl=True)) is True

        settings = EngineSettings()
        assert session.formatting.emphasis == (
            EmphasisRange(4, 9, font=settings.emphasis_font, size=settings.emphasis_size),
        )
        assert _node_texts(surface) == ["The ", "quick", " brown fox"]
        assert session.selection_offsets() == CaretOffsets(4, 9)
        assert changes[-1].command == "emphasize"
        assert changes[-1].emphasis == 1

    def test_collapsed_or_missing_selection_is_a_no_op(self) -> None:
        session, surface = _session()

        assert session.apply_emphasis() is False
        surface.select_offsets(3)
        assert session.apply_emphasis() is False
        assert session.formatting.is_empty

    def test_highlight_picker_flow(self, event_bus, recorded_events) -> None:
        toggles = recorded_events(HighlightPickerToggled)
        session, surface = _session(event_bus=event_bus)
        surface.select_offsets(0, 3)

        assert session.handle_key(KeyEvent("h", meta=True)) is True
        assert session.highlight_picker_visible

        assert session.apply_highlight("pastel-yellow") is True

        assert not session.highlight_picker_visible
        assert session.formatting.highlights == (HighlightRange(0, 3, HighlightColor.YELLOW),)
        assert [toggle.visible for toggle in toggles] == [True, False]
        assert 'class="highlight-pastel-yellow">The</span>' in session.html()

    def test_escape_closes_the_picker(self) -> None:
        session, _ = _session()
        session.open_highlight_picker()

        assert session.handle_key(KeyEvent("Escape")) is True
        assert not session.highlight_picker_visible

    def test_unknown_highlight_colour_is_ignored(self) -> None:
        session, surface = _session()
        surface.select_offsets(0, 3)

        assert session.apply_highlight("neon") is False
        assert session.formatting.highlights == ()

    def test_minimize_then_clear_via_shortcuts(self) -> None:
        session, surface = _session()
        surface.select_offsets(4, 9)
        session.apply_emphasis()

        session.handle_key(KeyEvent("m", ctrl=True))

        assert session.formatting.minimized == (MinimizedRange(0, 4), MinimizedRange(9, 19))
        assert len(surface.nodes) == 3

        session.handle_key(KeyEvent("c", ctrl=True, shift=True))

        assert session.formatting.is_empty
        assert _node_texts(surface) == [TEXT]

    def test_minimize_without_emphasis_changes_nothing(self) -> None:
        session, _ = _session()

        assert session.minimize_non_emphasized() is False

    def test_feature_flags_disable_commands(self) -> None:
        settings = EngineSettings(enable_formatting=False)
        session, surface = _session(settings=settings)
        surface.select_offsets(0, 3)

        assert session.handle_key(KeyEvent("e", ctrl=True)) is False
        assert session.apply_emphasis() is False

        limited, surface = _session(settings=EngineSettings(enable_highlighting=False, enable_minimize=False))
        surface.select_offsets(0, 3)
        assert limited.open_highlight_picker() is False
        assert limited.apply_highlight(HighlightColor.BLUE) is False
        assert limited.minimize_non_emphasized() is False

    def test_segments_ignore_formatting_when_disabled(self) -> None:
        session, _ = _session(
            formatting=FormattingData(emphasis=(EmphasisRange(0, 3),)),
            settings=EngineSettings(enable_formatting=False),
        )

        assert [segment.text for segment in session.segments()] == [TEXT]


# =============================================================================
# Host input
# =============================================================================


class TestHostInput:
    def test_unfocused_or_disabled_sessions_ignore_keys(self) -> None:
        session, surface = _session()
        surface.focused = False
        surface.select_offsets(0, 3)

        assert session.handle_key(KeyEvent("e", ctrl=True)) is False

        disabled, _ = _session(disabled=True)
        assert disabled.handle_key(KeyEvent("e", ctrl=True)) is False
        assert disabled.handle_text_input("changed") is False
        assert disabled.text == TEXT

    def test_unbound_keys_are_not_swallowed(self) -> None:
        session, _ = _session()

        assert session.handle_key(KeyEvent("x", ctrl=True)) is False
        assert session.handle_key(KeyEvent("ArrowDown")) is False

    def test_text_edit_resets_formatting(self, event_bus, recorded_events) -> None:
        edits = recorded_events(TextChanged)
        session, surface = _session(
            formatting=FormattingData(emphasis=(EmphasisRange(4, 9),)),
            event_bus=event_bus,
        )

        assert session.handle_text_input(TEXT + "!", 5) is True

        assert session.formatting.is_empty
        assert surface.text() == TEXT + "!"
        assert session.selection_offsets() == CaretOffsets(5, 5)
        assert edits == [TextChanged(document_id="doc-1", length=20, formatting_reset=True)]

    def test_unchanged_text_is_ignored(self) -> None:
        session, surface = _session()
        renders = surface.render_count

        assert session.handle_text_input(TEXT) is False
        assert surface.render_count == renders

    def test_character_limit_is_reported(self) -> None:
        session, _ = _session("abcdefg", settings=EngineSettings(character_limit=5))

        assert session.character_count == 7
        assert session.characters_over_limit == 2
        assert session.limit_exceeded

        unlimited, _ = _session("abcdefg")
        assert not unlimited.limit_exceeded

    def test_load_keeps_stored_formatting(self) -> None:
        session, surface = _session()
        stored = DocumentPayload("doc-2", "Stored", FormattingData(emphasis=(EmphasisRange(0, 3),)))

        session.load(stored)

        assert session.document_id == "doc-2"
        assert session.payload() == stored
        assert _node_texts(surface) == ["Sto", "red"]

    def test_plain_text_surface_host(self) -> None:
        surface = PlainTextSurface("hello world", line_height=20)
        session = EditorSession(surface, text="hello world")
        surface.select_offsets(6, 11)

        session.apply_emphasis()

        assert session.formatting.emphasis[0].start == 6
        assert surface.text() == "hello world"
        assert surface.caret() == CaretOffsets(6, 11)


# =============================================================================
# Slash insertion
# =============================================================================


class TestSlashInsertion:
    @pytest.mark.asyncio
    async def test_slash_search_and_enter_inserts_block(self, static_provider, event_bus, recorded_events) -> None:
        opened = recorded_events(InsertionOpened)
        inserted = recorded_events(ItemInserted)
        session, surface = _session(
            "See ",
            provider=static_provider,
            settings=EngineSettings(search_delay=0.0),
            event_bus=event_bus,
        )
        surface.set_selection_rect(Rect(40.0, 10.0, 2.0, 18.0))

        session.handle_text_input("See /", 5)
        await session.flush()

        assert session.insertion.is_open
        assert (opened[0].top, opened[0].left) == (33.0, 40.0)
        assert len(session.insertion.state.items) == 4

        assert session.handle_key(KeyEvent("ArrowDown")) is True
        assert session.handle_key(KeyEvent("Enter")) is True

        block = "Economic growth reduces poverty\nJones 2019\nGDP growth correlates with falling poverty rates.\n\n"
        assert session.text == "See " + block
        assert surface.text() == "See " + block
        assert session.selection_offsets() == CaretOffsets(4 + len(block), 4 + len(block))
        assert not session.insertion.is_open
        assert inserted[0].item_id == "card-2"

    @pytest.mark.asyncio
    async def test_insertion_is_disabled_without_provider(self) -> None:
        session, _ = _session("")

        session.handle_text_input("/", 1)
        await session.flush()

        assert not session.insertion.is_open

    @pytest.mark.asyncio
    async def test_load_hides_an_open_list(self, static_provider) -> None:
        session, _ = _session("", provider=static_provider, settings=EngineSettings(search_delay=0.0))
        session.handle_text_input("/", 1)
        await session.flush()

        session.load(DocumentPayload("doc-1", "fresh"))

        assert not session.insertion.is_open


# =============================================================================
# Saving
# =============================================================================


class TestSaving:
    @pytest.mark.asyncio
    async def test_edits_are_autosaved(self) -> None:
        sink = _RecordingSink()
        session, surface = _session(
            sink=sink,
            settings=EngineSettings(enable_autosave=True, autosave_interval=10.0),
        )

        session.handle_text_input(TEXT + " jumps")
        surface.select_offsets(0, 3)
        session.apply_emphasis()
        assert session.autosaver is not None and session.autosaver.pending

        assert await session.flush() is SaveStatus.SAVED

        assert len(sink.saved) == 1
        assert sink.saved[0].text == TEXT + " jumps"
        assert sink.saved[0].formatting.emphasis == (EmphasisRange(0, 3),)

    @pytest.mark.asyncio
    async def test_explicit_save_writes_current_payload(self) -> None:
        sink = _RecordingSink()
        session, _ = _session(sink=sink)

        assert await session.save() is SaveStatus.SAVED
        assert sink.saved == [session.payload()]

    @pytest.mark.asyncio
    async def test_session_without_sink_reports_saved(self) -> None:
        session, _ = _session()

        assert await session.save() is SaveStatus.SAVED
        assert session.save_status is SaveStatus.SAVED
