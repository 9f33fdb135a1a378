"""Tests for document persistence sinks and the auto-saver."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from cutline.core.errors import PersistenceError
from cutline.core.formatting import EmphasisRange, FormattingData, HighlightColor, HighlightRange
from cutline.events import SaveStatusChanged
from cutline.services.persistence import (
    AutoSaver,
    DocumentPayload,
    HttpPersistenceSink,
    JsonFilePersistenceSink,
    SaveStatus,
)

FORMATTING = FormattingData(
    emphasis=(EmphasisRange(0, 5),),
    highlights=(HighlightRange(6, 11, HighlightColor.PINK),),
)


class _RecordingSink:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.saved: list[DocumentPayload] = []

    async def save(self, payload: DocumentPayload) -> None:
        if self.fail:
            raise PersistenceError("disk full", document_id=payload.document_id)
        self.saved.append(payload)


def _payload(text: str = "Hello world") -> DocumentPayload:
    return DocumentPayload("doc-1", text, FORMATTING)


# =============================================================================
# DocumentPayload
# =============================================================================


def test_wire_format_uses_content_and_formatting_data() -> None:
    wire = _payload().to_wire()

    assert wire["content"] == "Hello world"
    assert wire["formattingData"]["highlights"] == [{"start": 6, "end": 11, "color": "pastel-pink"}]
    assert DocumentPayload.from_wire("doc-1", wire) == _payload()


def test_wire_payload_without_text_is_rejected() -> None:
    with pytest.raises(PersistenceError) as excinfo:
        DocumentPayload.from_wire("doc-9", {"formattingData": {}})

    assert excinfo.value.document_id == "doc-9"


# =============================================================================
# JsonFilePersistenceSink
# =============================================================================


class TestJsonFilePersistenceSink:
    def test_write_then_load(self, tmp_path: Path) -> None:
        sink = JsonFilePersistenceSink(tmp_path)

        path = sink.write(_payload())
        stored = json.loads(path.read_text(encoding="utf-8"))

        assert stored["id"] == "doc-1"
        assert stored["version"] == 1
        assert "savedAt" in stored
        assert sink.load("doc-1") == _payload()

    def test_document_ids_are_sanitized_into_file_names(self, tmp_path: Path) -> None:
        sink = JsonFilePersistenceSink(tmp_path)

        assert sink.path_for("../etc/passwd") == tmp_path / "___etc_passwd.json"
        assert sink.path_for("") == tmp_path / "document.json"

    def test_missing_and_invalid_files_load_as_none(self, tmp_path: Path) -> None:
        sink = JsonFilePersistenceSink(tmp_path)
        sink.path_for("broken").write_text("{oops", encoding="utf-8")
        sink.path_for("empty").write_text(json.dumps({"formattingData": {}}), encoding="utf-8")

        assert sink.load("absent") is None
        assert sink.load("broken") is None
        assert sink.load("empty") is None

    @pytest.mark.asyncio
    async def test_async_save_writes_the_file(self, tmp_path: Path) -> None:
        sink = JsonFilePersistenceSink(tmp_path / "docs")

        await sink.save(_payload("Saved text"))

        assert sink.load("doc-1").text == "Saved text"


# =============================================================================
# HttpPersistenceSink
# =============================================================================


class TestHttpPersistenceSink:
    @pytest.mark.asyncio
    async def test_puts_payload_to_document_endpoint(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://docs.test") as client:
            sink = HttpPersistenceSink("http://docs.test", client=client)
            await sink.save(_payload())

        assert seen[0].method == "PUT"
        assert seen[0].url.path == "/api/documents/doc-1"
        assert json.loads(seen[0].content) == _payload().to_wire()

    @pytest.mark.asyncio
    async def test_server_errors_raise(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(500))

        async with httpx.AsyncClient(transport=transport, base_url="http://docs.test") as client:
            sink = HttpPersistenceSink("http://docs.test", client=client)
            with pytest.raises(PersistenceError):
                await sink.save(_payload())

    @pytest.mark.asyncio
    async def test_rejected_save_raises_with_service_message(self) -> None:
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"success": False, "error": "locked"})
        )

        async with httpx.AsyncClient(transport=transport, base_url="http://docs.test") as client:
            sink = HttpPersistenceSink("http://docs.test", client=client)
            with pytest.raises(PersistenceError, match="locked"):
                await sink.save(_payload())


# =============================================================================
# AutoSaver
# =============================================================================


class TestAutoSaver:
    @pytest.mark.asyncio
    async def test_only_the_latest_payload_is_saved(self) -> None:
        sink = _RecordingSink()
        saver = AutoSaver(sink, interval=10.0)

        for text in ("H", "He", "Hello"):
            saver.request_save(_payload(text))
        assert saver.pending

        status = await saver.flush()

        assert status is SaveStatus.SAVED
        assert [payload.text for payload in sink.saved] == ["Hello"]
        assert saver.saves == 1
        assert not saver.pending

    @pytest.mark.asyncio
    async def test_status_transitions_are_published(self, event_bus, recorded_events) -> None:
        changes = recorded_events(SaveStatusChanged)
        saver = AutoSaver(_RecordingSink(), interval=0.0, event_bus=event_bus)

        saver.request_save(_payload(), immediate=True)
        await saver.flush()

        assert [change.status for change in changes] == ["saving", "saved"]
        assert changes[0].document_id == "doc-1"

    @pytest.mark.asyncio
    async def test_sink_failure_reports_error(self, event_bus, recorded_events) -> None:
        changes = recorded_events(SaveStatusChanged)
        saver = AutoSaver(_RecordingSink(fail=True), event_bus=event_bus)

        status = await saver.save_now(_payload())

        assert status is SaveStatus.ERROR
        assert saver.last_error == "disk full"
        assert changes[-1] == SaveStatusChanged(document_id="doc-1", status="error", detail="disk full")

    @pytest.mark.asyncio
    async def test_cancel_drops_the_pending_save(self) -> None:
        sink = _RecordingSink()
        saver = AutoSaver(sink, interval=10.0)

        saver.request_save(_payload())
        saver.cancel()
        await saver.flush()

        assert sink.saved == []
        assert saver.status is SaveStatus.SAVED

    def test_without_running_loop_status_is_error(self) -> None:
        saver = AutoSaver(_RecordingSink())

        saver.request_save(_payload())

        assert saver.status is SaveStatus.ERROR
        assert saver.last_error == "no running event loop"
