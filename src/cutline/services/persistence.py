"""Persistence sinks for document text + formatting, and the auto-saver."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Protocol

import httpx

from ..core.errors import PersistenceError
from ..core.formatting import FormattingData
from ..events import EventBus, SaveStatusChanged
from ..insertion.debounce import DebounceSlot

__all__ = [
    "AutoSaver",
    "DocumentPayload",
    "HttpPersistenceSink",
    "JsonFilePersistenceSink",
    "PersistenceSink",
    "SaveStatus",
]

LOGGER = logging.getLogger(__name__)
_DOCUMENT_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SaveStatus(str, Enum):
    SAVED = "saved"
    SAVING = "saving"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class DocumentPayload:
    """What a sink stores: the text and the formatting that annotates it."""

    document_id: str
    text: str
    formatting: FormattingData = field(default_factory=FormattingData)

    def to_wire(self) -> dict[str, Any]:
        return {"content": self.text, "formattingData": self.formatting.to_payload()}

    @classmethod
    def from_wire(cls, document_id: str, payload: Mapping[str, Any]) -> DocumentPayload:
        text = payload.get("content")
        if not isinstance(text, str):
            raise PersistenceError("Stored document has no text content", document_id=document_id)
        formatting = FormattingData.from_payload(payload.get("formattingData"))
        return cls(document_id=document_id, text=text, formatting=formatting)


class PersistenceSink(Protocol):
    """Durable storage for document payloads; failures raise."""

    async def save(self, payload: DocumentPayload) -> None:
        ...


class JsonFilePersistenceSink:
    """Stores each document as ``<directory>/<document_id>.json``."""

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, document_id: str) -> Path:
        safe = "".join(char if char.isalnum() or char in "-_" else "_" for char in document_id) or "document"
        return self._directory / f"{safe}.json"

    async def save(self, payload: DocumentPayload) -> None:
        self.write(payload)

    def write(self, payload: DocumentPayload) -> Path:
        body = dict(payload.to_wire())
        body["version"] = _DOCUMENT_VERSION
        body["id"] = payload.document_id
        body["savedAt"] = _utcnow().isoformat()
        path = self.path_for(payload.document_id)
        tmp_path = path.with_suffix(".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(body, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            raise PersistenceError(f"Unable to write {path}: {exc}", document_id=payload.document_id) from exc
        LOGGER.debug("Saved document %s to %s", payload.document_id, path)
        return path

    def load(self, document_id: str) -> DocumentPayload | None:
        """Return the stored payload, or ``None`` when nothing usable is on disk."""

        path = self.path_for(document_id)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as exc:
            LOGGER.warning("Document file %s is not valid JSON: %s", path, exc)
            return None
        if not isinstance(data, Mapping):
            return None
        try:
            return DocumentPayload.from_wire(document_id, data)
        except PersistenceError as exc:
            LOGGER.warning("Document file %s is unusable: %s", path, exc)
            return None


class HttpPersistenceSink:
    """Saves documents through the document service's ``PUT /api/documents/{id}``."""

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = 10.0,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers=dict(headers) if headers else None,
        )

    async def save(self, payload: DocumentPayload) -> None:
        path = f"/api/documents/{payload.document_id}"
        try:
            response = await self._client.put(path, json=payload.to_wire())
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            raise PersistenceError(f"Saving document failed: {exc}", document_id=payload.document_id) from exc
        except ValueError as exc:
            raise PersistenceError("Document service returned invalid JSON", document_id=payload.document_id) from exc
        if isinstance(body, Mapping) and body.get("success") is False:
            raise PersistenceError(
                f"Document service rejected the save: {body.get('error', 'unknown error')}",
                document_id=payload.document_id,
            )

    async def aclose(self) -> None:
        if not self._owns_client:
            return
        result = self._client.aclose()
        if inspect.isawaitable(result):
            await result


class AutoSaver:
    """Debounces saves to a sink and tracks the resulting save status.

    Only the latest payload requested within the debounce interval is
    written. Sink failures are logged and surface as ``SaveStatus.ERROR``.
    """

    def __init__(
        self,
        sink: PersistenceSink,
        *,
        interval: float = 2.0,
        event_bus: EventBus | None = None,
    ) -> None:
        self._sink = sink
        self._bus = event_bus
        self._slot = DebounceSlot(interval)
        self._status = SaveStatus.SAVED
        self._last_error: str | None = None
        self.saves = 0

    @property
    def status(self) -> SaveStatus:
        return self._status

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def pending(self) -> bool:
        return self._slot.pending

    def request_save(self, payload: DocumentPayload, *, immediate: bool = False) -> None:
        """Schedule ``payload`` to be written, replacing any pending request."""

        try:
            self._slot.schedule(lambda: self.save_now(payload), 0.0 if immediate else None)
        except RuntimeError:
            LOGGER.warning("No running event loop; save of %s not scheduled", payload.document_id)
            self._set_status(payload.document_id, SaveStatus.ERROR, "no running event loop")

    async def save_now(self, payload: DocumentPayload) -> SaveStatus:
        self._set_status(payload.document_id, SaveStatus.SAVING)
        try:
            await self._sink.save(payload)
        except Exception as exc:
            LOGGER.warning("Saving document %s failed: %s", payload.document_id, exc)
            self._set_status(payload.document_id, SaveStatus.ERROR, str(exc))
            return self._status
        self.saves += 1
        self._set_status(payload.document_id, SaveStatus.SAVED)
        return self._status

    async def flush(self) -> SaveStatus:
        """Write any pending payload now and wait for it to finish."""

        self._slot.flush()
        await self._slot.drain()
        return self._status

    def cancel(self) -> None:
        self._slot.cancel()

    def _set_status(self, document_id: str, status: SaveStatus, detail: str | None = None) -> None:
        self._last_error = detail if status is SaveStatus.ERROR else None
        if status is self._status and status is not SaveStatus.ERROR:
            return
        self._status = status
        if self._bus is not None:
            self._bus.publish(SaveStatusChanged(document_id=document_id, status=status.value, detail=detail))
