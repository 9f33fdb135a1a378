"""Command-line entry point: render, minimize and search from a terminal."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, cast, get_args, get_origin, get_type_hints

from .core.errors import CutlineError
from .core.formatting import FormattingData
from .editor.minimize import minimize_non_emphasized
from .editor.segments import render_html, segment_text
from .editor.session import EditorSession
from .insertion.providers import HttpItemSearchProvider, ItemSearchProvider
from .insertion.session import TRIGGER_CHARACTER, InsertionStateMachine
from .insertion.templates import build_insertion_block
from .services.settings import EngineSettings, SettingsStore
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class QtRuntime:
    """Container returned by :func:`create_qapp`."""

    app: Any
    loop: asyncio.AbstractEventLoop


def configure_logging(debug: bool = False, *, force: bool = False, console: bool = True) -> None:
    # CUTLINE_LOG_LEVEL wins over the quiet CLI default unless --debug is given.
    level: int | str = logging.DEBUG if debug else os.environ.get("CUTLINE_LOG_LEVEL") or logging.WARNING
    log_path = logging_utils.setup_logging(level, force=force, console=console)
    _LOGGER.debug("Logging configured (level=%s, path=%s)", level, log_path)


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> EngineSettings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except (OSError, ValueError, TypeError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return EngineSettings()


def create_qapp() -> QtRuntime:
    """Create (or reuse) a ``QApplication`` driven by a qasync event loop."""

    try:  # Local import to avoid mandatory PySide6 dependency at import time.
        from PySide6.QtWidgets import QApplication
    except ImportError as exc:  # pragma: no cover - depends on desktop stack
        raise RuntimeError("PySide6 must be installed to host a Qt editor.") from exc

    try:
        from qasync import QEventLoop
    except ImportError as exc:  # pragma: no cover - depends on env setup
        raise RuntimeError("qasync is required to run insertion searches inside Qt.") from exc

    app = cast(Any, QApplication.instance() or QApplication(sys.argv))
    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    try:
        app.aboutToQuit.connect(loop.stop)  # type: ignore[attr-defined]
    except AttributeError:  # pragma: no cover - in case of mock QApplication
        pass
    return QtRuntime(app=app, loop=loop)


def create_qt_editor(
    runtime: QtRuntime,
    settings: EngineSettings | None = None,
    *,
    text: str = "",
    provider: ItemSearchProvider | None = None,
    **session_kwargs: Any,
) -> tuple[Any, EditorSession]:
    """Build a ``QTextEdit`` surface and a bound session on ``runtime``'s loop.

    Searches and debounce timers run on the qasync loop, so slash insertion
    works while Qt owns the main thread.
    """

    from .editor.qt_surface import QtTextSurface

    surface = QtTextSurface()
    session = EditorSession(
        surface,
        text=text,
        settings=settings,
        provider=provider,
        loop=runtime.loop,
        **session_kwargs,
    )
    surface.bind(session)
    return surface, session


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``cutline`` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = args.debug or _env_flag("CUTLINE_DEBUG", default=False)
    try:
        configure_logging(debug)
    except (OSError, ValueError) as exc:
        print(f"error: cannot configure logging: {exc}", file=sys.stderr)
        return 1

    settings_path = args.settings_path or os.environ.get("CUTLINE_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2
    settings = load_settings(resolved_path, store=store, overrides=cli_overrides or None)
    if settings.debug_logging and not debug:
        try:
            configure_logging(True, force=True)
        except OSError as exc:
            print(f"error: cannot configure logging: {exc}", file=sys.stderr)
            return 1

    try:
        if args.command == "render":
            return _run_render(args, settings)
        if args.command == "minimize":
            return _run_minimize(args, settings)
        if args.command == "search":
            return asyncio.run(_run_search(args, settings))
        if args.command == "settings":
            _dump_settings(settings, store, overrides=cli_overrides)
            return 0
    except (CutlineError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    parser.print_help(sys.stderr)
    return 2


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


def _run_render(args: argparse.Namespace, settings: EngineSettings, stream: TextIO | None = None) -> int:
    destination = stream or sys.stdout
    text = _read_text(args.text)
    formatting = _read_formatting(args.formatting)
    segments = segment_text(text, formatting if settings.enable_formatting else None)
    if args.output == "segments":
        payload = [
            {
                "text": segment.text,
                "start": segment.start,
                "end": segment.end,
                "css": segment.style.css(),
                "classes": list(segment.style.css_classes()),
            }
            for segment in segments
        ]
        json.dump(payload, destination, indent=2)
        destination.write("\n")
    else:
        destination.write(render_html(segments))
        destination.write("\n")
    return 0


def _run_minimize(args: argparse.Namespace, settings: EngineSettings, stream: TextIO | None = None) -> int:
    destination = stream or sys.stdout
    text = _read_text(args.text)
    formatting = _read_formatting(args.formatting)
    size = args.size if args.size is not None else settings.minimize_size
    updated = minimize_non_emphasized(formatting, len(text), size)
    if updated is formatting and not formatting.emphasis:
        print("warning: no emphasis ranges; nothing to minimize", file=sys.stderr)
    json.dump(updated.to_payload(), destination, indent=2)
    destination.write("\n")
    return 0


async def _run_search(args: argparse.Namespace, settings: EngineSettings, stream: TextIO | None = None) -> int:
    destination = stream or sys.stdout
    base_url = args.base_url or settings.api_base_url
    provider = HttpItemSearchProvider(
        base_url,
        timeout=settings.request_timeout,
        headers=settings.default_headers or None,
    )
    limit = args.limit if args.limit is not None else settings.max_results
    machine = InsertionStateMachine(provider, search_delay=0.0, max_results=limit)
    try:
        query_text = f"{TRIGGER_CHARACTER}{args.query}"
        machine.handle_text_change(TRIGGER_CHARACTER, 1)
        machine.handle_text_change(query_text, len(query_text))
        await machine.settle()
        items = machine.state.items
    finally:
        await provider.aclose()

    if not items:
        print("No results found", file=sys.stderr)
        return 0
    for item in items:
        record: Dict[str, Any] = {"id": item.id, "kind": item.kind.value, "title": item.title}
        if args.show_block:
            record["block"] = build_insertion_block(item)
        destination.write(json.dumps(record, ensure_ascii=False))
        destination.write("\n")
    return 0


# ----------------------------------------------------------------------
# Argument parsing
# ----------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cutline",
        description="Render formatted evidence text, minimize it, or search insertable items.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.cutline/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    commands = parser.add_subparsers(dest="command")

    render = commands.add_parser("render", help="Render text and formatting as HTML or segments.")
    render.add_argument("text", help="Text file to render, or '-' for stdin.")
    render.add_argument("--formatting", metavar="PATH", help="Formatting JSON file.")
    render.add_argument("--output", choices=("html", "segments"), default="html")

    minimize = commands.add_parser("minimize", help="Minimize everything outside the emphasis ranges.")
    minimize.add_argument("text", help="Text file, or '-' for stdin.")
    minimize.add_argument("--formatting", metavar="PATH", required=True, help="Formatting JSON file.")
    minimize.add_argument("--size", type=float, help="Minimized font size in points.")

    search = commands.add_parser("search", help="Search evidence cards and analytics.")
    search.add_argument("query", help="Search text typed after the slash; whitespace ends the query.")
    search.add_argument("--base-url", help="Search service base URL.")
    search.add_argument("--limit", type=int)
    search.add_argument("--show-block", action="store_true", help="Include the text that would be inserted.")

    commands.add_parser("settings", help="Print the effective settings and exit.")
    return parser


def _read_text(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).expanduser().read_text(encoding="utf-8")


def _read_formatting(source: str | None) -> FormattingData:
    if not source:
        return FormattingData.empty()
    try:
        payload = json.loads(Path(source).expanduser().read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise CutlineError(f"Formatting file {source} is not valid JSON: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise CutlineError(f"Formatting file {source} does not contain an object")
    return FormattingData.from_payload(payload)


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = EngineSettings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(EngineSettings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(type_hints.get(key, fields[key].type), raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    optional = type(None) in get_args(annotation)
    target = _resolve_annotation(annotation)
    if optional and raw_value.lower() in {"none", "null", ""}:
        return None
    if target is bool:
        return _parse_bool(raw_value)
    if target is int:
        return int(raw_value, 10)
    if target is float:
        return float(raw_value)
    if target is dict:
        try:
            value = json.loads(raw_value or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
        if not isinstance(value, dict):
            raise ValueError("Dict overrides must be valid JSON objects")
        return value
    return raw_value


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is dict:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: EngineSettings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": sorted(name for name in os.environ if name.startswith("CUTLINE_")),
    }
    json.dump({"settings": asdict(settings), "meta": metadata}, destination, indent=2)
    destination.write("\n")


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
