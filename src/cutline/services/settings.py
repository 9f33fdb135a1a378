"""Engine settings and their JSON persistence."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from ..core.errors import SettingsError
from ..core.formatting import DEFAULT_EMPHASIS_FONT, DEFAULT_EMPHASIS_SIZE, DEFAULT_MINIMIZE_SIZE

__all__ = ["EngineSettings", "SettingsStore", "DEFAULT_SETTINGS_PATH"]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".cutline"
DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "CUTLINE_API_BASE_URL": "api_base_url",
    "CUTLINE_EMPHASIS_FONT": "emphasis_font",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "CUTLINE_DEBUG_LOGGING": "debug_logging",
    "CUTLINE_ENABLE_AUTOSAVE": "enable_autosave",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "CUTLINE_SEARCH_DELAY": "search_delay",
    "CUTLINE_AUTOSAVE_INTERVAL": "autosave_interval",
    "CUTLINE_REQUEST_TIMEOUT": "request_timeout",
    "CUTLINE_EMPHASIS_SIZE": "emphasis_size",
    "CUTLINE_MINIMIZE_SIZE": "minimize_size",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "CUTLINE_MAX_RESULTS": "max_results",
    "CUTLINE_CHARACTER_LIMIT": "character_limit",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class EngineSettings:
    """User-configurable knobs for one editor session."""

    emphasis_font: str = DEFAULT_EMPHASIS_FONT
    emphasis_size: float = DEFAULT_EMPHASIS_SIZE
    minimize_size: float = DEFAULT_MINIMIZE_SIZE
    search_delay: float = 0.3
    max_results: int = 10
    enable_formatting: bool = True
    enable_highlighting: bool = True
    enable_minimize: bool = True
    enable_autosave: bool = False
    autosave_interval: float = 2.0
    character_limit: int | None = None
    api_base_url: str = "http://localhost:3000"
    request_timeout: float = 10.0
    debug_logging: bool = False
    default_headers: dict[str, str] = field(default_factory=dict)


class SettingsStore:
    """Persistence adapter for :class:`EngineSettings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> EngineSettings:
        """Load settings from disk, then apply CLI and environment overrides."""

        payload = self._read_payload()
        settings = EngineSettings()
        if payload:
            data = _filter_fields(payload)
            try:
                settings = EngineSettings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = EngineSettings()
            LOGGER.debug("Settings loaded from %s (%d field(s))", self._path, len(data))

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")
        return self._apply_env_overrides(settings)

    def save(self, settings: EngineSettings) -> Path:
        """Persist settings with an atomic replace of the target file."""

        data: Dict[str, Any] = asdict(settings)
        data["version"] = _SETTINGS_VERSION
        body = json.dumps(data, indent=2, sort_keys=True)
        tmp_path = self._path.with_suffix(".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(body, encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            raise SettingsError(f"Unable to write settings to {self._path}: {exc}") from exc
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: EngineSettings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> EngineSettings:
        allowed = {item.name for item in fields(EngineSettings)}
        filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: EngineSettings) -> EngineSettings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(EngineSettings)}
    return {key: value for key, value in payload.items() if key in allowed}
