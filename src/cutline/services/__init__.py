"""Service layer: settings and document persistence."""

from .persistence import (
    AutoSaver,
    DocumentPayload,
    HttpPersistenceSink,
    JsonFilePersistenceSink,
    PersistenceSink,
    SaveStatus,
)
from .settings import DEFAULT_SETTINGS_PATH, EngineSettings, SettingsStore

__all__ = [
    "AutoSaver",
    "DEFAULT_SETTINGS_PATH",
    "DocumentPayload",
    "EngineSettings",
    "HttpPersistenceSink",
    "JsonFilePersistenceSink",
    "PersistenceSink",
    "SaveStatus",
    "SettingsStore",
]
