from __future__ import annotations


class OcrCheckError(Exception):
    """Base class for failures that abort a verification run."""


class PathError(OcrCheckError):
    """A required root path is missing, unreadable or inconsistent."""


class ToolUnavailableError(OcrCheckError):
    """The external page-count tool cannot be found on this host."""


class SettingsError(OcrCheckError):
    """The YAML settings file is malformed."""


__all__ = [
    "OcrCheckError",
    "PathError",
    "SettingsError",
    "ToolUnavailableError",
]
