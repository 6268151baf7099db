from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

try:
    import yaml
except ImportError as exc:  # pragma: no cover - import guard
    raise SystemExit(
        "PyYAML is required to load ocrcheck settings. Install it with `pip install pyyaml`."
    ) from exc

from ocrcheck.errors import SettingsError

LOGGER = logging.getLogger("ocrcheck.settings")

DEFAULT_SETTINGS_PATH = Path("config/ocrcheck.yaml")
DEFAULT_IMAGE_EXTENSIONS = (".tif", ".tiff")


@dataclass(frozen=True)
class Settings:
    image_extensions: tuple[str, ...] = DEFAULT_IMAGE_EXTENSIONS
    pdfinfo_command: tuple[str, ...] = ("pdfinfo",)
    workers: int | None = None
    page_count_timeout: float | None = None


def _string_tuple(name: str, raw: Any) -> tuple[str, ...]:
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Iterable):
        raise SettingsError(f"Setting '{name}' must be a list of strings.")
    values = tuple(str(item) for item in raw)
    if not values:
        raise SettingsError(f"Setting '{name}' must not be empty.")
    return values


def _normalise_extension(extension: str) -> str:
    extension = extension.strip().lower()
    return extension if extension.startswith(".") else f".{extension}"


def parse_settings(raw: Any) -> Settings:
    """Validate a mapping loaded from YAML and build ``Settings`` from it."""
    if raw is None:
        return Settings()
    if not isinstance(raw, dict):
        raise SettingsError("Settings file must contain a mapping at the top level.")
    unknown = set(raw) - {"image_extensions", "pdfinfo_command", "workers", "page_count_timeout"}
    if unknown:
        raise SettingsError(f"Unknown settings: {', '.join(sorted(unknown))}")

    defaults = Settings()
    extensions = defaults.image_extensions
    if "image_extensions" in raw:
        extensions = tuple(_normalise_extension(ext) for ext in _string_tuple("image_extensions", raw["image_extensions"]))

    command = defaults.pdfinfo_command
    if "pdfinfo_command" in raw:
        value = raw["pdfinfo_command"]
        command = (value,) if isinstance(value, str) else _string_tuple("pdfinfo_command", value)

    workers = raw.get("workers", defaults.workers)
    if workers is not None and (isinstance(workers, bool) or not isinstance(workers, int) or workers < 1):
        raise SettingsError("Setting 'workers' must be a positive integer or null.")

    timeout = raw.get("page_count_timeout", defaults.page_count_timeout)
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise SettingsError("Setting 'page_count_timeout' must be a positive number or null.")
        timeout = float(timeout)

    return Settings(
        image_extensions=extensions,
        pdfinfo_command=command,
        workers=workers,
        page_count_timeout=timeout,
    )


def load_settings(settings_path: Path) -> Settings:
    """Load settings from a YAML file, falling back to defaults when it is absent."""
    if not settings_path.exists():
        LOGGER.debug(
            "Settings file not found, using defaults",
            extra={"structured_data": {"settings": str(settings_path)}},
        )
        return Settings()
    with settings_path.open("r", encoding="utf-8") as stream:
        try:
            raw = yaml.safe_load(stream)
        except yaml.YAMLError as exc:
            raise SettingsError(f"Could not parse {settings_path}: {exc}") from exc
    return parse_settings(raw)


__all__ = ["DEFAULT_SETTINGS_PATH", "Settings", "load_settings", "parse_settings"]
