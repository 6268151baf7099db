from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from ocrcheck.errors import PathError
from ocrcheck.settings import DEFAULT_IMAGE_EXTENSIONS
from ocrcheck.types import ImageFolder

LOGGER = logging.getLogger("ocrcheck.discovery")


def _log_walk_error(error: OSError) -> None:
    LOGGER.warning(
        "Skipping unreadable directory",
        extra={"structured_data": {"path": error.filename, "error": error.strerror}},
    )


def discover_image_folders(
    input_root: Path,
    extensions: Iterable[str] = DEFAULT_IMAGE_EXTENSIONS,
) -> list[ImageFolder]:
    """Return every directory under ``input_root`` that directly holds page images.

    Directories are visited in lexicographic order so that repeated runs over
    an unchanged tree yield the same folders in the same order.
    """
    if not input_root.is_dir():
        raise PathError(f"Input directory does not exist or is not a directory: {input_root}")
    if not os.access(input_root, os.R_OK | os.X_OK):
        raise PathError(f"Input directory is not readable: {input_root}")

    suffixes = {ext.lower() for ext in extensions}
    folders: list[ImageFolder] = []
    for dirpath, dirnames, filenames in os.walk(input_root, onerror=_log_walk_error):
        dirnames.sort()
        directory = Path(dirpath)
        images = tuple(
            directory / name
            for name in sorted(filenames)
            if Path(name).suffix.lower() in suffixes and (directory / name).is_file()
        )
        if not images:
            continue
        folders.append(
            ImageFolder(
                path=directory,
                relative_path=directory.relative_to(input_root),
                image_files=images,
            )
        )
    LOGGER.debug(
        "Discovery complete",
        extra={"structured_data": {"input_dir": str(input_root), "folders": len(folders)}},
    )
    return folders


def _pdf_names(name: str) -> tuple[str, ...]:
    return (f"{name}.pdf", f"{name}.PDF")


def candidate_pdf_paths(output_root: Path, folder: ImageFolder) -> list[Path]:
    """List the places a folder's PDF may live, most specific layout first."""
    layouts = [output_root / folder.relative_path, output_root]
    if folder.relative_path != Path("."):
        layouts.append(output_root / folder.path.parent.name)
        # Output tree that mirrors each folder as a file next to its siblings.
        layouts.append(output_root / folder.relative_path.parent)

    candidates: list[Path] = []
    for directory in layouts:
        for filename in _pdf_names(folder.name):
            candidate = directory / filename
            if candidate not in candidates:
                candidates.append(candidate)
    return candidates


def resolve_pdf(output_root: Path, folder: ImageFolder) -> Path | None:
    """Return the first existing PDF for ``folder`` or ``None`` when there is none."""
    for candidate in candidate_pdf_paths(output_root, folder):
        if candidate.is_file():
            return candidate
    return None


__all__ = ["candidate_pdf_paths", "discover_image_folders", "resolve_pdf"]
