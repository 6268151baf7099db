from __future__ import annotations

import logging
import shutil
from pathlib import Path

from ocrcheck.types import ImageFolder, MoveOutcome

LOGGER = logging.getLogger("ocrcheck.reconcile")


def archive_destination(folder: ImageFolder, input_root: Path, archive_root: Path) -> Path:
    """Re-root ``folder`` from ``input_root`` onto ``archive_root``."""
    return archive_root / folder.path.relative_to(input_root)


def _is_empty(directory: Path) -> bool:
    try:
        return not any(directory.iterdir())
    except OSError:
        return False


def _remove_if_empty(directory: Path, outcome: MoveOutcome) -> bool:
    if not _is_empty(directory):
        return False
    try:
        directory.rmdir()
    except OSError as exc:
        LOGGER.warning(
            "Could not remove empty directory",
            extra={"structured_data": {"path": str(directory), "error": str(exc)}},
        )
        return False
    outcome.removed_dirs.append(directory)
    return True


def _discard_partial_copy(image: Path, target: Path) -> None:
    # A cross-device move copies first; if the source survived, the copy must go.
    if not (image.exists() and target.exists()):
        return
    try:
        target.unlink()
    except OSError as exc:
        LOGGER.error(
            "Could not remove partial archive copy",
            extra={"structured_data": {"destination": str(target), "error": str(exc)}},
        )


def move_folder(folder: ImageFolder, input_root: Path, archive_root: Path) -> MoveOutcome:
    """Move a folder's page images into the mirrored archive path.

    The destination directory is created before any file is moved; if that
    fails nothing is moved. A file that cannot be moved is logged and recorded
    in ``failed`` and the remaining files are still attempted. Once the source
    directory is empty it is removed, followed by its parent when that is empty
    too. Pruning never goes further up and never removes ``input_root``.
    """
    destination = archive_destination(folder, input_root, archive_root)
    outcome = MoveOutcome(source=folder.path, destination=destination)

    try:
        destination.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        outcome.error = str(exc)
        outcome.failed.extend(folder.image_files)
        LOGGER.error(
            "Could not create archive directory",
            extra={"structured_data": {"destination": str(destination), "error": str(exc)}},
        )
        return outcome

    for image in folder.image_files:
        target = destination / image.name
        if target.exists():
            outcome.failed.append(image)
            LOGGER.error(
                "Archive already holds a file with this name",
                extra={"structured_data": {"source": str(image), "destination": str(target)}},
            )
            continue
        try:
            shutil.move(str(image), str(target))
        except OSError as exc:
            outcome.failed.append(image)
            LOGGER.error(
                "Failed to move image",
                extra={"structured_data": {"source": str(image), "destination": str(target), "error": str(exc)}},
            )
            _discard_partial_copy(image, target)
            continue
        outcome.moved.append(target)

    LOGGER.info(
        "Archived folder",
        extra={
            "structured_data": {
                "source": str(folder.path),
                "destination": str(destination),
                "moved": len(outcome.moved),
                "failed": len(outcome.failed),
            }
        },
    )

    if folder.path == input_root:
        return outcome
    if _remove_if_empty(folder.path, outcome):
        parent = folder.path.parent
        if parent != input_root:
            _remove_if_empty(parent, outcome)
    return outcome


__all__ = ["archive_destination", "move_folder"]
