from __future__ import annotations

from pathlib import Path

import pytest

from ocrcheck.types import PageCountError, PageCountResult


def make_images(directory: Path, count: int, suffix: str = ".tif") -> list[Path]:
    directory.mkdir(parents=True, exist_ok=True)
    images = []
    for index in range(1, count + 1):
        image = directory / f"page_{index:03d}{suffix}"
        image.write_bytes(b"II*\x00")
        images.append(image)
    return images


def make_pdf(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"%PDF-1.4\n")
    return path


class FakeCounter:
    """Stands in for pdfinfo: page counts keyed by PDF stem."""

    def __init__(self, pages: dict[str, int], broken: set[str] | None = None) -> None:
        self.pages = pages
        self.broken = broken or set()
        self.calls: list[Path] = []

    def __call__(self, path: Path) -> PageCountResult:
        self.calls.append(path)
        if path.stem in self.broken:
            return PageCountResult.failure(path, PageCountError.UNPARSEABLE_OUTPUT, "garbled")
        return PageCountResult.success(path, self.pages[path.stem])


@pytest.fixture
def roots(tmp_path: Path) -> tuple[Path, Path, Path]:
    input_root = tmp_path / "Input"
    output_root = tmp_path / "Output"
    archive_root = tmp_path / "Archive"
    input_root.mkdir()
    output_root.mkdir()
    return input_root, output_root, archive_root
