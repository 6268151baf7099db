from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import NotRequired, TypedDict

from ocrcheck.settings import Settings


class Status(str, Enum):
    """Outcome of comparing one image folder against its PDF."""

    MATCH = "MATCH"
    MISMATCH = "MISMATCH"
    UNRESOLVED = "UNRESOLVED"
    READ_ERROR = "READ_ERROR"

    @property
    def needs_archive(self) -> bool:
        # Anything we could not positively confirm is treated as a failure.
        return self is not Status.MATCH


class PageCountError(str, Enum):
    NOT_FOUND = "not_found"
    TOOL_INVOCATION_FAILED = "tool_invocation_failed"
    UNPARSEABLE_OUTPUT = "unparseable_output"


class Mode(str, Enum):
    COUNT_ONLY = "count"
    COUNT_AND_MOVE = "move"


@dataclass(frozen=True)
class ImageFolder:
    """A directory that directly holds one batch of scanned page images."""

    path: Path
    relative_path: Path
    image_files: tuple[Path, ...]

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def image_count(self) -> int:
        return len(self.image_files)


@dataclass(frozen=True)
class PageCountResult:
    """Page count for one PDF, or the reason it could not be obtained."""

    path: Path
    pages: int | None = None
    error: PageCountError | None = None
    detail: str = ""

    @classmethod
    def success(cls, path: Path, pages: int) -> PageCountResult:
        return cls(path=path, pages=pages)

    @classmethod
    def failure(cls, path: Path, error: PageCountError, detail: str = "") -> PageCountResult:
        return cls(path=path, error=error, detail=detail)

    @property
    def ok(self) -> bool:
        return self.error is None and self.pages is not None


class PageCountReport(TypedDict):
    """JSON shape of a single page-count lookup."""

    path: str
    pages: int | None
    error: str | None
    detail: NotRequired[str]


class FolderReport(TypedDict):
    """JSON shape of one classified folder."""

    folder: str
    relative_path: str
    images: int
    pdf: str | None
    pages: int | None
    status: str
    error: NotRequired[str]
    moved: NotRequired[int]
    move_failures: NotRequired[int]


class RunSummaryReport(TypedDict):
    """Aggregated results for one verification run."""

    mode: str
    input_dir: str
    output_dir: str
    archive_dir: str | None
    discovered: int
    matched: int
    mismatched: int
    unresolved: int
    read_errors: int
    moved: int
    move_failures: int
    folders: list[FolderReport]


@dataclass(frozen=True)
class ComparisonRecord:
    folder: ImageFolder
    pdf_path: Path | None
    page_result: PageCountResult | None
    status: Status

    def to_dict(self) -> FolderReport:
        report: FolderReport = {
            "folder": str(self.folder.path),
            "relative_path": self.folder.relative_path.as_posix(),
            "images": self.folder.image_count,
            "pdf": str(self.pdf_path) if self.pdf_path is not None else None,
            "pages": self.page_result.pages if self.page_result is not None else None,
            "status": self.status.value,
        }
        if self.page_result is not None and self.page_result.error is not None:
            report["error"] = self.page_result.error.value
        return report


@dataclass
class MoveOutcome:
    """What happened while archiving one folder's images."""

    source: Path
    destination: Path
    moved: list[Path] = field(default_factory=list)
    failed: list[Path] = field(default_factory=list)
    removed_dirs: list[Path] = field(default_factory=list)
    error: str | None = None


@dataclass
class RunSummary:
    """Counters for one run. Owned and updated only by the run function."""

    discovered: int = 0
    matched: int = 0
    mismatched: int = 0
    unresolved: int = 0
    read_errors: int = 0
    moved: int = 0
    move_failures: int = 0
    records: list[ComparisonRecord] = field(default_factory=list)
    moves: dict[Path, MoveOutcome] = field(default_factory=dict)

    def add(self, record: ComparisonRecord) -> None:
        self.records.append(record)
        if record.status is Status.MATCH:
            self.matched += 1
        elif record.status is Status.MISMATCH:
            self.mismatched += 1
        elif record.status is Status.UNRESOLVED:
            self.unresolved += 1
        else:
            self.read_errors += 1

    def add_move(self, outcome: MoveOutcome) -> None:
        self.moves[outcome.source] = outcome
        self.moved += len(outcome.moved)
        self.move_failures += len(outcome.failed)

    @property
    def flagged(self) -> int:
        return self.mismatched + self.unresolved + self.read_errors

    def to_dict(self, config: RunConfig) -> RunSummaryReport:
        folders: list[FolderReport] = []
        for record in self.records:
            report = record.to_dict()
            outcome = self.moves.get(record.folder.path)
            if outcome is not None:
                report["moved"] = len(outcome.moved)
                report["move_failures"] = len(outcome.failed)
            folders.append(report)
        return {
            "mode": config.mode.value,
            "input_dir": str(config.input_root),
            "output_dir": str(config.output_root),
            "archive_dir": str(config.archive_root) if config.archive_root is not None else None,
            "discovered": self.discovered,
            "matched": self.matched,
            "mismatched": self.mismatched,
            "unresolved": self.unresolved,
            "read_errors": self.read_errors,
            "moved": self.moved,
            "move_failures": self.move_failures,
            "folders": folders,
        }


@dataclass(frozen=True)
class RunConfig:
    """Everything a single verification run needs, passed in once."""

    mode: Mode
    input_root: Path
    output_root: Path
    archive_root: Path | None = None
    workers: int = 1
    settings: Settings = field(default_factory=Settings)


__all__ = [
    "ComparisonRecord",
    "FolderReport",
    "ImageFolder",
    "Mode",
    "MoveOutcome",
    "PageCountError",
    "PageCountReport",
    "PageCountResult",
    "RunConfig",
    "RunSummary",
    "RunSummaryReport",
    "Status",
]
