from __future__ import annotations

import argparse
import json
import logging
from functools import partial
from pathlib import Path
from typing import Any

from ocrcheck.discovery import discover_image_folders, resolve_pdf
from ocrcheck.dispatch import PageCounter, count_pages_for, default_workers
from ocrcheck.errors import OcrCheckError, PathError
from ocrcheck.page_count import count_pages, ensure_tool_available
from ocrcheck.reconcile import move_folder
from ocrcheck.settings import DEFAULT_SETTINGS_PATH, Settings, load_settings
from ocrcheck.types import ComparisonRecord, Mode, PageCountResult, RunConfig, RunSummary, Status

PACKAGE_LOGGER = logging.getLogger("ocrcheck")
PACKAGE_LOGGER.propagate = False
LOGGER = logging.getLogger("ocrcheck.verify_cli")


class JsonLogFormatter(logging.Formatter):
    """Simple JSON formatter to keep log output structured."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname,
            "event": record.getMessage(),
            "logger": record.name,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        for key, value in getattr(record, "structured_data", {}).items():
            payload[key] = value
        return json.dumps(payload, default=str)


def configure_logging(verbose: bool) -> None:
    """Configure structured logging for the CLI."""
    PACKAGE_LOGGER.handlers.clear()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())
    PACKAGE_LOGGER.addHandler(handler)
    PACKAGE_LOGGER.setLevel(logging.DEBUG if verbose else logging.INFO)


def classify(image_count: int, page_result: PageCountResult | None) -> Status:
    """Compare a folder's image count against its PDF's page count."""
    if page_result is None:
        return Status.UNRESOLVED
    if not page_result.ok:
        return Status.READ_ERROR
    if page_result.pages == image_count:
        return Status.MATCH
    return Status.MISMATCH


def validate_config(config: RunConfig) -> None:
    """Raise ``PathError`` when the roots in ``config`` cannot be used for a run."""
    if not config.input_root.is_dir():
        raise PathError(f"Input directory does not exist: {config.input_root}")
    if not config.output_root.is_dir():
        raise PathError(f"Output directory does not exist: {config.output_root}")
    if config.mode is not Mode.COUNT_AND_MOVE:
        return
    if config.archive_root is None:
        raise PathError("An archive directory is required when moving mismatched folders.")
    archive = config.archive_root.resolve()
    source = config.input_root.resolve()
    if archive == source or source in archive.parents:
        raise PathError(f"Archive directory must not be inside the input directory: {config.archive_root}")
    if archive.exists() and not archive.is_dir():
        raise PathError(f"Archive path is not a directory: {config.archive_root}")


def build_counter(settings: Settings) -> PageCounter:
    ensure_tool_available(settings.pdfinfo_command)
    return partial(count_pages, command=settings.pdfinfo_command, timeout=settings.page_count_timeout)


def run_verification(config: RunConfig, counter: PageCounter | None = None) -> RunSummary:
    """Discover image folders, compare page counts and archive failures.

    ``counter`` defaults to pdfinfo as configured in ``config.settings``.
    Returns a fresh ``RunSummary``; the run keeps no state of its own.
    """
    validate_config(config)
    if counter is None:
        counter = build_counter(config.settings)

    summary = RunSummary()
    folders = discover_image_folders(config.input_root, config.settings.image_extensions)
    summary.discovered = len(folders)
    LOGGER.info(
        "Discovered image folders",
        extra={"structured_data": {"input_dir": str(config.input_root), "folders": len(folders)}},
    )

    resolved = [(folder, resolve_pdf(config.output_root, folder)) for folder in folders]
    for folder, pdf_path in resolved:
        if pdf_path is None:
            LOGGER.warning(
                "No PDF found for folder",
                extra={"structured_data": {"folder": str(folder.path)}},
            )

    archive_root = config.archive_root if config.mode is Mode.COUNT_AND_MOVE else None
    page_results = count_pages_for(
        (pdf_path for _, pdf_path in resolved if pdf_path is not None),
        counter,
        config.workers,
    )

    for folder, pdf_path in resolved:
        page_result = page_results[pdf_path] if pdf_path is not None else None
        record = ComparisonRecord(
            folder=folder,
            pdf_path=pdf_path,
            page_result=page_result,
            status=classify(folder.image_count, page_result),
        )
        summary.add(record)
        level = logging.INFO if record.status is Status.MATCH else logging.WARNING
        LOGGER.log(
            level,
            "Folder checked",
            extra={
                "structured_data": {
                    "folder": str(folder.path),
                    "images": folder.image_count,
                    "pages": page_result.pages if page_result is not None else None,
                    "status": record.status.value,
                }
            },
        )
        if archive_root is not None and record.status.needs_archive:
            summary.add_move(move_folder(folder, config.input_root, archive_root))

    LOGGER.info(
        "Verification finished",
        extra={
            "structured_data": {
                "discovered": summary.discovered,
                "matched": summary.matched,
                "mismatched": summary.mismatched,
                "unresolved": summary.unresolved,
                "read_errors": summary.read_errors,
                "moved": summary.moved,
                "move_failures": summary.move_failures,
            }
        },
    )
    return summary


def _resolve(path: Path | None) -> Path | None:
    return path.expanduser().resolve() if path is not None else None


def build_config(args: argparse.Namespace, settings: Settings, mode: Mode) -> RunConfig:
    workers = args.workers or settings.workers or default_workers()
    return RunConfig(
        mode=mode,
        input_root=_resolve(args.input_dir),
        output_root=_resolve(args.output_dir),
        archive_root=_resolve(getattr(args, "archive_dir", None)),
        workers=1 if args.sequential else workers,
        settings=settings,
    )


def execute(config: RunConfig) -> int:
    try:
        summary = run_verification(config)
    except OcrCheckError as error:
        LOGGER.error("Run aborted", extra={"structured_data": {"reason": str(error)}})
        return 2
    print(json.dumps(summary.to_dict(config)))
    return 0 if summary.flagged == 0 and summary.move_failures == 0 else 1


def handle_count_command(args: argparse.Namespace, settings: Settings) -> int:
    """Handle the ``count`` subcommand."""
    return execute(build_config(args, settings, Mode.COUNT_ONLY))


def handle_move_command(args: argparse.Namespace, settings: Settings) -> int:
    """Handle the ``move`` subcommand."""
    return execute(build_config(args, settings, Mode.COUNT_AND_MOVE))


def _add_root_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--input-dir",
        type=Path,
        required=True,
        help="Root directory holding the folders of scanned TIFF pages.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        required=True,
        help="Root directory holding the OCR'd PDFs.",
    )


def build_parser() -> argparse.ArgumentParser:
    """Create the top-level argument parser."""
    parser = argparse.ArgumentParser(description="Check that every TIFF folder has a PDF with as many pages")
    parser.add_argument(
        "--config",
        default=DEFAULT_SETTINGS_PATH,
        type=Path,
        help="Path to the YAML settings file.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of parallel pdfinfo calls. Defaults to the settings file, then the CPU count.",
    )
    parser.add_argument(
        "--sequential",
        action="store_true",
        help="Count pages one PDF at a time.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    count_parser = subparsers.add_parser("count", help="Compare page counts without touching any file")
    _add_root_arguments(count_parser)
    count_parser.set_defaults(handler=handle_count_command)

    move_parser = subparsers.add_parser("move", help="Compare page counts and archive failing folders")
    _add_root_arguments(move_parser)
    move_parser.add_argument(
        "--archive-dir",
        type=Path,
        required=True,
        help="Directory that receives the images of folders that failed verification.",
    )
    move_parser.set_defaults(handler=handle_move_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose)
    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be at least 1.")
    try:
        settings = load_settings(Path(args.config))
    except OcrCheckError as error:
        LOGGER.error("Settings could not be loaded", extra={"structured_data": {"reason": str(error)}})
        return 2
    return args.handler(args, settings)


if __name__ == "__main__":
    raise SystemExit(main())
