from __future__ import annotations

import argparse
import json
import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import Sequence

from ocrcheck.errors import ToolUnavailableError
from ocrcheck.types import PageCountError, PageCountReport, PageCountResult

LOGGER = logging.getLogger("ocrcheck.page_count")

DEFAULT_COMMAND = ("pdfinfo",)
PAGES_PATTERN = re.compile(r"^Pages:\s*(-?\d+)\s*$", re.MULTILINE)
MAX_PREVIEW = 4096  # Prevent log spam by limiting collected output.


def configure_logging(verbose: bool) -> None:
    """Configure plain logging for the standalone page counter."""
    LOGGER.handlers.clear()
    LOGGER.propagate = False
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    LOGGER.addHandler(handler)
    LOGGER.setLevel(logging.DEBUG if verbose else logging.INFO)


def ensure_tool_available(command: Sequence[str] = DEFAULT_COMMAND) -> str:
    """Return the resolved executable for ``command`` or raise ``ToolUnavailableError``."""
    executable = shutil.which(command[0])
    if executable is None:
        raise ToolUnavailableError(
            f"'{command[0]}' was not found on PATH. Install poppler-utils or set 'pdfinfo_command'."
        )
    return executable


def parse_page_count(stdout: str) -> int | None:
    """Extract the ``Pages:`` field from pdfinfo output."""
    match = PAGES_PATTERN.search(stdout)
    if match is None:
        return None
    pages = int(match.group(1))
    return pages if pages >= 0 else None


def count_pages(
    pdf_path: Path,
    command: Sequence[str] = DEFAULT_COMMAND,
    timeout: float | None = None,
) -> PageCountResult:
    """Ask pdfinfo how many pages ``pdf_path`` has.

    Every failure is returned as a ``PageCountResult`` carrying a
    ``PageCountError``; nothing is raised for an unreadable PDF.
    """
    if not pdf_path.is_file():
        return PageCountResult.failure(pdf_path, PageCountError.NOT_FOUND, "PDF does not exist")

    argv = [*command, str(pdf_path)]
    try:
        completed = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        LOGGER.error(
            "pdfinfo timed out",
            extra={"structured_data": {"pdf": str(pdf_path), "timeout": timeout}},
        )
        return PageCountResult.failure(
            pdf_path, PageCountError.TOOL_INVOCATION_FAILED, f"timed out after {timeout}s"
        )
    except OSError as exc:
        LOGGER.error(
            "pdfinfo could not be started",
            extra={"structured_data": {"pdf": str(pdf_path), "command": argv, "error": str(exc)}},
        )
        return PageCountResult.failure(pdf_path, PageCountError.TOOL_INVOCATION_FAILED, str(exc))

    if completed.returncode != 0:
        stderr = (completed.stderr or "")[:MAX_PREVIEW]
        LOGGER.error(
            "pdfinfo failed",
            extra={
                "structured_data": {
                    "pdf": str(pdf_path),
                    "returncode": completed.returncode,
                    "stderr": stderr,
                }
            },
        )
        return PageCountResult.failure(
            pdf_path,
            PageCountError.TOOL_INVOCATION_FAILED,
            f"exit code {completed.returncode}: {stderr.strip()}",
        )

    pages = parse_page_count(completed.stdout or "")
    if pages is None:
        LOGGER.error(
            "pdfinfo output has no page count",
            extra={"structured_data": {"pdf": str(pdf_path), "stdout": (completed.stdout or "")[:MAX_PREVIEW]}},
        )
        return PageCountResult.failure(pdf_path, PageCountError.UNPARSEABLE_OUTPUT, "no 'Pages:' field")

    LOGGER.debug("Counted pages", extra={"structured_data": {"pdf": str(pdf_path), "pages": pages}})
    return PageCountResult.success(pdf_path, pages)


def to_report(result: PageCountResult) -> PageCountReport:
    report: PageCountReport = {
        "path": str(result.path),
        "pages": result.pages,
        "error": result.error.value if result.error is not None else None,
    }
    if result.detail:
        report["detail"] = result.detail
    return report


def build_parser() -> argparse.ArgumentParser:
    """Create a CLI parser for counting the pages of a single PDF."""
    parser = argparse.ArgumentParser(description="Report the page count of a PDF via pdfinfo")
    parser.add_argument("pdf", type=Path, help="PDF file to inspect")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds to wait for pdfinfo")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    pdf_path = args.pdf.expanduser().resolve()
    try:
        ensure_tool_available()
    except ToolUnavailableError as error:
        LOGGER.error("%s", error)
        return 2
    result = count_pages(pdf_path, timeout=args.timeout)
    print(json.dumps(to_report(result)))
    return 0 if result.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
