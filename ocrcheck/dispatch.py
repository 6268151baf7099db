from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Iterable

from ocrcheck.types import PageCountError, PageCountResult

LOGGER = logging.getLogger("ocrcheck.dispatch")

PageCounter = Callable[[Path], PageCountResult]


def _unique(paths: Iterable[Path]) -> list[Path]:
    seen: set[Path] = set()
    ordered: list[Path] = []
    for path in paths:
        if path not in seen:
            seen.add(path)
            ordered.append(path)
    return ordered


def default_workers() -> int:
    return os.cpu_count() or 1


def _crashed(path: Path, exc: Exception) -> PageCountResult:
    LOGGER.error(
        "Page count task crashed",
        exc_info=exc,
        extra={"structured_data": {"pdf": str(path)}},
    )
    return PageCountResult.failure(path, PageCountError.TOOL_INVOCATION_FAILED, str(exc))


def count_pages_sequential(paths: Iterable[Path], counter: PageCounter) -> dict[Path, PageCountResult]:
    """Count pages one PDF at a time."""
    results: dict[Path, PageCountResult] = {}
    for path in _unique(paths):
        try:
            results[path] = counter(path)
        except Exception as exc:
            results[path] = _crashed(path, exc)
    return results


def count_pages_parallel(
    paths: Iterable[Path],
    counter: PageCounter,
    workers: int | None = None,
) -> dict[Path, PageCountResult]:
    """Count pages with one pool task per PDF and wait for all of them.

    Results are keyed by the full PDF path each task was submitted with, so
    completion order does not matter. Only this thread writes to the result
    mapping, and only after a task has finished.
    """
    unique_paths = _unique(paths)
    if not unique_paths:
        return {}
    max_workers = max(1, min(workers or default_workers(), len(unique_paths)))
    LOGGER.info(
        "Counting pages in parallel",
        extra={"structured_data": {"pdfs": len(unique_paths), "workers": max_workers}},
    )
    results: dict[Path, PageCountResult] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {pool.submit(counter, path): path for path in unique_paths}
        for future in as_completed(futures):
            path = futures[future]
            try:
                results[path] = future.result()
            except Exception as exc:
                results[path] = _crashed(path, exc)
    return results


def count_pages_for(
    paths: Iterable[Path],
    counter: PageCounter,
    workers: int | None = None,
) -> dict[Path, PageCountResult]:
    """Pick the sequential or pooled strategy based on ``workers``."""
    if workers is not None and workers <= 1:
        return count_pages_sequential(paths, counter)
    return count_pages_parallel(paths, counter, workers)


__all__ = [
    "PageCounter",
    "count_pages_for",
    "count_pages_parallel",
    "count_pages_sequential",
    "default_workers",
]
