"""Materialize extraction records as markdown files."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from docmigrate.errors import MaterializeError, PathCollisionError
from docmigrate.models import DocExtraction, WriteReport

logger = logging.getLogger(__name__)


def write_extractions(
    extractions: Iterable[DocExtraction],
    dry_run: bool = False,
    workers: int = 1,
) -> WriteReport:
    """Write every record to its markdown path.

    Records that collide (same path, different content) are reported and
    neither is written. Identical duplicates are written once. Files that
    already hold the exact content are counted as skipped. In dry-run mode
    the same checks run and the same counts are reported, but nothing on
    disk changes.

    Args:
        extractions: Records to materialize.
        dry_run: Validate and count without touching the filesystem.
        workers: Number of directory groups written concurrently.
    """
    report = WriteReport()
    unique = _resolve_collisions(list(extractions), report)
    groups = _group_by_directory(unique)

    if workers > 1 and len(groups) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            partials = list(
                pool.map(lambda group: _write_group(group[0], group[1], dry_run), groups)
            )
    else:
        partials = [_write_group(directory, records, dry_run) for directory, records in groups]

    for partial in partials:
        report.merge(partial)

    logger.info(
        "%s %d file(s), skipped %d unchanged, %d error(s)",
        "Would write" if dry_run else "Wrote",
        report.files_written,
        report.files_skipped,
        len(report.errors),
    )
    return report


# -- Helpers -------------------------------------------------------------------


def _resolve_collisions(
    extractions: list[DocExtraction], report: WriteReport
) -> list[DocExtraction]:
    first: dict[Path, DocExtraction] = {}
    collided: set[Path] = set()
    for record in extractions:
        seen = first.get(record.markdown_path)
        if seen is None:
            first[record.markdown_path] = record
            continue
        if seen.content == record.content:
            continue
        error = PathCollisionError(
            f"Path collision at {record.markdown_path}: "
            f"{seen.source_location} and {record.source_location} have different docs"
        )
        logger.warning("%s", error)
        report.errors.append(str(error))
        report.failed_paths.add(record.markdown_path)
        collided.add(record.markdown_path)
    return [record for path, record in first.items() if path not in collided]


def _group_by_directory(
    records: list[DocExtraction],
) -> list[tuple[Path, list[DocExtraction]]]:
    groups: dict[Path, list[DocExtraction]] = {}
    for record in records:
        groups.setdefault(record.markdown_path.parent, []).append(record)
    return sorted(groups.items(), key=lambda group: str(group[0]))


def _invalid_characters(path: Path) -> bool:
    return any(ord(ch) < 32 or ch == "\x7f" for ch in str(path))


def _directory_problem(directory: Path) -> str | None:
    """Describe why ``directory`` cannot be created, or ``None`` if it can."""
    for candidate in (directory, *directory.parents):
        if candidate.exists():
            if candidate.is_dir():
                return None
            return f"{candidate} exists and is not a directory"
    return None


def _fail(report: WriteReport, path: Path, reason: str) -> None:
    message = f"Cannot write {path}: {reason}"
    logger.warning("%s", message)
    report.errors.append(message)
    report.failed_paths.add(path)


def _write_group(directory: Path, records: list[DocExtraction], dry_run: bool) -> WriteReport:
    report = WriteReport()

    valid: list[DocExtraction] = []
    for record in records:
        if _invalid_characters(record.markdown_path):
            _fail(report, record.markdown_path, "path contains control characters")
        else:
            valid.append(record)
    if not valid:
        return report

    problem = _directory_problem(directory)
    if problem is not None:
        for record in valid:
            _fail(report, record.markdown_path, problem)
        return report

    if not dry_run:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            for record in valid:
                _fail(report, record.markdown_path, f"cannot create directory: {exc}")
            return report

    for record in valid:
        path = record.markdown_path
        if path.is_dir():
            _fail(report, path, "a directory exists at this path")
            continue
        if path.is_file() and _read_existing(path) == record.content:
            report.files_skipped += 1
            continue
        if dry_run:
            logger.info("Would write %s", path)
            report.files_written += 1
            continue
        try:
            _write_file(path, record.content)
        except MaterializeError as exc:
            _fail(report, path, str(exc))
            continue
        logger.debug("Wrote %s", path)
        report.files_written += 1
    return report


def _read_existing(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def _write_file(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8", newline="")
    except OSError as exc:
        raise MaterializeError(str(exc)) from exc
