"""Migration pipeline: parse -> extract -> write -> rewrite, across many files.

Files are processed independently in a thread pool; each returns a
:class:`FileResult` and never raises for per-file problems. All records are
then materialized in a single stage, and sources are written back last so
that a file is only rewritten once its docs are safely on disk.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from docmigrate.config import Config
from docmigrate.discover import module_path_for, parse_file
from docmigrate.errors import DocmigrateError, MaterializeError
from docmigrate.extract import expected_paths, extract_all
from docmigrate.models import DocExtraction
from docmigrate.reporter import FileChange, MigrationReport
from docmigrate.restore import restore
from docmigrate.rewrite import AnnotationStyle, rewrite
from docmigrate.writer import write_extractions

logger = logging.getLogger(__name__)


@dataclass
class MigrationOptions:
    """What a run does besides writing the markdown tree."""

    strip: bool = False
    annotate: bool = False
    touch: bool = False
    dry_run: bool = False
    restore: bool = False
    workers: int = 4

    @classmethod
    def migrate(cls, dry_run: bool = False, workers: int = 4) -> MigrationOptions:
        """Full migration: strip, annotate and touch."""
        return cls(strip=True, annotate=True, touch=True, dry_run=dry_run, workers=workers)


@dataclass
class FileResult:
    """Outcome of processing one source file."""

    path: Path
    extractions: list[DocExtraction] = field(default_factory=list)
    expected: list[DocExtraction] = field(default_factory=list)
    new_source: str | None = None
    error: str | None = None


def annotation_style(config: Config) -> AnnotationStyle:
    return AnnotationStyle(
        docs_path=None if config.from_manifest else config.docs_path,
        cfg_attr=config.cfg_attr,
    )


def process_file(path: Path, options: MigrationOptions, config: Config) -> FileResult:
    """Run parse -> extract -> (touch) -> rewrite for one file."""
    result = FileResult(path=path)
    try:
        parsed = parse_file(path)
        base_context = module_path_for(path, config.manifest_dir)
        root = config.output_dir

        if options.restore:
            result.new_source = restore(parsed, root, base_context)
            return result

        result.extractions = extract_all(parsed, root, base_context)
        if options.touch:
            result.expected = expected_paths(parsed, root, base_context)

        text = rewrite(
            parsed,
            config.docs_path,
            strip=options.strip,
            annotate=options.annotate,
            style=annotation_style(config),
        )
        if text is not None and text != parsed.original_source:
            result.new_source = text
    except (DocmigrateError, OSError, UnicodeDecodeError) as exc:
        logger.warning("Skipping %s: %s", path, exc)
        result.error = f"{path}: {exc}"
    return result


def run_migration(
    files: Sequence[Path],
    options: MigrationOptions,
    config: Config,
    source: str | Path = "",
) -> MigrationReport:
    """Process ``files`` and apply the results to disk.

    Returns:
        A report of everything that was (or, in dry-run mode, would be) done.
    """
    report = MigrationReport(
        source=str(source),
        docs_root=str(config.output_dir),
        dry_run=options.dry_run,
    )

    workers = max(1, options.workers)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(lambda path: process_file(path, options, config), files))
    report.files_processed = len(results)

    records: list[DocExtraction] = []
    for result in results:
        if result.error is not None:
            report.errors.append(result.error)
        records.extend(result.extractions)
    report.docs_extracted = len(records)

    failed: set[Path] = set()
    if not options.restore:
        placeholders = _placeholders(results, records)
        report.files_touched = len({record.markdown_path for record in placeholders})
        write_report = write_extractions(records + placeholders, options.dry_run, workers)
        report.files_written = write_report.files_written
        report.files_skipped = write_report.files_skipped
        report.errors.extend(write_report.errors)
        failed = write_report.failed_paths

    for result in results:
        if result.error is not None or result.new_source is None:
            continue
        if any(record.markdown_path in failed for record in result.extractions):
            report.errors.append(
                f"{result.path}: source left unchanged because its docs could not be written"
            )
            continue
        if not options.dry_run:
            try:
                write_source(result.path, result.new_source)
            except MaterializeError as exc:
                report.errors.append(f"{result.path}: {exc}")
                continue
        action = "restored" if options.restore else "rewritten"
        report.changes.append(FileChange(path=str(result.path), action=action))
        if options.restore:
            report.files_restored += 1
        else:
            report.files_rewritten += 1

    logger.info(
        "Processed %d file(s): %d doc(s), %d written, %d source(s) changed, %d error(s)",
        report.files_processed,
        report.docs_extracted,
        report.files_written,
        report.files_rewritten + report.files_restored,
        len(report.errors),
    )
    return report


def _placeholders(
    results: list[FileResult], records: list[DocExtraction]
) -> list[DocExtraction]:
    """Empty records for expected files that neither exist nor get content."""
    extracted = {record.markdown_path for record in records}
    placeholders = []
    for result in results:
        for record in result.expected:
            if record.markdown_path in extracted or record.markdown_path.exists():
                continue
            placeholders.append(record)
    return placeholders


def write_source(path: Path, text: str) -> None:
    try:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
    except OSError as exc:
        raise MaterializeError(f"cannot write {path}: {exc}") from exc
    logger.debug("Wrote %s", path)
