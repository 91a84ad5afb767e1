"""Source discovery: find and read the Rust files of a crate."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from docmigrate.config import DEFAULT_EXCLUDES
from docmigrate.errors import MaterializeError
from docmigrate.models import ParsedFile
from docmigrate.parser import parse_source

logger = logging.getLogger(__name__)


def discover(root: str | Path, exclude: Iterable[str] | None = None) -> list[Path]:
    """Return sorted absolute paths of every ``.rs`` file under ``root``.

    Directories whose name is in ``exclude`` (default: ``target``, ``.git``)
    are skipped. A single ``.rs`` file is returned as-is.
    """
    root = Path(root).resolve()
    if root.is_file():
        return [root] if root.suffix == ".rs" else []

    excluded = set(DEFAULT_EXCLUDES if exclude is None else exclude)
    files = []
    for path in root.rglob("*.rs"):
        if not path.is_file():
            continue
        if any(part in excluded for part in path.relative_to(root).parts[:-1]):
            continue
        files.append(path.resolve())

    logger.debug("Discovered %d Rust file(s) under %s", len(files), root)
    return sorted(files)


def parse_file(path: str | Path) -> ParsedFile:
    """Read and parse one source file.

    Line endings are preserved so that rendering the unmodified tree gives
    back the exact file content.

    Raises:
        MaterializeError: If the file cannot be read.
        ParseError: If the file cannot be parsed.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8", newline="") as f:
            source = f.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise MaterializeError(f"cannot read {path}: {exc}") from exc
    return parse_source(source, path)


def module_path_for(source: str | Path, manifest_dir: str | Path | None) -> tuple[str, ...]:
    """Module path of a source file relative to its crate.

    ``src/main.rs`` -> ``("main",)``, ``src/net/mod.rs`` -> ``("net",)``,
    ``src/a/b/c.rs`` -> ``("a", "b", "c")``. Files outside the crate map
    to an empty path.
    """
    if manifest_dir is None:
        return ()
    try:
        rel = Path(source).resolve().relative_to(Path(manifest_dir).resolve())
    except ValueError:
        return ()

    parts = list(rel.parts)
    if parts and parts[0] == "src":
        parts = parts[1:]
    if not parts or not parts[-1].endswith(".rs"):
        return ()
    if parts[-1] == "mod.rs" and len(parts) > 1:
        parts = parts[:-1]
    else:
        parts[-1] = parts[-1][: -len(".rs")]
    return tuple(parts)
