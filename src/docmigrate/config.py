"""Configuration management for docmigrate.

Two layers: the ``[package.metadata.syncdoc]`` table of the crate's
``Cargo.toml`` (shared with the build-time consumer of the reference
attributes) and the optional ``docmigrate.yaml`` tool settings file.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from docmigrate.errors import ConfigError

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "Cargo.toml"
METADATA_HEADER = "[package.metadata.syncdoc]"
DEFAULT_DOCS_PATH = "docs"
DEFAULT_CONFIG_FILENAME = "docmigrate.yaml"

DEFAULT_EXCLUDES = [
    "target",
    ".git",
]


# -- Cargo.toml ----------------------------------------------------------------


def find_manifest(start: str | Path) -> Path | None:
    """Walk up from ``start`` to the nearest ``Cargo.toml``."""
    start = Path(start).resolve()
    directory = start if start.is_dir() else start.parent
    for candidate in (directory, *directory.parents):
        manifest = candidate / MANIFEST_FILENAME
        if manifest.is_file():
            return manifest
    return None


def _read_manifest(manifest: Path) -> tuple[str, dict]:
    try:
        with open(manifest, encoding="utf-8", newline="") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read {manifest}: {exc}") from exc
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {manifest}: {exc}") from exc
    return text, data


def _syncdoc_metadata(data: dict) -> dict:
    section = data.get("package", {}).get("metadata", {}).get("syncdoc", {})
    return section if isinstance(section, dict) else {}


def resolve_output_root(manifest: str | Path, dry_run: bool = False) -> str:
    """Return the configured ``docs-path``, persisting the default if missing.

    When the key is absent, ``docs-path = "docs"`` is added to the manifest
    (once: a second call finds it) unless ``dry_run`` is set.

    Raises:
        ConfigError: If the manifest cannot be read, parsed or updated.
    """
    manifest = Path(manifest)
    text, data = _read_manifest(manifest)
    docs_path = _syncdoc_metadata(data).get("docs-path")
    if docs_path is not None:
        if not isinstance(docs_path, str) or not docs_path:
            raise ConfigError(f"docs-path in {manifest} must be a non-empty string")
        return docs_path

    if not dry_run:
        _persist_default_docs_path(manifest, text)
    return DEFAULT_DOCS_PATH


def _persist_default_docs_path(manifest: Path, text: str) -> None:
    entry = f'docs-path = "{DEFAULT_DOCS_PATH}"\n'
    lines = text.splitlines(keepends=True)
    for index, line in enumerate(lines):
        if line.strip() == METADATA_HEADER:
            if not line.endswith("\n"):
                lines[index] = line + "\n"
            lines.insert(index + 1, entry)
            updated = "".join(lines)
            break
    else:
        separator = "" if not text or text.endswith("\n") else "\n"
        updated = f"{text}{separator}\n{METADATA_HEADER}\n{entry}"

    try:
        with open(manifest, "w", encoding="utf-8", newline="") as f:
            f.write(updated)
    except OSError as exc:
        raise ConfigError(f"Cannot update {manifest}: {exc}") from exc
    logger.info("Added docs-path = %r to %s", DEFAULT_DOCS_PATH, manifest)


@dataclass
class Config:
    """Resolved docs location and attribute formatting for one run.

    Attributes:
        docs_path: Docs directory as written in attributes or the manifest.
        output_dir: Absolute directory the markdown tree is written to.
        cfg_attr: Condition for ``cfg_attr`` wrapping, or ``None`` for plain attributes.
        manifest: The crate manifest, when one was found.
        from_manifest: ``docs_path`` lives in ``Cargo.toml``; attributes omit it.
    """

    docs_path: str
    output_dir: Path
    cfg_attr: str | None = None
    manifest: Path | None = None
    from_manifest: bool = False

    @property
    def manifest_dir(self) -> Path | None:
        return self.manifest.parent if self.manifest is not None else None

    @classmethod
    def inline(
        cls,
        docs_path: str,
        manifest: Path | None = None,
        cfg_attr: str | None = None,
    ) -> Config:
        """Config whose docs path is written into every attribute."""
        base = manifest.parent if manifest is not None else Path.cwd()
        return cls(
            docs_path=docs_path,
            output_dir=(base / docs_path).resolve(),
            cfg_attr=cfg_attr,
            manifest=manifest,
            from_manifest=False,
        )


def read_cfg_attr(manifest: str | Path) -> str | None:
    value = _syncdoc_metadata(_read_manifest(Path(manifest))[1]).get("cfg-attr")
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"cfg-attr in {manifest} must be a string")
    return value or None


def load_config(manifest: str | Path, dry_run: bool = False) -> Config:
    """Build a :class:`Config` from the manifest's syncdoc metadata."""
    manifest = Path(manifest).resolve()
    docs_path = resolve_output_root(manifest, dry_run=dry_run)
    return Config(
        docs_path=docs_path,
        output_dir=(manifest.parent / docs_path).resolve(),
        cfg_attr=read_cfg_attr(manifest),
        manifest=manifest,
        from_manifest=True,
    )


# -- docmigrate.yaml -----------------------------------------------------------


@dataclass
class Settings:
    """Tool settings for a docmigrate run."""

    source: str = "."
    docs: str | None = None  # None: take docs-path from Cargo.toml
    exclude: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDES))
    workers: int = 4
    inline_paths: bool = False

    @classmethod
    def load(cls, path: str | Path | None = None) -> Settings:
        """Load settings from a YAML file. Falls back to defaults if file missing."""
        if path is None:
            path = Path.cwd() / DEFAULT_CONFIG_FILENAME

        path = Path(path)
        if not path.exists():
            return cls()

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
            return cls()

        return cls(
            source=data.get("source", cls.source),
            docs=data.get("docs", cls.docs),
            exclude=data.get("exclude", list(DEFAULT_EXCLUDES)),
            workers=data.get("workers", cls.workers),
            inline_paths=data.get("inline_paths", cls.inline_paths),
        )

    def save(self, path: str | Path | None = None) -> Path:
        """Save settings to a YAML file."""
        if path is None:
            path = Path.cwd() / DEFAULT_CONFIG_FILENAME

        path = Path(path)
        data = {
            "source": self.source,
            "docs": self.docs,
            "exclude": self.exclude,
            "workers": self.workers,
            "inline_paths": self.inline_paths,
        }

        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        return path
