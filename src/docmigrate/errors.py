"""Error taxonomy for the migration pipeline."""

from __future__ import annotations


class DocmigrateError(Exception):
    """Base class for every error raised by docmigrate."""


class ParseError(DocmigrateError):
    """A source file could not be tokenized or structurally parsed.

    The file is skipped; the run continues with the remaining files.
    """

    def __init__(self, reason: str, line: int | None = None):
        self.reason = reason
        self.line = line
        message = f"{reason} (line {line})" if line is not None else reason
        super().__init__(message)


class PathCollisionError(DocmigrateError):
    """Two extraction records map to the same markdown path with different content."""


class MaterializeError(DocmigrateError):
    """Reading or writing a file on disk failed."""


class ConfigError(DocmigrateError):
    """The manifest could not be read or updated. Fatal for the whole run."""
