"""Documentation extraction: walk the item tree and pair docs with markdown paths.

Paths are a pure function of the nesting context and the item name::

    <output_root>/<context...>/<name>.md

Modules, traits, enums, structs and impl blocks push their name onto the
context; impl blocks push the implementing type's name, so the methods of
``impl Calculator`` land in ``<output_root>/Calculator/``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from docmigrate.attributes import collect_docs
from docmigrate.models import (
    Attribute,
    DocExtraction,
    Enum,
    ImplBlock,
    Item,
    Module,
    Other,
    ParsedFile,
    Struct,
    Trait,
)

logger = logging.getLogger(__name__)


def extract_all(
    parsed: ParsedFile,
    output_root: str | Path,
    base_context: Sequence[str] = (),
) -> list[DocExtraction]:
    """Collect every piece of documentation in ``parsed``.

    Args:
        parsed: The parsed source file.
        output_root: Root directory of the markdown tree.
        base_context: Path segments prepended to every item path, normally
            the module path of the file (``src/a/b.rs`` -> ``("a", "b")``).

    Returns:
        One record per documented node, in depth-first source order.
    """
    records = _Walker(parsed, Path(output_root), expected=False).run(base_context)
    logger.debug("Extracted %d doc(s) from %s", len(records), parsed.display_path)
    return records


def expected_paths(
    parsed: ParsedFile,
    output_root: str | Path,
    base_context: Sequence[str] = (),
) -> list[DocExtraction]:
    """List the markdown files every named item should have, docs or not.

    Each record has empty content; used to create placeholders for items
    that are not documented yet.
    """
    return _Walker(parsed, Path(output_root), expected=True).run(base_context)


def file_doc_path(
    parsed: ParsedFile, output_root: str | Path, base_context: Sequence[str] = ()
) -> Path | None:
    """Markdown path for the file-level (``//!``) documentation.

    ``src/a/b.rs`` with base context ``("a", "b")`` maps to ``a/b.md``;
    without a base context the file stem is used. In-memory sources with no
    base context have no file-level path.
    """
    root = Path(output_root)
    if base_context:
        return root.joinpath(*base_context[:-1], f"{base_context[-1]}.md")
    if parsed.path is not None:
        return root / f"{parsed.path.stem}.md"
    return None


def item_path(output_root: str | Path, context: Sequence[str], name: str) -> Path:
    return Path(output_root).joinpath(*context, f"{name}.md")


class _Walker:
    def __init__(self, parsed: ParsedFile, output_root: Path, expected: bool):
        self.parsed = parsed
        self.output_root = output_root
        self.expected = expected
        self.records: list[DocExtraction] = []

    def run(self, base_context: Sequence[str]) -> list[DocExtraction]:
        path = file_doc_path(self.parsed, self.output_root, base_context)
        if path is not None:
            line = self.parsed.inner_attrs[0].line if self.parsed.inner_attrs else 1
            self.emit(path, self.parsed.inner_attrs, line)
        self.walk(self.parsed.items, list(base_context))
        return self.records

    def emit(self, path: Path, attrs: list[Attribute] | None, line: int) -> None:
        if self.expected:
            content = ""
        else:
            content = collect_docs(attrs)
            if content is None:
                return
        location = f"{self.parsed.display_path}:{line}"
        self.records.append(DocExtraction(path, content, location))

    def walk(self, items: list[Item], context: list[str]) -> None:
        for item in items:
            if isinstance(item, Other):
                continue
            path = item_path(self.output_root, context, item.name)
            nested = context + [item.name]

            if isinstance(item, ImplBlock):
                # The implementing type owns the directory; the impl itself
                # only produces a file when it is documented.
                if not self.expected:
                    self.emit(path, item.attrs, item.line)
                self.walk(item.body.items, nested)
            elif isinstance(item, Module):
                attrs = (item.attrs or []) + (item.body.inner_attrs or [])
                self.emit(path, attrs, item.line)
                self.walk(item.body.items, nested)
            elif isinstance(item, Trait):
                self.emit(path, item.attrs, item.line)
                self.walk(item.body.items, nested)
            elif isinstance(item, Enum):
                self.emit(path, item.attrs, item.line)
                for variant in item.body.variants:
                    self.emit(
                        item_path(self.output_root, nested, variant.name),
                        variant.attrs,
                        variant.line,
                    )
            elif isinstance(item, Struct):
                self.emit(path, item.attrs, item.line)
                if item.body is not None and item.body.named:
                    for field in item.body.fields:
                        if field.name is None:
                            continue
                        self.emit(
                            item_path(self.output_root, nested, field.name),
                            field.attrs,
                            field.line,
                        )
            else:
                self.emit(path, item.attrs, item.line)
