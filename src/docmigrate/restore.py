"""Restore inline documentation from the markdown tree.

The inverse of a migration: reference attributes are replaced by ``///``
(items) and ``//!`` (files) comments holding the markdown content.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from docmigrate.attributes import AttrKind, classify, has_kind
from docmigrate.extract import file_doc_path, item_path
from docmigrate.models import (
    Attribute,
    Enum,
    ImplBlock,
    Item,
    ItemBody,
    Other,
    ParsedFile,
    Struct,
)
from docmigrate.rewrite import LINE_END_RE, indent_of, strip_attrs

logger = logging.getLogger(__name__)

Reader = Callable[[Path], "str | None"]

def read_markdown(path: Path) -> str | None:
    """Default reader: the file's content, or ``None`` when it does not exist."""
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


def restore(
    parsed: ParsedFile,
    output_root: str | Path,
    base_context: Sequence[str] = (),
    reader: Reader | None = None,
) -> str | None:
    """Put documentation back inline for every annotated item.

    Items already carrying inline docs keep them; only the reference
    attribute is removed. Missing or empty markdown files restore nothing.

    Returns:
        The restored source, or ``None`` when nothing changed.
    """
    reader = reader or read_markdown
    root = Path(output_root)
    tree = copy.deepcopy(parsed)

    if has_kind(tree.inner_attrs, AttrKind.MODULE_REFERENCE):
        path = file_doc_path(tree, root, base_context)
        content = None
        if path is not None and not has_kind(tree.inner_attrs, AttrKind.DOC, AttrKind.DOC_EXPR):
            content = reader(path)
        tree.inner_leading, tree.inner_attrs = _replace_reference(
            tree.inner_leading,
            tree.inner_attrs,
            _doc_lines(content, "//!"),
            "",
            lambda attr: classify(attr.text) is AttrKind.MODULE_REFERENCE,
        )

    context = list(base_context)
    for item in tree.items:
        if isinstance(item, Other) or not has_kind(item.attrs, AttrKind.REFERENCE):
            continue
        path = item_path(root, context, item.name)
        if isinstance(item, ImplBlock) or has_kind(item.attrs, AttrKind.DOC, AttrKind.DOC_EXPR):
            # Impl blocks share their markdown file with the type they implement.
            lines = []
        else:
            lines = _doc_lines(reader(path), "///")
        item.leading, item.attrs = _replace_reference(
            item.leading,
            item.attrs,
            lines,
            indent_of(item.leading),
            lambda attr: classify(attr.text) is AttrKind.REFERENCE,
        )
        _restore_children(item, root, context + [item.name], reader)

    text = tree.render()
    if text == parsed.original_source:
        return None
    logger.debug("Restored docs in %s", parsed.display_path)
    return text


# -- Helpers -------------------------------------------------------------------


def _doc_lines(content: str | None, marker: str) -> list[str]:
    if not content:
        return []
    return [f"{marker} {line}" if line else marker for line in content.split("\n")]


def _replace_reference(
    leading: str,
    attrs: list[Attribute] | None,
    lines: list[str],
    indent: str,
    predicate: Callable[[Attribute], bool],
) -> tuple[str, list[Attribute] | None]:
    """Swap the first matching reference for doc comments and drop the rest."""
    attrs = list(attrs or [])
    index = next((i for i, attr in enumerate(attrs) if predicate(attr)), None)
    if index is None or not lines:
        return strip_attrs(leading, attrs or None, predicate)

    reference = attrs[index]
    trailing = reference.trailing
    if LINE_END_RE.match(trailing) is None:
        # Line comments must end their line.
        trailing = "\n" + indent + trailing.lstrip(" \t")
    docs = [Attribute(line, "\n" + indent, reference.line) for line in lines]
    docs[-1].trailing = trailing
    attrs[index : index + 1] = docs
    return strip_attrs(leading, attrs, predicate)


def _insert_docs(
    leading: str, attrs: list[Attribute] | None, content: str | None, line: int
) -> list[Attribute] | None:
    if has_kind(attrs, AttrKind.DOC, AttrKind.DOC_EXPR):
        return attrs
    lines = _doc_lines(content, "///")
    if not lines:
        return attrs
    indent = indent_of(leading)
    return [Attribute(text, "\n" + indent, line) for text in lines] + (attrs or [])


def _restore_children(item: Item, root: Path, context: list[str], reader: Reader) -> None:
    body = getattr(item, "body", None)
    if isinstance(body, ItemBody):
        _restore_items(body.items, root, context, reader)
    elif isinstance(item, Enum):
        for variant in item.body.variants:
            variant.attrs = _insert_docs(
                variant.leading,
                variant.attrs,
                reader(item_path(root, context, variant.name)),
                variant.line,
            )
    elif isinstance(item, Struct) and item.body is not None and item.body.named:
        for field in item.body.fields:
            if field.name is None:
                continue
            field.attrs = _insert_docs(
                field.leading,
                field.attrs,
                reader(item_path(root, context, field.name)),
                field.line,
            )


def _restore_items(items: list[Item], root: Path, context: list[str], reader: Reader) -> None:
    for item in items:
        if isinstance(item, Other):
            continue
        if not isinstance(item, ImplBlock):
            item.attrs = _insert_docs(
                item.leading,
                item.attrs,
                reader(item_path(root, context, item.name)),
                item.line,
            )
        _restore_children(item, root, context + [item.name], reader)
