"""Rewrite engine: strip inline docs and inject reference attributes.

Both operations edit attribute lists of a copy of the parsed tree and then
re-render it, so every byte outside the touched attributes comes back
unchanged.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from docmigrate.attributes import AttrKind, has_kind, is_doc
from docmigrate.models import (
    NAMED_KINDS,
    Attribute,
    Enum,
    Item,
    ItemBody,
    Other,
    ParsedFile,
    Struct,
)

logger = logging.getLogger(__name__)

LINE_END_RE = re.compile(r"[ \t]*\r?\n")


@dataclass(frozen=True)
class AnnotationStyle:
    """How injected reference attributes are spelled.

    Attributes:
        docs_path: Written inline as ``path = "..."`` when set; when ``None``
            the consumer reads the path from ``Cargo.toml``.
        cfg_attr: Wrap the attribute in ``cfg_attr(<cond>, ...)`` when set.
    """

    docs_path: str | None = None
    cfg_attr: str | None = None

    def item_attribute(self) -> str:
        meta = "syncdoc::omnidoc"
        if self.docs_path is not None:
            meta += f"(path = {_quote(self.docs_path)})"
        return f"#[{self._wrap(meta)}]"

    def module_attribute(self) -> str:
        args = f"path = {_quote(self.docs_path)}" if self.docs_path is not None else ""
        return f"#![{self._wrap(f'doc = syncdoc::module_doc!({args})')}]"

    def _wrap(self, meta: str) -> str:
        if self.cfg_attr:
            return f"cfg_attr({self.cfg_attr}, {meta})"
        return meta


def rewrite(
    parsed: ParsedFile,
    output_root: str | Path,
    strip: bool,
    annotate: bool,
    style: AnnotationStyle | None = None,
) -> str | None:
    """Produce rewritten source text for ``parsed``.

    Args:
        parsed: The parsed file; it is not modified.
        output_root: Docs directory, written inline when ``style`` is ``None``.
        strip: Remove every documentation-carrying attribute.
        annotate: Inject reference attributes on top-level named items, and a
            module-level one when the file had inner docs.
        style: Spelling of the injected attributes.

    Returns:
        The new source text, or ``None`` when neither operation was requested.
    """
    if not strip and not annotate:
        return None
    if style is None:
        style = AnnotationStyle(docs_path=Path(output_root).as_posix())

    tree = copy.deepcopy(parsed)
    if annotate:
        _annotate(tree, style)
    if strip:
        _strip_file(tree)

    text = tree.render()
    logger.debug(
        "Rewrote %s (strip=%s, annotate=%s, changed=%s)",
        parsed.display_path,
        strip,
        annotate,
        text != parsed.original_source,
    )
    return text


# -- Annotate ------------------------------------------------------------------


def _annotate(tree: ParsedFile, style: AnnotationStyle) -> None:
    if has_kind(tree.inner_attrs, AttrKind.DOC, AttrKind.DOC_EXPR) and not has_kind(
        tree.inner_attrs, AttrKind.MODULE_REFERENCE
    ):
        attr = Attribute(style.module_attribute(), "\n")
        tree.inner_attrs = [attr] + (tree.inner_attrs or [])

    for item in tree.items:
        if not isinstance(item, NAMED_KINDS):
            continue
        if has_kind(item.attrs, AttrKind.REFERENCE):
            continue
        attr = Attribute(style.item_attribute(), "\n" + indent_of(item.leading), item.line)
        item.attrs = [attr] + (item.attrs or [])


def indent_of(leading: str) -> str:
    """Indentation of the line the next token starts on."""
    last_line = leading[leading.rfind("\n") + 1 :]
    return last_line[: len(last_line) - len(last_line.lstrip(" \t"))]


# -- Strip ---------------------------------------------------------------------


def strip_attrs(
    leading: str,
    attrs: list[Attribute] | None,
    predicate: Callable[[Attribute], bool] = is_doc,
) -> tuple[str, list[Attribute] | None]:
    """Remove attributes matching ``predicate`` (doc attributes by default).

    Surrounding trivia is re-attached to whatever remains. An attribute
    alone on its line disappears together with its indentation and line
    break; otherwise only the attribute and the blanks after it go.
    Returns the new ``(leading, attrs)`` pair.
    """
    if not attrs or not any(predicate(attr) for attr in attrs):
        return leading, attrs

    kept: list[Attribute] = []
    pending = leading
    for attr in attrs:
        if not predicate(attr):
            if kept:
                kept[-1].trailing = pending
            else:
                leading = pending
            kept.append(Attribute(attr.text, "", attr.line))
            pending = attr.trailing
            continue

        indent = pending[len(pending.rstrip(" \t")) :]
        before = pending[: len(pending) - len(indent)]
        line_end = LINE_END_RE.match(attr.trailing)
        if line_end is not None and not pending:
            # The indentation of this line was emitted by the preceding node.
            pending = attr.trailing[line_end.end() :].lstrip(" \t")
        elif line_end is not None and (before == "" or before.endswith("\n")):
            pending = before + attr.trailing[line_end.end() :]
        else:
            pending = pending + attr.trailing.lstrip(" \t")

    if kept:
        kept[-1].trailing = pending
        return leading, kept
    return pending, None


def _strip_file(tree: ParsedFile) -> None:
    tree.inner_leading, tree.inner_attrs = strip_attrs(tree.inner_leading, tree.inner_attrs)
    _strip_items(tree.items)


def _strip_body(body: ItemBody) -> None:
    body.inner_leading, body.inner_attrs = strip_attrs(body.inner_leading, body.inner_attrs)
    _strip_items(body.items)


def _strip_items(items: list[Item]) -> None:
    for item in items:
        if isinstance(item, Other):
            # Nothing extracts these docs, so they stay in the source.
            continue
        item.leading, item.attrs = strip_attrs(item.leading, item.attrs)
        body = getattr(item, "body", None)
        if isinstance(body, ItemBody):
            _strip_body(body)
        elif isinstance(item, Enum):
            for variant in item.body.variants:
                variant.leading, variant.attrs = strip_attrs(variant.leading, variant.attrs)
                if variant.fields is not None:
                    for field in variant.fields.fields:
                        field.leading, field.attrs = strip_attrs(field.leading, field.attrs)
        elif isinstance(item, Struct) and item.body is not None:
            for field in item.body.fields:
                field.leading, field.attrs = strip_attrs(field.leading, field.attrs)


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
