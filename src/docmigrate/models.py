"""Data models for parsed Rust sources and extracted documentation.

Every node keeps the exact source text it was parsed from, split into
``leading`` trivia (whitespace and plain comments), its attribute list, and
the verbatim ``head``/``tail`` spans around an optional body. Rendering a
node concatenates those pieces, so an unmodified tree reproduces the input
byte for byte.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class Attribute:
    """A single attribute (``#[...]``, ``#![...]``) or doc comment."""

    text: str
    trailing: str = ""
    line: int = 0

    def render(self) -> str:
        return self.text + self.trailing


def render_attrs(attrs: list[Attribute] | None) -> str:
    """Render an attribute list, treating ``None`` as empty."""
    if not attrs:
        return ""
    return "".join(attr.render() for attr in attrs)


# -- Fields and variants -------------------------------------------------------


@dataclass
class Field:
    """A struct field. ``name`` is ``None`` for tuple-struct elements."""

    leading: str
    attrs: list[Attribute] | None
    name: str | None
    text: str
    separator: str = ""
    line: int = 0

    def render(self) -> str:
        return self.leading + render_attrs(self.attrs) + self.text + self.separator


@dataclass
class FieldList:
    """Brace (named) or parenthesis (tuple) delimited field list."""

    open: str
    fields: list[Field]
    trailer: str
    close: str

    @property
    def named(self) -> bool:
        return self.open == "{"

    def render(self) -> str:
        return self.open + "".join(f.render() for f in self.fields) + self.trailer + self.close


@dataclass
class Variant:
    """An enum variant, optionally carrying a tuple or struct field list."""

    leading: str
    attrs: list[Attribute] | None
    name: str
    head: str
    fields: FieldList | None
    tail: str
    separator: str
    line: int = 0

    def render(self) -> str:
        body = self.fields.render() if self.fields is not None else ""
        return (
            self.leading + render_attrs(self.attrs) + self.head + body + self.tail + self.separator
        )


@dataclass
class VariantList:
    """The brace-delimited body of an enum."""

    open: str
    variants: list[Variant]
    trailer: str
    close: str

    def render(self) -> str:
        return self.open + "".join(v.render() for v in self.variants) + self.trailer + self.close


# -- Items ---------------------------------------------------------------------


@dataclass
class ItemBody:
    """Brace-delimited item container used by modules, traits and impl blocks."""

    open: str
    inner_leading: str
    inner_attrs: list[Attribute] | None
    items: list[Item]
    trailer: str
    close: str

    def render(self) -> str:
        return (
            self.open
            + self.inner_leading
            + render_attrs(self.inner_attrs)
            + "".join(item.render() for item in self.items)
            + self.trailer
            + self.close
        )


@dataclass
class Item:
    """Base class for every parsed declaration.

    ``head`` holds the declaration text between the attributes and the body
    (visibility, keyword, name, generics...). Items without a modeled body
    keep their entire remaining text in ``head``.
    """

    leading: str
    attrs: list[Attribute] | None
    name: str
    head: str
    tail: str
    line: int

    def render(self) -> str:
        return self.leading + render_attrs(self.attrs) + self.head + self.render_body() + self.tail

    def render_body(self) -> str:
        return ""


@dataclass
class Function(Item):
    """``fn`` item, with or without a body (trait method signatures)."""


@dataclass
class TypeAlias(Item):
    """``type`` alias or associated type."""


@dataclass
class Const(Item):
    """``const`` item."""


@dataclass
class Static(Item):
    """``static`` item."""


@dataclass
class Other(Item):
    """Any span that is not a documentable declaration; emitted verbatim."""


@dataclass
class Module(Item):
    """Inline ``mod name { ... }``."""

    body: ItemBody

    def render_body(self) -> str:
        return self.body.render()


@dataclass
class Trait(Item):
    """``trait`` definition."""

    body: ItemBody

    def render_body(self) -> str:
        return self.body.render()


@dataclass
class ImplBlock(Item):
    """``impl`` block. ``name`` is the implementing type, not a keyword."""

    body: ItemBody

    def render_body(self) -> str:
        return self.body.render()


@dataclass
class Enum(Item):
    """``enum`` definition."""

    body: VariantList

    def render_body(self) -> str:
        return self.body.render()


@dataclass
class Struct(Item):
    """``struct`` or ``union``; ``body`` is ``None`` for unit structs."""

    body: FieldList | None

    def render_body(self) -> str:
        return self.body.render() if self.body is not None else ""


NAMED_KINDS = (Function, ImplBlock, Module, Trait, Enum, Struct, TypeAlias, Const, Static)


@dataclass
class ParsedFile:
    """Root of a parsed source file."""

    path: Path | None
    inner_leading: str
    inner_attrs: list[Attribute] | None
    items: list[Item]
    trailer: str
    original_source: str

    def render(self) -> str:
        return (
            self.inner_leading
            + render_attrs(self.inner_attrs)
            + "".join(item.render() for item in self.items)
            + self.trailer
        )

    @property
    def display_path(self) -> str:
        return str(self.path) if self.path is not None else "<source>"


# -- Extraction and reporting --------------------------------------------------


@dataclass(frozen=True)
class DocExtraction:
    """Documentation content paired with the markdown file it belongs in.

    Attributes:
        markdown_path: Target file, derived from the nesting context and item name.
        content: Concatenated, trimmed documentation text.
        source_location: ``file:line`` of the originating item, for diagnostics.
    """

    markdown_path: Path
    content: str
    source_location: str


@dataclass
class WriteReport:
    """Outcome of one materialization call."""

    files_written: int = 0
    files_skipped: int = 0
    errors: list[str] = field(default_factory=list)
    failed_paths: set[Path] = field(default_factory=set)

    def merge(self, other: WriteReport) -> None:
        """Fold a partial report into this one."""
        self.files_written += other.files_written
        self.files_skipped += other.files_skipped
        self.errors.extend(other.errors)
        self.failed_paths.update(other.failed_paths)

    @property
    def ok(self) -> bool:
        return not self.errors
