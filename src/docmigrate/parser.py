"""Structural Rust parser.

Builds the item tree in :mod:`docmigrate.models` from the token stream of
:mod:`docmigrate.lexer`. Only declaration shapes that can carry
documentation are modeled; everything else (function bodies, use
declarations, macro invocations, extern blocks...) is kept as opaque text.
Node boundaries are decided purely by keyword prefixes and delimiter
matching, never by type or import information.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from docmigrate.errors import ParseError
from docmigrate.lexer import TRIVIA, Token, TokenKind, match_delimiters, tokenize
from docmigrate.models import (
    Attribute,
    Const,
    Enum,
    Field,
    FieldList,
    Function,
    ImplBlock,
    Item,
    ItemBody,
    Module,
    Other,
    ParsedFile,
    Static,
    Struct,
    Trait,
    TypeAlias,
    Variant,
    VariantList,
)

logger = logging.getLogger(__name__)

# Keywords that may prefix an item keyword without changing its shape.
_QUALIFIERS = frozenset({"default", "async", "unsafe", "auto", "safe"})
# `const` only qualifies a function when one of these follows it.
_CONST_FN_FOLLOWERS = frozenset({"fn", "unsafe", "async", "extern"})
# Restricted visibility markers: pub(crate), pub(self), pub(super), pub(in path).
_VISIBILITY_SCOPES = frozenset({"crate", "self", "super", "in"})
# Identifiers that never name the implementing type of an impl block.
_IMPL_NOISE = frozenset({"dyn", "mut", "const", "impl", "for", "crate", "self", "super"})

_NON_WORD_RE = re.compile(r"\W+")


def parse_source(source: str, path: str | Path | None = None) -> ParsedFile:
    """Parse Rust source text into a :class:`ParsedFile`.

    Raises:
        ParseError: If delimiters are unbalanced, a literal or comment is
            unterminated, or an item is truncated.
    """
    parser = _Parser(source)
    parsed = parser.parse_file(Path(path) if path is not None else None)
    logger.debug(
        "Parsed %s: %d top-level item(s)", parsed.display_path, len(parsed.items)
    )
    return parsed


class _Parser:
    """Recursive-descent matcher over a pre-tokenized source."""

    def __init__(self, source: str):
        self.source = source
        self.tokens = tokenize(source)
        self.pairs = match_delimiters(self.tokens)

    # -- Token helpers ---------------------------------------------------------

    def text(self, start: int, end: int) -> str:
        """Source text covered by ``tokens[start:end]``."""
        if start >= end:
            return ""
        return self.source[self.tokens[start].start : self.tokens[end - 1].end]

    def skip_trivia(self, index: int, end: int) -> int:
        while index < end and self.tokens[index].kind in TRIVIA:
            index += 1
        return index

    def peek(self, index: int, end: int) -> Token | None:
        """Return the first significant token at or after ``index``."""
        index = self.skip_trivia(index, end)
        return self.tokens[index] if index < end else None

    def last_significant(self, start: int, end: int) -> int:
        """Index just past the last non-trivia token in ``[start, end)``."""
        while end > start and self.tokens[end - 1].kind in TRIVIA:
            end -= 1
        return end

    def _line_at(self, index: int) -> int:
        if index < len(self.tokens):
            return self.tokens[index].line
        return self.tokens[-1].line if self.tokens else 1

    # -- Attributes ------------------------------------------------------------

    def at_outer_attr(self, index: int, end: int) -> bool:
        token = self.tokens[index]
        if token.kind is TokenKind.OUTER_DOC:
            return True
        if token.is_punct("#"):
            after = self.peek(index + 1, end)
            return after is not None and after.kind is TokenKind.OPEN and after.text == "["
        return False

    def at_inner_attr(self, index: int, end: int) -> bool:
        token = self.tokens[index]
        if token.kind is TokenKind.INNER_DOC:
            return True
        if token.is_punct("#"):
            bang = self.skip_trivia(index + 1, end)
            if bang < end and self.tokens[bang].is_punct("!"):
                after = self.peek(bang + 1, end)
                return after is not None and after.kind is TokenKind.OPEN and after.text == "["
        return False

    def attr_end(self, index: int, end: int) -> int:
        """Index just past the attribute starting at ``index``."""
        if self.tokens[index].kind in (TokenKind.OUTER_DOC, TokenKind.INNER_DOC):
            return index + 1
        bracket = self.skip_trivia(index + 1, end)
        if self.tokens[bracket].is_punct("!"):
            bracket = self.skip_trivia(bracket + 1, end)
        return self.pairs[bracket] + 1

    def parse_outer_attrs(self, index: int, end: int) -> tuple[list[Attribute] | None, int]:
        attrs: list[Attribute] = []
        while index < end and self.at_outer_attr(index, end):
            attr_end = self.attr_end(index, end)
            next_index = self.skip_trivia(attr_end, end)
            attrs.append(
                Attribute(
                    text=self.text(index, attr_end),
                    trailing=self.text(attr_end, next_index),
                    line=self.tokens[index].line,
                )
            )
            index = next_index
        return (attrs or None), index

    def parse_inner_attrs(
        self, index: int, end: int
    ) -> tuple[str, list[Attribute] | None, int]:
        """Parse inner attributes at the start of a file or item body.

        Returns ``(leading, attrs, next_index)``. When there are no inner
        attributes the leading trivia is left for the first item.
        """
        first = self.skip_trivia(index, end)
        if first >= end or not self.at_inner_attr(first, end):
            return "", None, index

        leading = self.text(index, first)
        attrs: list[Attribute] = []
        current = first
        while current < end and self.at_inner_attr(current, end):
            attr_end = self.attr_end(current, end)
            next_index = self.skip_trivia(attr_end, end)
            attrs.append(
                Attribute(
                    text=self.text(current, attr_end),
                    trailing=self.text(attr_end, next_index),
                    line=self.tokens[current].line,
                )
            )
            current = next_index
        return leading, attrs, current

    # -- Files and bodies ------------------------------------------------------

    def parse_file(self, path: Path | None) -> ParsedFile:
        end = len(self.tokens)
        inner_leading, inner_attrs, index = self.parse_inner_attrs(0, end)
        items, trailer = self.parse_items(index, end)
        return ParsedFile(
            path=path,
            inner_leading=inner_leading,
            inner_attrs=inner_attrs,
            items=items,
            trailer=trailer,
            original_source=self.source,
        )

    def parse_items(self, index: int, end: int) -> tuple[list[Item], str]:
        items: list[Item] = []
        while True:
            start = self.skip_trivia(index, end)
            if start >= end:
                return items, self.text(index, end)
            item, index = self.parse_item(index, start, end)
            items.append(item)

    def parse_item_body(self, open_index: int) -> ItemBody:
        close_index = self.pairs[open_index]
        inner_leading, inner_attrs, index = self.parse_inner_attrs(open_index + 1, close_index)
        items, trailer = self.parse_items(index, close_index)
        return ItemBody(
            open=self.tokens[open_index].text,
            inner_leading=inner_leading,
            inner_attrs=inner_attrs,
            items=items,
            trailer=trailer,
            close=self.tokens[close_index].text,
        )

    # -- Items -----------------------------------------------------------------

    def parse_item(self, leading_start: int, start: int, end: int) -> tuple[Item, int]:
        leading = self.text(leading_start, start)

        if self.at_inner_attr(start, end):
            # Out-of-place inner attribute: keep it as an opaque item of its own.
            attr_end = self.attr_end(start, end)
            item = Other(
                leading=leading,
                attrs=None,
                name="",
                head=self.text(start, attr_end),
                tail="",
                line=self.tokens[start].line,
            )
            return item, attr_end

        attrs, head_start = self.parse_outer_attrs(start, end)
        if head_start >= end:
            raise ParseError("attribute is not followed by an item", self._line_at(start))

        keyword_index = self._skip_prefixes(head_start, end)
        keyword = self.tokens[keyword_index] if keyword_index < end else None
        common = {"leading": leading, "attrs": attrs}

        if keyword is not None and keyword.kind is TokenKind.IDENT:
            word = keyword.text
            if word == "fn":
                return self._parse_simple(Function, common, head_start, keyword_index, end, True)
            if word in ("type", "const"):
                kind = TypeAlias if word == "type" else Const
                return self._parse_simple(kind, common, head_start, keyword_index, end, False)
            if word == "static":
                return self._parse_simple(Static, common, head_start, keyword_index, end, False)
            if word in ("mod", "trait", "impl", "enum"):
                parsed = self._parse_braced(word, common, head_start, keyword_index, end)
                if parsed is not None:
                    return parsed
            if word in ("struct", "union"):
                parsed = self._parse_struct(common, head_start, keyword_index, end)
                if parsed is not None:
                    return parsed

        return self._parse_other(common, head_start, end)

    def _skip_prefixes(self, index: int, end: int) -> int:
        """Skip visibility and qualifier keywords; return the keyword index."""
        index = self.skip_trivia(index, end)
        if index < end and self.tokens[index].is_ident("pub"):
            after = self.skip_trivia(index + 1, end)
            token = self.tokens[after] if after < end else None
            if token is not None and token.kind is TokenKind.OPEN and token.text == "(":
                scope = self.peek(after + 1, self.pairs[after])
                if scope is not None and scope.is_ident(*_VISIBILITY_SCOPES):
                    after = self.skip_trivia(self.pairs[after] + 1, end)
            index = after

        while index < end:
            token = self.tokens[index]
            following_index = self.skip_trivia(index + 1, end)
            following = self.tokens[following_index] if following_index < end else None
            if following is None:
                break
            if token.is_ident(*_QUALIFIERS) and following.kind is TokenKind.IDENT:
                index = following_index
            elif token.is_ident("const") and following.is_ident(*_CONST_FN_FOLLOWERS):
                index = following_index
            elif token.is_ident("extern"):
                if following.kind is TokenKind.LITERAL:
                    following_index = self.skip_trivia(following_index + 1, end)
                    following = self.tokens[following_index] if following_index < end else None
                if following is not None and following.is_ident("fn", "unsafe", "async"):
                    index = following_index
                else:
                    break
            else:
                break
        return index

    def _name_after(self, keyword_index: int, end: int) -> tuple[str, int] | None:
        name_index = self.skip_trivia(keyword_index + 1, end)
        if name_index < end and self.tokens[name_index].is_ident("mut"):
            name_index = self.skip_trivia(name_index + 1, end)
        if name_index >= end or self.tokens[name_index].kind is not TokenKind.IDENT:
            return None
        return _ident_name(self.tokens[name_index].text), name_index

    def _parse_simple(
        self,
        kind: type[Item],
        common: dict,
        head_start: int,
        keyword_index: int,
        end: int,
        stop_at_brace: bool,
    ) -> tuple[Item, int]:
        named = self._name_after(keyword_index, end)
        if named is None:
            return self._parse_other(common, head_start, end)
        name, name_index = named
        item_end = self.scan_item_end(name_index + 1, end, stop_at_brace)
        item = kind(
            name=name,
            head=self.text(head_start, item_end),
            tail="",
            line=self.tokens[name_index].line,
            **common,
        )
        return item, item_end

    def _parse_braced(
        self, word: str, common: dict, head_start: int, keyword_index: int, end: int
    ) -> tuple[Item, int] | None:
        open_index = self.find_body_open(keyword_index + 1, end)
        if open_index is None:
            return None

        if word == "impl":
            name = self.impl_type_name(keyword_index + 1, open_index)
            line = self.tokens[keyword_index].line
        else:
            named = self._name_after(keyword_index, end)
            if named is None:
                return None
            name, name_index = named
            line = self.tokens[name_index].line

        head = self.text(head_start, open_index)
        close_index = self.pairs[open_index]
        fields = dict(name=name, head=head, tail="", line=line, **common)
        if word == "enum":
            item: Item = Enum(body=self.parse_variants(open_index), **fields)
        else:
            kind = {"mod": Module, "trait": Trait, "impl": ImplBlock}[word]
            item = kind(body=self.parse_item_body(open_index), **fields)
        return item, close_index + 1

    def _parse_struct(
        self, common: dict, head_start: int, keyword_index: int, end: int
    ) -> tuple[Item, int] | None:
        named = self._name_after(keyword_index, end)
        if named is None:
            return None
        name, name_index = named
        line = self.tokens[name_index].line

        angle = 0
        seen_where = False
        prev: Token | None = None
        index = name_index + 1
        while index < end:
            token = self.tokens[index]
            if token.kind in TRIVIA:
                index += 1
                continue
            if token.kind is TokenKind.OPEN:
                if angle == 0 and (token.text == "{" or (token.text == "(" and not seen_where)):
                    return self._struct_with_fields(common, name, line, head_start, index, end)
                prev = self.tokens[self.pairs[index]]
                index = self.pairs[index] + 1
                continue
            if token.is_punct("<"):
                angle += 1
            elif token.is_punct(">") and not _is_arrow(prev):
                angle = max(0, angle - 1)
            elif token.is_ident("where") and angle == 0:
                seen_where = True
            elif token.is_punct(";") and angle == 0:
                item = Struct(
                    name=name,
                    head=self.text(head_start, index + 1),
                    tail="",
                    line=line,
                    body=None,
                    **common,
                )
                return item, index + 1
            prev = token
            index += 1
        raise ParseError(f"unterminated struct {name!r}", line)

    def _struct_with_fields(
        self, common: dict, name: str, line: int, head_start: int, open_index: int, end: int
    ) -> tuple[Item, int]:
        close_index = self.pairs[open_index]
        body = self.parse_fields(open_index)
        item_end = close_index + 1
        if body.open == "(":
            # Tuple structs end with an optional where clause and a semicolon.
            item_end = self.scan_item_end(close_index + 1, end, stop_at_brace=False)
        item = Struct(
            name=name,
            head=self.text(head_start, open_index),
            tail=self.text(close_index + 1, item_end),
            line=line,
            body=body,
            **common,
        )
        return item, item_end

    def _parse_other(self, common: dict, head_start: int, end: int) -> tuple[Item, int]:
        item_end = self.scan_item_end(head_start, end, stop_at_brace=True)
        if self.tokens[item_end - 1].text == "}":
            after = self.skip_trivia(item_end, end)
            if after < end and self.tokens[after].is_punct(";"):
                item_end = after + 1
        item = Other(
            name="",
            head=self.text(head_start, item_end),
            tail="",
            line=self.tokens[head_start].line,
            **common,
        )
        return item, item_end

    # -- Scanning --------------------------------------------------------------

    def scan_item_end(self, index: int, end: int, stop_at_brace: bool) -> int:
        """Index just past the ``;`` or brace block that ends an item."""
        start = index
        while index < end:
            token = self.tokens[index]
            if token.kind is TokenKind.OPEN:
                close_index = self.pairs[index]
                if stop_at_brace and token.text == "{":
                    return close_index + 1
                index = close_index + 1
                continue
            if token.is_punct(";"):
                return index + 1
            index += 1
        raise ParseError("unexpected end of input inside an item", self._line_at(start - 1))

    def find_body_open(self, index: int, end: int) -> int | None:
        """Find the ``{`` opening an item body, or ``None`` if a ``;`` comes first.

        Braces inside generic arguments (``Foo<{ N }>``) are const
        expressions, not the body.
        """
        angle = 0
        prev: Token | None = None
        while index < end:
            token = self.tokens[index]
            if token.kind is TokenKind.OPEN:
                if token.text == "{" and angle == 0:
                    return index
                prev = self.tokens[self.pairs[index]]
                index = self.pairs[index] + 1
                continue
            if token.is_punct("<"):
                angle += 1
            elif token.is_punct(">") and not _is_arrow(prev):
                angle = max(0, angle - 1)
            elif token.is_punct(";") and angle == 0:
                return None
            if token.kind not in TRIVIA:
                prev = token
            index += 1
        raise ParseError("unexpected end of input before item body", self._line_at(index - 1))

    def impl_type_name(self, index: int, open_index: int) -> str:
        """Derive the implementing type's name from an impl header.

        ``impl<T> fmt::Display for crate::Wrapper<T> where T: Copy`` yields
        ``Wrapper``: the last path segment of the self type, ignoring
        generics, references and the trait being implemented.
        """
        index = self.skip_trivia(index, open_index)
        if index < open_index and self.tokens[index].is_punct("<"):
            index = self._skip_angle_group(index, open_index)

        segment_start = index
        segment_end = open_index
        angle = 0
        prev: Token | None = None
        cursor = index
        while cursor < open_index:
            token = self.tokens[cursor]
            if token.kind in TRIVIA:
                cursor += 1
                continue
            if token.kind is TokenKind.OPEN:
                prev = self.tokens[self.pairs[cursor]]
                cursor = self.pairs[cursor] + 1
                continue
            if token.is_punct("<"):
                angle += 1
            elif token.is_punct(">") and not _is_arrow(prev):
                angle = max(0, angle - 1)
            elif angle == 0 and token.is_ident("for"):
                after = self.peek(cursor + 1, open_index)
                if after is None or not after.is_punct("<"):
                    segment_start = cursor + 1
            elif angle == 0 and token.is_ident("where"):
                segment_end = cursor
                break
            prev = token
            cursor += 1

        name = None
        angle = 0
        prev = None
        cursor = segment_start
        while cursor < segment_end:
            token = self.tokens[cursor]
            if token.kind is TokenKind.OPEN:
                cursor = self.pairs[cursor] + 1
                continue
            if token.is_punct("<"):
                angle += 1
            elif token.is_punct(">") and not _is_arrow(prev):
                angle = max(0, angle - 1)
            elif angle == 0 and token.kind is TokenKind.IDENT and token.text not in _IMPL_NOISE:
                name = _ident_name(token.text)
            if token.kind not in TRIVIA:
                prev = token
            cursor += 1

        if name is not None:
            return name
        fallback = _NON_WORD_RE.sub("_", self.text(segment_start, segment_end)).strip("_")
        return fallback or "Unknown"

    def _skip_angle_group(self, index: int, end: int) -> int:
        depth = 0
        prev: Token | None = None
        while index < end:
            token = self.tokens[index]
            if token.kind is TokenKind.OPEN:
                prev = self.tokens[self.pairs[index]]
                index = self.pairs[index] + 1
                continue
            if token.is_punct("<"):
                depth += 1
            elif token.is_punct(">") and not _is_arrow(prev):
                depth -= 1
                if depth == 0:
                    return index + 1
            if token.kind not in TRIVIA:
                prev = token
            index += 1
        return index

    # -- Enum variants and struct fields ---------------------------------------

    def parse_variants(self, open_index: int) -> VariantList:
        close_index = self.pairs[open_index]
        variants: list[Variant] = []
        index = open_index + 1
        while True:
            start = self.skip_trivia(index, close_index)
            if start >= close_index:
                trailer = self.text(index, close_index)
                break
            leading = self.text(index, start)
            attrs, name_index = self.parse_outer_attrs(start, close_index)
            if name_index >= close_index or self.tokens[name_index].kind is not TokenKind.IDENT:
                raise ParseError("expected an enum variant name", self._line_at(name_index))

            after = self.skip_trivia(name_index + 1, close_index)
            fields = None
            if (
                after < close_index
                and self.tokens[after].kind is TokenKind.OPEN
                and self.tokens[after].text in "({"
            ):
                head = self.text(name_index, after)
                fields = self.parse_fields(after)
                tail_start = self.pairs[after] + 1
            else:
                head = self.text(name_index, name_index + 1)
                tail_start = name_index + 1

            comma = tail_start
            while comma < close_index and not self.tokens[comma].is_punct(","):
                if self.tokens[comma].kind is TokenKind.OPEN:
                    comma = self.pairs[comma] + 1
                else:
                    comma += 1

            if comma < close_index:
                tail_end, separator, index = comma, ",", comma + 1
            else:
                tail_end = max(self.last_significant(tail_start, comma), tail_start)
                separator, index = "", tail_end

            variants.append(
                Variant(
                    leading=leading,
                    attrs=attrs,
                    name=_ident_name(self.tokens[name_index].text),
                    head=head,
                    fields=fields,
                    tail=self.text(tail_start, tail_end),
                    separator=separator,
                    line=self.tokens[name_index].line,
                )
            )
        return VariantList(
            open=self.tokens[open_index].text,
            variants=variants,
            trailer=trailer,
            close=self.tokens[close_index].text,
        )

    def parse_fields(self, open_index: int) -> FieldList:
        close_index = self.pairs[open_index]
        named = self.tokens[open_index].text == "{"
        fields: list[Field] = []
        index = open_index + 1
        while True:
            start = self.skip_trivia(index, close_index)
            if start >= close_index:
                trailer = self.text(index, close_index)
                break
            leading = self.text(index, start)
            attrs, text_start = self.parse_outer_attrs(start, close_index)
            if text_start >= close_index:
                raise ParseError("attribute is not followed by a field", self._line_at(start))

            comma = self._find_field_comma(text_start, close_index)
            if comma < close_index:
                text_end, separator, index = comma, ",", comma + 1
            else:
                text_end = self.last_significant(text_start, comma)
                separator, index = "", text_end

            fields.append(
                Field(
                    leading=leading,
                    attrs=attrs,
                    name=self._field_name(text_start, text_end) if named else None,
                    text=self.text(text_start, text_end),
                    separator=separator,
                    line=self.tokens[text_start].line,
                )
            )
        return FieldList(
            open=self.tokens[open_index].text,
            fields=fields,
            trailer=trailer,
            close=self.tokens[close_index].text,
        )

    def _find_field_comma(self, index: int, end: int) -> int:
        angle = 0
        prev: Token | None = None
        while index < end:
            token = self.tokens[index]
            if token.kind is TokenKind.OPEN:
                prev = self.tokens[self.pairs[index]]
                index = self.pairs[index] + 1
                continue
            if token.is_punct("<"):
                angle += 1
            elif token.is_punct(">") and not _is_arrow(prev):
                angle = max(0, angle - 1)
            elif token.is_punct(",") and angle == 0:
                return index
            if token.kind not in TRIVIA:
                prev = token
            index += 1
        return end

    def _field_name(self, start: int, end: int) -> str | None:
        index = self._skip_prefixes(start, end)
        if index >= end or self.tokens[index].kind is not TokenKind.IDENT:
            return None
        colon = self.peek(index + 1, end)
        if colon is None or not colon.is_punct(":"):
            return None
        return _ident_name(self.tokens[index].text)


# -- Helpers -------------------------------------------------------------------


def _ident_name(text: str) -> str:
    """Strip the raw-identifier prefix: ``r#type`` -> ``type``."""
    return text[2:] if text.startswith("r#") else text


def _is_arrow(prev: Token | None) -> bool:
    """True when a ``>`` closes ``->`` or ``=>`` rather than a generic list."""
    return prev is not None and prev.kind is TokenKind.PUNCT and prev.text in ("-", "=")
