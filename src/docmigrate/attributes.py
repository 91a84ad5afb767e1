"""Classification of attributes and doc comments.

Every attribute falls in exactly one :class:`AttrKind`. Only ``DOC`` and
``DOC_EXPR`` carry documentation. Reference attributes pointing at the
external markdown files have kinds of their own and are never stripped.
"""

from __future__ import annotations

import re
from enum import Enum

from docmigrate.lexer import TRIVIA, Token, TokenKind, match_delimiters, tokenize
from docmigrate.models import Attribute


class AttrKind(Enum):
    DOC = "doc"  # doc comment or doc = "literal"
    DOC_EXPR = "doc_expr"  # doc = include_str!(...) and other non-literal values
    REFERENCE = "reference"  # #[syncdoc::omnidoc]
    MODULE_REFERENCE = "module_reference"  # #![doc = syncdoc::module_doc!()]
    OTHER = "other"


DOC_KINDS = frozenset({AttrKind.DOC, AttrKind.DOC_EXPR})
REFERENCE_KINDS = frozenset({AttrKind.REFERENCE, AttrKind.MODULE_REFERENCE})

# -- Regex patterns -----------------------------------------------------------

_ATTR_RE = re.compile(r"#\s*!?\s*\[(.*)\]\s*\Z", re.DOTALL)
_BLOCK_DECORATION_RE = re.compile(r"^[ \t]*\* ?")
_ESCAPE_RE = re.compile(r"\\(?:x([0-9a-fA-F]{2})|u\{([0-9a-fA-F_]+)\}|\n\s*|(.))", re.DOTALL)
_SIMPLE_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "\\": "\\", "0": "\0", "'": "'", '"': '"'}


def classify(text: str) -> AttrKind:
    """Classify the exact source text of one attribute or doc comment."""
    if _is_doc_comment(text):
        return AttrKind.DOC
    meta = _meta_text(text)
    if meta is None:
        return AttrKind.OTHER
    return _classify_meta(meta)


def is_doc(attr: Attribute) -> bool:
    """True when the attribute carries documentation and should be stripped."""
    return classify(attr.text) in DOC_KINDS


def has_kind(attrs: list[Attribute] | None, *kinds: AttrKind) -> bool:
    return any(classify(attr.text) in kinds for attr in attrs or ())


def doc_texts(text: str) -> list[str]:
    """Return the literal documentation pieces carried by one attribute.

    Non-literal values (``include_str!``...) and non-doc attributes yield
    an empty list.
    """
    if _is_doc_comment(text):
        return [_comment_text(text)]
    meta = _meta_text(text)
    if meta is None:
        return []
    return _meta_doc_texts(meta)


def collect_docs(attrs: list[Attribute] | None) -> str | None:
    """Combine the literal docs of an attribute list into markdown content.

    Pieces are kept in source order, one leading space is dropped from each
    piece (the space after ``///``, not every line of a multi-line literal),
    pieces are joined with ``\\n`` and the result is stripped. Returns ``None``
    when no literal doc is present at all, which is different from docs whose
    content is empty.
    """
    pieces: list[str] = []
    found = False
    for attr in attrs or ():
        texts = doc_texts(attr.text)
        if texts:
            found = True
            pieces.extend(texts)
    if not found:
        return None

    trimmed = [piece[1:] if piece.startswith(" ") else piece for piece in pieces]
    return "\n".join(trimmed).strip()


# -- Doc comments --------------------------------------------------------------


def _is_doc_comment(text: str) -> bool:
    if text.startswith("///") and not text.startswith("////"):
        return True
    if text.startswith("//!"):
        return True
    if text.startswith("/**") and not text.startswith("/***") and text != "/**/":
        return True
    return text.startswith("/*!")


def _comment_text(text: str) -> str:
    """Raw documentation text of a doc comment, without its markers."""
    if text.startswith("//"):
        return text[3:].rstrip("\r")

    lines = text[3:-2].split("\n")
    # Drop leading "* " decorations when every continuation line has one.
    rest = [line for line in lines[1:] if line.strip()]
    if rest and all(_BLOCK_DECORATION_RE.match(line) for line in rest):
        lines = [lines[0]] + [_BLOCK_DECORATION_RE.sub("", line, count=1) for line in lines[1:]]
    return "\n".join(line.rstrip() for line in lines)


# -- Attribute metadata --------------------------------------------------------


def _meta_text(text: str) -> str | None:
    """Return the text between the brackets of ``#[...]`` or ``#![...]``."""
    m = _ATTR_RE.match(text)
    return m.group(1) if m else None


def _significant(meta: str) -> list[Token]:
    return [t for t in tokenize(meta) if t.kind not in TRIVIA]


def _classify_meta(meta: str) -> AttrKind:
    tokens = _significant(meta)
    if not tokens:
        return AttrKind.OTHER

    if tokens[0].is_ident("doc"):
        if len(tokens) < 3 or not tokens[1].is_punct("="):
            return AttrKind.OTHER  # doc(hidden), doc(alias = "...")
        value = tokens[2:]
        if len(value) == 1 and _is_string_literal(value[0]):
            return AttrKind.DOC
        if _is_module_doc_macro(value):
            return AttrKind.MODULE_REFERENCE
        return AttrKind.DOC_EXPR

    if _is_omnidoc(tokens):
        return AttrKind.REFERENCE

    if tokens[0].is_ident("cfg_attr"):
        parts = _cfg_attr_parts(meta)
        if parts is None or len(parts) < 2:
            return AttrKind.OTHER
        kinds = [_classify_meta(part) for part in parts[1:]]
        for kind in kinds:
            if kind in REFERENCE_KINDS:
                return kind
        if all(kind in DOC_KINDS for kind in kinds):
            return AttrKind.DOC if AttrKind.DOC in kinds else AttrKind.DOC_EXPR
    return AttrKind.OTHER


def _meta_doc_texts(meta: str) -> list[str]:
    tokens = _significant(meta)
    if tokens and tokens[0].is_ident("doc"):
        if len(tokens) == 3 and tokens[1].is_punct("=") and _is_string_literal(tokens[2]):
            return [_string_value(tokens[2].text)]
        return []
    if tokens and tokens[0].is_ident("cfg_attr") and _classify_meta(meta) is AttrKind.DOC:
        texts: list[str] = []
        for part in _cfg_attr_parts(meta)[1:]:
            texts.extend(_meta_doc_texts(part))
        return texts
    return []


def _cfg_attr_parts(meta: str) -> list[str] | None:
    """Split ``cfg_attr(cond, a, b)`` into ``["cond", "a", "b"]``."""
    tokens = tokenize(meta)
    pairs = match_delimiters(tokens)
    open_index = next(
        (i for i, t in enumerate(tokens) if t.kind is TokenKind.OPEN), None
    )
    if open_index is None or tokens[open_index].text != "(":
        return None
    close_index = pairs[open_index]

    parts: list[str] = []
    start = tokens[open_index].end
    index = open_index + 1
    while index < close_index:
        token = tokens[index]
        if token.kind is TokenKind.OPEN:
            index = pairs[index] + 1
            continue
        if token.is_punct(","):
            parts.append(meta[start : token.start])
            start = token.end
        index += 1
    parts.append(meta[start : tokens[close_index].start])
    return [part.strip() for part in parts if part.strip()]


def _path_idents(tokens: list[Token]) -> tuple[list[str], int]:
    """Read a ``a::b::c`` path prefix; return its segments and the next index."""
    segments: list[str] = []
    index = 0
    if _at_path_separator(tokens, 0):
        index = 2
    while index < len(tokens) and tokens[index].kind is TokenKind.IDENT:
        segments.append(tokens[index].text)
        index += 1
        if _at_path_separator(tokens, index):
            index += 2
        else:
            break
    return segments, index


def _at_path_separator(tokens: list[Token], index: int) -> bool:
    return (
        index + 1 < len(tokens) and tokens[index].is_punct(":") and tokens[index + 1].is_punct(":")
    )


def _is_omnidoc(tokens: list[Token]) -> bool:
    segments, index = _path_idents(tokens)
    if segments not in (["omnidoc"], ["syncdoc", "omnidoc"]):
        return False
    rest = tokens[index:]
    if not rest:
        return True
    return rest[0].kind is TokenKind.OPEN and rest[0].text == "(" and rest[-1].text == ")"


def _is_module_doc_macro(value: list[Token]) -> bool:
    segments, index = _path_idents(value)
    if segments not in (["module_doc"], ["syncdoc", "module_doc"]):
        return False
    return index < len(value) and value[index].is_punct("!")


def _is_string_literal(token: Token) -> bool:
    if token.kind is not TokenKind.LITERAL:
        return False
    return token.text.startswith('"') or token.text.startswith("r")


def _string_value(text: str) -> str:
    """Decode a Rust string literal (plain or raw) to its value."""
    if text.startswith("r"):
        hashes = len(text) - len(text[1:].lstrip("#")) - 1
        return text[2 + hashes : len(text) - 1 - hashes]
    return _ESCAPE_RE.sub(_replace_escape, text[1:-1])


def _replace_escape(m: re.Match) -> str:
    hex_byte, unicode, simple = m.groups()
    if hex_byte is not None:
        return chr(int(hex_byte, 16))
    if unicode is not None:
        return chr(int(unicode.replace("_", ""), 16))
    if simple is not None:
        return _SIMPLE_ESCAPES.get(simple, "\\" + simple)
    return ""  # line continuation
