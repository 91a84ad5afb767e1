"""Lossless tokenizer for Rust source text.

Tokens cover the input contiguously: concatenating ``token.text`` for every
token yields the original string. Whitespace and comments are tokens too,
which is what lets the parser hand them back verbatim.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from docmigrate.errors import ParseError


class TokenKind(Enum):
    WHITESPACE = "whitespace"
    COMMENT = "comment"
    OUTER_DOC = "outer_doc"
    INNER_DOC = "inner_doc"
    IDENT = "ident"
    LIFETIME = "lifetime"
    LITERAL = "literal"
    PUNCT = "punct"
    OPEN = "open"
    CLOSE = "close"


TRIVIA = frozenset({TokenKind.WHITESPACE, TokenKind.COMMENT})

OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {v: k for k, v in OPENERS.items()}


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    start: int
    line: int

    @property
    def end(self) -> int:
        return self.start + len(self.text)

    def is_punct(self, char: str) -> bool:
        return self.kind is TokenKind.PUNCT and self.text == char

    def is_ident(self, *names: str) -> bool:
        return self.kind is TokenKind.IDENT and (not names or self.text in names)


# -- Regex patterns -----------------------------------------------------------

_WHITESPACE_RE = re.compile(r"\s+")
_IDENT_RE = re.compile(r"(?:r#)?[^\W\d]\w*")
_NUMBER_RE = re.compile(r"\d[\w]*(?:\.\d[\w]*)?")
_LIFETIME_RE = re.compile(r"'[^\W\d]\w*")
# Optional prefix, opening hashes, quote. Group 1 = prefix, group 2 = hashes.
_RAW_STRING_RE = re.compile(r"(br|cr|r)(#*)\"")
_QUOTED_STRING_RE = re.compile(r"(b|c)?\"")
_BYTE_CHAR_RE = re.compile(r"b'")


def tokenize(source: str) -> list[Token]:
    """Split ``source`` into a contiguous list of tokens.

    Raises:
        ParseError: On unterminated comments, strings or character literals.
    """
    tokens: list[Token] = []
    pos = 0
    line = 1
    length = len(source)

    while pos < length:
        start = pos
        ch = source[pos]

        if ch.isspace():
            pos = _WHITESPACE_RE.match(source, pos).end()
            kind = TokenKind.WHITESPACE
        elif source.startswith("//", pos):
            pos, kind = _scan_line_comment(source, pos)
        elif source.startswith("/*", pos):
            pos, kind = _scan_block_comment(source, pos, line)
        elif _RAW_STRING_RE.match(source, pos):
            pos = _scan_raw_string(source, _RAW_STRING_RE.match(source, pos), line)
            kind = TokenKind.LITERAL
        elif _QUOTED_STRING_RE.match(source, pos):
            pos = _scan_quoted(source, _QUOTED_STRING_RE.match(source, pos).end(), '"', line)
            kind = TokenKind.LITERAL
        elif _BYTE_CHAR_RE.match(source, pos):
            pos = _scan_quoted(source, pos + 2, "'", line)
            kind = TokenKind.LITERAL
        elif ch == "'":
            pos, kind = _scan_quote(source, pos, line)
        elif _IDENT_RE.match(source, pos):
            pos = _IDENT_RE.match(source, pos).end()
            kind = TokenKind.IDENT
        elif ch.isdigit():
            pos = _NUMBER_RE.match(source, pos).end()
            kind = TokenKind.LITERAL
        elif ch in OPENERS:
            pos += 1
            kind = TokenKind.OPEN
        elif ch in CLOSERS:
            pos += 1
            kind = TokenKind.CLOSE
        else:
            pos += 1
            kind = TokenKind.PUNCT

        text = source[start:pos]
        tokens.append(Token(kind, text, start, line))
        line += text.count("\n")

    return tokens


def match_delimiters(tokens: list[Token]) -> dict[int, int]:
    """Map the index of every opening delimiter to the index of its closer.

    Raises:
        ParseError: When delimiters are unbalanced or mismatched.
    """
    pairs: dict[int, int] = {}
    stack: list[int] = []
    for index, token in enumerate(tokens):
        if token.kind is TokenKind.OPEN:
            stack.append(index)
        elif token.kind is TokenKind.CLOSE:
            if not stack:
                raise ParseError(f"unexpected closing delimiter {token.text!r}", token.line)
            opener = stack.pop()
            if OPENERS[tokens[opener].text] != token.text:
                raise ParseError(
                    f"mismatched delimiter: {tokens[opener].text!r} closed by {token.text!r}",
                    token.line,
                )
            pairs[opener] = index
    if stack:
        unclosed = tokens[stack[-1]]
        raise ParseError(f"unclosed delimiter {unclosed.text!r}", unclosed.line)
    return pairs


# -- Scanners ------------------------------------------------------------------


def _scan_line_comment(source: str, pos: int) -> tuple[int, TokenKind]:
    end = source.find("\n", pos)
    if end == -1:
        end = len(source)
    text = source[pos:end]
    if text.startswith("///") and not text.startswith("////"):
        return end, TokenKind.OUTER_DOC
    if text.startswith("//!"):
        return end, TokenKind.INNER_DOC
    return end, TokenKind.COMMENT


def _scan_block_comment(source: str, pos: int, line: int) -> tuple[int, TokenKind]:
    depth = 0
    i = pos
    length = len(source)
    while i < length:
        if source.startswith("/*", i):
            depth += 1
            i += 2
        elif source.startswith("*/", i):
            depth -= 1
            i += 2
            if depth == 0:
                break
        else:
            i += 1
    if depth != 0:
        raise ParseError("unterminated block comment", line)

    text = source[pos:i]
    # "/**/" and "/***...*/" are plain comments.
    if text.startswith("/**") and not text.startswith("/***") and text != "/**/":
        return i, TokenKind.OUTER_DOC
    if text.startswith("/*!"):
        return i, TokenKind.INNER_DOC
    return i, TokenKind.COMMENT


def _scan_raw_string(source: str, m: re.Match, line: int) -> int:
    closing = '"' + m.group(2)
    end = source.find(closing, m.end())
    if end == -1:
        raise ParseError("unterminated raw string literal", line)
    return end + len(closing)


def _scan_quoted(source: str, pos: int, quote: str, line: int) -> int:
    """Scan an escaped literal body starting just after the opening quote."""
    i = pos
    length = len(source)
    while i < length:
        ch = source[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        i += 1
    raise ParseError("unterminated literal", line)


def _scan_quote(source: str, pos: int, line: int) -> tuple[int, TokenKind]:
    """Disambiguate a character literal from a lifetime or label."""
    if source.startswith("\\", pos + 1):
        return _scan_quoted(source, pos + 1, "'", line), TokenKind.LITERAL
    if pos + 2 < len(source) and source[pos + 2] == "'":
        return pos + 3, TokenKind.LITERAL
    m = _LIFETIME_RE.match(source, pos)
    if m is not None:
        return m.end(), TokenKind.LIFETIME
    return pos + 1, TokenKind.PUNCT
