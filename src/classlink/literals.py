"""Quoted string literal scanning for script-like text.

Recognizes ``"..."``, ``'...'`` and backtick template literals with backslash
escapes, and skips ``//`` and ``/* */`` comments and regex literals.
Single- and double-quoted literals cannot span lines; an unterminated one is
dropped. Offsets are absolute within the scanned text and exclude the quote
characters.
"""
from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from classlink.config import FileKind

_INLINE_SCRIPT_RE = re.compile(
    r"<script\b[^>]*>(.*?)</script\s*>", re.IGNORECASE | re.DOTALL,
)

# identifier (or closing bracket) followed by `=` / `:` right before the quote;
# excludes ==, ===, !=, <=, >=, => and ternary branches.
_ASSIGNMENT_RE = re.compile(r"(?:[A-Za-z_$][\w$]*|[\]\)])\s*(?::|(?<![=!<>])=)\s*$")

_CLASS_CONTEXT_RE = re.compile(
    r"\b(?:class|className|classList|classNames|classes|cls|clsx|cx|ngClass|tw)\b[^;\n]*$",
)

# `class="..."` written inside a string that holds markup
_EMBEDDED_CLASS_RE = re.compile(r"""\bclass(?:Name)?\s*=\s*(["'])([^"'<>\n]*)\1""", re.IGNORECASE)

# A `/` after one of these (or at the start of a line) opens a regex literal.
_REGEX_PRECEDERS = frozenset("(,=:[!&|?{};\n")


@dataclass(frozen=True, slots=True)
class StringLiteral:
    """A quoted literal whose body spans ``[start, end)``."""

    quote: str
    start: int
    end: int
    value: str


def iter_string_literals(text: str, start: int = 0, end: int | None = None) -> Iterator[StringLiteral]:
    """Yield string literals found in ``text[start:end]`` in order."""
    n = len(text) if end is None else min(end, len(text))
    pos = start
    while pos < n:
        ch = text[pos]
        if ch == "/" and pos + 1 < n:
            nxt = text[pos + 1]
            if nxt == "/":
                nl = text.find("\n", pos + 2, n)
                pos = n if nl == -1 else nl + 1
                continue
            if nxt == "*":
                close = text.find("*/", pos + 2, n)
                pos = n if close == -1 else close + 2
                continue
            if _regex_allowed(text, start, pos):
                close = _regex_end(text, pos, n)
                if close != -1:
                    pos = close + 1
                    continue
        if ch not in "\"'`":
            pos += 1
            continue

        body_start = pos + 1
        i = body_start
        closed = False
        while i < n:
            c = text[i]
            if c == "\\":
                i += 2
                continue
            if c == ch:
                closed = True
                break
            if c == "\n" and ch != "`":
                break
            i += 1
        if closed:
            yield StringLiteral(ch, body_start, i, text[body_start:i])
            pos = i + 1
        else:
            # Unterminated: resume scanning after the opening quote
            pos = body_start


def _regex_allowed(text: str, start: int, pos: int) -> bool:
    """True when a ``/`` at ``pos`` sits where an operand (a regex) may begin."""
    i = pos - 1
    while i >= start and text[i] in " \t\r":
        i -= 1
    return i < start or text[i] in _REGEX_PRECEDERS


def _regex_end(text: str, pos: int, n: int) -> int:
    """Offset of the ``/`` closing a regex literal opened at ``pos``, or -1."""
    i = pos + 1
    in_class = False
    while i < n:
        c = text[i]
        if c == "\\":
            i += 2
            continue
        if c == "\n":
            return -1
        if in_class:
            if c == "]":
                in_class = False
        elif c == "[":
            in_class = True
        elif c == "/":
            return i
        i += 1
    return -1


def inline_script_regions(html: str) -> list[tuple[int, int]]:
    """Body ranges of every inline ``<script>`` element."""
    return [(m.start(1), m.end(1)) for m in _INLINE_SCRIPT_RE.finditer(html)]


def literal_regions(kind: FileKind, text: str) -> list[tuple[int, int]]:
    """Ranges of a file that hold script code.

    Script files are scanned whole; markup files only inside inline scripts.
    """
    if kind == "script":
        return [(0, len(text))]
    return inline_script_regions(text)


def iter_literals_in(text: str, regions: Iterable[tuple[int, int]]) -> Iterator[StringLiteral]:
    for start, end in regions:
        yield from iter_string_literals(text, start, end)


def embedded_quoted(literal: StringLiteral, needle: str) -> Iterator[tuple[int, int]]:
    """Ranges where ``needle`` appears quoted inside the body of ``literal``.

    Covers markup-bearing strings such as ``'<td class="btn">'``, where the
    inner ``"btn"`` is a candidate even though the outer literal is not.
    """
    if not needle:
        return
    for q in "\"'`":
        if q == literal.quote:
            continue
        quoted = f"{q}{needle}{q}"
        pos = literal.value.find(quoted)
        while pos != -1:
            start = literal.start + pos + 1
            yield start, start + len(needle)
            pos = literal.value.find(quoted, pos + 1)


def embedded_class_values(literal: StringLiteral) -> Iterator[tuple[int, int, str]]:
    """``(start, end, value)`` of each ``class="..."`` written inside ``literal``."""
    for m in _EMBEDDED_CLASS_RE.finditer(literal.value):
        yield literal.start + m.start(2), literal.start + m.end(2), m.group(2)



def is_assignment_literal(text: str, literal: StringLiteral, *, lookback: int = 120) -> bool:
    """True when the literal is the whole right-hand side of an assignment.

    Matches ``name = "..."``, ``name: "..."`` and ``const name = '...'``.
    """
    quote_at = literal.start - 1
    before = text[max(0, quote_at - lookback):quote_at]
    return _ASSIGNMENT_RE.search(before) is not None


def has_class_context(text: str, literal: StringLiteral, *, lookback: int = 40) -> bool:
    """True when a class-assignment construct sits just before the literal.

    Examples: ``className="``, ``el.classList.add('``, ``class: "``.
    """
    quote_at = literal.start - 1
    before = text[max(0, quote_at - lookback):quote_at]
    return _CLASS_CONTEXT_RE.search(before) is not None
