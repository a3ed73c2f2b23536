"""Token-set primitives for class values.

Pure text operations with zero I/O. A class value's token set is the set of
its whitespace-separated names, compared order- and duplicate-insensitively.
"""
from __future__ import annotations

import re

_TOKEN_RE = re.compile(r"\S+")


def class_tokens(value: str) -> list[str]:
    """Whitespace-split tokens in source order (duplicates kept)."""
    return value.split()


def token_set(value: str) -> frozenset[str]:
    return frozenset(class_tokens(value))


def same_token_set(a: str, b: str) -> bool:
    """True when both values carry the same non-empty token set.

    >>> same_token_set("flex p-4", "p-4  flex flex")
    True
    """
    ta = token_set(a)
    return bool(ta) and ta == token_set(b)


def removed_tokens(before: str, after: str) -> frozenset[str]:
    """Tokens dropped by a pure-removal edit.

    Returns an empty set unless ``after``'s tokens are a strict subset of
    ``before``'s (no additions, at least one removal).
    """
    tb = token_set(before)
    ta = token_set(after)
    if ta < tb:
        return tb - ta
    return frozenset()


def drop_tokens(value: str, removed: frozenset[str]) -> str:
    """Remove every occurrence of ``removed`` tokens from ``value``.

    Kept tokens stay in their original order, each keeping the whitespace
    that preceded it; leading and trailing whitespace of ``value`` survive.
    """
    kept: list[tuple[str, str]] = []
    prev_end = 0
    for m in _TOKEN_RE.finditer(value):
        sep = value[prev_end:m.start()]
        prev_end = m.end()
        if m.group() not in removed:
            kept.append((sep, m.group()))
    if not kept:
        return ""
    leading = value[:len(value) - len(value.lstrip())]
    trailing = value[len(value.rstrip()):]
    first = kept[0][1]
    rest = "".join(sep + tok for sep, tok in kept[1:])
    return leading + first + rest + trailing
