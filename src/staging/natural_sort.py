"""
Human reading order for filenames: "p2" sorts before "p10".
"""

from __future__ import annotations

import re
import unicodedata
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")

_DIGITS = re.compile(r"(\d+)")

# Primary weight classes, lowest first: whitespace < punctuation and symbols
# < digit runs < letters ("p 1" < "p_1" < "p1" < "pa").
_SPACE, _PUNCT, _NUMBER, _LETTER = 0, 1, 2, 3

NaturalElement = tuple[int, int, str]
NaturalKey = tuple[tuple[NaturalElement, ...], str, str]


def _fold(s: str) -> str:
    # Base-letter comparison: case and accents are ignored at the primary level.
    decomposed = unicodedata.normalize("NFKD", s)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def _char_class(c: str) -> int:
    if c.isspace():
        return _SPACE
    if c.isalnum():
        return _LETTER
    return _PUNCT


def natural_key(name: str) -> NaturalKey:
    """
    Sort key with numeric runs compared by value and text compared
    case-insensitively.

    Ties at the primary level (e.g. "P1" vs "p1", "p01" vs "p1") are broken by
    the case-folded name and finally by the raw name, so the order is total:
    distinct names never compare equal.
    """

    elements: list[NaturalElement] = []
    for i, chunk in enumerate(_DIGITS.split(_fold(name))):
        if chunk == "":
            continue
        if i % 2 == 1:
            elements.append((_NUMBER, int(chunk), ""))
        else:
            elements.extend((_char_class(c), 0, c) for c in chunk)
    return tuple(elements), name.casefold(), name


def natural_sorted(items: Iterable[T], *, key: Callable[[T], str] | None = None) -> list[T]:
    if key is None:
        return sorted(items, key=lambda item: natural_key(item))  # type: ignore[arg-type]
    return sorted(items, key=lambda item: natural_key(key(item)))
