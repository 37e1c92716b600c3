"""Sorted set of string members ordered by floating point score."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from fnmatch import fnmatchcase
from itertools import islice
from typing import Iterator, List, Optional, Tuple, Union

from sortedcontainers import SortedList


@dataclass(frozen=True)
class Element:
    """A member of a sorted set together with its score."""

    member: str
    score: float


def format_score(score: float) -> str:
    """Render a score in shortest fixed-point form, without an exponent."""
    if math.isnan(score):
        return "NaN"
    if math.isinf(score):
        return "+Inf" if score > 0 else "-Inf"
    text = format(Decimal(repr(float(score))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _parse_float(text: str) -> float:
    if not text or text != text.strip() or "_" in text:
        raise ValueError(text)
    return float(text)


@dataclass(frozen=True)
class ScoreBorder:
    """One end of a score interval; infinite values are unbounded."""

    value: float
    exclude: bool = False

    def contains_lower(self, element: Element) -> bool:
        if self.exclude:
            return element.score > self.value
        return element.score >= self.value

    def contains_upper(self, element: Element) -> bool:
        if self.exclude:
            return element.score < self.value
        return element.score <= self.value


@dataclass(frozen=True)
class LexBorder:
    """One end of a lexicographic interval; ``infinity`` is -1, 0 or +1."""

    value: str = ""
    exclude: bool = False
    infinity: int = 0

    def contains_lower(self, element: Element) -> bool:
        if self.infinity < 0:
            return True
        if self.infinity > 0:
            return False
        if self.exclude:
            return element.member > self.value
        return element.member >= self.value

    def contains_upper(self, element: Element) -> bool:
        if self.infinity > 0:
            return True
        if self.infinity < 0:
            return False
        if self.exclude:
            return element.member < self.value
        return element.member <= self.value


Border = Union[ScoreBorder, LexBorder]


def parse_score_border(text: str) -> ScoreBorder:
    """Parse ``inf``, ``-inf``, ``(1.5`` or ``1.5`` into a score border."""
    lowered = text.lower()
    if lowered in ("inf", "+inf"):
        return ScoreBorder(math.inf)
    if lowered == "-inf":
        return ScoreBorder(-math.inf)
    exclude = text.startswith("(")
    raw = text[1:] if exclude else text
    try:
        value = _parse_float(raw)
    except ValueError:
        raise ValueError("ERR min or max is not a float") from None
    if math.isnan(value):
        raise ValueError("ERR min or max is not a float")
    return ScoreBorder(value, exclude)


def parse_lex_border(text: str) -> LexBorder:
    """Parse ``-``, ``+``, ``(member`` or ``[member`` into a lex border."""
    if text == "+":
        return LexBorder(infinity=1)
    if text == "-":
        return LexBorder(infinity=-1)
    if text.startswith("("):
        return LexBorder(text[1:], True)
    if text.startswith("["):
        return LexBorder(text[1:], False)
    raise ValueError("ERR min or max not valid string range item")


class SortedSet:
    """Members ordered by (score, member), with lookup by member."""

    def __init__(self) -> None:
        self._scores: dict = {}
        self._order = SortedList()

    def add(self, member: str, score: float) -> bool:
        """Insert or update a member; return True if it was new."""
        score = float(score)
        old = self._scores.get(member)
        if old is not None:
            if old != score:
                self._order.remove((old, member))
                self._order.add((score, member))
                self._scores[member] = score
            return False
        self._scores[member] = score
        self._order.add((score, member))
        return True

    def get(self, member: str) -> Optional[Element]:
        score = self._scores.get(member)
        return None if score is None else Element(member, score)

    def remove(self, member: str) -> bool:
        score = self._scores.pop(member, None)
        if score is None:
            return False
        self._order.remove((score, member))
        return True

    def __len__(self) -> int:
        return len(self._scores)

    def __contains__(self, member: object) -> bool:
        return member in self._scores

    def __iter__(self) -> Iterator[Element]:
        return (Element(member, score) for score, member in self._order)

    def rank(self, member: str, desc: bool = False) -> Optional[int]:
        """Zero-based position of a member, or None if it is absent."""
        score = self._scores.get(member)
        if score is None:
            return None
        index = self._order.index((score, member))
        return len(self._order) - 1 - index if desc else index

    def range_by_rank(self, start: int, stop: int, desc: bool = False) -> List[Element]:
        """Elements at positions ``start`` (inclusive) to ``stop`` (exclusive)."""
        size = len(self._order)
        if desc:
            picked = reversed(self._order[size - stop:size - start])
        else:
            picked = self._order[start:stop]
        return [Element(member, score) for score, member in picked]

    def _matching(self, lower: Border, upper: Border, desc: bool) -> Iterator[Element]:
        if desc:
            items = reversed(self._order)
            enter, stay = upper.contains_upper, lower.contains_lower
        else:
            items = iter(self._order)
            enter, stay = lower.contains_lower, upper.contains_upper
        started = False
        for score, member in items:
            element = Element(member, score)
            if not started:
                if not enter(element):
                    continue
                started = True
            if not stay(element):
                break
            yield element

    def range(self, lower: Border, upper: Border, offset: int = 0,
              limit: int = -1, desc: bool = False) -> List[Element]:
        """Elements within the borders; a negative limit means no limit."""
        stop = None if limit < 0 else max(offset, 0) + limit
        return list(islice(self._matching(lower, upper, desc), max(offset, 0), stop))

    def count(self, lower: Border, upper: Border) -> int:
        return sum(1 for _ in self._matching(lower, upper, False))

    def remove_range(self, lower: Border, upper: Border) -> int:
        doomed = list(self._matching(lower, upper, False))
        for element in doomed:
            self.remove(element.member)
        return len(doomed)

    def remove_by_rank(self, start: int, stop: int) -> int:
        doomed = self.range_by_rank(start, stop)
        for element in doomed:
            self.remove(element.member)
        return len(doomed)

    def pop_min(self, count: int) -> List[Element]:
        popped = self.range_by_rank(0, min(max(count, 0), len(self)))
        for element in popped:
            self.remove(element.member)
        return popped

    def scan(self, cursor: int, count: int, pattern: str = "*") -> Tuple[List[Element], int]:
        """Walk ``count`` elements from ``cursor``; next cursor is 0 at the end."""
        size = len(self._order)
        if cursor < 0 or cursor > size or count <= 0:
            raise ValueError("Invalid argument")
        end = min(cursor + count, size)
        found = [
            Element(member, score)
            for score, member in self._order[cursor:end]
            if fnmatchcase(member, pattern)
        ]
        return found, (0 if end >= size else end)