import math

import pytest

from memkv.sortedset import (
    Element,
    LexBorder,
    ScoreBorder,
    SortedSet,
    format_score,
    parse_lex_border,
    parse_score_border,
)


def numbered(size=100):
    zset = SortedSet()
    for i in range(size):
        zset.add(str(i), i)
    return zset


def letters():
    zset = SortedSet()
    for member in "edcba":
        zset.add(member, 0)
    return zset


def members(elements):
    return [e.member for e in elements]


def test_add_and_update():
    zset = SortedSet()
    assert zset.add("a", 1.5) is True
    assert zset.add("a", 2.5) is False
    assert zset.get("a") == Element("a", 2.5)
    assert len(zset) == 1
    assert "a" in zset and "b" not in zset


def test_remove():
    zset = numbered(10)
    assert zset.remove("3") is True
    assert zset.remove("3") is False
    assert len(zset) == 9
    assert zset.get("3") is None


def test_rank():
    zset = numbered()
    for i in range(100):
        assert zset.rank(str(i)) == i
        assert zset.rank(str(i), True) == 99 - i
    assert zset.rank("missing") is None


def test_range_by_rank():
    zset = numbered()
    assert members(zset.range_by_rank(0, 10)) == [str(i) for i in range(10)]
    assert members(zset.range_by_rank(0, 10, True)) == [str(i) for i in range(99, 89, -1)]
    assert members(zset.range_by_rank(90, 100)) == [str(i) for i in range(90, 100)]


@pytest.mark.parametrize(
    "low, high, expected",
    [("20", "30", list(range(20, 31))), ("-10", "10", list(range(0, 11))),
     ("90", "110", list(range(90, 100))), ("(20", "(30", list(range(21, 30)))],
)
def test_range_by_score(low, high, expected):
    zset = numbered()
    lower, upper = parse_score_border(low), parse_score_border(high)
    assert members(zset.range(lower, upper)) == [str(i) for i in expected]
    assert members(zset.range(lower, upper, desc=True)) == [str(i) for i in reversed(expected)]
    assert zset.count(lower, upper) == len(expected)


def test_range_limit():
    zset = numbered()
    lower, upper = parse_score_border("20"), parse_score_border("40")
    assert members(zset.range(lower, upper, 5, 5)) == [str(i) for i in range(25, 30)]
    assert members(zset.range(lower, upper, 5, 5, True)) == [str(i) for i in range(35, 30, -1)]


@pytest.mark.parametrize(
    "low, high, expected",
    [("(-", "(+", 0), ("(-", "(g", 5), ("(-", "(c", 2), ("(-", "[c", 3), ("(a", "(+", 0),
     ("[-", "[+", 0), ("[-", "(g", 5), ("-", "+", 5), ("-", "(c", 2), ("-", "[c", 3),
     ("(aa", "(c", 1), ("(aa", "[c", 2), ("[aa", "(c", 1), ("(a", "(ee", 4),
     ("[a", "(ee", 5), ("[aa", "[ee", 4)],
)
def test_lex_count(low, high, expected):
    zset = letters()
    assert zset.count(parse_lex_border(low), parse_lex_border(high)) == expected


def test_lex_range_and_remove():
    zset = letters()
    assert members(zset.range(parse_lex_border("(a"), parse_lex_border("(e"))) == ["b", "c", "d"]
    assert members(zset.range(parse_lex_border("-"), parse_lex_border("+"), 2, 2)) == ["c", "d"]
    assert members(zset.range(parse_lex_border("-"), parse_lex_border("+"), 2, 2, True)) == ["c", "b"]
    assert zset.remove_range(parse_lex_border("-"), parse_lex_border("[c")) == 3
    assert members(zset) == ["d", "e"]


def test_remove_by_score_and_rank():
    zset = numbered()
    assert zset.remove_range(ScoreBorder(0), ScoreBorder(9)) == 10
    assert len(zset) == 90
    assert zset.remove_by_rank(0, 10) == 10
    assert zset.rank("20") == 0


def test_pop_min():
    zset = SortedSet()
    zset.add("a", 1)
    zset.add("b", 1)
    zset.add("c", 2)
    assert zset.pop_min(2) == [Element("a", 1.0), Element("b", 1.0)]
    assert members(zset) == ["c"]


def test_scan():
    zset = SortedSet()
    for i in range(3):
        zset.add("a" + str(i), i)
        zset.add("b" + str(i), i)
    found, cursor = zset.scan(0, 10)
    assert cursor == 0 and len(found) == 6
    found, _ = zset.scan(0, 10, "a*")
    assert sorted(members(found)) == ["a0", "a1", "a2"]
    first, cursor = zset.scan(0, 4)
    assert len(first) == 4 and cursor == 4
    with pytest.raises(ValueError):
        zset.scan(100, 10)


@pytest.mark.parametrize(
    "score, text",
    [(10.0, "10"), (0.5, "0.5"), (-3.25, "-3.25"), (1e20, "100000000000000000000"),
     (math.inf, "+Inf"), (-math.inf, "-Inf")],
)
def test_format_score(score, text):
    assert format_score(score) == text


def test_parse_borders():
    assert parse_score_border("(5") == ScoreBorder(5.0, True)
    assert parse_score_border("-inf") == ScoreBorder(-math.inf)
    assert parse_lex_border("+") == LexBorder(infinity=1)
    assert parse_lex_border("[x") == LexBorder("x", False)
    with pytest.raises(ValueError, match="not a float"):
        parse_score_border("abc")
    with pytest.raises(ValueError, match="string range item"):
        parse_lex_border("x")