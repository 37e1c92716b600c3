"""Sorted set commands over score ranges, lex ranges and cursors."""

from __future__ import annotations

import re
from typing import List, Sequence, Union

from memkv.keyspace import (
    CommandError,
    CommandSyntaxError,
    Keyspace,
    command,
    read_first_key,
    rollback_first_key,
    write_first_key,
)
from memkv.sortedset import (
    Element,
    LexBorder,
    ScoreBorder,
    format_score,
    parse_lex_border,
    parse_score_border,
)

_INT_RE = re.compile(r"[+-]?[0-9]+\Z")
_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1
_NOT_INTEGER = "ERR value is not an integer or out of range"


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", "surrogateescape")


def _encode(text: str) -> bytes:
    return text.encode("utf-8", "surrogateescape")


def _int_or_none(raw: bytes):
    text = _decode(raw)
    if not _INT_RE.match(text):
        return None
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def _parse_int(raw: bytes, message: str = _NOT_INTEGER) -> int:
    value = _int_or_none(raw)
    if value is None:
        raise CommandError(message)
    return value


def _score_border(raw: bytes) -> ScoreBorder:
    try:
        return parse_score_border(_decode(raw))
    except ValueError as exc:
        raise CommandError(str(exc)) from None


def _lex_border(raw: bytes) -> LexBorder:
    try:
        return parse_lex_border(_decode(raw))
    except ValueError as exc:
        raise CommandError(str(exc)) from None


def _flatten(elements: Sequence[Element], with_scores: bool) -> List[bytes]:
    result: List[bytes] = []
    for element in elements:
        result.append(_encode(element.member))
        if with_scores:
            result.append(_encode(format_score(element.score)))
    return result


@command("zcount", 4, read_first_key, readonly=True)
def zcount(db: Keyspace, args: Sequence[bytes]) -> int:
    """Number of members whose score lies between two borders."""
    lower = _score_border(args[1])
    upper = _score_border(args[2])
    zset = db.get_sorted_set(_decode(args[0]))
    if zset is None:
        return 0
    return zset.count(lower, upper)


def _score_range_command(db: Keyspace, args: Sequence[bytes], desc: bool) -> List[bytes]:
    if len(args) < 3:
        raise CommandError("ERR wrong number of arguments for 'zrangebyscore' command")
    key = _decode(args[0])
    if desc:
        lower, upper = _score_border(args[2]), _score_border(args[1])
    else:
        lower, upper = _score_border(args[1]), _score_border(args[2])
    with_scores = False
    offset, limit = 0, -1
    i = 3
    while i < len(args):
        option = _decode(args[i]).upper()
        if option == "WITHSCORES":
            with_scores = True
            i += 1
        elif option == "LIMIT":
            if len(args) < i + 3:
                raise CommandSyntaxError()
            offset = _parse_int(args[i + 1])
            limit = _parse_int(args[i + 2])
            i += 3
        else:
            raise CommandSyntaxError()
    zset = db.get_sorted_set(key)
    if zset is None:
        return []
    return _flatten(zset.range(lower, upper, offset, limit, desc), with_scores)


@command("zrangebyscore", -4, read_first_key, readonly=True)
def zrangebyscore(db: Keyspace, args: Sequence[bytes]) -> List[bytes]:
    """Members within a score range, ascending, with optional LIMIT and WITHSCORES."""
    return _score_range_command(db, args, False)


@command("zrevrangebyscore", -4, read_first_key, readonly=True)
def zrevrangebyscore(db: Keyspace, args: Sequence[bytes]) -> List[bytes]:
    """Members within a score range, descending; the maximum comes first."""
    return _score_range_command(db, args, True)


@command("zremrangebyscore", 4, write_first_key, rollback_first_key)
def zremrangebyscore(db: Keyspace, args: Sequence[bytes]) -> Union[int, List[bytes]]:
    """Remove members within a score range; return how many were removed."""
    if len(args) != 3:
        raise CommandError("ERR wrong number of arguments for 'zremrangebyscore' command")
    lower = _score_border(args[1])
    upper = _score_border(args[2])
    zset = db.get_sorted_set(_decode(args[0]))
    if zset is None:
        return []
    return zset.remove_range(lower, upper)


@command("zremrangebyrank", 4, write_first_key, rollback_first_key)
def zremrangebyrank(db: Keyspace, args: Sequence[bytes]) -> int:
    """Remove members between two ranks, both inclusive; negatives count from the end."""
    start = _parse_int(args[1])
    stop = _parse_int(args[2])
    zset = db.get_sorted_set(_decode(args[0]))
    if zset is None:
        return 0
    size = len(zset)
    if start < -size:
        start = 0
    elif start < 0:
        start = size + start
    elif start >= size:
        return 0
    if stop < -size:
        stop = 0
    elif stop < 0:
        stop = size + stop + 1
    elif stop < size:
        stop = stop + 1
    else:
        stop = size
    stop = max(stop, start)
    return zset.remove_by_rank(start, stop)


@command("zlexcount", 4, read_first_key, readonly=True)
def zlexcount(db: Keyspace, args: Sequence[bytes]) -> int:
    """Number of members between two lexicographic borders."""
    zset = db.get_sorted_set(_decode(args[0]))
    if zset is None:
        return 0
    lower = _lex_border(args[1])
    upper = _lex_border(args[2])
    return zset.count(lower, upper)


def _lex_range_command(db: Keyspace, args: Sequence[bytes], desc: bool) -> Union[int, List[bytes]]:
    n = len(args)
    if n > 3 and _decode(args[3]).lower() != "limit":
        raise CommandSyntaxError()
    if n not in (3, 6):
        raise CommandError("ERR wrong number of arguments for 'zrangebylex' command")
    zset = db.get_sorted_set(_decode(args[0]))
    if zset is None:
        return 0
    if desc:
        lower, upper = _lex_border(args[2]), _lex_border(args[1])
    else:
        lower, upper = _lex_border(args[1]), _lex_border(args[2])
    offset, limit = 0, -1
    if n > 3:
        offset = _parse_int(args[4])
        if offset < 0:
            return []
        count = _parse_int(args[5])
        if count >= 0:
            limit = count
    return _flatten(zset.range(lower, upper, offset, limit, desc), False)


@command("zrangebylex", -4, read_first_key, readonly=True)
def zrangebylex(db: Keyspace, args: Sequence[bytes]) -> Union[int, List[bytes]]:
    """Members between two lex borders, ascending, with optional LIMIT."""
    return _lex_range_command(db, args, False)


@command("zrevrangebylex", -4, read_first_key, readonly=True)
def zrevrangebylex(db: Keyspace, args: Sequence[bytes]) -> Union[int, List[bytes]]:
    """Members between two lex borders, descending; the maximum comes first."""
    return _lex_range_command(db, args, True)


@command("zremrangebylex", 4, write_first_key, rollback_first_key)
def zremrangebylex(db: Keyspace, args: Sequence[bytes]) -> int:
    """Remove members between two lex borders; return how many were removed."""
    if len(args) != 3:
        raise CommandError("ERR wrong number of arguments for 'zremrangebylex' command")
    zset = db.get_sorted_set(_decode(args[0]))
    if zset is None:
        return 0
    lower = _lex_border(args[1])
    upper = _lex_border(args[2])
    return zset.remove_range(lower, upper)


@command("zscan", -2, read_first_key, readonly=True)
def zscan(db: Keyspace, args: Sequence[bytes]) -> list:
    """Incremental walk: ``[next cursor, [member, score, ...]]``."""
    count = 10
    pattern = "*"
    i = 2
    while i < len(args):
        option = _decode(args[i]).lower()
        if option not in ("count", "match") or i + 1 >= len(args):
            raise CommandSyntaxError()
        if option == "count":
            value = _int_or_none(args[i + 1])
            if value is None:
                raise CommandSyntaxError()
            count = value
        else:
            pattern = _decode(args[i + 1])
        i += 2
    zset = db.get_sorted_set(_decode(args[0]))
    if zset is None:
        return []
    if len(args) < 2:
        raise CommandError("ERR wrong number of arguments for 'zscan' command")
    cursor = _parse_int(args[1], "ERR invalid cursor")
    try:
        found, next_cursor = zset.scan(cursor, count, pattern)
    except ValueError:
        raise CommandError("Invalid argument") from None
    return [str(next_cursor).encode(), _flatten(found, True)]