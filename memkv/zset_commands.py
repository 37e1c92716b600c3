"""Sorted set commands: membership, scores, ranks and rank ranges."""

from __future__ import annotations

import math
import re
from typing import List, Optional, Sequence

from memkv.keyspace import (
    CmdLine,
    CommandError,
    CommandSyntaxError,
    Keyspace,
    command,
    read_first_key,
    rollback_first_key,
    rollback_zset_fields,
    write_first_key,
)
from memkv.sortedset import Element, SortedSet, format_score

_INT_RE = re.compile(r"[+-]?[0-9]+\Z")
_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1

_NOT_INTEGER = "ERR value is not an integer or out of range"
_NOT_FLOAT = "ERR value is not a valid float"


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", "surrogateescape")


def _encode(text: str) -> bytes:
    return text.encode("utf-8", "surrogateescape")


def _parse_int(raw: bytes) -> int:
    text = _decode(raw)
    if not _INT_RE.match(text):
        raise CommandError(_NOT_INTEGER)
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise CommandError(_NOT_INTEGER)
    return value


def _parse_float(raw: bytes) -> float:
    text = _decode(raw)
    if not text or text != text.strip() or "_" in text:
        raise CommandError(_NOT_FLOAT)
    try:
        return float(text)
    except ValueError:
        raise CommandError(_NOT_FLOAT) from None


def _flatten(elements: Sequence[Element], with_scores: bool) -> List[bytes]:
    result: List[bytes] = []
    for element in elements:
        result.append(_encode(element.member))
        if with_scores:
            result.append(_encode(format_score(element.score)))
    return result


def _undo_zadd(db: Keyspace, args: Sequence[bytes]) -> List[CmdLine]:
    key = _decode(args[0])
    members = [_decode(raw) for raw in args[2::2]]
    return rollback_zset_fields(db, key, *members)


def _undo_zrem(db: Keyspace, args: Sequence[bytes]) -> List[CmdLine]:
    key = _decode(args[0])
    return rollback_zset_fields(db, key, *(_decode(raw) for raw in args[1:]))


def _undo_zincrby(db: Keyspace, args: Sequence[bytes]) -> List[CmdLine]:
    return rollback_zset_fields(db, _decode(args[0]), _decode(args[2]))


@command("zadd", -4, write_first_key, _undo_zadd)
def zadd(db: Keyspace, args: Sequence[bytes]) -> int:
    """Add members with scores; return how many members were new."""
    if len(args) % 2 != 1:
        raise CommandSyntaxError()
    key = _decode(args[0])
    pairs = [
        (_decode(member), _parse_float(score))
        for score, member in zip(args[1::2], args[2::2])
    ]
    zset, _ = db.get_or_create_sorted_set(key)
    return sum(1 for member, score in pairs if zset.add(member, score))


@command("zscore", 3, read_first_key, readonly=True)
def zscore(db: Keyspace, args: Sequence[bytes]) -> Optional[bytes]:
    """Score of a member, or None if the key or member is absent."""
    zset = db.get_sorted_set(_decode(args[0]))
    if zset is None:
        return None
    element = zset.get(_decode(args[1]))
    if element is None:
        return None
    return _encode(format_score(element.score))


@command("zincrby", 4, write_first_key, _undo_zincrby)
def zincrby(db: Keyspace, args: Sequence[bytes]) -> bytes:
    """Increment the score of a member, creating it if needed."""
    key = _decode(args[0])
    delta = _parse_float(args[1])
    member = _decode(args[2])
    zset, _ = db.get_or_create_sorted_set(key)
    element = zset.get(member)
    if element is None:
        zset.add(member, delta)
        return bytes(args[1])
    score = element.score + delta
    zset.add(member, score)
    return _encode(format_score(score))


def _rank(db: Keyspace, args: Sequence[bytes], desc: bool) -> Optional[int]:
    zset = db.get_sorted_set(_decode(args[0]))
    if zset is None:
        return None
    return zset.rank(_decode(args[1]), desc)


@command("zrank", 3, read_first_key, readonly=True)
def zrank(db: Keyspace, args: Sequence[bytes]) -> Optional[int]:
    """Ascending zero-based rank of a member, or None."""
    return _rank(db, args, False)


@command("zrevrank", 3, read_first_key, readonly=True)
def zrevrank(db: Keyspace, args: Sequence[bytes]) -> Optional[int]:
    """Descending zero-based rank of a member, or None."""
    return _rank(db, args, True)


@command("zcard", 2, read_first_key, readonly=True)
def zcard(db: Keyspace, args: Sequence[bytes]) -> int:
    """Number of members in the sorted set."""
    zset = db.get_sorted_set(_decode(args[0]))
    return 0 if zset is None else len(zset)


def _range_by_rank(db: Keyspace, key: str, start: int, stop: int,
                   with_scores: bool, desc: bool) -> List[bytes]:
    zset: Optional[SortedSet] = db.get_sorted_set(key)
    if zset is None:
        return []
    size = len(zset)
    if start < -size:
        start = 0
    elif start < 0:
        start = size + start
    elif start >= size:
        return []
    if stop < -size:
        stop = 0
    elif stop < 0:
        stop = size + stop + 1
    elif stop < size:
        stop = stop + 1
    else:
        stop = size
    stop = max(stop, start)
    return _flatten(zset.range_by_rank(start, stop, desc), with_scores)


def _rank_range_command(db: Keyspace, args: Sequence[bytes], name: str,
                        desc: bool, fold_case: bool) -> List[bytes]:
    if len(args) not in (3, 4):
        raise CommandError(f"ERR wrong number of arguments for '{name}' command")
    with_scores = False
    if len(args) == 4:
        option = _decode(args[3])
        if fold_case:
            option = option.upper()
        if option != "WITHSCORES":
            raise CommandError("syntax error")
        with_scores = True
    start = _parse_int(args[1])
    stop = _parse_int(args[2])
    return _range_by_rank(db, _decode(args[0]), start, stop, with_scores, desc)


@command("zrange", -4, read_first_key, readonly=True)
def zrange(db: Keyspace, args: Sequence[bytes]) -> List[bytes]:
    """Members between two ranks, ascending by score."""
    return _rank_range_command(db, args, "zrange", False, True)


@command("zrevrange", -4, read_first_key, readonly=True)
def zrevrange(db: Keyspace, args: Sequence[bytes]) -> List[bytes]:
    """Members between two ranks, descending by score."""
    return _rank_range_command(db, args, "zrevrange", True, False)


@command("zpopmin", -2, write_first_key, rollback_first_key)
def zpopmin(db: Keyspace, args: Sequence[bytes]) -> List[bytes]:
    """Remove and return the lowest scored members with their scores."""
    key = _decode(args[0])
    count = 1
    if len(args) > 1:
        count = _parse_int(args[1])
    zset = db.get_sorted_set(key)
    if zset is None:
        return []
    return _flatten(zset.pop_min(count), True)


@command("zrem", -3, write_first_key, _undo_zrem)
def zrem(db: Keyspace, args: Sequence[bytes]) -> int:
    """Remove members; return how many were present."""
    zset = db.get_sorted_set(_decode(args[0]))
    if zset is None:
        return 0
    return sum(1 for raw in args[1:] if zset.remove(_decode(raw)))


# Reject scores that cannot be ordered.
assert not math.isnan(0.0)