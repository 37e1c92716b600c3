"""String commands: plain values, expiry options, counters and bulk access."""

from __future__ import annotations

import enum
import re
import time
from typing import List, Optional, Sequence, Tuple

from memkv.keyspace import (
    CmdLine,
    CommandError,
    CommandSyntaxError,
    Keyspace,
    Status,
    WrongTypeError,
    command,
    read_all_keys,
    read_first_key,
    rollback_first_key,
    rollback_given_keys,
    write_first_key,
)
from memkv.sortedset import format_score

_INT_RE = re.compile(r"[+-]?[0-9]+\Z")
_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1

_NOT_INTEGER = "ERR value is not an integer or out of range"
_NOT_FLOAT = "ERR value is not a valid float"
_OK = Status("OK")


class _Policy(enum.Enum):
    UPSERT = "upsert"
    INSERT = "insert"
    UPDATE = "update"


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", "surrogateescape")


def _int_or_none(raw: bytes) -> Optional[int]:
    text = _decode(raw)
    if not _INT_RE.match(text):
        return None
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def _parse_int(raw: bytes) -> int:
    value = _int_or_none(raw)
    if value is None:
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


def _wrap(value: int) -> int:
    """Fold an integer into the signed 64-bit range."""
    return (value + 2 ** 63) % 2 ** 64 - 2 ** 63


def _ttl_millis(args: Sequence[bytes], i: int, current: Optional[int], name: str) -> int:
    """Parse the EX or PX option at ``args[i]`` into milliseconds."""
    if current is not None or i + 1 >= len(args):
        raise CommandSyntaxError()
    amount = _int_or_none(args[i + 1])
    if amount is None:
        raise CommandSyntaxError()
    if amount <= 0:
        raise CommandError(f"ERR invalid expire time in {name}")
    return amount * 1000 if _decode(args[i]).upper() == "EX" else amount


def _deadline(millis: int) -> float:
    return time.time() + millis / 1000


def _pair_keys(args: Sequence[bytes]) -> List[str]:
    return [_decode(raw) for raw in args[0:len(args) // 2 * 2:2]]


def _prepare_mset(args: Sequence[bytes]) -> Tuple[List[str], List[str]]:
    return _pair_keys(args), []


def _undo_mset(db: Keyspace, args: Sequence[bytes]) -> List[CmdLine]:
    return rollback_given_keys(db, *_pair_keys(args))


@command("get", 2, read_first_key, readonly=True)
def get(db: Keyspace, args: Sequence[bytes]) -> Optional[bytes]:
    """Value of a string key, or None if it is absent."""
    return db.get_string(_decode(args[0]))


@command("getex", -2, write_first_key, rollback_first_key, readonly=True)
def getex(db: Keyspace, args: Sequence[bytes]) -> Optional[bytes]:
    """Value of a key, optionally setting (EX, PX) or clearing (PERSIST) its expiry."""
    key = _decode(args[0])
    value = db.get_string(key)
    if value is None:
        return None
    ttl_ms: Optional[int] = None
    i = 1
    while i < len(args):
        option = _decode(args[i]).upper()
        if option in ("EX", "PX"):
            ttl_ms = _ttl_millis(args, i, ttl_ms, "getex")
            i += 1
        elif option == "PERSIST":
            if ttl_ms is not None:
                raise CommandSyntaxError()
            db.persist(key)
        i += 1
    if len(args) > 1:
        if ttl_ms is not None:
            db.expire(key, _deadline(ttl_ms))
        else:
            db.persist(key)
    return value


@command("set", -3, write_first_key, rollback_first_key)
def set_(db: Keyspace, args: Sequence[bytes]) -> Optional[Status]:
    """Store a value with optional NX, XX, EX and PX; None when the policy refuses."""
    key = _decode(args[0])
    value = bytes(args[1])
    policy = _Policy.UPSERT
    ttl_ms: Optional[int] = None
    i = 2
    while i < len(args):
        option = _decode(args[i]).upper()
        if option == "NX":
            if policy is _Policy.UPDATE:
                raise CommandSyntaxError()
            policy = _Policy.INSERT
        elif option == "XX":
            if policy is _Policy.INSERT:
                raise CommandSyntaxError()
            policy = _Policy.UPDATE
        elif option in ("EX", "PX"):
            ttl_ms = _ttl_millis(args, i, ttl_ms, "set")
            i += 1
        else:
            raise CommandSyntaxError()
        i += 1

    if policy is _Policy.INSERT:
        stored = db.put_if_absent(key, value)
    elif policy is _Policy.UPDATE:
        stored = db.put_if_exists(key, value)
    else:
        db.put(key, value)
        stored = True
    if not stored:
        return None
    if ttl_ms is not None:
        db.expire(key, _deadline(ttl_ms))
    else:
        db.persist(key)
    return _OK


@command("setnx", 3, write_first_key, rollback_first_key)
def setnx(db: Keyspace, args: Sequence[bytes]) -> int:
    """Store a value only if the key is absent; 1 if stored, else 0."""
    return int(db.put_if_absent(_decode(args[0]), bytes(args[1])))


def _store_with_ttl(db: Keyspace, args: Sequence[bytes], scale: int) -> Status:
    key = _decode(args[0])
    amount = _int_or_none(args[1])
    if amount is None:
        raise CommandSyntaxError()
    if amount <= 0:
        raise CommandError("ERR invalid expire time in setex")
    db.put(key, bytes(args[2]))
    db.expire(key, _deadline(amount * scale))
    return _OK


@command("setex", 4, write_first_key, rollback_first_key)
def setex(db: Keyspace, args: Sequence[bytes]) -> Status:
    """Store a value with a time to live in seconds."""
    return _store_with_ttl(db, args, 1000)


@command("psetex", 4, write_first_key, rollback_first_key)
def psetex(db: Keyspace, args: Sequence[bytes]) -> Status:
    """Store a value with a time to live in milliseconds."""
    return _store_with_ttl(db, args, 1)


@command("mset", -3, _prepare_mset, _undo_mset)
def mset(db: Keyspace, args: Sequence[bytes]) -> Status:
    """Store several key-value pairs."""
    if len(args) % 2 != 0:
        raise CommandSyntaxError()
    for key, value in zip(args[0::2], args[1::2]):
        db.put(_decode(key), bytes(value))
    return _OK


@command("mget", -2, read_all_keys, readonly=True)
def mget(db: Keyspace, args: Sequence[bytes]) -> List[Optional[bytes]]:
    """Values of several keys; None for absent or non-string keys."""
    result: List[Optional[bytes]] = []
    for raw in args:
        try:
            result.append(db.get_string(_decode(raw)))
        except WrongTypeError:
            result.append(None)
    return result


@command("msetnx", -3, _prepare_mset, _undo_mset)
def msetnx(db: Keyspace, args: Sequence[bytes]) -> int:
    """Store several pairs only if none of the keys exist; 1 if stored, else 0."""
    if len(args) % 2 != 0:
        raise CommandSyntaxError()
    pairs = [(_decode(k), bytes(v)) for k, v in zip(args[0::2], args[1::2])]
    if any(key in db for key, _ in pairs):
        return 0
    for key, value in pairs:
        db.put(key, value)
    return 1


@command("getset", 3, write_first_key, rollback_first_key)
def getset(db: Keyspace, args: Sequence[bytes]) -> Optional[bytes]:
    """Store a new value, clear the expiry, and return the old value."""
    key = _decode(args[0])
    old = db.get_string(key)
    db.put(key, bytes(args[1]))
    db.persist(key)
    return old


@command("getdel", 2, write_first_key, rollback_first_key)
def getdel(db: Keyspace, args: Sequence[bytes]) -> Optional[bytes]:
    """Return the value of a key and delete it."""
    key = _decode(args[0])
    old = db.get_string(key)
    if old is None:
        return None
    db.remove(key)
    return old


def _add_to_integer(db: Keyspace, key: str, delta: int, initial: bytes) -> int:
    current = db.get_string(key)
    if current is None:
        db.put(key, initial)
        return delta
    value = _int_or_none(current)
    if value is None:
        raise CommandError(_NOT_INTEGER)
    result = _wrap(value + delta)
    db.put(key, str(result).encode())
    return result


@command("incr", 2, write_first_key, rollback_first_key)
def incr(db: Keyspace, args: Sequence[bytes]) -> int:
    """Add one to an integer value, starting from zero."""
    return _add_to_integer(db, _decode(args[0]), 1, b"1")


@command("incrby", 3, write_first_key, rollback_first_key)
def incrby(db: Keyspace, args: Sequence[bytes]) -> int:
    """Add an integer to an integer value, starting from zero."""
    delta = _parse_int(args[1])
    return _add_to_integer(db, _decode(args[0]), delta, bytes(args[1]))


@command("incrbyfloat", 3, write_first_key, rollback_first_key)
def incrbyfloat(db: Keyspace, args: Sequence[bytes]) -> bytes:
    """Add a float to a numeric value and return the new value as text."""
    key = _decode(args[0])
    delta = _parse_float(args[1])
    current = db.get_string(key)
    if current is None:
        db.put(key, bytes(args[1]))
        return bytes(args[1])
    value = _parse_float(current)
    result = format_score(value + delta).encode()
    db.put(key, result)
    return result


@command("decr", 2, write_first_key, rollback_first_key)
def decr(db: Keyspace, args: Sequence[bytes]) -> int:
    """Subtract one from an integer value, starting from zero."""
    return _add_to_integer(db, _decode(args[0]), -1, b"-1")


@command("decrby", 3, write_first_key, rollback_first_key)
def decrby(db: Keyspace, args: Sequence[bytes]) -> int:
    """Subtract an integer from an integer value, starting from zero."""
    delta = _parse_int(args[1])
    negated = _wrap(-delta)
    return _add_to_integer(db, _decode(args[0]), negated, str(negated).encode())


@command("strlen", 2, read_first_key, readonly=True)
def strlen(db: Keyspace, args: Sequence[bytes]) -> int:
    """Length in bytes of a string value; 0 when absent."""
    value = db.get_string(_decode(args[0]))
    return 0 if value is None else len(value)


@command("append", 3, write_first_key, rollback_first_key)
def append(db: Keyspace, args: Sequence[bytes]) -> int:
    """Append to a string value and return the new length."""
    key = _decode(args[0])
    value = (db.get_string(key) or b"") + bytes(args[1])
    db.put(key, value)
    return len(value)


@command("randomkey", 1, read_all_keys, readonly=True)
def randomkey(db: Keyspace, args: Sequence[bytes]) -> Optional[bytes]:
    """A random existing key, or None when the keyspace is empty."""
    keys = db.random_keys(1)
    if not keys:
        return None
    return keys[0].encode("utf-8", "surrogateescape")