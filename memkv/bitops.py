"""String commands that address bytes and bits: ranges, bit access and bit scans."""

from __future__ import annotations

import re
from typing import Iterator, Optional, Sequence, Tuple

from memkv.keyspace import (
    CommandError,
    CommandSyntaxError,
    Keyspace,
    command,
    read_first_key,
    rollback_first_key,
    write_first_key,
)

_INT_RE = re.compile(r"[+-]?[0-9]+\Z")
_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1

_NOT_INTEGER = "ERR value is not an integer or out of range"
_BAD_OFFSET = "ERR bit offset is not an integer or out of range"
_BAD_BIT = "ERR bit is not an integer or out of range"


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


def _parse_int(raw: bytes, message: str = _NOT_INTEGER) -> int:
    value = _int_or_none(raw)
    if value is None:
        raise CommandError(message)
    return value


def _parse_int_verbose(raw: bytes) -> int:
    """Parse a signed 64-bit integer, describing the failure in the error."""
    text = _decode(raw)
    if not _INT_RE.match(text):
        raise CommandError(f'strconv.ParseInt: parsing "{text}": invalid syntax')
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise CommandError(f'strconv.ParseInt: parsing "{text}": value out of range')
    return value


def _parse_bit(raw: bytes) -> int:
    text = _decode(raw)
    if text == "1":
        return 1
    if text == "0":
        return 0
    raise CommandError(_BAD_BIT)


def _parse_mode(raw: bytes) -> bool:
    """Return True for BYTE mode and False for BIT mode."""
    mode = _decode(raw).lower()
    if mode == "bit":
        return False
    if mode == "byte":
        return True
    raise CommandSyntaxError()


def convert_range(start: int, end: int, size: int) -> Optional[Tuple[int, int]]:
    """Turn an inclusive index pair, negatives counting from the end, into a
    half-open slice; None when the range falls outside ``size``."""
    if start < -size:
        return None
    if start < 0:
        start = size + start
    elif start >= size:
        return None
    if end < -size:
        return None
    if end < 0:
        end = size + end + 1
    elif end < size:
        end = end + 1
    else:
        end = size
    if start > end:
        return None
    return start, end


def _get_bit(data: bytes, offset: int) -> int:
    index = offset >> 3
    if index >= len(data):
        return 0
    return (data[index] >> (offset & 7)) & 1


def _bits(data: bytes, begin: int, end: Optional[int]) -> Iterator[Tuple[int, int]]:
    """Yield ``(offset, bit)`` for bit offsets in ``[begin, end)``."""
    total = len(data) * 8
    stop = total if end is None else min(end, total)
    for offset in range(begin, stop):
        yield offset, (data[offset >> 3] >> (offset & 7)) & 1


@command("setrange", 4, write_first_key, rollback_first_key)
def setrange(db: Keyspace, args: Sequence[bytes]) -> int:
    """Overwrite part of a string from an offset, zero-padding as needed."""
    key = _decode(args[0])
    offset = _parse_int_verbose(args[1])
    if offset < 0:
        raise CommandError("ERR offset is out of range")
    value = bytes(args[2])
    data = bytearray(db.get_string(key) or b"")
    if len(data) < offset:
        data.extend(bytes(offset - len(data)))
    data[offset:offset + len(value)] = value
    db.put(key, bytes(data))
    return len(data)


@command("getrange", 4, read_first_key, readonly=True)
def getrange(db: Keyspace, args: Sequence[bytes]) -> Optional[bytes]:
    """Bytes between two inclusive indexes; None when absent or out of range."""
    start = _parse_int(args[1])
    end = _parse_int(args[2])
    data = db.get_string(_decode(args[0]))
    if data is None:
        return None
    bounds = convert_range(start, end, len(data))
    if bounds is None:
        return None
    begin, stop = bounds
    return data[begin:stop]


@command("setbit", 4, write_first_key, rollback_first_key)
def setbit(db: Keyspace, args: Sequence[bytes]) -> int:
    """Set or clear one bit, growing the string; return the former bit."""
    key = _decode(args[0])
    offset = _parse_int(args[1], _BAD_OFFSET)
    if offset < 0:
        raise CommandError(_BAD_OFFSET)
    bit = _parse_bit(args[2])
    data = bytearray(db.get_string(key) or b"")
    former = _get_bit(data, offset)
    index = offset >> 3
    if index >= len(data):
        data.extend(bytes(index + 1 - len(data)))
    mask = 1 << (offset & 7)
    if bit:
        data[index] |= mask
    else:
        data[index] &= ~mask & 0xFF
    db.put(key, bytes(data))
    return former


@command("getbit", 3, read_first_key, readonly=True)
def getbit(db: Keyspace, args: Sequence[bytes]) -> int:
    """The bit at an offset; 0 beyond the end or for an absent key."""
    key = _decode(args[0])
    offset = _parse_int(args[1], _BAD_OFFSET)
    if offset < 0:
        raise CommandError(_BAD_OFFSET)
    data = db.get_string(key)
    if data is None:
        return 0
    return _get_bit(data, offset)


def _range_args(args: Sequence[bytes], first: int, size: int) -> Optional[Tuple[int, Optional[int]]]:
    """Parse the optional start/end pair at ``args[first]``.

    Returns ``(begin, end)`` with ``end`` None for the whole value, or None
    when the range is empty.
    """
    if len(args) <= first:
        return 0, None
    if len(args) < first + 2:
        raise CommandSyntaxError()
    start = _parse_int(args[first])
    end = _parse_int(args[first + 1])
    return convert_range(start, end, size)


@command("bitcount", -2, read_first_key, readonly=True)
def bitcount(db: Keyspace, args: Sequence[bytes]) -> int:
    """Number of set bits, optionally within a BYTE or BIT range."""
    data = db.get_string(_decode(args[0]))
    if data is None:
        return 0
    byte_mode = _parse_mode(args[3]) if len(args) > 3 else True
    size = len(data) if byte_mode else len(data) * 8
    bounds = _range_args(args, 1, size)
    if bounds is None:
        return 0
    begin, end = bounds
    if byte_mode:
        return sum(byte.bit_count() for byte in data[begin:end])
    return sum(bit for _, bit in _bits(data, begin, end))


@command("bitpos", -3, read_first_key, readonly=True)
def bitpos(db: Keyspace, args: Sequence[bytes]) -> int:
    """Offset of the first bit equal to the given one, or -1."""
    data = db.get_string(_decode(args[0]))
    if data is None:
        return -1
    wanted = _parse_bit(args[1])
    byte_mode = _parse_mode(args[4]) if len(args) > 4 else True
    size = len(data) if byte_mode else len(data) * 8
    bounds = _range_args(args, 2, size)
    if bounds is None:
        return 0
    begin, end = bounds
    if byte_mode:
        begin *= 8
        end = None if end is None else end * 8
    return next((offset for offset, bit in _bits(data, begin, end) if bit == wanted), -1)