"""A single keyspace, its command registry and transaction helpers."""

from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from memkv.sortedset import SortedSet, format_score

CmdLine = List[bytes]
Prepare = Callable[[Sequence[bytes]], Tuple[List[str], List[str]]]
Undo = Callable[["Keyspace", Sequence[bytes]], List[CmdLine]]


class CommandError(Exception):
    """A command failed; the message is the error reply text."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class WrongTypeError(CommandError):
    def __init__(self) -> None:
        super().__init__("WRONGTYPE Operation against a key holding the wrong kind of value")


class CommandSyntaxError(CommandError):
    def __init__(self) -> None:
        super().__init__("ERR syntax error")


@dataclass(frozen=True)
class Status:
    """A simple status reply such as OK or PONG."""

    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Command:
    name: str
    handler: Callable[["Keyspace", List[bytes]], Any]
    arity: int
    prepare: Optional[Prepare]
    undo: Optional[Undo]
    readonly: bool


_COMMANDS: Dict[str, Command] = {}


def command(name, arity, prepare=None, undo=None, readonly=False):
    """Register the decorated function as the handler of a command."""

    def register(handler):
        _COMMANDS[name.lower()] = Command(name.lower(), handler, arity, prepare, undo, readonly)
        return handler

    return register


def lookup_command(name) -> Optional[Command]:
    if isinstance(name, bytes):
        name = _text(name)
    return _COMMANDS.get(name.lower())


def validate_arity(arity: int, cmdline: Sequence[bytes]) -> bool:
    if arity >= 0:
        return len(cmdline) == arity
    return len(cmdline) >= -arity


def _text(raw: bytes) -> str:
    return raw.decode("utf-8", "surrogateescape")


def _raw(value) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8", "surrogateescape")
    return str(value).encode()


def _line(*parts) -> CmdLine:
    return [_raw(p) for p in parts]


@dataclass
class Session:
    """Per-connection state: selected database, password and MULTI queue."""

    password: str = ""
    db_index: int = 0
    queued: List[CmdLine] = field(default_factory=list)
    watching: Dict[str, int] = field(default_factory=dict)
    tx_errors: List[CommandError] = field(default_factory=list)
    _multi: bool = False

    @property
    def in_multi(self) -> bool:
        return self._multi

    @in_multi.setter
    def in_multi(self, state: bool) -> None:
        if not state:
            self.queued.clear()
            self.watching.clear()
            self.tx_errors.clear()
        self._multi = state


def read_first_key(args):
    return [], [_text(args[0])]


def write_first_key(args):
    return [_text(args[0])], []


def read_all_keys(args):
    return [], [_text(a) for a in args]


def write_all_keys(args):
    return [_text(a) for a in args], []


def no_prepare(args):
    return [], []


def _entity_to_cmd(key: str, value) -> CmdLine:
    if isinstance(value, bytes):
        return _line("SET", key, value)
    if isinstance(value, SortedSet):
        parts: List[Any] = ["ZADD", key]
        for element in value:
            parts += [format_score(element.score), element.member]
        return _line(*parts)
    if isinstance(value, list):
        return _line("RPUSH", key, *value)
    if isinstance(value, dict):
        parts = ["HSET", key]
        for name, item in value.items():
            parts += [name, item]
        return _line(*parts)
    if isinstance(value, (set, frozenset)):
        return _line("SADD", key, *sorted(value))
    raise TypeError(f"cannot serialise value of type {type(value).__name__}")


def _ttl_cmd(db: "Keyspace", key: str) -> CmdLine:
    deadline = db.expire_at(key)
    if deadline is None:
        return _line("PERSIST", key)
    return _line("PEXPIREAT", key, str(int(deadline * 1000)))


def rollback_given_keys(db, *args) -> List[CmdLine]:
    """Command lines restoring the given keys to their current state."""
    lines: List[CmdLine] = []
    for key in args:
        value = db.get(key)
        lines.append(_line("DEL", key))
        if value is not None:
            lines.append(_entity_to_cmd(key, value))
            lines.append(_ttl_cmd(db, key))
    return lines


def rollback_first_key(db, args) -> List[CmdLine]:
    return rollback_given_keys(db, _text(args[0]))


def rollback_zset_fields(db, key, *args) -> List[CmdLine]:
    """Command lines restoring the scores of the given members."""
    try:
        zset = db.get_sorted_set(key)
    except WrongTypeError:
        return []
    if zset is None:
        return [_line("DEL", key)]
    lines = []
    for member in args:
        element = zset.get(member)
        if element is None:
            lines.append(_line("ZREM", key, member))
        else:
            lines.append(_line("ZADD", key, format_score(element.score), member))
    return lines


class Keyspace:
    """One numbered database: values, expiry deadlines and key versions."""

    def __init__(self, index: int = 0) -> None:
        self.index = index
        self._data: Dict[str, Any] = {}
        self._expires: Dict[str, float] = {}
        self._versions: Dict[str, int] = {}
        self.lock = threading.RLock()

    def _alive(self, key: str) -> bool:
        deadline = self._expires.get(key)
        if deadline is not None and deadline <= time.time():
            self.remove(key)
            return False
        return key in self._data

    def get(self, key: str):
        return self._data[key] if self._alive(key) else None

    def get_string(self, key: str) -> Optional[bytes]:
        value = self.get(key)
        if value is not None and not isinstance(value, bytes):
            raise WrongTypeError()
        return value

    def get_sorted_set(self, key: str) -> Optional[SortedSet]:
        value = self.get(key)
        if value is not None and not isinstance(value, SortedSet):
            raise WrongTypeError()
        return value

    def get_or_create_sorted_set(self, key: str) -> Tuple[SortedSet, bool]:
        zset = self.get_sorted_set(key)
        if zset is not None:
            return zset, False
        zset = SortedSet()
        self.put(key, zset)
        return zset, True

    def put(self, key: str, value) -> None:
        self._alive(key)
        self._data[key] = value

    def put_if_absent(self, key: str, value) -> bool:
        if self._alive(key):
            return False
        self._data[key] = value
        return True

    def put_if_exists(self, key: str, value) -> bool:
        if not self._alive(key):
            return False
        self._data[key] = value
        return True

    def remove(self, key: str) -> bool:
        self._expires.pop(key, None)
        return self._data.pop(key, None) is not None

    def expire(self, key: str, when: float) -> None:
        """Set an absolute deadline, in epoch seconds."""
        self._expires[key] = when

    def persist(self, key: str) -> bool:
        return self._expires.pop(key, None) is not None

    def expire_at(self, key: str) -> Optional[float]:
        return self._expires.get(key) if self._alive(key) else None

    def ttl(self, key: str) -> Optional[float]:
        deadline = self.expire_at(key)
        return None if deadline is None else deadline - time.time()

    def version(self, key: str) -> int:
        return self._versions.get(key, 0)

    def bump_versions(self, keys) -> None:
        for key in keys:
            self._versions[key] = self._versions.get(key, 0) + 1

    def flush(self) -> None:
        self._data.clear()
        self._expires.clear()

    def random_keys(self, count: int) -> List[str]:
        keys = [k for k in list(self._data) if self._alive(k)]
        return random.choices(keys, k=count) if keys else []

    def expires_count(self) -> int:
        return sum(1 for k in list(self._expires) if self._alive(k))

    def average_ttl(self, samples: int) -> int:
        """Mean remaining time to live in milliseconds over a few keys."""
        remaining = [self.ttl(k) for k in list(self._expires)[:samples]]
        alive = [r for r in remaining if r is not None]
        return int(sum(alive) * 1000 / len(alive)) if alive else 0

    def __len__(self) -> int:
        return sum(1 for k in list(self._data) if self._alive(k))

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._alive(key)

    def execute(self, *args):
        """Run one command line and return its reply."""
        cmdline = [_raw(a) for a in args]
        name = _text(cmdline[0]).lower()
        cmd = _COMMANDS.get(name)
        if cmd is None:
            raise CommandError(f"ERR unknown command '{name}'")
        if not validate_arity(cmd.arity, cmdline):
            raise CommandError(f"ERR wrong number of arguments for '{name}' command")
        with self.lock:
            if not cmd.readonly and cmd.prepare is not None:
                write_keys, _ = cmd.prepare(cmdline[1:])
                self.bump_versions(write_keys)
            return cmd.handler(self, cmdline[1:])


def _undo_del(db, args):
    return rollback_given_keys(db, *(_text(a) for a in args))


@command("del", -2, write_all_keys, _undo_del)
def _cmd_del(db, args):
    return sum(1 for a in args if db.remove(_text(a)))


@command("persist", 2, write_first_key, rollback_first_key)
def _cmd_persist(db, args):
    key = _text(args[0])
    if key not in db:
        return 0
    return 1 if db.persist(key) else 0


@command("pexpireat", 3, write_first_key, rollback_first_key)
def _cmd_pexpireat(db, args):
    key = _text(args[0])
    try:
        millis = int(_text(args[1]))
    except ValueError:
        raise CommandError("ERR value is not an integer or out of range") from None
    if key not in db:
        return 0
    db.expire(key, millis / 1000)
    return 1


def _remaining(db, args, scale):
    key = _text(args[0])
    if key not in db:
        return -2
    left = db.ttl(key)
    return -1 if left is None else int(left * scale)


@command("ttl", 2, read_first_key, readonly=True)
def _cmd_ttl(db, args):
    return _remaining(db, args, 1)


@command("pttl", 2, read_first_key, readonly=True)
def _cmd_pttl(db, args):
    return _remaining(db, args, 1000)


@command("type", 2, read_first_key, readonly=True)
def _cmd_type(db, args):
    value = db.get(_text(args[0]))
    if value is None:
        return Status("none")
    kinds = {bytes: "string", list: "list", dict: "hash", set: "set", SortedSet: "zset"}
    return Status(kinds.get(type(value), "none"))