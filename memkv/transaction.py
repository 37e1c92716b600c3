"""MULTI/EXEC transactions with optimistic WATCH and rollback on failure."""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from memkv.keyspace import (
    CmdLine,
    CommandError,
    Keyspace,
    Session,
    Status,
    command,
    lookup_command,
    read_all_keys,
    validate_arity,
)

_OK = Status("OK")
_QUEUED = Status("QUEUED")
_EXECABORT = "EXECABORT Transaction discarded because of previous errors."


def _text(raw: bytes) -> str:
    return raw.decode("utf-8", "surrogateescape")


def _raw(value) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8", "surrogateescape")
    return str(value).encode()


def _cmdline(parts: Iterable) -> CmdLine:
    return [_raw(part) for part in parts]


def watch(db: Keyspace, session: Session, args: Sequence[bytes]) -> Status:
    """Remember the current version of each key for a later EXEC."""
    for raw in args:
        key = _text(_raw(raw))
        session.watching[key] = db.version(key)
    return _OK


@command("getver", 2, read_all_keys, readonly=True)
def getver(db: Keyspace, args: Sequence[bytes]) -> int:
    """Current version number of a key."""
    return db.version(_text(args[0]))


def is_watching_changed(db: Keyspace, watching: Dict[str, int]) -> bool:
    """True if any watched key was written since it was watched."""
    return any(db.version(key) != version for key, version in watching.items())


def start_multi(session: Session) -> Status:
    """Enter transaction mode."""
    if session.in_multi:
        raise CommandError("ERR MULTI calls can not be nested")
    session.in_multi = True
    return _OK


def enqueue(session: Session, cmdline: Sequence) -> Status:
    """Validate a command line and put it on the pending queue."""
    line = _cmdline(cmdline)
    name = _text(line[0]).lower()
    cmd = lookup_command(name)
    if cmd is None:
        error = CommandError(f"ERR unknown command '{name}'")
    elif cmd.prepare is None:
        error = CommandError(f"ERR command '{name}' cannot be used in MULTI")
    elif not validate_arity(cmd.arity, line):
        error = CommandError(f"ERR wrong number of arguments for '{name}' command")
    else:
        session.queued.append(line)
        return _QUEUED
    session.tx_errors.append(error)
    raise error


def exec_multi(db: Keyspace, session: Session) -> list:
    """Run the queued commands of a session and leave transaction mode."""
    if not session.in_multi:
        raise CommandError("ERR EXEC without MULTI")
    try:
        if session.tx_errors:
            raise CommandError(_EXECABORT)
        return execute_multi(db, dict(session.watching), list(session.queued))
    finally:
        session.in_multi = False


def _run(db: Keyspace, line: CmdLine):
    cmd = lookup_command(line[0])
    if cmd is None:
        raise CommandError(f"ERR unknown command '{_text(line[0]).lower()}'")
    return cmd.handler(db, line[1:])


def execute_multi(db: Keyspace, watching: Dict[str, int], cmdlines: Sequence[Sequence]) -> list:
    """Run command lines atomically; undo the applied ones if any fails.

    Returns an empty list when a watched key has changed.
    """
    lines = [_cmdline(line) for line in cmdlines]
    write_keys: List[str] = []
    for line in lines:
        writes, _ = related_keys(line)
        write_keys.extend(writes)

    with db.lock:
        if is_watching_changed(db, watching):
            return []
        results = []
        undo_stack: List[List[CmdLine]] = []
        failed = False
        for line in lines:
            undo = undo_logs(db, line)
            try:
                result = _run(db, line)
            except CommandError:
                failed = True
                break
            undo_stack.append(undo)
            results.append(result)
        if not failed:
            db.bump_versions(write_keys)
            return results
        for undo in reversed(undo_stack):
            for undo_line in undo:
                try:
                    _run(db, undo_line)
                except CommandError:
                    pass
    raise CommandError(_EXECABORT)


def discard_multi(session: Session) -> Status:
    """Drop the pending queue and leave transaction mode."""
    if not session.in_multi:
        raise CommandError("ERR DISCARD without MULTI")
    session.queued.clear()
    session.in_multi = False
    return _OK


def undo_logs(db: Keyspace, cmdline: Sequence) -> List[CmdLine]:
    """Command lines that would revert the effect of a command line."""
    line = _cmdline(cmdline)
    cmd = lookup_command(line[0])
    if cmd is None or cmd.undo is None:
        return []
    return cmd.undo(db, line[1:])


def related_keys(cmdline: Sequence) -> Tuple[List[str], List[str]]:
    """The keys a command line writes and reads."""
    line = _cmdline(cmdline)
    cmd = lookup_command(line[0])
    if cmd is None or cmd.prepare is None:
        return [], []
    writes, reads = cmd.prepare(line[1:])
    return list(writes), list(reads)