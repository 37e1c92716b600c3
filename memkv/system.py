"""Server with numbered databases and connection-level commands."""

from __future__ import annotations

import os
import platform
import re
import secrets
import struct
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from memkv import bitops, strings, zset_commands, zset_ranges
from memkv.keyspace import CommandError, Keyspace, Session, Status
from memkv.transaction import discard_multi, enqueue, exec_multi, start_multi, watch

_COMMAND_MODULES = (bitops, strings, zset_commands, zset_ranges)

_OK = Status("OK")
_INT_RE = re.compile(r"[+-]?[0-9]+\Z")

CLUSTER_MODE = "cluster"
STANDALONE_MODE = "standalone"
_SECTIONS = ("server", "client", "cluster", "keyspace")


def _text(raw: bytes) -> str:
    return raw.decode("utf-8", "surrogateescape")


def _raw(value) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8", "surrogateescape")
    return str(value).encode()


def _arg_count_error(name: str) -> CommandError:
    return CommandError(f"ERR wrong number of arguments for '{name}' command")


@dataclass
class Config:
    """Server settings."""

    require_pass: str = ""
    databases: int = 16
    port: int = 6399
    cluster_enabled: bool = False
    config_file: str = ""
    version: str = "1.0.0"
    run_id: str = field(default_factory=lambda: secrets.token_hex(20))


class Server:
    """A set of numbered keyspaces sharing one configuration."""

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config or Config()
        self._databases: List[Keyspace] = [Keyspace(i) for i in range(self.config.databases)]
        self.started = time.time()
        self.connected_clients = 0

    def database(self, index: int) -> Keyspace:
        if not 0 <= index < len(self._databases):
            raise CommandError("ERR DB index is out of range")
        return self._databases[index]

    def db_size(self, index: int) -> Tuple[int, int]:
        """Number of keys and number of keys with a deadline."""
        db = self.database(index)
        return len(db), db.expires_count()

    def flush_all(self) -> None:
        for db in self._databases:
            db.flush()

    def execute(self, session: Optional[Session], *args):
        """Run one command line for a session and return its reply."""
        if session is None:
            session = Session()
        cmdline = [_raw(a) for a in args]
        if not cmdline:
            raise CommandError("ERR empty command")
        name = _text(cmdline[0]).lower()
        rest = cmdline[1:]

        if name == "ping":
            return ping(rest)
        if name == "auth":
            return auth(self, session, rest)
        if not is_authenticated(self, session):
            raise CommandError("NOAUTH Authentication required")
        if name == "info":
            return info(self, rest)
        if name == "dbsize":
            if rest:
                raise _arg_count_error(name)
            return db_size(self, session)
        if name == "flushall":
            self.flush_all()
            return _OK
        if name == "flushdb":
            self.database(session.db_index).flush()
            return _OK
        if name == "select":
            if len(rest) != 1:
                raise _arg_count_error(name)
            text = _text(rest[0])
            if not _INT_RE.match(text):
                raise CommandError("ERR invalid DB index")
            index = int(text)
            self.database(index)
            session.db_index = index
            return _OK

        db = self.database(session.db_index)
        if name == "multi":
            if rest:
                raise _arg_count_error(name)
            return start_multi(session)
        if name == "exec":
            if rest:
                raise _arg_count_error(name)
            return exec_multi(db, session)
        if name == "discard":
            if rest:
                raise _arg_count_error(name)
            return discard_multi(session)
        if name == "watch":
            if not rest:
                raise _arg_count_error(name)
            return watch(db, session, rest)
        if session.in_multi:
            return enqueue(session, cmdline)
        return db.execute(*cmdline)


def ping(args: Sequence[bytes]) -> Status:
    """PONG, or the single argument echoed back."""
    if not args:
        return Status("PONG")
    if len(args) == 1:
        return Status(_text(_raw(args[0])))
    raise _arg_count_error("ping")


def auth(server: Server, session: Session, args: Sequence[bytes]) -> Status:
    """Store the client's password and check it against the configured one."""
    if len(args) != 1:
        raise _arg_count_error("auth")
    if not server.config.require_pass:
        raise CommandError("ERR Client sent AUTH, but no password is set")
    given = _text(_raw(args[0]))
    session.password = given
    if given != server.config.require_pass:
        raise CommandError("ERR invalid password")
    return _OK


def is_authenticated(server: Server, session: Session) -> bool:
    if not server.config.require_pass:
        return True
    return session.password == server.config.require_pass


def _running_mode(server: Server) -> str:
    return CLUSTER_MODE if server.config.cluster_enabled else STANDALONE_MODE


def info_section(server: Server, section: str) -> bytes:
    """Text of one INFO section; empty for an unknown section."""
    config = server.config
    if section == "server":
        uptime = int(time.time() - server.started)
        text = (
            "# Server\r\n"
            f"memkv_version:{config.version}\r\n"
            f"memkv_mode:{_running_mode(server)}\r\n"
            f"os:{platform.system().lower()} {platform.machine()}\r\n"
            f"arch_bits:{struct.calcsize('P') * 8}\r\n"
            f"python_version:{platform.python_version()}\r\n"
            f"process_id:{os.getpid()}\r\n"
            f"run_id:{config.run_id}\r\n"
            f"tcp_port:{config.port}\r\n"
            f"uptime_in_seconds:{uptime}\r\n"
            f"uptime_in_days:{uptime // 86400}\r\n"
            f"config_file:{config.config_file}\r\n"
        )
        return text.encode()
    if section == "client":
        return f"# Clients\r\nconnected_clients:{server.connected_clients}\r\n".encode()
    if section == "cluster":
        enabled = "1" if _running_mode(server) == CLUSTER_MODE else "0"
        return f"# Cluster\r\ncluster_enabled:{enabled}\r\n".encode()
    if section == "keyspace":
        lines = ["# Keyspace\r\n"]
        for index in range(config.databases):
            keys, expires = server.db_size(index)
            if keys:
                avg_ttl = server.database(index).average_ttl(20)
                lines.append(f"db{index}:keys={keys},expires={expires},avg_ttl={avg_ttl}\r\n")
        return "".join(lines).encode()
    return b""


def info(server: Server, args: Sequence[bytes]) -> bytes:
    """All INFO sections, or the single one named."""
    if not args:
        return b"".join(info_section(server, s) for s in _SECTIONS)
    if len(args) == 1:
        section = _text(_raw(args[0])).lower()
        if section not in _SECTIONS:
            raise CommandError("Invalid section for 'info' command")
        return info_section(server, section)
    raise _arg_count_error("info")


def db_size(server: Server, session: Session) -> int:
    """Number of keys in the session's selected database."""
    keys, _ = server.db_size(session.db_index)
    return keys