# memkv

An in-memory key-value store that runs commands given in command-line form:
string values with expiry, integer and float counters, byte ranges and bit
operations, sorted sets, and `MULTI`/`EXEC` transactions with `WATCH` and
rollback of failed transactions.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Commands and where they live

Each command module registers its commands when it is imported:

| Module | Commands |
| --- | --- |
| `memkv.keyspace` | `DEL`, `PERSIST`, `PEXPIREAT`, `TTL`, `PTTL`, `TYPE` |
| `memkv.strings` | `GET`, `GETEX`, `SET`, `SETNX`, `SETEX`, `PSETEX`, `MSET`, `MGET`, `MSETNX`, `GETSET`, `GETDEL`, `INCR`, `INCRBY`, `INCRBYFLOAT`, `DECR`, `DECRBY`, `STRLEN`, `APPEND`, `RANDOMKEY` |
| `memkv.bitops` | `SETRANGE`, `GETRANGE`, `SETBIT`, `GETBIT`, `BITCOUNT`, `BITPOS` |
| `memkv.zset_commands` | `ZADD`, `ZSCORE`, `ZINCRBY`, `ZRANK`, `ZREVRANK`, `ZCARD`, `ZRANGE`, `ZREVRANGE`, `ZPOPMIN`, `ZREM` |
| `memkv.zset_ranges` | `ZCOUNT`, `ZRANGEBYSCORE`, `ZREVRANGEBYSCORE`, `ZREMRANGEBYSCORE`, `ZREMRANGEBYRANK`, `ZLEXCOUNT`, `ZRANGEBYLEX`, `ZREVRANGEBYLEX`, `ZREMRANGEBYLEX`, `ZSCAN` |
| `memkv.transaction` | `GETVER` |

Importing `memkv.system` imports all of them.

## Using a keyspace

A `Keyspace` holds the keys of one database. Commands are given as separate
arguments, the command name first; the name is matched case-insensitively and
arguments may be `str` or `bytes`:

```python
import memkv.system  # registers every command
from memkv.keyspace import Keyspace

db = Keyspace()
db.execute("SET", "greeting", "hello", "EX", "100")   # Status("OK")
db.execute("GET", "greeting")                         # b"hello"
db.execute("TTL", "greeting")                         # seconds left, e.g. 99
db.execute("INCR", "counter")                         # 1
db.execute("ZADD", "board", "10", "alice", "20", "bob")          # 2
db.execute("ZRANGE", "board", "0", "-1", "WITHSCORES")
# [b"alice", b"10", b"bob", b"20"]
db.execute("ZRANGEBYLEX", "board", "-", "+")          # [b"alice", b"bob"]
```

Replies are plain Python values: `bytes` for values, `int` for counts and
positions, `None` where a value is absent, lists for multiple values, and
`Status` for simple replies such as `OK`.

A command that fails raises `CommandError`, whose `message` is the error text.
A command run against a key holding the wrong kind of value raises
`WrongTypeError`, and malformed options raise `CommandSyntaxError`; both are
subclasses of `CommandError`.

## Sorted sets on their own

`SortedSet` can be used without a keyspace:

```python
from memkv.sortedset import SortedSet, parse_lex_border, parse_score_border

zs = SortedSet()
zs.add("a", 1.0)
zs.add("b", 2.0)
zs.rank("b", False)                                             # 1
zs.count(parse_score_border("(1"), parse_score_border("+inf"))  # 1
zs.range(parse_lex_border("-"), parse_lex_border("+"))          # [Element("a", 1.0), Element("b", 2.0)]
zs.pop_min(1)                                                   # [Element("a", 1.0)]
```

## Servers, sessions and transactions

A `Server` holds several numbered databases (16 by default) and keeps
per-client state in a `Session`: the selected database, the password given
with `AUTH`, and the queue of a transaction in progress. Besides the commands
above, `Server.execute` handles `PING`, `AUTH`, `INFO`, `DBSIZE`, `SELECT`,
`FLUSHDB`, `FLUSHALL`, `MULTI`, `EXEC`, `DISCARD` and `WATCH`.

```python
from memkv.keyspace import Session
from memkv.system import Config, Server

server = Server()
session = Session()
server.execute(session, "MULTI")               # Status("OK")
server.execute(session, "SET", "k", "v")       # Status("QUEUED")
server.execute(session, "EXEC")                # [Status("OK")]
server.execute(session, "INFO", "keyspace")    # b"# Keyspace\r\ndb0:keys=1,..."
```

If a command inside `EXEC` fails, the commands already run in that transaction
are undone and `CommandError` is raised with an `EXECABORT` message. If a key
named in `WATCH` was written before `EXEC`, the queued commands are not run and
`EXEC` returns an empty list.

To require a password, pass a `Config`:

```python
password = "password"
server = Server(Config(require_pass=password))
server.execute(session, "AUTH", password)      # Status("OK")
```

Until a session has authenticated, every command other than `PING` and `AUTH`
raises `CommandError` with a `NOAUTH` message.

## What it does not do

- It does not listen on a network port or speak a wire protocol; commands are
  run by calling `Keyspace.execute` or `Server.execute` in-process.
- Nothing is written to disk: there is no append-only log and no snapshot, and
  all data is lost when the process ends.
- There are no list, hash or set commands. `TYPE` and the transaction rollback
  recognise Python lists, dicts and sets stored directly with `Keyspace.put`,
  but no command creates or reads them.
- There is no replication and no cluster; `INFO cluster` reports the
  `cluster_enabled` setting of `Config` only.