import random
import string

import pytest

import memkv.zset_commands  # noqa: F401  registers the commands
from memkv.keyspace import CommandError, Keyspace, WrongTypeError, lookup_command
from memkv.sortedset import format_score


@pytest.fixture
def db():
    return Keyspace()


def _rand_name(rng, size=10):
    return "".join(rng.choice(string.ascii_letters) for _ in range(size))


def _fill(db, key, size=100):
    members = [str(i) for i in range(size)]
    args = []
    for i, member in enumerate(members):
        args += [str(i), member]
    assert db.execute("zadd", key, *args) == size
    return members


def test_zadd_score_and_update(db):
    rng = random.Random(7)
    size = 100
    key = _rand_name(rng)
    members = [_rand_name(rng) + str(i) for i in range(size)]
    scores = [rng.random() for _ in range(size)]
    args = []
    for score, member in zip(scores, members):
        args += [format_score(score), member]
    assert db.execute("zadd", key, *args) == size
    for score, member in zip(scores, members):
        assert db.execute("ZScore", key, member) == format_score(score).encode()
    assert db.execute("zcard", key) == size

    scores = [rng.random() + 100 for _ in range(size)]
    args = []
    for score, member in zip(scores, members):
        args += [format_score(score), member]
    assert db.execute("zadd", key, *args) == 0
    for score, member in zip(scores, members):
        assert db.execute("zscore", key, member) == format_score(score).encode()


def test_zadd_errors(db):
    with pytest.raises(CommandError, match="ERR syntax error"):
        db.execute("zadd", "k", "1", "a", "2")
    with pytest.raises(CommandError, match="ERR value is not a valid float"):
        db.execute("zadd", "k", "abc", "a")
    assert "k" not in db


def test_zscore_missing(db):
    assert db.execute("zscore", "nokey", "a") is None
    db.execute("zadd", "k", "1", "a")
    assert db.execute("zscore", "k", "b") is None


def test_zrank(db):
    key = "ranked"
    members = _fill(db, key)
    size = len(members)
    for i, member in enumerate(members):
        assert db.execute("zrank", key, member) == i
        assert db.execute("ZRevRank", key, member) == size - i - 1
    assert db.execute("zrank", key, "missing") is None
    assert db.execute("zrevrank", "nokey", "x") is None


def test_zcard_missing_key(db):
    assert db.execute("zcard", "nokey") == 0


def _b(items):
    return [s.encode() for s in items]


def test_zrange(db):
    key = "r"
    members = _fill(db, key)
    size = len(members)
    reverse = list(reversed(members))

    assert db.execute("ZRange", key, "0", "9") == _b(members[:10])
    assert len(db.execute("ZRange", key, "0", "9", "WITHSCORES")) == 20
    assert db.execute("ZRevRange", key, "0", "9") == _b(reverse[:10])

    assert db.execute("ZRange", key, "0", "200") == _b(members)
    assert db.execute("ZRevRange", key, "0", "200") == _b(reverse)

    assert db.execute("ZRange", key, "0", "-10") == _b(members[: size - 10 + 1])
    assert db.execute("ZRevRange", key, "0", "-10") == _b(reverse[: size - 10 + 1])

    assert db.execute("ZRange", key, "0", "-200") == []
    assert db.execute("ZRevRange", key, "0", "-200") == []

    assert db.execute("ZRange", key, "-10", "-1") == _b(members[90:])
    assert db.execute("ZRevRange", key, "-10", "-1") == _b(reverse[90:])


def test_zrange_withscores_values(db):
    db.execute("zadd", "k", "1.5", "a", "2", "b")
    assert db.execute("zrange", "k", "0", "-1", "withscores") == [b"a", b"1.5", b"b", b"2"]


def test_zrange_errors(db):
    db.execute("zadd", "k", "1", "a")
    with pytest.raises(CommandError, match="^syntax error$"):
        db.execute("zrange", "k", "0", "1", "FOO")
    with pytest.raises(CommandError, match="^syntax error$"):
        db.execute("zrevrange", "k", "0", "1", "withscores")
    with pytest.raises(CommandError, match="ERR value is not an integer or out of range"):
        db.execute("zrange", "k", "x", "1")
    with pytest.raises(CommandError, match="wrong number of arguments for 'zrange'"):
        db.execute("zrange", "k", "0", "1", "WITHSCORES", "x")
    assert db.execute("zrange", "nokey", "0", "-1") == []
    assert db.execute("zrange", "k", "5", "10") == []


def test_zrem(db):
    key = "z"
    members = _fill(db, key)
    assert db.execute("zrem", key, *members[:10]) == 10
    assert db.execute("zcard", key) == len(members) - 10
    assert db.execute("zrem", key, *members[:10]) == 0
    assert db.execute("zrem", "nokey", "a") == 0


def test_zincrby(db):
    key = "inc"
    assert db.execute("ZIncrBy", key, "10", "a") == b"10"
    assert db.execute("ZIncrBy", key, "10", "a") == b"20"
    assert db.execute("ZScore", key, "a") == b"20"
    with pytest.raises(CommandError, match="ERR value is not a valid float"):
        db.execute("zincrby", key, "nope", "a")


def test_zpopmin(db):
    key = "pop"
    assert db.execute("ZAdd", key, "1", "a", "1", "b", "2", "c") == 3
    assert db.execute("ZPopMin", key, "2") == [b"a", b"1", b"b", b"1"]
    assert db.execute("ZRange", key, "0", "-1") == [b"c"]
    assert db.execute("ZPopMin", key + "1", "2") == []

    db.put(key + "2", b"2")
    with pytest.raises(WrongTypeError) as info:
        db.execute("ZPopMin", key + "2", "2")
    assert info.value.message == "WRONGTYPE Operation against a key holding the wrong kind of value"


def test_zpopmin_default_count(db):
    db.execute("zadd", "k", "3", "x", "1", "y")
    assert db.execute("zpopmin", "k") == [b"y", b"1"]
    assert db.execute("zcard", "k") == 1


def test_wrong_type_on_write(db):
    db.put("s", b"value")
    with pytest.raises(WrongTypeError):
        db.execute("zadd", "s", "1", "a")
    with pytest.raises(WrongTypeError):
        db.execute("zscore", "s", "a")


def test_undo_zadd_restores_scores(db):
    db.execute("zadd", "k", "1", "v")
    args = [b"k", b"2", b"v", b"3", b"w"]
    undo = lookup_command("zadd").undo(db, args)
    db.execute("zadd", *args)
    for line in undo:
        db.execute(*line)
    assert db.execute("zscore", "k", "v") == b"1"
    assert db.execute("zscore", "k", "w") is None


def test_undo_zadd_on_missing_key_deletes(db):
    args = [b"k", b"1", b"v"]
    undo = lookup_command("zadd").undo(db, args)
    db.execute("zadd", *args)
    for line in undo:
        db.execute(*line)
    assert "k" not in db


def test_undo_zrem_and_zincrby(db):
    db.execute("zadd", "k", "1", "a", "2", "b")
    undo = lookup_command("zrem").undo(db, [b"k", b"a"])
    db.execute("zrem", "k", "a")
    for line in undo:
        db.execute(*line)
    assert db.execute("zscore", "k", "a") == b"1"

    undo = lookup_command("zincrby").undo(db, [b"k", b"5", b"b"])
    db.execute("zincrby", "k", "5", "b")
    assert db.execute("zscore", "k", "b") == b"7"
    for line in undo:
        db.execute(*line)
    assert db.execute("zscore", "k", "b") == b"2"


def test_write_bumps_version(db):
    before = db.version("k")
    db.execute("zadd", "k", "1", "a")
    assert db.version("k") == before + 1
    db.execute("zscore", "k", "a")
    assert db.version("k") == before + 1