import pytest

from memkv import bitops, strings  # noqa: F401  (registers commands)
from memkv.keyspace import CommandError, Keyspace, WrongTypeError
from memkv.bitops import convert_range

KEY = "abcdefghij"
WRONG_TYPE = "WRONGTYPE Operation against a key holding the wrong kind of value"


@pytest.fixture
def db():
    space = Keyspace()
    space.execute("SET", KEY, KEY)
    return space


@pytest.fixture
def list_db():
    space = Keyspace()
    space.put("listkey", [b"1"])
    return space


def test_convert_range_values():
    assert convert_range(0, 9, 10) == (0, 10)
    assert convert_range(-10, -1, 10) == (0, 10)
    assert convert_range(0, 100, 10) == (0, 10)
    assert convert_range(0, -5, 10) == (0, 6)
    assert convert_range(-13, 10, 10) is None
    assert convert_range(0, -13, 10) is None
    assert convert_range(11, 0, 10) is None
    assert convert_range(5, 3, 10) is None


def test_setrange_string_exist(db):
    assert db.execute("SetRange", KEY, "0", "xyz") == len("xyz" + KEY[3:])
    assert db.execute("GET", KEY) == b"xyzdefghij"


def test_setrange_offset_out_of_len(db):
    assert db.execute("SetRange", KEY, str(len(KEY) + 5), "xyz") == len(KEY) + 5 + 3
    assert db.execute("GET", KEY) == KEY.encode() + bytes(5) + b"xyz"


def test_setrange_string_not_exist():
    space = Keyspace()
    assert space.execute("SetRange", KEY, "0", KEY) == len(KEY)
    assert space.execute("GET", KEY) == KEY.encode()


def test_setrange_bad_offset(db):
    with pytest.raises(CommandError, match="invalid syntax"):
        db.execute("SetRange", KEY, "a", "x")


@pytest.mark.parametrize(
    "start,end,expected",
    [
        (0, 10, KEY.encode()),
        (0, 12, KEY.encode()),
        (0, 5, KEY[:6].encode()),
        (-10, -1, KEY.encode()),
        (-10, 5, KEY[:6].encode()),
        (0, -5, KEY[:6].encode()),
        (12, 12, None),
        (-13, 10, None),
        (0, -13, None),
        (11, 0, None),
    ],
)
def test_getrange(db, start, end, expected):
    assert db.execute("GetRange", KEY, str(start), str(end)) == expected


def test_getrange_missing_key():
    space = Keyspace()
    assert space.execute("GetRange", KEY, "0", "10") is None
    assert space.execute("GetRange", KEY, "11", "10") is None


@pytest.mark.parametrize("args", [("incorrect", "0"), ("0", "incorrect")])
def test_getrange_bad_index(db, args):
    with pytest.raises(CommandError) as info:
        db.execute("GetRange", KEY, *args)
    assert info.value.message == "ERR value is not an integer or out of range"


def test_setbit_getbit(list_db):
    space = list_db
    assert space.execute("SetBit", KEY, "15", "1") == 0
    assert space.execute("SetBit", KEY, "15", "0") == 1
    space.execute("SetBit", KEY, "13", "1")
    assert space.execute("GetBit", KEY, "13") == 1
    assert space.execute("GetBit", KEY + "1", "13") == 0
    assert space.execute("STRLEN", KEY) == 2


@pytest.mark.parametrize(
    "args,message",
    [
        (("SetBit", KEY, "13", "a"), "ERR bit is not an integer or out of range"),
        (("SetBit", KEY, "a", "1"), "ERR bit offset is not an integer or out of range"),
        (("GetBit", KEY, "a"), "ERR bit offset is not an integer or out of range"),
    ],
)
def test_setbit_errors(db, args, message):
    with pytest.raises(CommandError) as info:
        db.execute(*args)
    assert info.value.message == message


def test_bit_commands_wrong_type(list_db):
    for args in (("SetBit", "listkey", "15", "0"), ("GetBit", "listkey", "15"),
                 ("BitCount", "listkey"), ("BitPos", "listkey", "1")):
        with pytest.raises(WrongTypeError) as info:
            list_db.execute(*args)
        assert info.value.message == WRONG_TYPE


@pytest.fixture
def bits_db():
    space = Keyspace()
    space.execute("SetBit", KEY, "15", "1")
    space.execute("SetBit", KEY, "13", "1")
    return space


def test_bitcount(bits_db):
    assert bits_db.execute("BitCount", KEY) == 2
    assert bits_db.execute("BitCount", KEY, "14", "15", "BIT") == 1
    assert bits_db.execute("BitCount", KEY, "16", "20", "BIT") == 0
    assert bits_db.execute("BitCount", KEY, "1", "1", "BYTE") == 2
    assert bits_db.execute("BitCount", KEY + "a") == 0


@pytest.mark.parametrize(
    "args,message",
    [
        (("14", "15", "B"), "ERR syntax error"),
        (("14", "A"), "ERR value is not an integer or out of range"),
        (("A", "-1"), "ERR value is not an integer or out of range"),
    ],
)
def test_bitcount_errors(bits_db, args, message):
    with pytest.raises(CommandError) as info:
        bits_db.execute("BitCount", KEY, *args)
    assert info.value.message == message


def test_bitpos():
    space = Keyspace()
    space.execute("SetBit", KEY, "15", "1")
    assert space.execute("BitPos", KEY, "0") == 0
    assert space.execute("BitPos", KEY, "1") == 15
    assert space.execute("BitPos", KEY, "1", "0", "-1", "BIT") == 15
    assert space.execute("BitPos", KEY, "1", "1", "1", "BYTE") == 15
    assert space.execute("BitPos", KEY, "0", "1", "1", "BYTE") == 8
    assert space.execute("BitPos", KEY + "a", "1") == -1


@pytest.mark.parametrize(
    "args,message",
    [
        (("1", "1", "15", "B"), "ERR syntax error"),
        (("1", "14", "A"), "ERR value is not an integer or out of range"),
        (("1", "a", "14"), "ERR value is not an integer or out of range"),
        (("-1",), "ERR bit is not an integer or out of range"),
    ],
)
def test_bitpos_errors(args, message):
    space = Keyspace()
    space.execute("SetBit", KEY, "15", "1")
    with pytest.raises(CommandError) as info:
        space.execute("BitPos", KEY, *args)
    assert info.value.message == message


def test_bitpos_not_found():
    space = Keyspace()
    space.execute("SET", KEY, b"\x00")
    assert space.execute("BitPos", KEY, "1") == -1