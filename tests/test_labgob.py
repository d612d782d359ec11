from __future__ import annotations

import io
from dataclasses import dataclass, field
from enum import Enum

import pytest

from distlab.labgob import (
    LabDecoder,
    LabEncoder,
    LabGobError,
    error_count,
    register,
    register_name,
)


@dataclass
class T1:
    int0: int = 0
    int1: int = 0
    string0: str = ""
    string1: str = ""


@dataclass
class T2:
    entries: list = field(default_factory=list)
    table: dict = field(default_factory=dict)
    t3: object = None


@dataclass
class T3:
    int999: int = 0


@dataclass
class T4:
    yes: int = 0
    _no: int = 0


@dataclass
class NamedA:
    x: int = 0


@dataclass
class NamedB:
    x: int = 0


@dataclass
class Renamed:
    x: int = 0


class Color(Enum):
    RED = "red"
    BLUE = "blue"


def test_gob_round_trip():
    e0 = error_count()
    register(T3())

    buf = io.BytesIO()
    t1 = T1(int1=1, string1="6.5840")
    t2 = T2(entries=[T1(), t1], table={99: T1(1, 2, "x", "y")}, t3=T3(999))
    enc = LabEncoder(buf)
    enc.encode(0)
    enc.encode(1)
    enc.encode(t1)
    enc.encode(t2)

    dec = LabDecoder(io.BytesIO(buf.getvalue()))
    x0 = dec.decode()
    x1 = dec.decode()
    d1 = dec.decode_into(T1())
    d2 = dec.decode()

    assert x0 == 0
    assert x1 == 1
    assert d1.int0 == 0
    assert d1.int1 == 1
    assert d1.string0 == ""
    assert d1.string1 == "6.5840"
    assert len(d2.entries) == 2
    assert d2.entries[1].int1 == 1
    assert len(d2.table) == 1
    assert d2.table[99].string1 == "y"
    assert isinstance(d2.t3, T3)
    assert d2.t3.int999 == 999
    assert error_count() == e0


def test_capital():
    e0 = error_count()
    v = [{1: T4(yes=1, _no=2)}]
    buf = io.BytesIO()
    LabEncoder(buf).encode(v)

    v1: list = []
    LabDecoder(io.BytesIO(buf.getvalue())).decode_into(v1)
    assert error_count() == e0 + 1
    assert v1[0][1].yes == 1
    assert v1[0][1]._no == 0

    # a type is only complained about once
    LabEncoder(io.BytesIO()).encode(T4())
    assert error_count() == e0 + 1


def test_default():
    e0 = error_count()

    @dataclass
    class DD:
        x: int = 0

    buf = io.BytesIO()
    LabEncoder(buf).encode(DD())

    reply = DD(99)
    LabDecoder(io.BytesIO(buf.getvalue())).decode_into(reply)

    assert error_count() == e0 + 1
    assert reply.x == 0


def test_decode_into_fresh_target_does_not_warn():
    e0 = error_count()
    buf = io.BytesIO()
    LabEncoder(buf).encode(T1(int0=5))
    target = LabDecoder(io.BytesIO(buf.getvalue())).decode_into(T1())
    assert target == T1(int0=5)
    assert error_count() == e0


def test_end_of_stream_raises_eof():
    buf = io.BytesIO()
    LabEncoder(buf).encode("only")
    dec = LabDecoder(io.BytesIO(buf.getvalue()))
    assert dec.decode() == "only"
    with pytest.raises(EOFError):
        dec.decode()


def test_truncated_frame():
    buf = io.BytesIO()
    LabEncoder(buf).encode("payload")
    data = buf.getvalue()[:-1]
    with pytest.raises(LabGobError):
        LabDecoder(io.BytesIO(data)).decode()


def test_unsupported_value_raises():
    with pytest.raises(TypeError):
        LabEncoder(io.BytesIO()).encode(object())


def test_decode_into_immutable_target_raises():
    buf = io.BytesIO()
    LabEncoder(buf).encode(7)
    with pytest.raises(TypeError):
        LabDecoder(io.BytesIO(buf.getvalue())).decode_into(5)


def test_decode_into_wrong_record_type_raises():
    buf = io.BytesIO()
    LabEncoder(buf).encode(T3(1))
    with pytest.raises(TypeError):
        LabDecoder(io.BytesIO(buf.getvalue())).decode_into(T1())


def test_register_rejects_plain_values():
    with pytest.raises(TypeError):
        register(5)


def test_register_name_conflicts():
    register_name("distlab-test.named", NamedA)
    with pytest.raises(ValueError):
        register_name("distlab-test.named", NamedB)
    with pytest.raises(ValueError):
        register_name("distlab-test.other", NamedA)


def test_register_name_used_on_wire():
    register_name("distlab-test.renamed", Renamed)
    buf = io.BytesIO()
    LabEncoder(buf).encode(Renamed(3))
    assert b"distlab-test.renamed" in buf.getvalue()
    assert LabDecoder(io.BytesIO(buf.getvalue())).decode() == Renamed(3)


def test_misc_values_round_trip():
    values = [Color.BLUE, b"\x00\xffraw", (1, "a"), None, 2.5, True, {"k": [1, 2]}]
    buf = io.BytesIO()
    enc = LabEncoder(buf)
    for value in values:
        enc.encode(value)
    dec = LabDecoder(io.BytesIO(buf.getvalue()))
    decoded = [dec.decode() for _ in values]
    assert decoded == values
    assert decoded[0] is Color.BLUE
    assert decoded[5] is True


def test_decoded_value_is_a_copy():
    original = T2(entries=[T1(int0=1)])
    buf = io.BytesIO()
    LabEncoder(buf).encode(original)
    copy = LabDecoder(io.BytesIO(buf.getvalue())).decode()
    copy.entries[0].int0 = 42
    assert original.entries[0].int0 == 1