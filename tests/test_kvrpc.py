import io

import pytest

from distlab.kvrpc import (
    Err,
    GetArgs,
    GetReply,
    KVError,
    MaybeError,
    NoKeyError,
    PutArgs,
    PutReply,
    VersionError,
    raise_for_err,
)
from distlab.labgob import LabDecoder, LabEncoder


@pytest.mark.parametrize(
    "wire, member",
    [
        ("OK", Err.OK),
        ("ErrNoKey", Err.NO_KEY),
        ("ErrVersion", Err.VERSION),
        ("ErrMaybe", Err.MAYBE),
        ("ErrWrongLeader", Err.WRONG_LEADER),
        ("ErrWrongGroup", Err.WRONG_GROUP),
    ],
)
def test_err_codes_match_wire_strings(wire, member):
    assert Err(wire) is member
    assert Err(wire) == wire


def test_ok_does_not_raise():
    assert raise_for_err(Err.OK) is None
    assert raise_for_err("OK") is None


@pytest.mark.parametrize(
    "code, exc_type",
    [
        (Err.NO_KEY, NoKeyError),
        (Err.VERSION, VersionError),
        (Err.MAYBE, MaybeError),
        ("ErrVersion", VersionError),
    ],
)
def test_raise_for_err_maps_codes(code, exc_type):
    with pytest.raises(exc_type) as info:
        raise_for_err(code)
    assert info.value.err == Err(code)
    assert isinstance(info.value, KVError)


def test_other_codes_raise_generic_error():
    with pytest.raises(KVError) as info:
        raise_for_err(Err.WRONG_LEADER)
    assert info.value.err is Err.WRONG_LEADER
    assert type(info.value) is KVError


def test_unknown_code_rejected():
    with pytest.raises(ValueError):
        raise_for_err("ErrNope")


def test_error_message_holds_detail():
    exc = NoKeyError("missing k")
    assert "missing k" in str(exc)
    assert exc.err is Err.NO_KEY


def test_defaults_are_zero_values():
    assert GetReply().value == ""
    assert GetReply().version == 0
    assert GetReply().err is None
    assert PutReply().err is None
    assert PutArgs().version == 0


def test_messages_round_trip_through_labgob():
    msgs = [
        PutArgs("k", "v", 3),
        PutReply(Err.VERSION),
        GetArgs("k"),
        GetReply("v", 4, Err.OK),
    ]
    buf = io.BytesIO()
    enc = LabEncoder(buf)
    for msg in msgs:
        enc.encode(msg)
    dec = LabDecoder(io.BytesIO(buf.getvalue()))
    decoded = [dec.decode() for _ in msgs]
    assert decoded == msgs
    assert decoded[1].err is Err.VERSION