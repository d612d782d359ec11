"""Messages and error codes of the versioned key/value service."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

Tversion = int


class Err(str, Enum):
    """Outcome codes carried in replies."""

    OK = "OK"
    NO_KEY = "ErrNoKey"
    VERSION = "ErrVersion"
    MAYBE = "ErrMaybe"
    WRONG_LEADER = "ErrWrongLeader"
    WRONG_GROUP = "ErrWrongGroup"


class KVError(Exception):
    """A key/value operation did not succeed."""

    def __init__(self, err: Err | str, detail: str = "") -> None:
        self.err = Err(err)
        super().__init__(f"{self.err.value}: {detail}" if detail else self.err.value)


class NoKeyError(KVError):
    """The key does not exist (or a Put with a non-zero version found no key)."""

    def __init__(self, detail: str = "") -> None:
        super().__init__(Err.NO_KEY, detail)


class VersionError(KVError):
    """The Put's version did not match the server's version."""

    def __init__(self, detail: str = "") -> None:
        super().__init__(Err.VERSION, detail)


class MaybeError(KVError):
    """A retried Put may or may not have been applied."""

    def __init__(self, detail: str = "") -> None:
        super().__init__(Err.MAYBE, detail)


_ERRORS: dict[Err, type[KVError]] = {
    Err.NO_KEY: NoKeyError,
    Err.VERSION: VersionError,
    Err.MAYBE: MaybeError,
}


def raise_for_err(err: Err | str) -> None:
    """Raise the exception matching *err*; do nothing for OK."""
    code = Err(err)
    if code is Err.OK:
        return
    exc_type = _ERRORS.get(code)
    if exc_type is not None:
        raise exc_type()
    raise KVError(code)


@dataclass
class PutArgs:
    key: str = ""
    value: str = ""
    version: Tversion = 0


@dataclass
class PutReply:
    err: Err | None = None


@dataclass
class GetArgs:
    key: str = ""


@dataclass
class GetReply:
    value: str = ""
    version: Tversion = 0
    err: Err | None = None