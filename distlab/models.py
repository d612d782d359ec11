"""Sequential model of a single versioned key, for checking histories."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable

GET = 0
PUT = 1
INVALID = "<invalid>"


@dataclass(frozen=True)
class KvInput:
    op: int
    key: str
    value: str = ""
    version: int = 0


@dataclass(frozen=True)
class KvOutput:
    value: str = ""
    version: int = 0
    err: str = ""


@dataclass(frozen=True)
class KvState:
    value: str = ""
    version: int = 0


@dataclass(frozen=True)
class Operation:
    """One client call with its input, output and call/return times."""

    input: KvInput
    output: KvOutput
    call: int
    ret: int
    client_id: int


def partition(history: Iterable[Operation]) -> list[list[Operation]]:
    """Split a history by key, ordered by key, keeping each key's order."""
    by_key: dict[str, list[Operation]] = defaultdict(list)
    for op in history:
        by_key[op.input.key].append(op)
    return [by_key[key] for key in sorted(by_key)]


def init_state() -> KvState:
    """State of a key nobody has written."""
    return KvState("", 0)


def step(state: KvState, inp: KvInput, out: KvOutput) -> tuple[bool, KvState | str]:
    """Return whether *out* is legal for *inp* in *state*, and the next state."""
    if inp.op == GET:
        return out.value == state.value, state
    if inp.op == PUT:
        if state.version == inp.version:
            return out.err in ("OK", "ErrMaybe"), KvState(inp.value, state.version + 1)
        return out.err in ("ErrVersion", "ErrMaybe"), state
    return False, INVALID


def describe_operation(inp: KvInput, out: KvOutput) -> str:
    """Human-readable form of one operation."""
    if inp.op == GET:
        return f"get('{inp.key}') -> ('{out.value}', '{out.version}', '{out.err}')"
    if inp.op == PUT:
        return f"put('{inp.key}', '{inp.value}', '{inp.version}') -> ('{out.err}')"
    return INVALID