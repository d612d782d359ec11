"""MapReduce application that checks reduce tasks run in parallel."""

from __future__ import annotations

from . import mtiming
from ..mrtypes import KeyValue


def nparallel(phase: str) -> int:
    """Count live workers currently in *phase*, this one included."""
    return mtiming.nparallel(phase)


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Emit ten keys, ``a`` to ``j``, so there are reduce tasks to spread."""
    return [KeyValue(key, "1") for key in "abcdefghij"]


def reduce_func(key: str, values: list[str]) -> str:
    """How many reduce workers ran at the same time as this one."""
    return str(nparallel("reduce"))