"""MapReduce application that sometimes crashes and sometimes stalls.

It exercises the framework's recovery from failed and slow workers.
"""

from __future__ import annotations

import os
import secrets
import time

from ..mrtypes import KeyValue


def maybe_crash() -> None:
    """Exit the process about a third of the time; stall up to 10 s another third."""
    draw = secrets.randbelow(1000)
    if draw < 330:
        os._exit(1)
    elif draw < 660:
        ms = secrets.randbelow(10 * 1000)
        time.sleep(ms / 1000)


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Emit fixed facts about the input file."""
    maybe_crash()
    return [
        KeyValue("a", filename),
        KeyValue("b", str(len(filename.encode("utf-8")))),
        KeyValue("c", str(len(contents.encode("utf-8")))),
        KeyValue("d", "xyzzy"),
    ]


def reduce_func(key: str, values: list[str]) -> str:
    """Sorted values joined by spaces, so the output is deterministic."""
    maybe_crash()
    return " ".join(sorted(values))