"""MapReduce application that checks map tasks run in parallel."""

from __future__ import annotations

import os
import re
import time
from pathlib import Path

from ..mrtypes import KeyValue


def _alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except OSError:
        return False
    return True


def nparallel(phase: str) -> int:
    """Count live workers currently in *phase*, this one included.

    Each worker announces itself with a ``mr-worker-<phase>-<pid>`` file in
    the current directory while it runs.
    """
    pid = os.getpid()
    own = Path(f"mr-worker-{phase}-{pid}")
    own.write_bytes(b"x")

    pattern = re.compile(rf"mr-worker-{re.escape(phase)}-([+-]?\d+)")
    running = 0
    for name in os.listdir("."):
        match = pattern.match(name)
        if match and _alive(int(match.group(1))):
            running += 1

    time.sleep(1)
    own.unlink()
    return running


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Emit this worker's start time and how many map workers ran with it."""
    started = time.time()
    pid = os.getpid()
    n = nparallel("map")
    return [
        KeyValue(f"times-{pid}", f"{started:.1f}"),
        KeyValue(f"parallel-{pid}", str(n)),
    ]


def reduce_func(key: str, values: list[str]) -> str:
    """Sorted values joined by spaces."""
    return " ".join(sorted(values))