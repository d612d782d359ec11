"""MapReduce application that counts how many map tasks were run.

Each map call leaves a marker file in the current directory; the reduce
counts the markers, so repeated task assignment shows up in the output.
"""

from __future__ import annotations

import itertools
import os
import random
import time
from pathlib import Path

from ..mrtypes import KeyValue

_MARKER_PREFIX = "mr-worker-jobcount"
_calls = itertools.count()


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Leave a marker file, take two to five seconds, emit one pair."""
    marker = Path(f"{_MARKER_PREFIX}-{os.getpid()}-{next(_calls)}")
    marker.write_bytes(b"x")
    time.sleep((2000 + random.randrange(3000)) / 1000)
    return [KeyValue("a", "x")]


def reduce_func(key: str, values: list[str]) -> str:
    """Number of marker files in the current directory."""
    return str(sum(1 for name in os.listdir(".") if name.startswith(_MARKER_PREFIX)))