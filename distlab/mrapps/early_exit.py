"""MapReduce application whose slow reduces catch workers that exit early."""

from __future__ import annotations

import time

from ..mrtypes import KeyValue


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Emit ``(filename, "1")`` once per input file."""
    return [KeyValue(filename, "1")]


def reduce_func(key: str, values: list[str]) -> str:
    """Number of times the file was seen; some keys take three seconds."""
    if "sherlock" in key or "tom" in key:
        time.sleep(3)
    return str(len(values))