"""The crash application's output, without crashes or stalls."""

from __future__ import annotations

from ..mrtypes import KeyValue


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Emit fixed facts about the input file."""
    return [
        KeyValue("a", filename),
        KeyValue("b", str(len(filename.encode("utf-8")))),
        KeyValue("c", str(len(contents.encode("utf-8")))),
        KeyValue("d", "xyzzy"),
    ]


def reduce_func(key: str, values: list[str]) -> str:
    """Sorted values joined by spaces."""
    return " ".join(sorted(values))