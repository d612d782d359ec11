"""Word-count application for MapReduce."""

from __future__ import annotations

from itertools import groupby

from ..mrtypes import KeyValue


def _words(text: str) -> list[str]:
    """Maximal runs of letters in *text*."""
    return ["".join(run) for is_letter, run in groupby(text, key=str.isalpha) if is_letter]


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Emit ``(word, "1")`` for every word of *contents*; the file name is ignored."""
    return [KeyValue(word, "1") for word in _words(contents)]


def reduce_func(key: str, values: list[str]) -> str:
    """Number of occurrences of the word."""
    return str(len(values))