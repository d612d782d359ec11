"""Inverted-index application for MapReduce."""

from __future__ import annotations

from itertools import groupby

from ..mrtypes import KeyValue


def _words(text: str) -> list[str]:
    return ["".join(run) for is_letter, run in groupby(text, key=str.isalpha) if is_letter]


def map_func(document: str, value: str) -> list[KeyValue]:
    """Emit ``(word, document)`` once for each distinct word in *value*."""
    return [KeyValue(word, document) for word in dict.fromkeys(_words(value))]


def reduce_func(key: str, values: list[str]) -> str:
    """Count of documents and their sorted, comma-separated names."""
    documents = sorted(values)
    return f"{len(documents)} {','.join(documents)}"