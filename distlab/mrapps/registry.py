"""Lookup of MapReduce applications by name."""

from __future__ import annotations

import os
from typing import Callable

from . import crash, early_exit, indexer, jobcount, mtiming, nocrash, rtiming, wc
from ..mrtypes import KeyValue

MapFunc = Callable[[str, str], "list[KeyValue]"]
ReduceFunc = Callable[[str, "list[str]"], str]

_APPS = {
    "wc": wc,
    "indexer": indexer,
    "crash": crash,
    "nocrash": nocrash,
    "early_exit": early_exit,
    "jobcount": jobcount,
    "mtiming": mtiming,
    "rtiming": rtiming,
}


def load_app(name: str) -> tuple[MapFunc, ReduceFunc]:
    """Return the map and reduce functions of an application.

    *name* may be a bare name (``wc``) or a file name such as ``../mrapps/wc.so``.
    Raises LookupError for an unknown application.
    """
    stem = os.path.basename(name)
    for suffix in (".so", ".py"):
        if stem.endswith(suffix):
            stem = stem[: -len(suffix)]
            break
    app = _APPS.get(stem)
    if app is None:
        raise LookupError(f"cannot load application {name!r}; known: {sorted(_APPS)}")
    return app.map_func, app.reduce_func