"""MapReduce run in a single process, for reference output."""

from __future__ import annotations

import sys
from itertools import groupby
from operator import attrgetter
from pathlib import Path
from typing import Callable, Sequence

from .mrapps.registry import load_app
from .mrtypes import KeyValue

MapFunc = Callable[[str, str], "list[KeyValue]"]
ReduceFunc = Callable[[str, "list[str]"], str]


def run_sequential(
    mapf: MapFunc, reducef: ReduceFunc, filenames: Sequence[str], output: str = "mr-out-0"
) -> None:
    """Map every input file, reduce each distinct key, write ``key result`` lines."""
    intermediate: list[KeyValue] = []
    for filename in filenames:
        content = Path(filename).read_text(encoding="utf-8")
        intermediate.extend(mapf(filename, content))
    intermediate.sort(key=attrgetter("key"))
    with open(output, "w", encoding="utf-8") as out:
        for key, group in groupby(intermediate, key=attrgetter("key")):
            out.write(f"{key} {reducef(key, [kv.value for kv in group])}\n")


def main(argv: Sequence[str] | None = None) -> int:
    """Run an application over input files and write ``mr-out-0``."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        print("Usage: mrsequential xxx.so inputfiles...", file=sys.stderr)
        return 1
    try:
        mapf, reducef = load_app(args[0])
    except LookupError:
        print(f"cannot load plugin {args[0]}", file=sys.stderr)
        return 1
    try:
        run_sequential(mapf, reducef, args[1:])
    except OSError as exc:
        print(f"mrsequential: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())