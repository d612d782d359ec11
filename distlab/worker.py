"""MapReduce worker: asks the coordinator for tasks and runs them."""

from __future__ import annotations

import glob
import json
import logging
import os
import socket
import sys
import tempfile
import time
from itertools import groupby
from operator import attrgetter
from pathlib import Path
from typing import Any, Callable, Iterator, Sequence

from . import labgob
from .mrapps.registry import load_app
from .mrtypes import (
    KeyValue,
    MapReduceTask,
    RequestTaskReply,
    TaskStatus,
    TaskType,
    coordinator_sock,
    ihash,
)

logger = logging.getLogger(__name__)

_WAIT_INTERVAL = 1.0

for _cls in (TaskType, TaskStatus, MapReduceTask, RequestTaskReply):
    labgob.register(_cls)

MapFunc = Callable[[str, str], "list[KeyValue]"]
ReduceFunc = Callable[[str, "list[str]"], str]


class CallError(Exception):
    """The coordinator could not carry out a call."""


def call(rpcname: str, args: Any = None, sockname: str | None = None) -> Any:
    """Call *rpcname* on the coordinator and return its result.

    Raises OSError if the coordinator cannot be reached and CallError if it
    reports an error.
    """
    path = sockname or coordinator_sock()
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.connect(path)
        with sock.makefile("rwb") as stream:
            encoder = labgob.LabEncoder(stream)
            encoder.encode(rpcname)
            encoder.encode(args)
            stream.flush()
            try:
                status, result = labgob.LabDecoder(stream).decode()
            except (EOFError, labgob.LabGobError, TypeError, ValueError) as exc:
                raise CallError(f"no valid reply to {rpcname}") from exc
    if status != "ok":
        raise CallError(result)
    return result


def _write_atomically(name: str, text: str) -> None:
    directory = os.path.dirname(os.path.abspath(name))
    fd, tmp = tempfile.mkstemp(prefix=f".{os.path.basename(name)}.", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as out:
            out.write(text)
        os.replace(tmp, name)
    except BaseException:
        try:
            os.remove(tmp)
        except FileNotFoundError:
            pass
        raise


def _read_pairs(filename: str) -> Iterator[KeyValue]:
    with open(filename, encoding="utf-8") as src:
        for line in src:
            try:
                obj = json.loads(line)
            except ValueError:
                return
            if not isinstance(obj, dict):
                return
            key, value = obj.get("Key", ""), obj.get("Value", "")
            if not isinstance(key, str) or not isinstance(value, str):
                return
            yield KeyValue(key, value)


def do_map(reply: RequestTaskReply, mapf: MapFunc) -> list[str]:
    """Run *mapf* on the task's input and write one file per reduce task.

    Returns the names of the intermediate files, ``mr-<task>-<reduce>``.
    """
    source = reply.task.input_files[0]
    content = Path(source).read_text(encoding="utf-8")
    buckets: list[list[KeyValue]] = [[] for _ in range(reply.n_reduce)]
    for kv in mapf(source, content):
        buckets[ihash(kv.key) % reply.n_reduce].append(kv)
    names = []
    for r, bucket in enumerate(buckets):
        name = f"mr-{reply.task.task_id}-{r}"
        text = "".join(
            json.dumps({"Key": kv.key, "Value": kv.value}, separators=(",", ":"), ensure_ascii=False)
            + "\n"
            for kv in bucket
        )
        _write_atomically(name, text)
        names.append(name)
    return names


def do_reduce(reply: RequestTaskReply, reducef: ReduceFunc) -> str:
    """Reduce the intermediate files matching the task's pattern.

    Writes ``mr-out-<task>`` and returns its name.
    """
    pairs: list[KeyValue] = []
    for filename in sorted(glob.glob(reply.task.input_files[0])):
        pairs.extend(_read_pairs(filename))
    pairs.sort(key=attrgetter("key"))
    lines = [
        f"{key} {reducef(key, [kv.value for kv in group])}\n"
        for key, group in groupby(pairs, key=attrgetter("key"))
    ]
    name = f"mr-out-{reply.task.task_id}"
    _write_atomically(name, "".join(lines))
    return name


def _notify(reply: RequestTaskReply, sockname: str | None) -> None:
    try:
        call("Coordinator.notify_task_complete", reply, sockname)
    except CallError as exc:
        logger.warning("notify failed: %s", exc)


def worker(mapf: MapFunc, reducef: ReduceFunc, sockname: str | None = None) -> None:
    """Ask for tasks and run them until told to exit."""
    while True:
        try:
            reply = call("Coordinator.get_task", None, sockname)
        except CallError as exc:
            logger.error("%s", exc)
            return
        task_type = reply.task.task_type
        if task_type == TaskType.MAP:
            do_map(reply, mapf)
            _notify(reply, sockname)
        elif task_type == TaskType.REDUCE:
            do_reduce(reply, reducef)
            _notify(reply, sockname)
        elif task_type == TaskType.EXIT:
            return
        else:
            time.sleep(_WAIT_INTERVAL)


def main(argv: Sequence[str] | None = None) -> int:
    """Run a worker for the named application."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 1:
        print("Usage: mrworker xxx.so", file=sys.stderr)
        return 1
    try:
        mapf, reducef = load_app(args[0])
    except LookupError:
        print(f"cannot load plugin {args[0]}", file=sys.stderr)
        return 1
    try:
        worker(mapf, reducef)
    except OSError as exc:
        print(f"worker: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())