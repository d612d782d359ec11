"""Shared types of the MapReduce coordinator and workers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import IntEnum

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193


class TaskStatus(IntEnum):
    AVAILABLE = 0
    COMPLETED = 1
    PENDING = 2


class TaskType(IntEnum):
    EXIT = 0
    MAP = 1
    REDUCE = 2
    WAITING = 3


@dataclass
class MapReduceTask:
    """One map or reduce task; times are monotonic seconds, 0.0 if unset."""

    task_type: TaskType = TaskType.EXIT
    task_status: TaskStatus = TaskStatus.AVAILABLE
    task_id: int = 0
    start_time: float = 0.0
    end_time: float = 0.0
    input_files: list[str] = field(default_factory=list)
    output_files: list[str] = field(default_factory=list)


@dataclass
class RequestTaskReply:
    """What a worker receives when it asks for work."""

    task: MapReduceTask = field(default_factory=MapReduceTask)
    n_reduce: int = 0


@dataclass(frozen=True)
class KeyValue:
    """A pair emitted by a map function."""

    key: str
    value: str


def coordinator_sock() -> str:
    """Name of the coordinator's UNIX-domain socket for this user."""
    return f"/var/tmp/5840-mr-{os.getuid()}"


def ihash(key: str) -> int:
    """Non-negative 32-bit FNV-1a hash of *key*, used to pick a reduce task."""
    h = _FNV32_OFFSET
    for byte in key.encode("utf-8"):
        h ^= byte
        h = (h * _FNV32_PRIME) & 0xFFFFFFFF
    return h & 0x7FFFFFFF