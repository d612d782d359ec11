"""Recording of client operations for later linearizability checking."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable

from .kvrpc import Err, KVError
from .models import GET, PUT, KvInput, KvOutput, Operation


class OpLog:
    """Thread-safe, append-only list of operations."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._operations: list[Operation] = []

    def append(self, op: Operation) -> None:
        with self._lock:
            self._operations.append(op)

    def read(self) -> list[Operation]:
        """Return a snapshot copy of the operations."""
        with self._lock:
            return list(self._operations)

    def __len__(self) -> int:
        with self._lock:
            return len(self._operations)


class RecordingClerk:
    """Wraps a clerk and records every Get and Put into an OpLog.

    The wrapped clerk's ``get(key)`` returns ``(value, version)`` and its
    ``put(key, value, version)`` returns nothing; both raise KVError on
    failure.  Failures are recorded and re-raised.
    """

    def __init__(
        self,
        clerk: Any,
        log: OpLog | None,
        client_id: int,
        *,
        clock: Callable[[], int] = time.monotonic_ns,
        on_op: Callable[[], None] | None = None,
    ) -> None:
        self._clerk = clerk
        self._log = log
        self._client_id = client_id
        self._clock = clock
        self._on_op = on_op

    def _record(self, inp: KvInput, out: KvOutput, start: int) -> None:
        end = self._clock()
        if self._on_op is not None:
            self._on_op()
        if self._log is not None:
            self._log.append(Operation(inp, out, start, end, self._client_id))

    def get(self, key: str) -> tuple[str, int]:
        inp = KvInput(GET, key)
        start = self._clock()
        try:
            value, version = self._clerk.get(key)
        except KVError as exc:
            self._record(inp, KvOutput(err=exc.err.value), start)
            raise
        self._record(inp, KvOutput(value, version, Err.OK.value), start)
        return value, version

    def put(self, key: str, value: str, version: int) -> None:
        inp = KvInput(PUT, key, value, version)
        start = self._clock()
        try:
            self._clerk.put(key, value, version)
        except KVError as exc:
            self._record(inp, KvOutput(err=exc.err.value), start)
            raise
        self._record(inp, KvOutput(err=Err.OK.value), start)