"""Single-machine key/value server with per-key versions."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from .kvrpc import Err, GetArgs, GetReply, PutArgs, PutReply


@dataclass(frozen=True)
class Pair:
    """A stored value together with its version."""

    value: str
    version: int


class KVServer:
    """Holds key/value pairs; a Put succeeds only with the matching version."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, Pair] = {}
        self._dead = threading.Event()

    @property
    def killed(self) -> bool:
        """True once :meth:`kill` has been called."""
        return self._dead.is_set()

    def get(self, args: GetArgs) -> GetReply:
        """Return the value and version of ``args.key``, or ErrNoKey."""
        with self._lock:
            pair = self._data.get(args.key)
        if pair is None:
            return GetReply(err=Err.NO_KEY)
        return GetReply(value=pair.value, version=pair.version, err=Err.OK)

    def put(self, args: PutArgs) -> PutReply:
        """Install ``args.value`` if ``args.version`` matches the stored version.

        A missing key is created only when the version is 0; otherwise the
        reply is ErrNoKey.  A version mismatch on an existing key gives
        ErrVersion.
        """
        with self._lock:
            pair = self._data.get(args.key)
            if pair is None:
                if args.version != 0:
                    return PutReply(err=Err.NO_KEY)
                self._data[args.key] = Pair(args.value, 1)
                return PutReply(err=Err.OK)
            if pair.version != args.version:
                return PutReply(err=Err.VERSION)
            self._data[args.key] = Pair(args.value, pair.version + 1)
            return PutReply(err=Err.OK)

    def kill(self) -> None:
        """Mark the server as no longer needed."""
        self._dead.set()