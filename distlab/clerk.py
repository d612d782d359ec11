"""Client of the single key/value server."""

from __future__ import annotations

import time
from typing import Any

from .kvrpc import Err, GetArgs, MaybeError, NoKeyError, PutArgs, VersionError, raise_for_err
from .labrpc import RPCFailed

_RETRY_INTERVAL = 0.1


class Clerk:
    """Talks to one KVServer through an end-point with a ``call`` method."""

    def __init__(self, end: Any, *, retry_interval: float = _RETRY_INTERVAL) -> None:
        self._end = end
        self._retry_interval = retry_interval

    def get(self, key: str) -> tuple[str, int]:
        """Return ``(value, version)``; raise NoKeyError if the key is absent.

        Every other failure is retried forever.
        """
        args = GetArgs(key=key)
        while True:
            try:
                reply = self._end.call("KVServer.get", args)
            except RPCFailed:
                continue
            if reply.err == Err.OK:
                return reply.value, reply.version
            if reply.err == Err.NO_KEY:
                raise NoKeyError(key)

    def put(self, key: str, value: str, version: int) -> None:
        """Store *value* under *key* if *version* matches the server's.

        Raises VersionError if the first attempt was refused, MaybeError if a
        resent request was refused (the earlier one may have been applied),
        and NoKeyError for a missing key with a non-zero version.
        """
        args = PutArgs(key=key, value=value, version=version)
        first_try = True
        while True:
            try:
                reply = self._end.call("KVServer.put", args)
            except RPCFailed:
                time.sleep(self._retry_interval)
                first_try = False
                continue
            if reply.err == Err.VERSION:
                if first_try:
                    raise VersionError(key)
                raise MaybeError(key)
            raise_for_err(reply.err)
            return