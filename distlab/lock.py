"""A lock built on the versioned key/value service.

The lock key's version tells its state: even means free, odd means held.
Acquiring writes a fresh random value; releasing rewrites the same value,
which moves the version back to even.
"""

from __future__ import annotations

import time
from typing import Any

from .kvrpc import KVError, MaybeError, NoKeyError
from .kvtest import rand_value

_POLL_INTERVAL = 0.05


def wait_for_get_ok(ck: Any, key: str) -> tuple[str, int]:
    """Call ``ck.get(key)`` until it succeeds and return ``(value, version)``."""
    while True:
        try:
            return ck.get(key)
        except KVError:
            time.sleep(_POLL_INTERVAL)


class Lock:
    """Mutual exclusion among clients sharing one key/value service."""

    def __init__(self, ck: Any, key: str) -> None:
        self._ck = ck
        self._key = key
        self._value = ""

    def __enter__(self) -> Lock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()

    def acquire(self) -> None:
        """Block until this client holds the lock."""
        while True:
            try:
                _, version = self._ck.get(self._key)
                free = version % 2 == 0
            except NoKeyError:
                version, free = 0, True
            except KVError:
                version, free = 0, False
            if free:
                self._value = rand_value(8)
                try:
                    self._ck.put(self._key, self._value, version)
                    return
                except MaybeError:
                    value, new_version = wait_for_get_ok(self._ck, self._key)
                    if new_version != version and value == self._value:
                        return
                except KVError:
                    pass
            time.sleep(_POLL_INTERVAL)

    def release(self) -> None:
        """Give the lock up; do nothing if another client holds it."""
        while True:
            value, version = wait_for_get_ok(self._ck, self._key)
            if value != self._value:
                return
            try:
                self._ck.put(self._key, self._value, version)
                return
            except MaybeError:
                _, new_version = wait_for_get_ok(self._ck, self._key)
                if new_version == version + 1:
                    return
            except KVError:
                pass
            time.sleep(_POLL_INTERVAL)