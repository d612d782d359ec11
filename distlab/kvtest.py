"""Client workloads and result checks for the key/value services.

Clerks used here have ``get(key) -> (value, version)`` and
``put(key, value, version)``, both raising KVError on failure.
"""

from __future__ import annotations

import dataclasses
import json
import random
import string
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from .kvrpc import Err, KVError, MaybeError

ELECTION_TIMEOUT = 1.0

_LETTERS = string.ascii_lowercase + string.ascii_uppercase


class CheckError(AssertionError):
    """A workload observed a result the service must never produce."""


@dataclass
class ClntRes:
    """Counts of Puts that surely succeeded and that maybe succeeded."""

    nok: int = 0
    nmaybe: int = 0


@dataclass
class EntryV:
    id: int
    v: int


@dataclass
class EntryN:
    id: int
    n: int


def rand_value(n: int) -> str:
    """Random string of *n* ASCII letters."""
    return "".join(random.choices(_LETTERS, k=n))


def make_keys(n: int) -> list[str]:
    """Keys ``k0`` .. ``k{n-1}``."""
    return [f"k{i}" for i in range(n)]


def _json_default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"cannot serialize {type(obj).__name__}")


def get_json(ck: Any, key: str) -> tuple[Any, int]:
    """Get *key* and decode its JSON value; return ``(value, version)``."""
    try:
        raw, version = ck.get(key)
    except KVError as exc:
        raise CheckError(f"Get {key!r} err {exc.err.value}") from exc
    try:
        return json.loads(raw), version
    except json.JSONDecodeError as exc:
        raise CheckError(f"Unmarshal err at version {version}") from exc


def put_json(ck: Any, key: str, value: Any, version: int) -> None:
    """Put the JSON encoding of *value*; dataclasses become objects."""
    ck.put(key, json.dumps(value, default=_json_default), version)


def put_at_least_once(ck: Any, key: str, value: str, version: int) -> int:
    """Put until one attempt succeeds; return the version after it."""
    while True:
        try:
            ck.put(key, value, version)
        except (MaybeError,) as exc:
            del exc
            version += 1
            continue
        except KVError as exc:
            if exc.err == Err.VERSION:
                version += 1
            elif version != 0:
                raise CheckError(f"Put {key} ver {version} err {exc.err.value}") from exc
            continue
        return version + 1


def check_get(ck: Any, key: str, value: str, version: int) -> None:
    """Raise CheckError unless Get(key) returns exactly (value, version)."""
    try:
        got_value, got_version = ck.get(key)
    except KVError as exc:
        raise CheckError(f"Get({key}) returns error = {exc.err.value}") from exc
    if got_value != value or got_version != version:
        raise CheckError(
            f"Get({key}) returns ({got_value}, {got_version}) != ({value}, {version})"
        )


def one_put(me: int, ck: Any, key: str, version: int) -> tuple[int, bool]:
    """Keep putting ``EntryV(me, version)`` until a Put succeeds or maybe does.

    Returns the key's latest version and whether the Put surely succeeded.
    """
    while True:
        try:
            put_json(ck, key, EntryV(me, version), version)
            err = Err.OK
        except KVError as exc:
            err = exc.err
        if err not in (Err.OK, Err.VERSION, Err.MAYBE):
            raise CheckError(f"Wrong error {err.value}")
        raw, latest = get_json(ck, key)
        entry = EntryV(**raw)
        if err == Err.OK and latest == version + 1:
            if entry.id != me and entry.v != version:
                raise CheckError(f"Wrong value {entry}")
        version = latest
        if err in (Err.OK, Err.MAYBE):
            return version, err == Err.OK


def one_client_put(
    me: int, ck: Any, keys: Sequence[str], done: threading.Event, randomkeys: bool
) -> ClntRes:
    """Do one_put on the keys until *done* is set."""
    res = ClntRes()
    versions = {k: 0 for k in keys}
    while not done.is_set():
        key = random.choice(keys) if randomkeys else keys[0]
        versions[key], ok = one_put(me, ck, key, versions[key])
        if ok:
            res.nok += 1
        else:
            res.nmaybe += 1
    return res


def one_client_append(me: int, ck: Any, done: threading.Event) -> ClntRes:
    """Append ``EntryN(me, i)`` to the list stored under ``"k"`` until *done*.

    Each append reads the list and writes it back at the read version,
    retrying on conflicts.  An ErrMaybe counts as maybe and moves on.
    """
    nok = nmaybe = 0
    i = 0
    while not done.is_set():
        while True:
            entries, version = get_json(ck, "k")
            entries.append(EntryN(me, i))
            try:
                put_json(ck, "k", entries, version)
            except MaybeError:
                nmaybe += 1
                break
            except KVError:
                continue
            nok += 1
            break
        i += 1
    return ClntRes(nok, nmaybe)


def spawn_clients_and_wait(
    nclnt: int,
    duration: float,
    make_clerk: Callable[[], Any],
    fn: Callable[[int, Any, threading.Event], ClntRes],
) -> list[ClntRes]:
    """Run *fn* in *nclnt* threads for *duration* seconds; return their results.

    An exception raised in a client is re-raised here.
    """
    done = threading.Event()

    def run(me: int) -> ClntRes:
        return fn(me, make_clerk(), done)

    with ThreadPoolExecutor(max_workers=max(1, nclnt)) as pool:
        futures = [pool.submit(run, me) for me in range(nclnt)]
        try:
            time.sleep(duration)
        finally:
            done.set()
        return [f.result() for f in futures]


def check_put_concurrent(version: int, results: Sequence[ClntRes], reliable: bool) -> ClntRes:
    """Check the server's version against the clients' counts; return the totals."""
    total = ClntRes()
    for r in results:
        total.nok += r.nok
        total.nmaybe += r.nmaybe
    if reliable:
        if version != total.nok:
            raise CheckError(f"Reliable: Wrong number of puts: server {version} clnts {total}")
    elif version > total.nok + total.nmaybe:
        raise CheckError(f"Unreliable: Wrong number of puts: server {version} clnts {total}")
    return total


def check_appends(
    entries: Sequence[EntryN], nclnt: int, results: Sequence[ClntRes], version: int
) -> dict[int, int]:
    """Check an appended list; return how many entries each client skipped."""
    expect = {i: 0 for i in range(nclnt)}
    skipped = {i: 0 for i in range(nclnt)}
    for e in entries:
        want = expect.get(e.id, 0)
        if want > e.n:
            raise CheckError(f"{e.id}: wrong expecting {want} but got {e.n}")
        if want == e.n:
            expect[e.id] = want + 1
        else:
            expect[e.id] = e.n + 1
            skipped[e.id] = skipped.get(e.id, 0) + (e.n - want)
    if len(entries) + 1 != version:
        raise CheckError(f"{len(entries)} appends in val != puts on server {version}")
    for c, n in expect.items():
        r = results[c]
        if skipped.get(c, 0) > r.nmaybe:
            raise CheckError(f"{c}: skipped puts {skipped[c]} on server > {r.nmaybe} maybe")
        if n > r.nok + r.nmaybe:
            raise CheckError(f"{c}: {n} puts on server > ok+maybe {r.nok + r.nmaybe}")
    return skipped