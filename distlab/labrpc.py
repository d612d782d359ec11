"""In-process RPC over a simulated network.

The network can lose requests and replies, delay messages, reorder replies
and disconnect individual client end-points.  Arguments and replies are
serialized with labgob on the way through, so an RPC never shares objects
between caller and handler.

A handler is a public method of a service object that takes one argument
(the request) and returns the reply.  Methods are addressed as
``"ClassName.method"``.
"""

from __future__ import annotations

import io
import queue
import random
import threading
import time
from typing import Any, Callable, Hashable

from .labgob import LabDecoder, LabEncoder

SHORTDELAY = 27  # ms
LONGDELAY = 7000  # ms
MAXDELAY = LONGDELAY + 100

_POLL_INTERVAL = 0.1


class RPCFailed(Exception):
    """No reply was received: lost request or reply, dead server, or no network."""


def _pack(value: Any) -> bytes:
    buf = io.BytesIO()
    LabEncoder(buf).encode(value)
    return buf.getvalue()


def _unpack(data: bytes) -> Any:
    return LabDecoder(io.BytesIO(data)).decode()


class Service:
    """An object whose one-argument public methods handle RPCs."""

    def __init__(self, receiver: Any) -> None:
        self.name = type(receiver).__name__
        self._methods: dict[str, Callable[[Any], Any]] = {}
        for attr_name in dir(type(receiver)):
            if attr_name.startswith("_"):
                continue
            method = getattr(receiver, attr_name, None)
            if callable(method) and not isinstance(method, type) and _takes_one_argument(method):
                self._methods[attr_name] = method

    @property
    def methods(self) -> list[str]:
        """Names of the handler methods."""
        return sorted(self._methods)

    def _dispatch(self, method_name: str, svc_meth: str, payload: bytes) -> bytes:
        method = self._methods.get(method_name)
        if method is None:
            raise LookupError(
                f"unknown method {method_name} in {svc_meth}; expecting one of {self.methods}"
            )
        reply = method(_unpack(payload))
        return _pack(reply)


def _takes_one_argument(method: Callable[..., Any]) -> bool:
    """True for a bound method taking exactly one positional argument."""
    func = getattr(method, "__func__", None)
    code = getattr(func, "__code__", None)
    if code is None:
        return False
    positional = code.co_argcount - 1  # the receiver itself
    kwdefaults = getattr(func, "__kwdefaults__", None) or {}
    required_kwonly = code.co_kwonlyargcount - len(kwdefaults)
    return positional == 1 and required_kwonly == 0


class Server:
    """A collection of services sharing one RPC end-point."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._services: dict[str, Service] = {}
        self._count = 0

    def add_service(self, service: Service) -> None:
        with self._lock:
            self._services[service.name] = service

    def get_count(self) -> int:
        """Number of RPCs delivered to this server."""
        with self._lock:
            return self._count

    def _dispatch(self, svc_meth: str, payload: bytes) -> bytes:
        with self._lock:
            self._count += 1
            service_name, _, method_name = svc_meth.rpartition(".")
            service = self._services.get(service_name)
            choices = sorted(self._services)
        if service is None:
            raise LookupError(
                f"unknown service {service_name} in {svc_meth}; expecting one of {choices}"
            )
        return service._dispatch(method_name, svc_meth, payload)


class ClientEnd:
    """A client's end-point for talking to one server."""

    def __init__(self, endname: Hashable, network: Network) -> None:
        self.endname = endname
        self._network = network

    def call(self, svc_meth: str, args: Any) -> Any:
        """Send an RPC and return the reply; raise RPCFailed if none arrives."""
        network = self._network
        if network._done.is_set():
            raise RPCFailed("network has been cleaned up")
        payload = _pack(args)
        network._account_request(len(payload))
        return _unpack(network._process(self.endname, svc_meth, payload))


class Network:
    """Holds end-points, servers and the connections between them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reliable = True
        self._long_delays = False
        self._long_reordering = False
        self._ends: dict[Hashable, ClientEnd] = {}
        self._enabled: dict[Hashable, bool] = {}
        self._servers: dict[Hashable, Server | None] = {}
        self._connections: dict[Hashable, Hashable | None] = {}
        self._done = threading.Event()
        self._stats_lock = threading.Lock()
        self._count = 0
        self._bytes = 0

    def __enter__(self) -> Network:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        """Shut the network down; later calls fail at once."""
        self._done.set()

    def reliable(self, yes: bool) -> None:
        with self._lock:
            self._reliable = yes

    def is_reliable(self) -> bool:
        with self._lock:
            return self._reliable

    def long_reordering(self, yes: bool) -> None:
        with self._lock:
            self._long_reordering = yes

    def long_delays(self, yes: bool) -> None:
        with self._lock:
            self._long_delays = yes

    def is_long_delays(self) -> bool:
        with self._lock:
            return self._long_delays

    def make_end(self, endname: Hashable) -> ClientEnd:
        """Create a disabled, unconnected client end-point."""
        with self._lock:
            if endname in self._ends:
                raise ValueError(f"end {endname!r} already exists")
            end = ClientEnd(endname, self)
            self._ends[endname] = end
            self._enabled[endname] = False
            self._connections[endname] = None
            return end

    def delete_end(self, endname: Hashable) -> None:
        with self._lock:
            if endname not in self._ends:
                raise KeyError(f"end {endname!r} doesn't exist")
            del self._ends[endname]
            del self._enabled[endname]
            del self._connections[endname]

    def add_server(self, servername: Hashable, server: Server) -> None:
        with self._lock:
            self._servers[servername] = server

    def delete_server(self, servername: Hashable) -> None:
        with self._lock:
            self._servers[servername] = None

    def connect(self, endname: Hashable, servername: Hashable) -> None:
        with self._lock:
            self._connections[endname] = servername

    def enable(self, endname: Hashable, enabled: bool) -> None:
        with self._lock:
            self._enabled[endname] = enabled

    def get_count(self, servername: Hashable) -> int:
        """Number of RPCs delivered to the named server."""
        with self._lock:
            server = self._servers.get(servername)
        if server is None:
            raise KeyError(f"no server {servername!r}")
        return server.get_count()

    def get_total_count(self) -> int:
        with self._stats_lock:
            return self._count

    def get_total_bytes(self) -> int:
        with self._stats_lock:
            return self._bytes

    def _account_request(self, size: int) -> None:
        with self._stats_lock:
            self._count += 1
            self._bytes += size

    def _account_bytes(self, size: int) -> None:
        with self._stats_lock:
            self._bytes += size

    def _read_end_info(
        self, endname: Hashable
    ) -> tuple[bool, Hashable | None, Server | None, bool, bool]:
        with self._lock:
            enabled = self._enabled.get(endname, False)
            servername = self._connections.get(endname)
            server = self._servers.get(servername) if servername is not None else None
            return enabled, servername, server, self._reliable, self._long_reordering

    def _is_server_dead(self, endname: Hashable, servername: Hashable, server: Server) -> bool:
        with self._lock:
            return not self._enabled.get(endname, False) or self._servers.get(servername) is not server

    def _process(self, endname: Hashable, svc_meth: str, payload: bytes) -> bytes:
        enabled, servername, server, reliable, long_reordering = self._read_end_info(endname)

        if not (enabled and servername is not None and server is not None):
            # Simulate no reply and an eventual timeout.
            if self.is_long_delays():
                ms = random.randrange(LONGDELAY)
            else:
                ms = random.randrange(100)
            time.sleep(ms / 1000)
            raise RPCFailed(f"no reply for {svc_meth}")

        if not reliable:
            time.sleep(random.randrange(SHORTDELAY) / 1000)
            if random.randrange(1000) < 100:
                raise RPCFailed(f"request for {svc_meth} lost")

        results: queue.Queue[tuple[bool, Any]] = queue.Queue(maxsize=1)

        def run_handler() -> None:
            try:
                results.put((True, server._dispatch(svc_meth, payload)))
            except Exception as exc:  # handed back to the caller
                results.put((False, exc))

        threading.Thread(target=run_handler, daemon=True).start()

        outcome: tuple[bool, Any] | None = None
        while outcome is None:
            try:
                outcome = results.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if self._is_server_dead(endname, servername, server):
                    break

        # Never reply for a server that has been deleted meanwhile.
        if outcome is None or self._is_server_dead(endname, servername, server):
            raise RPCFailed(f"server died during {svc_meth}")

        ok, value = outcome
        if not ok:
            raise value

        if not reliable and random.randrange(1000) < 100:
            raise RPCFailed(f"reply for {svc_meth} lost")
        if long_reordering and random.randrange(900) < 600:
            ms = 200 + random.randrange(1 + random.randrange(2000))
            time.sleep(ms / 1000)
        self._account_bytes(len(value))
        return value