import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import pytest

from distlab.labrpc import Network, RPCFailed, Server, Service


@dataclass
class JunkArgs:
    x: int = 0


@dataclass
class JunkReply:
    x: str = ""


class JunkServer:
    def __init__(self):
        self.mu = threading.Lock()
        self.log1 = []
        self.log2 = []
        self.release = threading.Event()

    def handler1(self, args):
        with self.mu:
            self.log1.append(args)
            return int(args)

    def handler2(self, args):
        with self.mu:
            self.log2.append(args)
            return "handler2-" + str(args)

    def handler3(self, args):
        with self.mu:
            self.release.wait(20)
            return -args

    def handler4(self, args):
        return JunkReply("pointer")

    def handler5(self, args):
        return JunkReply("no pointer")

    def handler6(self, args):
        with self.mu:
            return len(args)

    def handler7(self, args):
        with self.mu:
            return "y" * args

    def _private(self, args):
        return args


def _setup(servername="server99", endname="end1-99", enable=True):
    rn = Network()
    e = rn.make_end(endname)
    js = JunkServer()
    rs = Server()
    rs.add_service(Service(js))
    rn.add_server(servername, rs)
    rn.connect(endname, servername)
    if enable:
        rn.enable(endname, True)
    return rn, e, js


def _shared_server(servername=1000):
    rn = Network()
    js = JunkServer()
    rs = Server()
    rs.add_service(Service(js))
    rn.add_server(servername, rs)
    return rn, js


def test_basic():
    rn, e, _ = _setup()
    with rn:
        assert e.call("JunkServer.handler2", 111) == "handler2-111"
        assert e.call("JunkServer.handler1", "9099") == 9099


def test_types():
    rn, e, _ = _setup()
    with rn:
        reply = e.call("JunkServer.handler4", JunkArgs())
        assert reply == JunkReply("pointer")
        reply = e.call("JunkServer.handler5", JunkArgs())
        assert reply.x == "no pointer"


def test_disconnect():
    rn, e, _ = _setup(enable=False)
    with rn:
        with pytest.raises(RPCFailed):
            e.call("JunkServer.handler2", 111)
        rn.enable("end1-99", True)
        assert e.call("JunkServer.handler1", "9099") == 9099


def test_counts():
    rn, e, _ = _setup(servername=99)
    with rn:
        for i in range(17):
            assert e.call("JunkServer.handler2", i) == "handler2-" + str(i)
        assert rn.get_count(99) == 17
        assert rn.get_total_count() == 17


def test_bytes():
    rn, e, _ = _setup(servername=99)
    with rn:
        for _ in range(17):
            args = "x" * 72
            args = args + args
            args = args + args
            assert e.call("JunkServer.handler6", args) == len(args)
        n = rn.get_total_bytes()
        assert 4828 <= n <= 6000

        for _ in range(17):
            assert len(e.call("JunkServer.handler7", 107)) == 107
        nn = rn.get_total_bytes() - n
        assert 1800 <= nn <= 2500


def test_concurrent_many():
    rn, _ = _shared_server()
    nclients, nrpcs = 20, 10
    counts = [0] * nclients
    errors = []

    def client(i):
        e = rn.make_end(i)
        rn.connect(i, 1000)
        rn.enable(i, True)
        for j in range(nrpcs):
            arg = i * 100 + j
            reply = e.call("JunkServer.handler2", arg)
            if reply != "handler2-" + str(arg):
                errors.append(reply)
            counts[i] += 1

    with rn:
        threads = [threading.Thread(target=client, args=(i,)) for i in range(nclients)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        total = sum(counts)
        assert total == nclients * nrpcs
        assert rn.get_count(1000) == total


def test_concurrent_one():
    rn, js = _shared_server()
    e = rn.make_end("c")
    rn.connect("c", 1000)
    rn.enable("c", True)
    nrpcs = 20
    replies = [None] * nrpcs

    def client(i):
        replies[i] = e.call("JunkServer.handler2", 100 + i)

    with rn:
        threads = [threading.Thread(target=client, args=(i,)) for i in range(nrpcs)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert replies == ["handler2-" + str(100 + i) for i in range(nrpcs)]
        with js.mu:
            assert len(js.log2) == nrpcs
        assert rn.get_count(1000) == nrpcs


def test_regression1():
    rn, js = _shared_server()
    e = rn.make_end("c")
    rn.connect("c", 1000)
    rn.enable("c", False)
    nrpcs = 20
    failed = [False] * nrpcs

    def client(i):
        try:
            e.call("JunkServer.handler2", 100 + i)
        except RPCFailed:
            failed[i] = True

    with rn:
        threads = [threading.Thread(target=client, args=(i,)) for i in range(nrpcs)]
        for t in threads:
            t.start()
        time.sleep(0.1)

        t0 = time.monotonic()
        rn.enable("c", True)
        assert e.call("JunkServer.handler2", 99) == "handler2-99"
        assert time.monotonic() - t0 < 0.1

        for t in threads:
            t.join()
        assert all(failed)
        with js.mu:
            assert len(js.log2) == 1
        assert rn.get_count(1000) == 1


def test_killed():
    rn, e, js = _setup()
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        with rn:
            future = executor.submit(e.call, "JunkServer.handler3", 99)
            time.sleep(0.5)
            assert future.done() is False
            rn.delete_server("server99")
            with pytest.raises(RPCFailed):
                future.result(timeout=0.5)
    finally:
        js.release.set()
        executor.shutdown(wait=False)


def test_benchmark():
    rn, e, _ = _setup()
    with rn:
        replies = {e.call("JunkServer.handler2", 111) for _ in range(1000)}
        assert replies == {"handler2-111"}
        assert rn.get_total_count() == 1000


def test_long_delay_race():
    rn, e, _ = _setup()
    with rn:
        assert e.call("JunkServer.handler1", "9099") == 9099
        rn.long_delays(True)
        rn.delete_server("server99")
        done = threading.Event()

        def client():
            try:
                e.call("JunkServer.handler1", "9099")
            except RPCFailed:
                pass
            done.set()

        threading.Thread(target=client, daemon=True).start()
        rn.long_delays(True)
        done.wait(0.2)
        rn.long_delays(True)
        assert rn.is_long_delays() is True


def test_unknown_method_raises():
    rn, e, _ = _setup()
    with rn:
        with pytest.raises(LookupError):
            e.call("JunkServer.nothing", 1)
        with pytest.raises(LookupError):
            e.call("JunkServer._private", 1)


def test_unknown_service_raises():
    rn, e, _ = _setup()
    with rn:
        with pytest.raises(LookupError):
            e.call("Missing.handler2", 1)


def test_service_methods_listing():
    svc = Service(JunkServer())
    assert svc.name == "JunkServer"
    assert "handler2" in svc.methods
    assert "_private" not in svc.methods


def test_duplicate_end_rejected():
    rn = Network()
    with rn:
        rn.make_end("a")
        with pytest.raises(ValueError):
            rn.make_end("a")
        rn.delete_end("a")
        with pytest.raises(KeyError):
            rn.delete_end("a")


def test_call_after_cleanup_fails():
    rn, e, _ = _setup()
    rn.cleanup()
    with pytest.raises(RPCFailed):
        e.call("JunkServer.handler2", 1)
    assert rn.get_total_count() == 0


def test_server_get_count_matches_network():
    rn, e, _ = _setup()
    with rn:
        for i in range(3):
            e.call("JunkServer.handler2", i)
        assert rn.get_count("server99") == 3
        with pytest.raises(KeyError):
            rn.get_count("nobody")


def test_long_reordering_still_delivers():
    rn, e, _ = _setup()
    with rn:
        rn.long_reordering(True)
        assert e.call("JunkServer.handler2", 5) == "handler2-5"
        assert rn.get_count("server99") == 1