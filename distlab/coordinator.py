"""MapReduce coordinator: hands out map and reduce tasks to workers.

Workers talk to the coordinator over a UNIX-domain socket.  Each call is
one connection carrying two labgob frames, the method name and its
argument; the coordinator answers with one frame ``("ok", result)`` or
``("err", message)``.
"""

from __future__ import annotations

import dataclasses
import os
import socketserver
import sys
import threading
import time
from typing import Any, Callable, Sequence

from . import labgob
from .mrtypes import (
    MapReduceTask,
    RequestTaskReply,
    TaskStatus,
    TaskType,
    coordinator_sock,
)

TASK_TIMEOUT = 10.0
N_REDUCE = 10

for _cls in (TaskType, TaskStatus, MapReduceTask, RequestTaskReply):
    labgob.register(_cls)


def _copy_task(task: MapReduceTask) -> MapReduceTask:
    return dataclasses.replace(
        task, input_files=list(task.input_files), output_files=list(task.output_files)
    )


class _Handler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        decoder = labgob.LabDecoder(self.rfile)
        try:
            rpcname = decoder.decode()
            args = decoder.decode()
        except (EOFError, labgob.LabGobError):
            return
        try:
            result: tuple[str, Any] = ("ok", self.server.coordinator._dispatch(rpcname, args))
        except Exception as exc:  # reported back to the caller
            result = ("err", f"{type(exc).__name__}: {exc}")
        labgob.LabEncoder(self.wfile).encode(result)


class _RPCServer(socketserver.ThreadingUnixStreamServer):
    daemon_threads = True

    def __init__(self, sockname: str, coordinator: Coordinator) -> None:
        self.coordinator = coordinator
        super().__init__(sockname, _Handler)


class Coordinator:
    """Tracks the map and reduce tasks of one job."""

    def __init__(
        self,
        files: Sequence[str],
        n_reduce: int,
        *,
        task_timeout: float = TASK_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = threading.Lock()
        self._n_reduce = n_reduce
        self._timeout = task_timeout
        self._clock = clock
        self._map_tasks = [
            MapReduceTask(
                task_type=TaskType.MAP,
                task_status=TaskStatus.AVAILABLE,
                task_id=i,
                input_files=[filename],
            )
            for i, filename in enumerate(files)
        ]
        self._reduce_tasks = [
            MapReduceTask(
                task_type=TaskType.REDUCE,
                task_status=TaskStatus.AVAILABLE,
                task_id=i,
                input_files=[f"mr-*-{i}"],
                output_files=[f"mr-out-{i}"],
            )
            for i in range(n_reduce)
        ]
        self._completed_map = 0
        self._completed_reduce = 0
        self._server: _RPCServer | None = None
        self._thread: threading.Thread | None = None
        self._sockname: str | None = None
        self._handlers: dict[str, Callable[[Any], Any]] = {
            "Coordinator.get_task": lambda args: self.get_task(),
            "Coordinator.notify_task_complete": self._notify_rpc,
        }

    def __enter__(self) -> Coordinator:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _assign(self, tasks: list[MapReduceTask]) -> RequestTaskReply:
        now = self._clock()
        for task in tasks:
            stale = (
                task.task_status == TaskStatus.PENDING
                and now - task.start_time > self._timeout
            )
            if task.task_status == TaskStatus.AVAILABLE or stale:
                reply = RequestTaskReply(task=_copy_task(task), n_reduce=self._n_reduce)
                task.task_status = TaskStatus.PENDING
                task.start_time = now
                return reply
        return RequestTaskReply(task=MapReduceTask(task_type=TaskType.WAITING))

    def get_task(self) -> RequestTaskReply:
        """Hand out the next task, or tell the worker to wait or exit."""
        with self._lock:
            if self._completed_reduce == len(self._reduce_tasks):
                return RequestTaskReply(task=MapReduceTask(task_type=TaskType.EXIT))
            if self._completed_map == len(self._map_tasks):
                return self._assign(self._reduce_tasks)
            return self._assign(self._map_tasks)

    def notify_task_complete(self, reply: RequestTaskReply) -> None:
        """Record that the task in *reply* has been finished by a worker."""
        with self._lock:
            if reply.task.task_type == TaskType.MAP:
                tasks = self._map_tasks
                self._completed_map += 1
            else:
                tasks = self._reduce_tasks
                self._completed_reduce += 1
            for task in tasks:
                if task.task_id == reply.task.task_id:
                    task.task_status = TaskStatus.COMPLETED
                    task.end_time = self._clock()
                    break

    def _notify_rpc(self, args: Any) -> None:
        if not isinstance(args, RequestTaskReply):
            raise TypeError(f"expected RequestTaskReply, got {type(args).__name__}")
        self.notify_task_complete(args)

    def _dispatch(self, rpcname: Any, args: Any) -> Any:
        handler = self._handlers.get(rpcname)
        if handler is None:
            raise LookupError(f"unknown method {rpcname}; expecting one of {sorted(self._handlers)}")
        return handler(args)

    def done(self) -> bool:
        """Whether every map and every reduce task has completed."""
        with self._lock:
            return self._completed_map == len(self._map_tasks) and self._completed_reduce == len(
                self._reduce_tasks
            )

    def serve(self, sockname: str | None = None) -> None:
        """Start answering worker calls on a UNIX-domain socket."""
        if self._server is not None:
            raise RuntimeError("coordinator is already serving")
        path = sockname or coordinator_sock()
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        self._server = _RPCServer(path, self)
        self._sockname = path
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def close(self) -> None:
        """Stop serving and remove the socket."""
        server, self._server = self._server, None
        if server is None:
            return
        server.shutdown()
        server.server_close()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        if self._sockname is not None:
            try:
                os.remove(self._sockname)
            except FileNotFoundError:
                pass
            self._sockname = None


def make_coordinator(
    files: Sequence[str], n_reduce: int, sockname: str | None = None
) -> Coordinator:
    """Create a coordinator for *files* with *n_reduce* reduce tasks and start serving."""
    coordinator = Coordinator(files, n_reduce)
    coordinator.serve(sockname)
    return coordinator


def main(argv: Sequence[str] | None = None) -> int:
    """Run a coordinator over the input files until the job is done."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: mrcoordinator inputfiles...", file=sys.stderr)
        return 1
    coordinator = make_coordinator(args, N_REDUCE)
    try:
        while not coordinator.done():
            time.sleep(1)
        time.sleep(1)
    finally:
        coordinator.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())