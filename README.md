# distlab

Building blocks for experimenting with distributed systems, all running in a
single Python process or on one machine.

## What is in the package

- **`distlab.labrpc`**: an in-process RPC layer over a simulated network.
  A `Network` holds client end-points (`make_end`), servers (`add_server`,
  `delete_server`) and the connections between them (`connect`, `enable`).
  It can lose requests and replies (`reliable(False)`), delay calls on
  disconnected ends (`long_delays(True)`) and hold back replies
  (`long_reordering(True)`), and it counts RPCs and bytes (`get_count`,
  `get_total_count`, `get_total_bytes`). A `Server` groups `Service`
  objects; a service's handlers are its public methods that take one
  argument and return the reply, addressed as `"ClassName.method"`.
  `ClientEnd.call(svc_meth, args)` returns the reply or raises `RPCFailed`.
  Arguments and replies are serialized on the way through, so caller and
  handler never share objects.
- **`distlab.labgob`**: the serializer used for RPC payloads. `LabEncoder`
  writes length-prefixed frames; `LabDecoder.decode()` reads them back and
  `decode_into(target)` fills an existing dataclass, list or dict.
  Dataclasses and enums can be registered with `register` or
  `register_name`. It reports dataclass fields whose names start with an
  underscore (they are never transmitted) and decoding into a target that
  already holds non-default values; `error_count()` returns how many such
  problems were reported.
- **`distlab.kvrpc`**: the messages of the key/value service (`PutArgs`,
  `PutReply`, `GetArgs`, `GetReply`), the `Err` codes, the exceptions
  `KVError`, `NoKeyError`, `VersionError` and `MaybeError`, and
  `raise_for_err`, which turns a code into the matching exception.
- **`distlab.kvserver`**: `KVServer`, a versioned key/value store. `put`
  succeeds only when the given version equals the stored one, which then
  goes up by one; version 0 creates a missing key, any other version on a
  missing key gives `ErrNoKey`.
- **`distlab.clerk`**: `Clerk`, the client of a `KVServer`, given any
  end-point with a `call` method. `get(key)` returns `(value, version)` or
  raises `NoKeyError`, retrying every other failure. `put(key, value,
  version)` raises `VersionError` when its first attempt is refused and
  `MaybeError` when a resent attempt is refused, since an earlier one may
  already have been applied.
- **`distlab.lock`**: `Lock(ck, key)`, a lock kept in one key of the
  service, with `acquire()`, `release()` and use as a context manager.
- **`distlab.models`**: the sequential model of one versioned key
  (`partition`, `init_state`, `step`, `describe_operation`) and the
  `Operation` record.
- **`distlab.history`**: `OpLog`, a thread-safe list of operations, and
  `RecordingClerk`, which wraps a clerk and records every `get` and `put`
  with its call and return times.
- **`distlab.kvtest`**: client workloads and result checks:
  `spawn_clients_and_wait`, `one_client_put`, `one_put`,
  `one_client_append`, `put_at_least_once`, `get_json`, `put_json`,
  `check_get`, `check_put_concurrent`, `check_appends`, plus `rand_value`
  and `make_keys`. A failed check raises `CheckError`.
- **MapReduce**: a coordinator (`distlab.coordinator`), workers
  (`distlab.worker`), a single-process reference runner
  (`distlab.sequential`), shared types (`distlab.mrtypes`) and applications
  in `distlab.mrapps`.

## Installation

```
pip install .
```

Python 3.10 or later is required. There are no third-party runtime
dependencies. The MapReduce coordinator and workers use Unix-domain
sockets, so they need a POSIX system.

## Example: key/value service over the simulated network

```python
from distlab.clerk import Clerk
from distlab.kvserver import KVServer
from distlab.labrpc import Network, Server, Service

with Network() as net:
    server = Server()
    server.add_service(Service(KVServer()))
    net.add_server("kv", server)
    end = net.make_end("client-0")
    net.connect("client-0", "kv")
    net.enable("client-0", True)

    ck = Clerk(end)
    ck.put("k", "hello", 0)
    print(ck.get("k"))  # ('hello', 1)
```

## Running MapReduce

Each application is a module in `distlab.mrapps` with a `map_func` and a
`reduce_func`. `distlab.mrapps.registry.load_app(name)` finds one by name;
a file name such as `../mrapps/wc.so` is accepted too and reduced to its
stem.

| name         | what it does                                                     |
|--------------|------------------------------------------------------------------|
| `wc`         | word count                                                       |
| `indexer`    | for each word, the number and sorted names of documents with it  |
| `crash`      | sometimes exits or stalls, to exercise recovery                  |
| `nocrash`    | same output as `crash`, without failures                         |
| `early_exit` | one value per input file; some reduces take three seconds        |
| `jobcount`   | counts how many times map tasks ran                              |
| `mtiming`    | reports how many map tasks ran in parallel                       |
| `rtiming`    | reports how many reduce tasks ran in parallel                    |

### Sequential reference run

```
distlab-mrsequential wc pg-*.txt
```

This reads every input file, runs map and reduce in one process, and writes
one `key value` line per distinct key to `mr-out-0`.

### Coordinator and workers

Start the coordinator with the input files. It creates one map task per
file and ten reduce tasks:

```
distlab-mrcoordinator pg-*.txt
```

In other terminals, start as many workers as you like, naming the
application:

```
distlab-mrworker wc
```

Workers talk to the coordinator over the Unix-domain socket
`/var/tmp/5840-mr-<uid>`. Map tasks write intermediate files named
`mr-<map>-<reduce>` (one JSON pair per line); reduce tasks write
`mr-out-<reduce>`. A task not finished within ten seconds is handed to
another worker. Reduce tasks are handed out only after every map task is
done. The coordinator exits once every task is complete; a worker exits
when the coordinator tells it the job is done, and exits with an error when
the coordinator cannot be reached.

To compare a distributed run with the reference run:

```
cat mr-out-* | sort > distributed.txt
```

## What the package does not do

- The key/value service runs on one `KVServer`; there is no replicated,
  fault-tolerant version of it and no consensus layer.
- `distlab.models` and `distlab.history` describe and record operations,
  but the package has no linearizability checker that searches a recorded
  history, and produces no visualization of one.

## Running the tests

```
pip install ".[test]"
pytest
```