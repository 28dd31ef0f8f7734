# dqlite

A pure Python client layer for dqlite clusters. It covers the binary wire protocol and finding the cluster leader. It has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Modules

- `dqlite.store`: `NodeInfo` (`id`, `address`, `role`), `NodeRole` (`VOTER`, `STAND_BY`, `SPARE`), the abstract `NodeStore` and the in-memory `InmemNodeStore`.
- `dqlite.config`: `Config` holds the connection parameters. `dial(address, timeout)` is the default dialer. An address that starts with `@` is an abstract Unix socket. Any other address is a TCP `host:port`.
- `dqlite.connector`:
  - `Connector` finds the leader and returns a connected `Protocol`.
  - `handshake(conn, version, timeout)` sends the protocol version over an open socket.
- `dqlite.protocol`:
  - `Protocol` carries request/response exchanges over one connection. It provides `call`, `more`, `interrupt` and `close`, and it is a context manager.
  - `decode_node_compat` also reads the replies of pre-1.0 nodes.
- `dqlite.message`:
  - `Message` is the reusable, word-aligned message buffer.
  - `Result`, `Rows` and `Files` are decoded payloads.
- `dqlite.request`: the `encode_*` functions, one per request type. Examples are `encode_open`, `encode_prepare`, `encode_exec_sql`, `encode_query_sql`, `encode_add`, `encode_remove`, `encode_dump` and `encode_weight`.
- `dqlite.response`: the `decode_*` functions, one per response type. Examples are `decode_db`, `decode_stmt`, `decode_result`, `decode_rows`, `decode_nodes`, `decode_files` and `decode_metadata`.
- `dqlite.constants`:
  - `RequestType`, `ResponseType` and `ValueType`.
  - `VERSION_ONE` and `VERSION_LEGACY`.
  - `request_desc` and `response_desc`.
- `dqlite.logging`:
  - `Level` (`NONE`, `DEBUG`, `INFO`, `WARN`, `ERROR`).
  - `stdout_log_func()` prints messages on standard output.
  - `logger_log_func(logger)` forwards messages to a standard `logging.Logger`.
- `dqlite.errors`: the exceptions, all derived from `DqliteError`.

## Usage

```python
from dqlite.config import Config
from dqlite.connector import Connector
from dqlite.errors import EndOfRows, RowsPart
from dqlite.logging import stdout_log_func
from dqlite.message import Message
from dqlite.request import encode_exec_sql, encode_open, encode_query_sql
from dqlite.response import decode_db, decode_result, decode_rows
from dqlite.store import InmemNodeStore, NodeInfo

store = InmemNodeStore()
store.set([NodeInfo(id=1, address="127.0.0.1:9001")])

connector = Connector(0, store, Config(retry_limit=3), stdout_log_func())

with connector.connect(timeout=10.0) as protocol:
    request, response = Message(4096), Message(4096)

    encode_open(request, "app.db", 0, "volatile")
    protocol.call(request, response, timeout=5.0)
    db = decode_db(response)

    encode_exec_sql(request, db, "CREATE TABLE test (n INT, t TEXT)")
    protocol.call(request, response, timeout=5.0)

    encode_exec_sql(request, db, "INSERT INTO test (n, t) VALUES (?, ?)", [1, "a"])
    protocol.call(request, response, timeout=5.0)
    result = decode_result(response)
    print(result.last_insert_id, result.rows_affected)

    encode_query_sql(request, db, "SELECT n, t FROM test WHERE n > ?", [0])
    protocol.call(request, response, timeout=5.0)
    rows = decode_rows(response)
    print(rows.columns, rows.column_types())
    while True:
        try:
            print(rows.next())
        except RowsPart:
            # The rest of the result set comes in a further response.
            rows.close()
            protocol.more(response)
            rows = decode_rows(response)
        except EndOfRows:
            break
    rows.close()
```

### Parameters and values

Parameters are passed as a plain sequence. The supported types are:

- `int`
- `float`
- `bool`
- `bytes` (also `bytearray` and `memoryview`)
- `str`
- `None`
- `datetime.datetime`, which is sent as an ISO 8601 string with its UTC offset. A naive datetime is taken as local time.

Any other type raises `TypeError`. More than 255 parameters raise `MessageError`.

Row values are decoded to the same Python types. Time columns come back as timezone-aware `datetime` objects in local time.

### Leader discovery

`Connector.connect(timeout)` tries the stored nodes in order of role, voters first. When a node reports another node as the leader, the connector follows that hint once. A node that closes the connection on protocol version 1 is retried with the legacy version.

A full pass over all nodes is one attempt. Between attempts the connector backs off exponentially: `backoff_factor * 2**attempt`, capped at `backoff_cap`.

The connector raises `NoAvailableLeaderError` in two cases:

- `retry_limit` retries are used up (`0` means no limit);
- the timeout expires.

Every attempt is logged through the log function, prefixed with `attempt N: server ADDRESS: `.

A zero value in a `Config` field means the default:

| Field | Default |
| --- | --- |
| `dial` | `dqlite.config.dial` |
| `dial_timeout` | 5 s |
| `attempt_timeout` | 15 s |
| `backoff_factor` | 0.1 s |
| `backoff_cap` | 1 s |

### Errors

- `NoAvailableLeaderError`: no leader could be found.
- `RequestError`: the server answered with a failure response. It carries the `code` and the `description`.
- `MessageError`: a message could not be encoded or decoded, or the response type was not the expected one.
- `BadProtocolError`: the node does not speak the protocol version.
- `RowsPart` and `EndOfRows`: raised by `Rows.next()` to mark the end of a batch and the end of the result set.
- `SQLiteError` and `BadConnectionError`: available for code built on top of this package.

Network failures surface as `OSError` (including `TimeoutError`) or `EOFError`. Once a `Protocol` has hit a network error, every later `call` raises that same error.

## What this package does not do

- There is no SQL driver layer. The package has no connection, cursor, prepared-statement or transaction objects. You encode requests and decode responses yourself, as shown above.
- There is no cluster management client. The requests that add, remove, assign, transfer, dump, describe and weigh nodes can be encoded, but nothing wraps them.
- It does not run a dqlite node and has no command-line tool or interactive shell.
- The only node store is the in-memory one, so nothing is persisted.