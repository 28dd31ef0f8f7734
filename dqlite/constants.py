"""Wire protocol constants."""

from __future__ import annotations

import enum

VERSION_ONE = 1
"""Version 1 of the server protocol."""

VERSION_LEGACY = 0x86104DD760433FE5
"""The pre 1.0 server protocol version."""

CLUSTER_FORMAT_V0 = 0
CLUSTER_FORMAT_V1 = 1

REQUEST_DESCRIBE_FORMAT_V0 = 0


class ValueType(enum.IntEnum):
    """Type codes of values carried in parameters and result rows."""

    INTEGER = 1
    FLOAT = 2
    TEXT = 3
    BLOB = 4
    NULL = 5
    UNIX_TIME = 9
    ISO8601 = 10
    BOOLEAN = 11


class RequestType(enum.IntEnum):
    """Request message types."""

    LEADER = 0
    CLIENT = 1
    HEARTBEAT = 2
    OPEN = 3
    PREPARE = 4
    EXEC = 5
    QUERY = 6
    FINALIZE = 7
    EXEC_SQL = 8
    QUERY_SQL = 9
    INTERRUPT = 10
    ADD = 12
    ASSIGN = 13
    REMOVE = 14
    DUMP = 15
    CLUSTER = 16
    TRANSFER = 17
    DESCRIBE = 18
    WEIGHT = 19


class ResponseType(enum.IntEnum):
    """Response message types."""

    FAILURE = 0
    NODE = 1
    NODE_LEGACY = 1
    WELCOME = 2
    NODES = 3
    DB = 4
    STMT = 5
    RESULT = 6
    ROWS = 7
    EMPTY = 8
    FILES = 9
    METADATA = 10


_REQUEST_DESCRIPTIONS = {
    RequestType.LEADER: "leader",
    RequestType.CLIENT: "client",
    RequestType.HEARTBEAT: "heartbeat",
    RequestType.OPEN: "open",
    RequestType.PREPARE: "prepare",
    RequestType.EXEC: "exec",
    RequestType.QUERY: "query",
    RequestType.FINALIZE: "finalize",
    RequestType.EXEC_SQL: "exec-sql",
    RequestType.QUERY_SQL: "query-sql",
    RequestType.INTERRUPT: "interrupt",
    RequestType.ADD: "add",
    RequestType.ASSIGN: "assign",
    RequestType.REMOVE: "remove",
    RequestType.DUMP: "dump",
    RequestType.CLUSTER: "cluster",
    RequestType.TRANSFER: "transfer",
    RequestType.DESCRIBE: "describe",
}

_RESPONSE_DESCRIPTIONS = {
    ResponseType.FAILURE: "failure",
    ResponseType.NODE: "node",
    ResponseType.WELCOME: "welcome",
    ResponseType.NODES: "nodes",
    ResponseType.DB: "db",
    ResponseType.STMT: "stmt",
    ResponseType.RESULT: "result",
    ResponseType.ROWS: "rows",
    ResponseType.EMPTY: "empty",
    ResponseType.FILES: "files",
    ResponseType.METADATA: "metadata",
}


def request_desc(code: int) -> str:
    """Return a human-readable description of a request type."""
    return _REQUEST_DESCRIPTIONS.get(code, "unknown")


def response_desc(code: int) -> str:
    """Return a human-readable description of a response type."""
    return _RESPONSE_DESCRIPTIONS.get(code, "unknown")