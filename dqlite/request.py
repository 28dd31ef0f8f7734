"""Encoders for request messages."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from dqlite.constants import RequestType
from dqlite.message import Message


def _values(values: Optional[Iterable[Any]]) -> list[Any]:
    return [] if values is None else list(values)


def encode_leader(message: Message) -> None:
    """Encode a Leader request."""
    message.reset()
    message.put_uint64(0)
    message.put_header(RequestType.LEADER)


def encode_client(message: Message, node_id: int) -> None:
    """Encode a Client request."""
    message.reset()
    message.put_uint64(node_id)
    message.put_header(RequestType.CLIENT)


def encode_heartbeat(message: Message, timestamp: int) -> None:
    """Encode a Heartbeat request."""
    message.reset()
    message.put_uint64(timestamp)
    message.put_header(RequestType.HEARTBEAT)


def encode_open(message: Message, name: str, flags: int, vfs: str) -> None:
    """Encode an Open request."""
    message.reset()
    message.put_string(name)
    message.put_uint64(flags)
    message.put_string(vfs)
    message.put_header(RequestType.OPEN)


def encode_prepare(message: Message, db: int, sql: str) -> None:
    """Encode a Prepare request."""
    message.reset()
    message.put_uint64(db)
    message.put_string(sql)
    message.put_header(RequestType.PREPARE)


def encode_exec(
    message: Message, db: int, stmt: int, values: Optional[Iterable[Any]] = None
) -> None:
    """Encode an Exec request for a prepared statement."""
    message.reset()
    message.put_uint32(db)
    message.put_uint32(stmt)
    message.put_named_values(_values(values))
    message.put_header(RequestType.EXEC)


def encode_query(
    message: Message, db: int, stmt: int, values: Optional[Iterable[Any]] = None
) -> None:
    """Encode a Query request for a prepared statement."""
    message.reset()
    message.put_uint32(db)
    message.put_uint32(stmt)
    message.put_named_values(_values(values))
    message.put_header(RequestType.QUERY)


def encode_finalize(message: Message, db: int, stmt: int) -> None:
    """Encode a Finalize request."""
    message.reset()
    message.put_uint32(db)
    message.put_uint32(stmt)
    message.put_header(RequestType.FINALIZE)


def encode_exec_sql(
    message: Message, db: int, sql: str, values: Optional[Iterable[Any]] = None
) -> None:
    """Encode an ExecSQL request."""
    message.reset()
    message.put_uint64(db)
    message.put_string(sql)
    message.put_named_values(_values(values))
    message.put_header(RequestType.EXEC_SQL)


def encode_query_sql(
    message: Message, db: int, sql: str, values: Optional[Iterable[Any]] = None
) -> None:
    """Encode a QuerySQL request."""
    message.reset()
    message.put_uint64(db)
    message.put_string(sql)
    message.put_named_values(_values(values))
    message.put_header(RequestType.QUERY_SQL)


def encode_interrupt(message: Message, db: int) -> None:
    """Encode an Interrupt request."""
    message.reset()
    message.put_uint64(db)
    message.put_header(RequestType.INTERRUPT)


def encode_add(message: Message, node_id: int, address: str) -> None:
    """Encode an Add request."""
    message.reset()
    message.put_uint64(node_id)
    message.put_string(address)
    message.put_header(RequestType.ADD)


def encode_assign(message: Message, node_id: int, role: int) -> None:
    """Encode an Assign request."""
    message.reset()
    message.put_uint64(node_id)
    message.put_uint64(int(role))
    message.put_header(RequestType.ASSIGN)


def encode_remove(message: Message, node_id: int) -> None:
    """Encode a Remove request."""
    message.reset()
    message.put_uint64(node_id)
    message.put_header(RequestType.REMOVE)


def encode_dump(message: Message, name: str) -> None:
    """Encode a Dump request."""
    message.reset()
    message.put_string(name)
    message.put_header(RequestType.DUMP)


def encode_cluster(message: Message, format_version: int) -> None:
    """Encode a Cluster request."""
    message.reset()
    message.put_uint64(format_version)
    message.put_header(RequestType.CLUSTER)


def encode_transfer(message: Message, node_id: int) -> None:
    """Encode a Transfer request."""
    message.reset()
    message.put_uint64(node_id)
    message.put_header(RequestType.TRANSFER)


def encode_describe(message: Message, format_version: int) -> None:
    """Encode a Describe request."""
    message.reset()
    message.put_uint64(format_version)
    message.put_header(RequestType.DESCRIBE)


def encode_weight(message: Message, weight: int) -> None:
    """Encode a Weight request."""
    message.reset()
    message.put_uint64(weight)
    message.put_header(RequestType.WEIGHT)