"""Decoders for response messages."""

from __future__ import annotations

from dqlite.constants import ResponseType, response_desc
from dqlite.errors import MessageError, RequestError
from dqlite.message import Files, Message, Result, Rows
from dqlite.store import NodeInfo


def _check(message: Message, expected: ResponseType) -> None:
    """Raise the server's failure, or an error if the type is not the expected one."""
    mtype, _ = message.get_header()
    if mtype == ResponseType.FAILURE:
        code = message.get_uint64()
        description = message.get_string()
        raise RequestError(code, description)
    if mtype != expected:
        raise MessageError(
            f"decode {response_desc(expected)}: unexpected type {mtype}"
        )


def decode_failure(message: Message) -> None:
    """Raise the error carried by a Failure response.

    A Failure response raises RequestError; any other type raises MessageError.
    """
    _check(message, ResponseType.FAILURE)


def decode_welcome(message: Message) -> int:
    """Decode a Welcome response, returning the heartbeat timeout."""
    _check(message, ResponseType.WELCOME)
    return message.get_uint64()


def decode_node_legacy(message: Message) -> str:
    """Decode a pre 1.0 Node response, returning the leader address."""
    _check(message, ResponseType.NODE_LEGACY)
    return message.get_string()


def decode_node(message: Message) -> tuple[int, str]:
    """Decode a Node response, returning the node ID and address."""
    _check(message, ResponseType.NODE)
    node_id = message.get_uint64()
    address = message.get_string()
    return node_id, address


def decode_nodes(message: Message) -> list[NodeInfo]:
    """Decode a Nodes response."""
    _check(message, ResponseType.NODES)
    return message.get_nodes()


def decode_db(message: Message) -> int:
    """Decode a Db response, returning the database ID."""
    _check(message, ResponseType.DB)
    db_id = message.get_uint32()
    message.get_uint32()
    return db_id


def decode_stmt(message: Message) -> tuple[int, int, int]:
    """Decode a Stmt response, returning database ID, statement ID and parameter count."""
    _check(message, ResponseType.STMT)
    db = message.get_uint32()
    stmt_id = message.get_uint32()
    params = message.get_uint64()
    return db, stmt_id, params


def decode_empty(message: Message) -> None:
    """Decode an Empty response."""
    _check(message, ResponseType.EMPTY)
    message.get_uint64()


def decode_result(message: Message) -> Result:
    """Decode a Result response."""
    _check(message, ResponseType.RESULT)
    return message.get_result()


def decode_rows(message: Message) -> Rows:
    """Decode a Rows response."""
    _check(message, ResponseType.ROWS)
    return message.get_rows()


def decode_files(message: Message) -> Files:
    """Decode a Files response."""
    _check(message, ResponseType.FILES)
    return message.get_files()


def decode_metadata(message: Message) -> tuple[int, int]:
    """Decode a Metadata response, returning failure domain and weight."""
    _check(message, ResponseType.METADATA)
    failure_domain = message.get_uint64()
    weight = message.get_uint64()
    return failure_domain, weight