"""Sending and receiving protocol messages over a connection."""

from __future__ import annotations

import contextlib
import socket
import threading
import time
from typing import Iterator, Optional

from dqlite.constants import VERSION_LEGACY, ResponseType
from dqlite.message import HEADER_SIZE, WORD_SIZE, Message
from dqlite.request import encode_interrupt
from dqlite.response import decode_node, decode_node_legacy

_READ_CHUNK = 65536


class Protocol:
    """A connection to a node that carries request/response exchanges.

    Requests are serialized, since a node does not support concurrent
    requests on a single connection. Once a network error has occurred,
    every further call raises that same error.
    """

    def __init__(self, version: int, conn: socket.socket) -> None:
        self.version = version
        self._conn = conn
        self._lock = threading.Lock()
        self._net_error: Optional[OSError] = None
        self._closed = False

    def call(
        self, request: Message, response: Message, timeout: Optional[float] = None
    ) -> None:
        """Send a request and receive its response within the timeout, in seconds."""
        with self._lock:
            if self._net_error is not None:
                raise self._net_error
            try:
                with self._deadline(timeout) as deadline:
                    self._send(request, deadline)
                    self._recv(response, deadline)
            except OSError as exc:
                self._net_error = exc
                raise

    def more(self, response: Message) -> None:
        """Receive a further response for a request that maps to several."""
        self._recv(response, None)

    def interrupt(
        self, request: Message, response: Message, timeout: Optional[float] = None
    ) -> None:
        """Send an interrupt request and wait for the node's empty response."""
        with self._lock:
            with self._deadline(timeout) as deadline:
                encode_interrupt(request, 0)
                self._send(request, deadline)
                while True:
                    self._recv(response, deadline)
                    mtype, _ = response.get_header()
                    if mtype == ResponseType.EMPTY:
                        break

    def close(self) -> None:
        """Close the underlying connection."""
        if self._closed:
            return
        self._closed = True
        self._conn.close()

    def __enter__(self) -> "Protocol":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @contextlib.contextmanager
    def _deadline(self, timeout: Optional[float]) -> Iterator[Optional[float]]:
        if timeout is None:
            yield None
            return
        try:
            yield time.monotonic() + timeout
        finally:
            if not self._closed:
                try:
                    self._conn.settimeout(None)
                except OSError:
                    pass

    def _apply(self, deadline: Optional[float]) -> None:
        if deadline is None:
            return
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError("i/o timeout")
        self._conn.settimeout(remaining)

    def _send(self, request: Message, deadline: Optional[float]) -> None:
        data = request.encode_header() + request.payload()
        self._apply(deadline)
        self._conn.sendall(data)

    def _recv(self, response: Message, deadline: Optional[float]) -> None:
        response.reset()
        header = self._read(HEADER_SIZE, deadline)
        response.decode_header(header)
        body = self._read(response.words * WORD_SIZE, deadline)
        response.load_body(body)

    def _read(self, size: int, deadline: Optional[float]) -> bytes:
        buf = bytearray()
        while len(buf) < size:
            self._apply(deadline)
            chunk = self._conn.recv(min(size - len(buf), _READ_CHUNK))
            if not chunk:
                raise EOFError("connection closed by peer")
            buf.extend(chunk)
        return bytes(buf)


def decode_node_compat(protocol: Protocol, response: Message) -> tuple[int, str]:
    """Decode a Node response, handling pre 1.0 nodes too.

    Returns the node ID (0 for legacy nodes) and the leader address.
    """
    if protocol.version == VERSION_LEGACY:
        return 0, decode_node_legacy(response)
    return decode_node(response)