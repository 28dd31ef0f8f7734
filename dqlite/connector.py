"""Finding the cluster leader and connecting to it."""

from __future__ import annotations

import dataclasses
import socket
import struct
import time
from typing import Any, Callable, Optional

from dqlite.config import Config
from dqlite.config import dial as default_dial
from dqlite.constants import VERSION_LEGACY, VERSION_ONE
from dqlite.errors import BadProtocolError, DqliteError, NoAvailableLeaderError
from dqlite.logging import Level, LogFunc
from dqlite.message import Message
from dqlite.protocol import Protocol, decode_node_compat
from dqlite.request import encode_client, encode_leader
from dqlite.response import decode_welcome
from dqlite.store import NodeStore

_ATTEMPT_ERRORS = (DqliteError, OSError, EOFError, ValueError)


class _DialError(DqliteError):
    """Establishing the network connection failed."""


def _discard(level: Level, fmt: str, *args: Any) -> None:
    return None


def _expired(deadline: Optional[float]) -> bool:
    return deadline is not None and time.monotonic() >= deadline


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise TimeoutError("i/o timeout")
    return remaining


def _earliest(deadline: Optional[float], other: float) -> float:
    return other if deadline is None else min(deadline, other)


def handshake(
    conn: socket.socket, version: int, timeout: Optional[float] = None
) -> Protocol:
    """Send the protocol version to a node and wrap the connection."""
    data = struct.pack("<Q", version)
    if timeout is not None:
        if timeout <= 0:
            raise TimeoutError("i/o timeout")
        conn.settimeout(timeout)
    try:
        conn.sendall(data)
    finally:
        if timeout is not None:
            conn.settimeout(None)
    return Protocol(version, conn)


class Connector:
    """Creates client connections to the current leader of a cluster."""

    def __init__(
        self,
        node_id: int,
        store: NodeStore,
        config: Optional[Config] = None,
        log: Optional[LogFunc] = None,
    ) -> None:
        config = dataclasses.replace(config) if config is not None else Config()
        if config.dial is None:
            config.dial = default_dial
        if not config.dial_timeout:
            config.dial_timeout = 5.0
        if not config.attempt_timeout:
            config.attempt_timeout = 15.0
        if not config.backoff_factor:
            config.backoff_factor = 0.1
        if not config.backoff_cap:
            config.backoff_cap = 1.0
        self._id = node_id
        self._store = store
        self._config = config
        self._log: LogFunc = log if log is not None else _discard

    def connect(self, timeout: Optional[float] = None) -> Protocol:
        """Find the leader and return a connection to it.

        Retries with exponential backoff until a leader is found, the retry
        limit is exhausted or the timeout, in seconds, expires; the last two
        raise NoAvailableLeaderError.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        attempt = 0
        while True:
            if not self._should_attempt(attempt, deadline):
                raise NoAvailableLeaderError()
            if _expired(deadline):
                raise NoAvailableLeaderError()
            try:
                protocol = self._connect_attempt_all(deadline, self._attempt_log(attempt))
            except DqliteError:
                attempt += 1
                continue
            if _expired(deadline):
                protocol.close()
                raise NoAvailableLeaderError()
            return protocol

    def _attempt_log(self, attempt: int) -> LogFunc:
        def log(level: Level, fmt: str, *args: Any) -> None:
            self._log(level, "attempt %d: " + fmt, attempt, *args)

        return log

    def _backoff(self, attempt: int) -> float:
        cap = self._config.backoff_cap
        if attempt >= 63:
            return cap
        duration = self._config.backoff_factor * (1 << attempt)
        if duration > cap or duration <= 0:
            return cap
        return duration

    def _should_attempt(self, attempt: int, deadline: Optional[float]) -> bool:
        limit = self._config.retry_limit
        if limit > 0 and attempt > limit:
            return False
        if attempt > 0:
            duration = self._backoff(attempt)
            if deadline is not None:
                duration = min(duration, max(deadline - time.monotonic(), 0.0))
            time.sleep(duration)
        return True

    def _connect_attempt_all(self, deadline: Optional[float], log: LogFunc) -> Protocol:
        try:
            servers = self._store.get()
        except Exception as exc:
            raise DqliteError(f"get servers: {exc}") from exc

        for server in sorted(servers, key=lambda info: int(info.role)):
            def slog(level: Level, fmt: str, *args: Any, _address: str = server.address) -> None:
                log(level, "server %s: " + fmt, _address, *args)

            attempt_deadline = _earliest(
                deadline, time.monotonic() + self._config.attempt_timeout
            )
            version = VERSION_ONE
            try:
                try:
                    protocol, leader = self._connect_attempt_one(
                        attempt_deadline, server.address, version
                    )
                except BadProtocolError:
                    slog(Level.WARN, "unsupported protocol %d, attempt with legacy", version)
                    version = VERSION_LEGACY
                    protocol, leader = self._connect_attempt_one(
                        attempt_deadline, server.address, version
                    )
            except _ATTEMPT_ERRORS as exc:
                slog(Level.WARN, "%s", exc)
                continue

            if protocol is not None:
                slog(Level.DEBUG, "connected")
                return protocol
            if leader == "":
                slog(Level.WARN, "no known leader")
                continue

            slog(Level.DEBUG, "connect to reported leader %s", leader)
            leader_deadline = _earliest(
                attempt_deadline, time.monotonic() + self._config.attempt_timeout
            )
            try:
                protocol, _ = self._connect_attempt_one(leader_deadline, leader, version)
            except _ATTEMPT_ERRORS as exc:
                slog(Level.WARN, "reported leader unavailable err=%s", exc)
                continue
            if protocol is None:
                slog(Level.WARN, "reported leader server is not the leader")
                continue
            slog(Level.DEBUG, "connected")
            return protocol

        raise NoAvailableLeaderError()

    def _connect_attempt_one(
        self, deadline: Optional[float], address: str, version: int
    ) -> tuple[Optional[Protocol], str]:
        """Connect to a node and check whether it is the leader.

        Returns (protocol, "") if the node is the leader, (None, leader) if it
        knows another leader and (None, "") if it knows none.
        """
        dial: Callable[[str, Optional[float]], socket.socket] = self._config.dial
        try:
            remaining = _remaining(deadline)
            dial_timeout = (
                self._config.dial_timeout
                if remaining is None
                else min(self._config.dial_timeout, remaining)
            )
            conn = dial(address, dial_timeout)
        except (OSError, ValueError) as exc:
            raise _DialError(f"dial: {exc}") from exc

        try:
            protocol = handshake(conn, version, _remaining(deadline))
        except BaseException:
            conn.close()
            raise

        request = Message(16)
        response = Message(512)
        encode_leader(request)

        try:
            protocol.call(request, response, _remaining(deadline))
        except (OSError, EOFError) as exc:
            protocol.close()
            # A pre 1.0 node closes the connection when sent version 1.
            if isinstance(exc, EOFError) or not isinstance(exc, TimeoutError):
                raise BadProtocolError() from exc
            raise
        except BaseException:
            protocol.close()
            raise

        try:
            _, leader = decode_node_compat(protocol, response)
        except BaseException:
            protocol.close()
            raise

        if leader == "":
            protocol.close()
            return None, ""
        if leader != address:
            protocol.close()
            return None, leader

        request.reset()
        response.reset()
        encode_client(request, self._id)
        try:
            protocol.call(request, response, _remaining(deadline))
            decode_welcome(response)
        except BaseException:
            protocol.close()
            raise
        return protocol, ""