import socket
import struct
import threading

import pytest

from dqlite.config import Config
from dqlite.connector import Connector, handshake
from dqlite.constants import VERSION_LEGACY, VERSION_ONE, RequestType, ResponseType
from dqlite.errors import NoAvailableLeaderError
from dqlite.message import HEADER_SIZE, WORD_SIZE, Message
from dqlite.store import InmemNodeStore, NodeInfo, NodeRole, NodeStore


def _recv_exact(sock, size):
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            return None
        data += chunk
    return data


def _read_request(sock):
    header = _recv_exact(sock, HEADER_SIZE)
    if header is None:
        return None
    message = Message(8)
    message.decode_header(header)
    body = _recv_exact(sock, message.words * WORD_SIZE)
    if body is None:
        return None
    message.load_body(body)
    return message


def _response(mtype, *writers):
    message = Message(8)
    for write in writers:
        write(message)
    message.put_header(mtype)
    return message


class _FakeNode:
    def __init__(self, legacy_only=False, silent=False):
        self._listener = socket.create_server(("127.0.0.1", 0))
        self._listener.settimeout(0.05)
        host, port = self._listener.getsockname()[:2]
        self.address = f"{host}:{port}"
        self.leader = self.address
        self.legacy_only = legacy_only
        self.silent = silent
        self.versions = []
        self.client_ids = []
        self._stop = threading.Event()
        self._conns = []
        self._thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._thread.start()

    def _accept_loop(self):
        while not self._stop.is_set():
            try:
                conn, _ = self._listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            conn.settimeout(5)
            self._conns.append(conn)
            threading.Thread(target=self._serve, args=(conn,), daemon=True).start()

    def _serve(self, conn):
        try:
            self._handle(conn)
        except OSError:
            pass
        finally:
            conn.close()

    def _handle(self, conn):
        raw = _recv_exact(conn, 8)
        if raw is None:
            return
        version = struct.unpack("<Q", raw)[0]
        self.versions.append(version)
        if self.silent:
            self._stop.wait(5)
            return
        if self.legacy_only and version != VERSION_LEGACY:
            return
        while True:
            request = _read_request(conn)
            if request is None:
                return
            leader = self.leader
            if request.mtype == RequestType.LEADER:
                if version == VERSION_LEGACY:
                    response = _response(
                        ResponseType.NODE_LEGACY, lambda m: m.put_string(leader)
                    )
                else:
                    response = _response(
                        ResponseType.NODE,
                        lambda m: m.put_uint64(1),
                        lambda m: m.put_string(leader),
                    )
            elif request.mtype == RequestType.CLIENT:
                self.client_ids.append(request.get_uint64())
                response = _response(ResponseType.WELCOME, lambda m: m.put_uint64(15000))
            else:
                return
            conn.sendall(response.encode_header() + response.payload())

    def close(self):
        self._stop.set()
        self._thread.join(1)
        self._listener.close()
        for conn in self._conns:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass


@pytest.fixture
def make_node():
    nodes = []

    def make(**kwargs):
        node = _FakeNode(**kwargs)
        nodes.append(node)
        return node

    yield make
    for node in nodes:
        node.close()


def _free_address():
    probe = socket.create_server(("127.0.0.1", 0))
    host, port = probe.getsockname()[:2]
    probe.close()
    return f"{host}:{port}"


def _collector():
    messages = []

    def log(level, fmt, *args):
        messages.append(f"{level}: {fmt % args if args else fmt}")

    return log, messages


def _store(*addresses):
    store = InmemNodeStore()
    store.set([NodeInfo(id=i, address=address) for i, address in enumerate(addresses)])
    return store


def test_success(make_node):
    node = make_node()
    log, messages = _collector()
    connector = Connector(0, _store(node.address), Config(), log)

    protocol = connector.connect(1.0)
    try:
        assert protocol.version == VERSION_ONE
    finally:
        protocol.close()

    assert messages == [f"DEBUG: attempt 0: server {node.address}: connected"]
    assert node.versions == [VERSION_ONE]
    assert node.client_ids == [0]


def test_limit_retries():
    address = _free_address()
    log, messages = _collector()
    config = Config(retry_limit=2, backoff_factor=0.001)
    connector = Connector(0, _store(address), config, log)

    with pytest.raises(NoAvailableLeaderError):
        connector.connect()

    assert len(messages) == 3
    for attempt, message in enumerate(messages):
        assert message.startswith(f"WARN: attempt {attempt}: server {address}: dial: ")


def test_empty_node_store():
    log, messages = _collector()
    connector = Connector(0, _store(), Config(), log)

    with pytest.raises(NoAvailableLeaderError):
        connector.connect(0.005)

    assert messages == []


def test_timeout_expires():
    address = _free_address()
    log, messages = _collector()
    connector = Connector(0, _store(address), Config(), log)

    with pytest.raises(NoAvailableLeaderError):
        connector.connect(0.05)

    assert messages[0].startswith(f"WARN: attempt 0: server {address}: dial: ")


def test_attempt_timeout(make_node):
    node = make_node(silent=True)
    log, messages = _collector()
    config = Config(attempt_timeout=0.1, retry_limit=1, backoff_factor=0.001)
    connector = Connector(0, _store(node.address), config, log)

    with pytest.raises(NoAvailableLeaderError):
        connector.connect()

    assert len(messages) == 2
    for attempt, message in enumerate(messages):
        assert message.startswith(f"WARN: attempt {attempt}: server {node.address}: ")


def test_follows_reported_leader(make_node):
    follower = make_node()
    leader = make_node()
    follower.leader = leader.address
    log, messages = _collector()
    connector = Connector(42, _store(follower.address), Config(), log)

    protocol = connector.connect(1.0)
    protocol.close()

    assert messages == [
        f"DEBUG: attempt 0: server {follower.address}: "
        f"connect to reported leader {leader.address}",
        f"DEBUG: attempt 0: server {follower.address}: connected",
    ]
    assert leader.client_ids == [42]
    assert follower.client_ids == []


def test_no_known_leader(make_node):
    node = make_node()
    node.leader = ""
    log, messages = _collector()
    config = Config(retry_limit=1, backoff_factor=0.001)
    connector = Connector(0, _store(node.address), config, log)

    with pytest.raises(NoAvailableLeaderError):
        connector.connect()

    assert messages == [
        f"WARN: attempt 0: server {node.address}: no known leader",
        f"WARN: attempt 1: server {node.address}: no known leader",
    ]


def test_reported_leader_is_not_leader(make_node):
    first = make_node()
    second = make_node()
    first.leader = second.address
    second.leader = first.address
    log, messages = _collector()
    config = Config(retry_limit=1, backoff_factor=0.001)
    connector = Connector(0, _store(first.address), config, log)

    with pytest.raises(NoAvailableLeaderError):
        connector.connect()

    assert messages[:2] == [
        f"DEBUG: attempt 0: server {first.address}: "
        f"connect to reported leader {second.address}",
        f"WARN: attempt 0: server {first.address}: reported leader server is not the leader",
    ]


def test_reported_leader_unavailable(make_node):
    node = make_node()
    node.leader = _free_address()
    log, messages = _collector()
    config = Config(retry_limit=1, backoff_factor=0.001)
    connector = Connector(0, _store(node.address), config, log)

    with pytest.raises(NoAvailableLeaderError):
        connector.connect()

    assert messages[1].startswith(
        f"WARN: attempt 0: server {node.address}: reported leader unavailable err=dial: "
    )


def test_falls_back_to_legacy_protocol(make_node):
    node = make_node(legacy_only=True)
    log, messages = _collector()
    connector = Connector(0, _store(node.address), Config(), log)

    protocol = connector.connect(1.0)
    try:
        assert protocol.version == VERSION_LEGACY
    finally:
        protocol.close()

    assert messages == [
        f"WARN: attempt 0: server {node.address}: unsupported protocol 1, attempt with legacy",
        f"DEBUG: attempt 0: server {node.address}: connected",
    ]
    assert node.versions == [VERSION_ONE, VERSION_LEGACY]


def test_servers_tried_in_role_order(make_node):
    node = make_node()
    store = InmemNodeStore()
    store.set(
        [
            NodeInfo(id=1, address=_free_address(), role=NodeRole.SPARE),
            NodeInfo(id=2, address=node.address, role=NodeRole.VOTER),
        ]
    )
    log, messages = _collector()
    connector = Connector(0, store, Config(), log)

    protocol = connector.connect(1.0)
    protocol.close()

    assert messages == [f"DEBUG: attempt 0: server {node.address}: connected"]


def test_store_failure_is_retried():
    class _BrokenStore(NodeStore):
        def __init__(self):
            self.calls = 0

        def get(self):
            self.calls += 1
            raise RuntimeError("unavailable")

        def set(self, servers):
            raise RuntimeError("unavailable")

    store = _BrokenStore()
    connector = Connector(0, store, Config(backoff_factor=0.001, retry_limit=2))

    with pytest.raises(NoAvailableLeaderError):
        connector.connect()

    assert store.calls == 3


def test_handshake_sends_version():
    client, server = socket.socketpair()
    try:
        protocol = handshake(client, VERSION_ONE, 1.0)
        assert server.recv(8) == struct.pack("<Q", VERSION_ONE)
        assert protocol.version == VERSION_ONE
        assert client.gettimeout() is None
    finally:
        client.close()
        server.close()


def test_handshake_with_expired_timeout():
    client, server = socket.socketpair()
    try:
        with pytest.raises(TimeoutError):
            handshake(client, VERSION_ONE, 0)
    finally:
        client.close()
        server.close()