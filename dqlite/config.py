"""Client configuration and the default network dialer."""

from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Callable, Optional

DialFunc = Callable[[str, Optional[float]], socket.socket]

TLS_CIPHER_SUITES = (
    "ECDHE-ECDSA-AES128-GCM-SHA256",
    "ECDHE-RSA-AES256-GCM-SHA384",
    "ECDHE-RSA-AES128-GCM-SHA256",
    "ECDHE-ECDSA-AES256-GCM-SHA384",
    "ECDHE-ECDSA-AES256-SHA",
    "ECDHE-ECDSA-AES128-SHA",
    "ECDHE-RSA-AES256-SHA",
    "ECDHE-RSA-AES128-SHA",
)
"""Cipher suites, in preference order, for TLS connections to nodes."""


@dataclass
class Config:
    """Connection parameters of a client; durations are in seconds.

    A zero value means "use the default".
    """

    dial: Optional[DialFunc] = None
    dial_timeout: float = 0.0
    attempt_timeout: float = 0.0
    backoff_factor: float = 0.0
    backoff_cap: float = 0.0
    retry_limit: int = 0


def _split_host_port(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not port:
        raise ValueError(f"address {address}: missing port in address")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        number = int(port)
    except ValueError:
        raise ValueError(f"address {address}: invalid port {port!r}") from None
    return host, number


def dial(address: str, timeout: Optional[float] = None) -> socket.socket:
    """Connect to a node over TCP, or an abstract Unix socket for "@name".

    The returned socket is in blocking mode.
    """
    if address.startswith("@"):
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.settimeout(timeout)
            sock.connect("\0" + address[1:])
        except BaseException:
            sock.close()
            raise
    else:
        host, port = _split_host_port(address)
        sock = socket.create_connection((host, port), timeout=timeout)
    sock.settimeout(None)
    return sock