"""Node information and stores of known cluster nodes."""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass


class NodeRole(enum.IntEnum):
    """Role of a node in the cluster."""

    VOTER = 0
    STAND_BY = 1
    SPARE = 2

    @classmethod
    def _missing_(cls, value: object) -> "NodeRole | None":
        if not isinstance(value, int):
            return None
        member = int.__new__(cls, value)
        member._name_ = "UNKNOWN"
        member._value_ = value
        return member

    def __str__(self) -> str:
        return _ROLE_NAMES.get(int(self), "unknown role")


_ROLE_NAMES = {
    0: "voter",
    1: "stand-by",
    2: "spare",
}


@dataclass
class NodeInfo:
    """Information about a single server."""

    id: int = 0
    address: str = ""
    role: NodeRole = NodeRole.VOTER


class NodeStore(abc.ABC):
    """Source of candidate servers a client dials to find the leader."""

    @abc.abstractmethod
    def get(self) -> list[NodeInfo]:
        """Return the list of known servers."""

    @abc.abstractmethod
    def set(self, servers: list[NodeInfo]) -> None:
        """Replace the list of known servers."""


class InmemNodeStore(NodeStore):
    """Node store that keeps its servers in memory."""

    def __init__(self) -> None:
        self._servers: list[NodeInfo] = []

    def get(self) -> list[NodeInfo]:
        return list(self._servers)

    def set(self, servers: list[NodeInfo]) -> None:
        self._servers = list(servers)