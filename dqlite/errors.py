"""Exceptions raised by the client."""

from __future__ import annotations


class DqliteError(Exception):
    """Base class of all client errors."""


class NoAvailableLeaderError(DqliteError):
    """No leader could be found among the known servers."""

    def __init__(self, message: str = "no available dqlite leader server found") -> None:
        super().__init__(message)


class BadProtocolError(DqliteError):
    """The server does not speak the requested protocol version."""

    def __init__(self, message: str = "bad protocol") -> None:
        super().__init__(message)


class BadConnectionError(DqliteError):
    """The connection is unusable and should be discarded and retried."""

    def __init__(self, message: str = "driver: bad connection") -> None:
        super().__init__(message)


class MessageError(DqliteError):
    """A message could not be encoded or decoded."""


class RequestError(DqliteError):
    """The server answered a request with a failure response."""

    def __init__(self, code: int, description: str) -> None:
        super().__init__(code, description)
        self.code = code
        self.description = description

    def __str__(self) -> str:
        return f"{self.description} ({self.code})"


class SQLiteError(DqliteError):
    """An SQLite error reported by the database."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return self.message


class RowsPart(DqliteError):
    """The current batch of a multi-response result set is exhausted."""

    def __init__(self, message: str = "not all rows were returned in this response") -> None:
        super().__init__(message)


class EndOfRows(DqliteError):
    """The result set has no more rows."""

    def __init__(self, message: str = "end of rows") -> None:
        super().__init__(message)