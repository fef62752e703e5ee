"""Error types raised by the query loader."""

from __future__ import annotations


class QueryError(Exception):
    """A query could not be executed by its source (any cause)."""

    def __init__(self, message: str = "", code: int | None = None):
        super().__init__(message)
        self.code = code

    def __str__(self) -> str:
        msg = super().__str__()
        return f"[{self.code}] {msg}" if self.code is not None else msg


class InvalidStateError(RuntimeError):
    """Operation is not allowed in the loader's current state."""
