from __future__ import annotations

import contextlib
import sqlite3
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from query_loader.logger import get_logger

from .errors import QueryError
from .source import QueryParameters

_logger = get_logger("sqlite_source")


class SqliteQuerySource:
    """QuerySource backed by an ordered SELECT on a sqlite database.

    ``sql`` must be a complete SELECT with a deterministic ORDER BY and no
    LIMIT/OFFSET clause; paging is appended per call. A fresh connection is
    opened for each call so the source can be used from any worker thread.
    """

    def __init__(self, db_path: Path | str, sql: str, params: Sequence[Any] = (), busy_timeout_ms: int = 5000):
        self._db_path = Path(db_path)
        self._sql = sql.strip().rstrip(";")
        self._params = tuple(params)
        self._busy_timeout_ms = int(busy_timeout_ms)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _open_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        try:
            conn.execute(f"PRAGMA busy_timeout = {int(self._busy_timeout_ms)}")
        except sqlite3.Error:
            _logger.debug("PRAGMA busy_timeout failed", exc_info=True)
        return conn

    def execute(self, params: QueryParameters) -> list[tuple]:
        # sqlite treats a negative LIMIT as "no limit"
        limit = -1 if params.limit is None else int(params.limit)
        offset = int(params.skip or 0)
        sql = f"{self._sql} LIMIT ? OFFSET ?"
        try:
            conn = self._open_conn()
        except sqlite3.Error as exc:
            raise QueryError(f"cannot open {self._db_path}: {exc}") from exc
        try:
            rows = conn.execute(sql, (*self._params, limit, offset)).fetchall()
        except sqlite3.Error as exc:
            _logger.debug("sqlite query failed: %s", sql, exc_info=True)
            raise QueryError(str(exc)) from exc
        finally:
            with contextlib.suppress(Exception):
                conn.close()
        _logger.debug("sqlite query: limit=%s offset=%s rows=%d", limit, offset, len(rows))
        return rows
