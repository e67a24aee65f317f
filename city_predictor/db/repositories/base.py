"""
Thin SQL helpers shared by repositories.

A repository wraps one ``sqlite3.Connection`` handed to it by the caller
(normally the ``with get_connection(...)`` block of a store operation); it
never opens, commits or closes the connection itself.  All SQL is written out
in repository methods, and rows come back as ``sqlite3.Row`` so columns are
read by name.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional, Sequence

logger = logging.getLogger(__name__)

Params = Sequence[Any]


class BaseRepository:
    """Statement helpers over a caller-owned connection.

    Attributes:
        conn: Connection the repository runs its SQL on.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(self, sql: str, params: Params = ()) -> sqlite3.Cursor:
        logger.debug("SQL %s %s", " ".join(sql.split()), tuple(params))
        return self.conn.execute(sql, params)

    def insert_row(self, sql: str, params: Params = ()) -> int:
        """Run an INSERT and return the new row's id."""
        rowid = self.execute(sql, params).lastrowid
        if rowid is None:
            raise sqlite3.OperationalError(f"INSERT produced no rowid: {sql.strip()}")
        return rowid

    def fetchone(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        return self.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()

    def scalar(self, sql: str, params: Params = ()) -> Any:
        """First column of the first row, or ``None`` when there is no row."""
        row = self.fetchone(sql, params)
        return row[0] if row is not None else None
