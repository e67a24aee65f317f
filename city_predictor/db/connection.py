"""
Short-lived SQLite connections for the simulation store.

Every store operation runs inside its own ``with get_connection(...)`` block
on a worker thread, so a connection is never shared between threads or kept
across operations.  The block commits when it exits normally and rolls back
when it raises.

Each connection is opened with:
  - ``sqlite3.Row`` rows (columns by name),
  - ``PRAGMA busy_timeout`` so concurrent appends wait instead of failing,
  - ``PRAGMA journal_mode = WAL`` (optional) so reads do not block the writer.

Because each call opens a new connection, ``":memory:"`` databases do not
persist between operations; give the store a file path.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


def _open(db_path: str, wal_mode: bool, busy_timeout_ms: int) -> sqlite3.Connection:
    if db_path != MEMORY_DB:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)};")
        if wal_mode and db_path != MEMORY_DB:
            conn.execute("PRAGMA journal_mode = WAL;")
    except sqlite3.Error:
        conn.close()
        raise
    return conn


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Iterator[sqlite3.Connection]:
    """Open ``db_path`` for the duration of a ``with`` block.

    Missing parent directories are created.

    Args:
        db_path:         SQLite database file.
        wal_mode:        Switch the database to WAL journaling.
        busy_timeout_ms: How long to wait on a locked database.

    Raises:
        OSError:        The parent directory cannot be created.
        sqlite3.Error:  The database cannot be opened or configured, or a
                        statement inside the block failed.
    """
    conn = _open(str(db_path), wal_mode, busy_timeout_ms)
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()
    finally:
        conn.close()
