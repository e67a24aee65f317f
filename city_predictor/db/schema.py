"""
SQLite schema DDL for the simulation log.

Every statement is guarded with ``IF NOT EXISTS``; the store calls
``apply_schema()`` lazily on first use and again after a failed attempt.

Tables
------
  simulations  — one row per served prediction.  ``record_id`` uses
                 AUTOINCREMENT so ids are never reused, even after the log
                 is cleared.

The table is append-only: a trigger rejects every UPDATE.  Rows leave the
table only through ``DELETE`` (the store's full ``clear()``).
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_SIMULATIONS = """
CREATE TABLE IF NOT EXISTS simulations (
    record_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp        INTEGER NOT NULL,
    domain           TEXT    NOT NULL CHECK (domain IN ('traffic', 'energy')),
    predicted_value  REAL    NOT NULL,
    observed_value   REAL,
    scenario_label   TEXT,
    context_metrics  TEXT    NOT NULL DEFAULT '{}',
    created_at       TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
)
"""

_DDL_SIMULATIONS_DOMAIN_INDEX = """
CREATE INDEX IF NOT EXISTS idx_simulations_domain
    ON simulations (domain, record_id)
"""

_DDL_SIMULATIONS_TIMESTAMP_INDEX = """
CREATE INDEX IF NOT EXISTS idx_simulations_timestamp
    ON simulations (timestamp)
"""

# Trigger bodies contain semicolons, so each entry is executed whole.
_DDL_SIMULATIONS_NO_UPDATE = """
CREATE TRIGGER IF NOT EXISTS trg_simulations_no_update
BEFORE UPDATE ON simulations
BEGIN
    SELECT RAISE(ABORT, 'simulations is append-only');
END
"""

_ALL_DDL = [
    _DDL_SIMULATIONS,
    _DDL_SIMULATIONS_DOMAIN_INDEX,
    _DDL_SIMULATIONS_TIMESTAMP_INDEX,
    _DDL_SIMULATIONS_NO_UPDATE,
]

ALL_TABLE_NAMES = ["simulations"]
ALL_INDEX_NAMES = ["idx_simulations_domain", "idx_simulations_timestamp"]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Create the simulations table, its indexes and the no-update trigger.

    Args:
        conn: Connection to the simulation database; committed on return.
    """
    for ddl in _ALL_DDL:
        conn.execute(ddl)
    conn.commit()
    logger.info(
        "Simulation schema ready  tables=%s indexes=%s",
        ",".join(ALL_TABLE_NAMES),
        ",".join(ALL_INDEX_NAMES),
    )


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Names of every table in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]


def get_existing_indexes(conn: sqlite3.Connection) -> list[str]:
    """Names of every index in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
