"""
Repository for the append-only ``simulations`` log.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Optional

from city_predictor.db.repositories.base import BaseRepository
from city_predictor.models.simulation import SimulationRecord
from city_predictor.taxonomy.domain import Domain

logger = logging.getLogger(__name__)


class SimulationRepository(BaseRepository):
    """Insert, range-read and clear ``simulations`` rows."""

    def insert(self, record: SimulationRecord) -> int:
        """Insert a record and return its ``record_id``.

        Args:
            record: Record to persist; ``timestamp`` must already be set.

        Returns:
            The newly assigned ``record_id``.

        Raises:
            ValueError: If ``record.timestamp`` is ``None``.
        """
        if record.timestamp is None:
            raise ValueError("SimulationRecord.timestamp must be set before insert.")
        return self.insert_row(
            """
            INSERT INTO simulations (
                timestamp, domain, predicted_value, observed_value,
                scenario_label, context_metrics
            ) VALUES (?, ?, ?, ?, ?, ?);
            """,
            (
                record.timestamp,
                record.domain.value,
                record.predicted_value,
                record.observed_value,
                record.scenario_label,
                json.dumps(record.context_metrics, sort_keys=True),
            ),
        )

    def get_by_id(self, record_id: int) -> Optional[SimulationRecord]:
        row = self.fetchone(
            "SELECT * FROM simulations WHERE record_id = ?;", (record_id,)
        )
        return _row_to_record(row) if row else None

    def get_latest(
        self,
        domain: Optional[Domain] = None,
        limit: int = 50,
    ) -> list[SimulationRecord]:
        """Return up to ``limit`` most recently appended records, newest first.

        Args:
            domain: If given, only records for this domain.
            limit:  Maximum number of records.
        """
        if domain is not None:
            rows = self.fetchall(
                """
                SELECT * FROM simulations
                WHERE domain = ?
                ORDER BY record_id DESC
                LIMIT ?;
                """,
                (Domain(domain).value, limit),
            )
        else:
            rows = self.fetchall(
                "SELECT * FROM simulations ORDER BY record_id DESC LIMIT ?;",
                (limit,),
            )
        return [_row_to_record(r) for r in rows]

    def get_since(self, cutoff_ms: int) -> list[SimulationRecord]:
        """Return every record with ``timestamp >= cutoff_ms``, oldest first."""
        rows = self.fetchall(
            """
            SELECT * FROM simulations
            WHERE timestamp >= ?
            ORDER BY timestamp ASC, record_id ASC;
            """,
            (cutoff_ms,),
        )
        return [_row_to_record(r) for r in rows]

    def count(self) -> int:
        return int(self.scalar("SELECT COUNT(*) FROM simulations;"))

    def delete_all(self) -> int:
        """Delete every record; returns the number of rows removed."""
        cur = self.execute("DELETE FROM simulations;")
        return cur.rowcount


def _row_to_record(row: sqlite3.Row) -> SimulationRecord:
    return SimulationRecord(
        record_id=row["record_id"],
        timestamp=row["timestamp"],
        domain=row["domain"],
        predicted_value=row["predicted_value"],
        observed_value=row["observed_value"],
        scenario_label=row["scenario_label"],
        context_metrics=json.loads(row["context_metrics"]),
    )
