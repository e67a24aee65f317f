"""
Simulation store: durable, append-only log of served predictions.

Async facade over ``SimulationRepository``.  Every operation opens a
short-lived connection via ``get_connection()`` and runs its SQL in a worker
thread (``asyncio.to_thread``) so the event loop — and any training run in
flight — is never blocked on disk I/O.

Lifecycle
---------
The schema is applied lazily by the first operation (or eagerly by
``initialize()``).  If that fails the store raises ``StorageUnavailable``;
every later call retries initialization and raises again until the
underlying problem (bad path, permissions, corrupt file) is fixed.

Errors
------
  initialization  → StorageUnavailable
  append / clear  → StorageWriteFailure
  query*          → StorageReadFailure
No operation retries implicitly; the caller decides.
"""

from __future__ import annotations

import asyncio
import logging
import math
import sqlite3
from typing import Optional

from city_predictor.db.connection import get_connection
from city_predictor.db.repositories.simulation_repo import SimulationRepository
from city_predictor.db.schema import apply_schema
from city_predictor.errors import StorageReadFailure, StorageUnavailable, StorageWriteFailure
from city_predictor.models.simulation import SimulationRecord
from city_predictor.taxonomy.domain import Domain
from city_predictor.utils.time_utils import MAX_EPOCH_MS, now_ms, window_cutoff_ms

logger = logging.getLogger(__name__)

DEFAULT_QUERY_LIMIT = 50
DEFAULT_WINDOW_HOURS = 24


class SimulationStore:
    """SQLite-backed simulation log.

    Attributes:
        db_path:         Database file path.
        wal_mode:        Enable WAL journal mode on every connection.
        busy_timeout_ms: Lock wait before an operation fails.
    """

    def __init__(
        self,
        db_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.db_path = str(db_path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._ready = False
        self._init_lock = asyncio.Lock()

    def _connect(self):
        return get_connection(
            self.db_path,
            wal_mode=self.wal_mode,
            busy_timeout_ms=self.busy_timeout_ms,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    @property
    def is_ready(self) -> bool:
        return self._ready

    def _initialize_sync(self) -> None:
        with self._connect() as conn:
            apply_schema(conn)

    async def initialize(self) -> None:
        """Create the database and schema if needed.

        Raises:
            StorageUnavailable: The database cannot be opened or initialized.
        """
        async with self._init_lock:
            if self._ready:
                return
            try:
                await asyncio.to_thread(self._initialize_sync)
            except (sqlite3.Error, OSError) as exc:
                logger.error("Simulation store unavailable at %s: %s", self.db_path, exc)
                raise StorageUnavailable(self.db_path, str(exc)) from exc
            self._ready = True
            logger.info("Simulation store ready: %s", self.db_path)

    async def _ensure_ready(self) -> None:
        if not self._ready:
            await self.initialize()

    # ── Writes ────────────────────────────────────────────────────────────────

    def _append_sync(self, record: SimulationRecord) -> int:
        with self._connect() as conn:
            return SimulationRepository(conn).insert(record)

    async def append(self, record: SimulationRecord) -> int:
        """Persist one record and return its assigned id.

        ``record.record_id`` is ignored.  ``record.timestamp`` is kept if set,
        otherwise the insertion time is used.

        Raises:
            StorageUnavailable:  Store could not be initialized.
            StorageWriteFailure: The insert failed.
        """
        await self._ensure_ready()
        stamped = record.model_copy(
            update={
                "record_id": None,
                "timestamp": record.timestamp if record.timestamp is not None else now_ms(),
            }
        )
        try:
            record_id = await asyncio.to_thread(self._append_sync, stamped)
        except (sqlite3.Error, OverflowError) as exc:
            logger.error("Simulation append failed  domain=%s: %s", record.domain.value, exc)
            raise StorageWriteFailure(f"append failed: {exc}") from exc
        logger.debug("Simulation logged  id=%d domain=%s", record_id, record.domain.value)
        return record_id

    def _clear_sync(self) -> int:
        with self._connect() as conn:
            return SimulationRepository(conn).delete_all()

    async def clear(self) -> int:
        """Delete every record.  Returns the number of records removed.

        Ids are not reused afterwards.

        Raises:
            StorageUnavailable:  Store could not be initialized.
            StorageWriteFailure: The delete failed.
        """
        await self._ensure_ready()
        try:
            removed = await asyncio.to_thread(self._clear_sync)
        except sqlite3.Error as exc:
            logger.error("Simulation clear failed: %s", exc)
            raise StorageWriteFailure(f"clear failed: {exc}") from exc
        logger.info("Simulation log cleared: %d record(s) removed", removed)
        return removed

    # ── Reads ─────────────────────────────────────────────────────────────────

    def _query_sync(self, domain: Optional[Domain], limit: int) -> list[SimulationRecord]:
        with self._connect() as conn:
            return SimulationRepository(conn).get_latest(domain=domain, limit=limit)

    async def query(
        self,
        domain: Optional[Domain | str] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> list[SimulationRecord]:
        """Return up to ``limit`` most recent records, newest first.

        Args:
            domain: Restrict to one domain; ``None`` for all.
            limit:  Maximum number of records (``0`` returns an empty list).

        Raises:
            ValueError:          ``limit`` is negative.
            StorageUnavailable:  Store could not be initialized.
            StorageReadFailure:  The query failed.
        """
        if limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}.")
        domain = Domain(domain) if domain is not None else None
        await self._ensure_ready()
        try:
            return await asyncio.to_thread(self._query_sync, domain, limit)
        except sqlite3.Error as exc:
            logger.error("Simulation query failed: %s", exc)
            raise StorageReadFailure(f"query failed: {exc}") from exc

    def _query_recent_sync(self, cutoff_ms: int) -> list[SimulationRecord]:
        with self._connect() as conn:
            return SimulationRepository(conn).get_since(cutoff_ms)

    async def query_recent(
        self,
        window_hours: float = DEFAULT_WINDOW_HOURS,
        now: Optional[int] = None,
    ) -> list[SimulationRecord]:
        """Return every record with ``timestamp >= now - window_hours``.

        A record exactly at the cutoff is included.  Results are ordered
        oldest first.

        Args:
            window_hours: Trailing window length in hours.
            now:          Reference time in epoch ms; defaults to the current time.

        Raises:
            ValueError:          ``window_hours`` is negative or not finite, or
                                 ``now`` is outside the epoch-ms range.
            StorageUnavailable:  Store could not be initialized.
            StorageReadFailure:  The query failed.
        """
        if not math.isfinite(window_hours) or window_hours < 0:
            raise ValueError(f"window_hours must be a finite number >= 0, got {window_hours}.")
        if now is not None and not 0 <= now <= MAX_EPOCH_MS:
            raise ValueError(f"now must be epoch ms in [0, {MAX_EPOCH_MS}], got {now}.")
        # Timestamps are never negative, so a cutoff before the epoch selects everything.
        cutoff = max(window_cutoff_ms(window_hours, now=now), 0)
        await self._ensure_ready()
        try:
            return await asyncio.to_thread(self._query_recent_sync, cutoff)
        except (sqlite3.Error, OverflowError) as exc:
            logger.error("Simulation recent-window query failed: %s", exc)
            raise StorageReadFailure(f"query_recent failed: {exc}") from exc
