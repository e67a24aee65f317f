"""Tests for SimulationStore — async append/query/clear over a file database."""

from __future__ import annotations

import asyncio
import sqlite3
from contextlib import closing

import pytest

from city_predictor.errors import StorageReadFailure, StorageUnavailable, StorageWriteFailure
from city_predictor.models.simulation import SimulationRecord
from city_predictor.store.simulation_store import SimulationStore
from city_predictor.taxonomy.domain import Domain
from city_predictor.utils.time_utils import MAX_EPOCH_MS, MS_PER_HOUR, now_ms

NOW = 1_700_000_000_000


def _record(domain: Domain = Domain.TRAFFIC, ts=None, value: float = 50.0, **kw):
    return SimulationRecord(domain=domain, timestamp=ts, predicted_value=value, **kw)


class TestLifecycle:
    async def test_lazy_initialization(self, store):
        assert not store.is_ready
        await store.query()
        assert store.is_ready

    async def test_initialize_idempotent(self, store):
        await store.initialize()
        await store.initialize()
        assert store.is_ready

    async def test_unopenable_path_raises_every_time(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        bad = SimulationStore(str(blocker / "sub" / "db.sqlite"))
        with pytest.raises(StorageUnavailable):
            await bad.append(_record(ts=1))
        with pytest.raises(StorageUnavailable):
            await bad.query()
        assert not bad.is_ready

    async def test_data_survives_new_instance(self, db_path):
        await SimulationStore(db_path).append(_record(ts=5))
        records = await SimulationStore(db_path).query()
        assert [r.timestamp for r in records] == [5]


class TestAppend:
    async def test_assigns_id_and_timestamp(self, store):
        before = now_ms()
        rid = await store.append(_record())
        after = now_ms()
        (stored,) = await store.query()
        assert stored.record_id == rid
        assert before <= stored.timestamp <= after

    async def test_keeps_caller_timestamp(self, store):
        await store.append(_record(ts=42))
        (stored,) = await store.query()
        assert stored.timestamp == 42

    async def test_ignores_caller_record_id(self, store):
        rid = await store.append(_record(ts=1).model_copy(update={"record_id": 999}))
        assert rid != 999

    async def test_concurrent_appends_get_distinct_ids(self, store):
        await store.initialize()
        ids = await asyncio.gather(*(store.append(_record(ts=i)) for i in range(10)))
        assert len(set(ids)) == 10
        assert len(await store.query(limit=100)) == 10


class TestQuery:
    async def test_newest_first_and_limit(self, store):
        for value in range(5):
            await store.append(_record(ts=value, value=value))
        records = await store.query(limit=3)
        assert [r.predicted_value for r in records] == [4, 3, 2]

    async def test_domain_filter(self, store):
        await store.append(_record(Domain.TRAFFIC, ts=1))
        await store.append(_record(Domain.ENERGY, ts=2, value=6000))
        records = await store.query(domain="energy")
        assert [r.domain for r in records] == [Domain.ENERGY]

    async def test_default_limit_is_50(self, store):
        for i in range(55):
            await store.append(_record(ts=i))
        assert len(await store.query()) == 50

    async def test_zero_limit(self, store):
        await store.append(_record(ts=1))
        assert await store.query(limit=0) == []

    async def test_negative_limit(self, store):
        with pytest.raises(ValueError):
            await store.query(limit=-1)

    async def test_empty_store(self, store):
        assert await store.query() == []


class TestQueryRecent:
    async def test_window_boundary_is_inclusive(self, store):
        cutoff = NOW - 24 * MS_PER_HOUR
        for ts in (cutoff - 1, cutoff, cutoff + 1, NOW):
            await store.append(_record(ts=ts))
        records = await store.query_recent(24, now=NOW)
        assert [r.timestamp for r in records] == [cutoff, cutoff + 1, NOW]

    async def test_oldest_first(self, store):
        for ts in (NOW - 10, NOW - 30, NOW - 20):
            await store.append(_record(ts=ts))
        records = await store.query_recent(1, now=NOW)
        assert [r.timestamp for r in records] == [NOW - 30, NOW - 20, NOW - 10]

    async def test_fractional_hours(self, store):
        half_hour = MS_PER_HOUR // 2
        await store.append(_record(ts=NOW - half_hour))
        await store.append(_record(ts=NOW - half_hour - 1))
        records = await store.query_recent(0.5, now=NOW)
        assert [r.timestamp for r in records] == [NOW - half_hour]

    async def test_defaults_to_24h_from_now(self, store):
        await store.append(_record())
        await store.append(_record(ts=now_ms() - 25 * MS_PER_HOUR))
        assert len(await store.query_recent()) == 1

    async def test_negative_window(self, store):
        with pytest.raises(ValueError):
            await store.query_recent(-1)

    @pytest.mark.parametrize("window", [float("inf"), float("nan")])
    async def test_non_finite_window(self, store, window):
        with pytest.raises(ValueError):
            await store.query_recent(window, now=NOW)

    async def test_window_reaching_before_epoch_returns_everything(self, store):
        for ts in (0, 1, NOW):
            await store.append(_record(ts=ts))
        records = await store.query_recent(1e20, now=NOW)
        assert [r.timestamp for r in records] == [0, 1, NOW]

    async def test_now_out_of_range(self, store):
        with pytest.raises(ValueError):
            await store.query_recent(1, now=MAX_EPOCH_MS + 1)


class TestClear:
    async def test_clear_removes_everything(self, store):
        for ts in (1, 2, 3):
            await store.append(_record(ts=ts))
        assert await store.clear() == 3
        assert await store.query() == []

    async def test_clear_empty(self, store):
        assert await store.clear() == 0

    async def test_ids_keep_increasing_after_clear(self, store):
        before = await store.append(_record(ts=1))
        await store.clear()
        after = await store.append(_record(ts=2))
        assert after > before


@pytest.fixture
async def broken_store(store, db_path):
    """Initialized store whose table was dropped through another connection."""
    await store.initialize()
    with closing(sqlite3.connect(db_path)) as side:
        side.execute("DROP TABLE simulations")
        side.commit()
    return store


class TestStorageFailures:
    async def test_append_raises_write_failure(self, broken_store):
        with pytest.raises(StorageWriteFailure):
            await broken_store.append(_record(ts=1))

    async def test_clear_raises_write_failure(self, broken_store):
        with pytest.raises(StorageWriteFailure):
            await broken_store.clear()

    async def test_query_raises_read_failure(self, broken_store):
        with pytest.raises(StorageReadFailure):
            await broken_store.query()

    async def test_query_recent_raises_read_failure(self, broken_store):
        with pytest.raises(StorageReadFailure):
            await broken_store.query_recent(24, now=NOW)

    async def test_failures_are_storage_errors_not_unavailable(self, broken_store):
        with pytest.raises(StorageWriteFailure) as excinfo:
            await broken_store.append(_record(ts=1))
        assert not isinstance(excinfo.value, StorageUnavailable)
        assert broken_store.is_ready

    async def test_timestamp_beyond_sqlite_range_is_write_failure(self, store):
        unchecked = SimulationRecord.model_construct(
            domain=Domain.TRAFFIC, timestamp=2**64, predicted_value=1.0
        )
        with pytest.raises(StorageWriteFailure):
            await store.append(unchecked)
        assert await store.query() == []
