"""
Shared pytest fixtures for the City Predictor test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the schema
    applied. Created anew for each test that requests it.
  - ``app_config``: An ``AppConfig`` whose database, artifacts and log file
    all live under the test's ``tmp_path``.
  - ``predictor`` / ``store``: Isolated service and store instances.
  - Sample feature and dataset factories.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Generator

import pytest

from city_predictor.config import (
    AppConfig,
    DatabaseConfig,
    DataConfig,
    LoggingConfig,
    TrainingConfig,
)
from city_predictor.datasets.loader import load_samples
from city_predictor.db.schema import apply_schema
from city_predictor.models.sample import EnergyFeatures, TrafficFeatures
from city_predictor.service import CityPredictor
from city_predictor.store.simulation_store import SimulationStore
from city_predictor.taxonomy.domain import Domain


# ── Database fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the schema applied.

    Connection is closed after the test.
    """
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    apply_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "db" / "simulations.db")


@pytest.fixture
def store(db_path: str) -> SimulationStore:
    return SimulationStore(db_path)


# ── Config / service fixtures ─────────────────────────────────────────────────

@pytest.fixture
def app_config(tmp_path: Path, db_path: str) -> AppConfig:
    """Config with every writable path redirected under ``tmp_path``."""
    return AppConfig(
        database=DatabaseConfig(db_path=db_path),
        data=DataConfig(),
        training=TrainingConfig(artifact_dir=str(tmp_path / "models")),
        logging=LoggingConfig(log_file=""),
    )


@pytest.fixture
def predictor(app_config: AppConfig) -> CityPredictor:
    return CityPredictor(app_config)


# ── Sample factories ──────────────────────────────────────────────────────────

@pytest.fixture
def rush_hour_traffic() -> TrafficFeatures:
    """Tuesday 08:00 in rain."""
    return TrafficFeatures(hour=8, day_of_week=2, weather=1)


@pytest.fixture
def hot_weekday_energy() -> EnergyFeatures:
    """Weekday 14:00 at 30 °C."""
    return EnergyFeatures(hour=14, temperature=30.0, is_weekday=1)


@pytest.fixture
def traffic_samples():
    return load_samples(Domain.TRAFFIC)


@pytest.fixture
def energy_samples():
    return load_samples(Domain.ENERGY)


@pytest.fixture
def write_dataset(tmp_path: Path):
    """Return a helper that writes a dataset JSON file and returns its path."""

    def _write(payload, name: str = "dataset.json") -> Path:
        path = tmp_path / name
        if isinstance(payload, str):
            path.write_text(payload, encoding="utf-8")
        else:
            path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    return _write
