"""Tests for configuration loading — TOML layering and env overrides."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from city_predictor.config import AppConfig, LoggingConfig, TrainingConfig, load_config

_ENV_VARS = (
    "CITY_PREDICTOR_DB_PATH",
    "CITY_PREDICTOR_TRAFFIC_DATASET",
    "CITY_PREDICTOR_ENERGY_DATASET",
    "CITY_PREDICTOR_SEED",
    "CITY_PREDICTOR_ARTIFACT_DIR",
    "CITY_PREDICTOR_LOG_LEVEL",
    "CITY_PREDICTOR_DEBUG",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        """
[project]
debug = true

[database]
db_path = "var/sim.db"

[training]
seed = 7
persist_artifacts = false

[logging]
level = "debug"
"""
    )
    return path


class TestDefaults:
    def test_model_defaults(self):
        config = AppConfig()
        assert config.training.seed == 42
        assert config.training.persist_artifacts is True
        assert config.data.traffic_dataset is None
        assert config.database.db_path.endswith(".db")

    def test_repo_default_toml_loads(self):
        config = load_config()
        assert config.training.seed == 42
        assert config.logging.level == "INFO"


class TestLoadConfig:
    def test_values_from_file(self, config_file):
        config = load_config(config_file)
        assert config.database.db_path == "var/sim.db"
        assert config.training.seed == 7
        assert config.training.persist_artifacts is False
        assert config.logging.level == "DEBUG"
        assert config.debug is True

    def test_local_toml_overrides(self, config_file):
        (config_file.parent / "local.toml").write_text('[training]\nseed = 99\n')
        config = load_config(config_file)
        assert config.training.seed == 99
        assert config.database.db_path == "var/sim.db"

    def test_env_overrides(self, config_file, monkeypatch):
        monkeypatch.setenv("CITY_PREDICTOR_DB_PATH", "/tmp/override.db")
        monkeypatch.setenv("CITY_PREDICTOR_LOG_LEVEL", "warning")
        monkeypatch.setenv("CITY_PREDICTOR_ARTIFACT_DIR", "/tmp/models")
        monkeypatch.setenv("CITY_PREDICTOR_DEBUG", "0")
        config = load_config(config_file)
        assert config.database.db_path == "/tmp/override.db"
        assert config.logging.level == "WARNING"
        assert config.training.artifact_dir == "/tmp/models"
        assert config.debug is False

    def test_env_dataset_and_seed(self, config_file, monkeypatch):
        monkeypatch.setenv("CITY_PREDICTOR_TRAFFIC_DATASET", "/data/traffic.json")
        monkeypatch.setenv("CITY_PREDICTOR_SEED", "123")
        config = load_config(config_file)
        assert config.data.traffic_dataset == "/data/traffic.json"
        assert config.data.energy_dataset is None
        assert config.training.seed == 123

    def test_empty_env_var_ignored(self, config_file, monkeypatch):
        monkeypatch.setenv("CITY_PREDICTOR_DB_PATH", "")
        assert load_config(config_file).database.db_path == "var/sim.db"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.toml")

    def test_config_is_frozen(self, config_file):
        config = load_config(config_file)
        with pytest.raises(ValidationError):
            config.debug = False


class TestValidation:
    def test_bad_log_level(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")

    def test_seed_must_be_non_negative(self):
        with pytest.raises(ValidationError):
            TrainingConfig(seed=-1)
