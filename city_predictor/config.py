"""
Configuration for the predictor service and its operator CLI.

``load_config()`` layers, later wins:
  1. the TOML file passed in, or ``config/default.toml`` (committed)
  2. ``local.toml`` beside it, if present (machine-specific, not committed)
  3. ``.env`` at the project root, loaded into the process environment
  4. ``CITY_PREDICTOR_*`` variables, see ``_ENV_OVERRIDES``

Model architecture and training hyperparameters are NOT configuration: they
are fixed per domain in ``city_predictor.ml.network`` and
``city_predictor.ml.trainer``.  ``TrainingConfig`` only carries operational
knobs (seed, artifact location).
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite settings for the simulation log."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/city_predictor.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class DataConfig(BaseModel):
    """Dataset locations.

    ``None`` means "use the dataset bundled inside the package".
    """

    model_config = ConfigDict(frozen=True)

    traffic_dataset: Optional[str] = None
    energy_dataset: Optional[str] = None


class TrainingConfig(BaseModel):
    """Operational training settings."""

    model_config = ConfigDict(frozen=True)

    seed: int = 42
    artifact_dir: str = "data/models"
    persist_artifacts: bool = True

    @field_validator("seed")
    @classmethod
    def validate_seed(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"seed must be non-negative, got {v}.")
        return v


class LoggingConfig(BaseModel):
    """Log level, destination file and line format."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/city_predictor.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"level must be one of {', '.join(_LOG_LEVELS)}, got '{v}'.")
        return level


class AppConfig(BaseModel):
    """Root configuration handed to ``CityPredictor`` and every CLI command."""

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    data: DataConfig = DataConfig()
    training: TrainingConfig = TrainingConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

# env var → (section, key); an empty section means a top-level field.
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "CITY_PREDICTOR_DB_PATH":         ("database", "db_path"),
    "CITY_PREDICTOR_TRAFFIC_DATASET": ("data", "traffic_dataset"),
    "CITY_PREDICTOR_ENERGY_DATASET":  ("data", "energy_dataset"),
    "CITY_PREDICTOR_SEED":            ("training", "seed"),
    "CITY_PREDICTOR_ARTIFACT_DIR":    ("training", "artifact_dir"),
    "CITY_PREDICTOR_LOG_LEVEL":       ("logging", "level"),
    "CITY_PREDICTOR_DEBUG":           ("", "debug"),
}

_TRUTHY = {"1", "true", "yes", "on"}


def _project_root() -> Path:
    """Nearest ancestor of this package holding ``pyproject.toml``."""
    here = Path(__file__).resolve().parent
    for candidate in (here, *here.parents):
        if (candidate / "pyproject.toml").exists():
            return candidate
    return here.parent


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Build the ``AppConfig`` from TOML files and the environment.

    Args:
        config_path: TOML file to start from; ``config/default.toml`` under
            the project root when omitted.  A ``local.toml`` next to it is
            merged on top.

    Returns:
        Validated, frozen ``AppConfig``.

    Raises:
        FileNotFoundError: ``config_path`` does not exist.
        pydantic.ValidationError: A merged value is invalid.
    """
    root = _project_root()
    load_dotenv(dotenv_path=root / ".env", override=False)

    path = Path(config_path) if config_path is not None else root / "config" / "default.toml"
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            "Create config/default.toml or pass --config explicitly."
        )

    raw = _read_toml(path)
    local = path.parent / "local.toml"
    if local.exists():
        raw = _deep_merge(raw, _read_toml(local))

    return _build_app_config(_apply_env_overrides(raw, os.environ))


def _read_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as fh:
        return tomllib.load(fh)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``override`` merged in; nested tables merge key by key."""
    merged = {**base}
    for key, val in override.items():
        if isinstance(val, dict) and isinstance(merged.get(key), dict):
            val = _deep_merge(merged[key], val)
        merged[key] = val
    return merged


def _apply_env_overrides(raw: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Overlay every set ``CITY_PREDICTOR_*`` variable listed in ``_ENV_OVERRIDES``."""
    result = {key: dict(val) if isinstance(val, dict) else val for key, val in raw.items()}
    for var, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(var)
        if not value:
            continue
        if key == "debug":
            result["debug"] = value.strip().lower() in _TRUTHY
        else:
            result.setdefault(section, {})[key] = value
    return result


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Validate the merged dict; ``[project] debug`` is the TOML home of ``debug``."""
    sections = {name: raw.get(name, {}) for name in ("database", "data", "training", "logging")}
    debug = raw.get("debug", raw.get("project", {}).get("debug", False))
    return AppConfig.model_validate({**sections, "debug": debug})
