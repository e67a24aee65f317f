"""
City Predictor — operator CLI.

The dashboard uses ``CityPredictor`` in-process; this CLI is for operators:
initializing the simulation database, training and saving models ahead of
time, spot-checking predictions and inspecting the simulation log.

Each command loads ``AppConfig``, sets up logging, and drives one
``CityPredictor`` (or the schema helpers) inside a single process.  Failures
print ``[ERROR] ...`` to stderr and exit with code 1.

Install and run::

    pip install -e .
    city-predictor --help
    city-predictor init-db
    city-predictor validate-config
    city-predictor train traffic
    city-predictor predict traffic --hour 8 --day-of-week 1 --weather 1 --current 70
    city-predictor history --domain energy --limit 10
    city-predictor clear-history --yes
"""

from __future__ import annotations

import asyncio
import json
import math
import sqlite3
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="city-predictor",
    help="Smart-city traffic & energy predictor — operator CLI.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from city_predictor.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from city_predictor.utils.logging import configure_logging
    configure_logging(config.logging)


def _parse_domain_or_exit(value: str):
    from city_predictor.taxonomy.domain import Domain

    try:
        return Domain(value.lower())
    except ValueError:
        choices = ", ".join(d.value for d in Domain)
        typer.echo(f"[ERROR] Unknown domain '{value}'. Choose one of: {choices}.", err=True)
        raise typer.Exit(code=1)


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Simulation database to create instead of database.db_path.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Create the simulation log database, or verify an existing one.

    Idempotent: tables, indexes and the trigger are created only when missing.
    """
    from city_predictor.db.connection import get_connection
    from city_predictor.db.schema import apply_schema, get_existing_indexes, get_existing_tables

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    simulation_db = db_path or config.database.db_path
    try:
        with get_connection(
            simulation_db,
            wal_mode=config.database.wal_mode,
            busy_timeout_ms=config.database.busy_timeout_ms,
        ) as conn:
            apply_schema(conn)
            tables = get_existing_tables(conn)
            indexes = get_existing_indexes(conn)
            logged = conn.execute("SELECT COUNT(*) FROM simulations").fetchone()[0]
    except (sqlite3.Error, OSError) as exc:
        typer.echo(f"[ERROR] Cannot initialize {simulation_db}: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Simulation store: {simulation_db}")
    typer.echo(f"  tables  {', '.join(tables)}")
    typer.echo(f"  indexes {', '.join(indexes)}")
    typer.echo(f"  records {logged}")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Also dump every resolved setting as JSON.",
    ),
) -> None:
    """Resolve the layered configuration and show where each domain reads from.

    Exits with code 1 if the config fails validation.
    """
    from city_predictor.datasets.loader import default_dataset_path
    from city_predictor.taxonomy.domain import Domain

    config = _load_config_or_exit(config_path)
    overrides = {
        Domain.TRAFFIC: config.data.traffic_dataset,
        Domain.ENERGY: config.data.energy_dataset,
    }

    typer.echo(f"simulation db  {config.database.db_path}")
    for domain in Domain:
        dataset = overrides[domain] or f"{default_dataset_path(domain)} (bundled)"
        typer.echo(f"{domain.value:<14} {dataset}")
    persisted = "saved" if config.training.persist_artifacts else "not saved"
    typer.echo(f"artifacts      {config.training.artifact_dir} ({persisted})")
    typer.echo(f"seed           {config.training.seed}")
    typer.echo(f"log level      {config.logging.level}  debug={config.debug}")

    if show_full:
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("[OK] Config valid.")


@app.command("train")
def train(
    domain: str = typer.Argument(..., help="Domain to train: traffic or energy."),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only print the final summary, not per-epoch progress.",
    ),
) -> None:
    """Train one domain's model and save it to the artifact directory.

    A later ``predict`` (or a host calling ``restore_models()``) picks the
    saved artifact up.
    """
    from city_predictor.errors import CityPredictorError
    from city_predictor.service import CityPredictor

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    target = _parse_domain_or_exit(domain)

    if not config.training.persist_artifacts:
        typer.echo(
            "[WARN] training.persist_artifacts is false — the model will be "
            "discarded when this command exits."
        )

    predictor = CityPredictor(config)

    async def _run():
        last = None
        async for event in predictor.stream_training(target):
            last = event
            if not quiet and (event.epoch % 10 == 0 or event.epoch == 1):
                val = f"  val_loss={event.val_loss:.4f}" if event.val_loss is not None else ""
                acc = f"  accuracy={event.accuracy:.2f}" if event.accuracy is not None else ""
                typer.echo(
                    f"  epoch {event.epoch:>2}/{event.epochs}"
                    f"  loss={event.loss:.4f}{val}{acc}"
                )
        return last

    typer.echo(f"Training {target.value} model ...")
    try:
        last_event = asyncio.run(_run())
    except CityPredictorError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    result = predictor.registry.last_result(target)
    if result is not None:
        typer.echo(
            f"  Rows: {result.training_rows} train / {result.validation_rows} validation"
        )
    if last_event is not None:
        typer.echo(f"  Final loss: {last_event.loss:.4f}")
    if config.training.persist_artifacts:
        typer.echo(f"  Artifact: {predictor.artifact_path(target)}")
    typer.echo("[OK] Training complete.")


@app.command("predict")
def predict(
    domain: str = typer.Argument(..., help="Domain to predict: traffic or energy."),
    hour: int = typer.Option(..., "--hour", help="Hour of day, 0-23."),
    day_of_week: Optional[int] = typer.Option(
        None, "--day-of-week", help="Traffic: day of week, 0 (Sunday) - 6."
    ),
    weather: Optional[int] = typer.Option(
        None, "--weather", help="Traffic: 1 for adverse weather, else 0."
    ),
    temperature: Optional[float] = typer.Option(
        None, "--temperature", help="Energy: outdoor temperature in °C."
    ),
    is_weekday: Optional[int] = typer.Option(
        None, "--is-weekday", help="Energy: 1 on weekdays, 0 on weekends."
    ),
    current: Optional[float] = typer.Option(
        None, "--current", help="Current observed value; enables recommendations."
    ),
    scenario: str = typer.Option(
        "CLI prediction", "--scenario", help="Scenario label stored with the record."
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Predict with a saved model, log the result and print recommendations.

    Requires an artifact written by ``train``.
    """
    from pydantic import ValidationError

    from city_predictor.errors import CityPredictorError
    from city_predictor.service import CityPredictor
    from city_predictor.taxonomy.domain import Domain

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    target = _parse_domain_or_exit(domain)

    if target is Domain.TRAFFIC:
        features = {"hour": hour, "day_of_week": day_of_week, "weather": weather}
    else:
        features = {"hour": hour, "temperature": temperature, "is_weekday": is_weekday}
    missing = [name for name, value in features.items() if value is None]
    if missing:
        flags = ", ".join("--" + name.replace("_", "-") for name in missing)
        typer.echo(f"[ERROR] Missing {target.value} feature option(s): {flags}", err=True)
        raise typer.Exit(code=1)

    predictor = CityPredictor(config)

    async def _run():
        await predictor.restore_models()
        return await predictor.run_prediction(
            target, features, current_value=current, scenario_label=scenario
        )

    try:
        outcome = asyncio.run(_run())
    except ValidationError as exc:
        typer.echo(f"[ERROR] Invalid features:\n{exc}", err=True)
        raise typer.Exit(code=1)
    except CityPredictorError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Predicted {target.value}: {outcome.predicted_value}")
    typer.echo(f"  Logged as record #{outcome.record_id}")
    if outcome.recommendations:
        typer.echo("  Recommendations:")
        for line in outcome.recommendations:
            typer.echo(f"    - {line}")


@app.command("history")
def history(
    domain: Optional[str] = typer.Option(
        None, "--domain", help="Restrict to one domain."
    ),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum records to show."),
    hours: Optional[float] = typer.Option(
        None,
        "--hours",
        help="Show every record from the last N hours instead (ignores --domain/--limit).",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print records as JSON lines."),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Show logged simulations, newest first (or oldest first with --hours)."""
    from city_predictor.errors import CityPredictorError
    from city_predictor.service import CityPredictor
    from city_predictor.utils.time_utils import from_epoch_ms

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    target = _parse_domain_or_exit(domain) if domain else None

    if limit < 0 or (hours is not None and not (math.isfinite(hours) and hours >= 0)):
        typer.echo("[ERROR] --limit and --hours must be finite and non-negative.", err=True)
        raise typer.Exit(code=1)

    predictor = CityPredictor(config)
    try:
        if hours is not None:
            records = asyncio.run(predictor.list_recent_simulations(hours))
        else:
            records = asyncio.run(predictor.list_simulations(target, limit))
    except CityPredictorError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    if as_json:
        for record in records:
            typer.echo(record.model_dump_json())
        return

    if not records:
        typer.echo("No simulations logged.")
        return

    for record in records:
        when = from_epoch_ms(record.timestamp).strftime("%Y-%m-%d %H:%M:%S")
        observed = "-" if record.observed_value is None else f"{record.observed_value:g}"
        typer.echo(
            f"  #{record.record_id:<5} {when}  {record.domain.value:<8}"
            f"  predicted={record.predicted_value:g}  observed={observed}"
            f"  {record.scenario_label or ''}"
        )
    typer.echo(f"{len(records)} record(s).")


@app.command("clear-history")
def clear_history(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Delete every logged simulation."""
    from city_predictor.errors import CityPredictorError
    from city_predictor.service import CityPredictor

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    if not yes:
        typer.confirm(
            f"Delete all simulations in {config.database.db_path}?", abort=True
        )

    try:
        removed = asyncio.run(CityPredictor(config).clear_simulations())
    except CityPredictorError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"[OK] Removed {removed} record(s).")


if __name__ == "__main__":
    app()
