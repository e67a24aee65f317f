"""
CityPredictor — the in-process API the dashboard talks to.

One ``CityPredictor`` is constructed explicitly from an ``AppConfig`` and owns
its ``ModelRegistry``; there is no module-level instance.  Tests build as many
isolated instances as they need.

Operations
----------
  train_model(domain, on_progress)        → TrainingResult
  stream_training(domain)                 → async iterator of ProgressEvent
  is_model_trained(domain) / is_training(domain) / training_state(domain)
  predict(domain, features)               → int
  recommend(domain, current, predicted)   → list[str]
  run_prediction(domain, features, current_value, scenario_label)
                                          → PredictionOutcome (predict + log + recommend)
  log_simulation(record)                  → record id
  list_simulations(domain, limit) / list_recent_simulations(hours) / clear_simulations()
  restore_models()                        → domains restored from saved artifacts

Training lifecycle
------------------
``train_model`` claims the domain in the registry first (so a concurrent call
fails fast with ``ConcurrentTrainingRejected``), then loads the dataset, fits,
optionally persists the artifact, and only then commits.  Any failure on that
path, a raising progress callback included, aborts the claim and leaves the
previously committed model serving.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from pathlib import Path
from typing import Any, Optional

from city_predictor.config import AppConfig
from city_predictor.datasets.loader import load_samples
from city_predictor.errors import DatasetError, TrainingFailure
from city_predictor.ml.network import TrainedModel
from city_predictor.ml.predictor import PredictionService, coerce_features
from city_predictor.ml.registry import ModelRegistry
from city_predictor.ml.trainer import EPOCHS, ModelTrainer, ProgressCallback
from city_predictor.models.sample import FeatureSet
from city_predictor.models.simulation import PredictionOutcome, SimulationRecord
from city_predictor.models.training import ProgressEvent, TrainingResult
from city_predictor.recommendations.rules import recommend
from city_predictor.store.simulation_store import (
    DEFAULT_QUERY_LIMIT,
    DEFAULT_WINDOW_HOURS,
    SimulationStore,
)
from city_predictor.taxonomy.domain import Domain, TrainingState

logger = logging.getLogger(__name__)

REALTIME_SCENARIO = "Real-time prediction"


class CityPredictor:
    """Model lifecycle, prediction, recommendation and simulation logging.

    Args:
        config:   Application configuration.
        registry: Model registry; a fresh one is created if omitted.
        store:    Simulation store; built from ``config.database`` if omitted.
        trainer:  Model trainer; seeded from ``config.training`` if omitted.
    """

    def __init__(
        self,
        config: AppConfig,
        registry: Optional[ModelRegistry] = None,
        store: Optional[SimulationStore] = None,
        trainer: Optional[ModelTrainer] = None,
    ) -> None:
        self.config = config
        self.registry = registry if registry is not None else ModelRegistry()
        self.trainer = trainer if trainer is not None else ModelTrainer(seed=config.training.seed)
        self.predictor = PredictionService(self.registry)
        self.store = store if store is not None else SimulationStore(
            config.database.db_path,
            wal_mode=config.database.wal_mode,
            busy_timeout_ms=config.database.busy_timeout_ms,
        )

    # ── Paths ─────────────────────────────────────────────────────────────────

    def dataset_path(self, domain: Domain | str) -> Optional[Path]:
        """Configured dataset override for ``domain``, or ``None`` for the bundled one."""
        domain = Domain(domain)
        configured = (
            self.config.data.traffic_dataset
            if domain is Domain.TRAFFIC
            else self.config.data.energy_dataset
        )
        return Path(configured) if configured else None

    def artifact_path(self, domain: Domain | str) -> Path:
        return Path(self.config.training.artifact_dir) / f"{Domain(domain).value}_model.pt"

    # ── Model lifecycle ───────────────────────────────────────────────────────

    async def train_model(
        self,
        domain: Domain | str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TrainingResult:
        """Run a full training for ``domain`` and commit the resulting model.

        Args:
            domain:      Domain to train.
            on_progress: Called once per epoch (sync or async callable).

        Returns:
            Summary of the committed run.

        Raises:
            ConcurrentTrainingRejected: ``domain`` is already training.
            TrainingFailure:            Dataset, fit, or artifact write failed.
        """
        domain = Domain(domain)
        self.registry.begin_training(domain)

        committed = False
        try:
            try:
                samples = load_samples(domain, self.dataset_path(domain))
            except DatasetError as exc:
                raise TrainingFailure(domain, exc.reason) from exc

            model = await self.trainer.train(domain, samples, on_progress=on_progress)

            if self.config.training.persist_artifacts:
                self._persist(model)

            self.registry.commit_training(domain, model)
            committed = True
        finally:
            if not committed:
                self.registry.abort_training(domain)

        assert model.result is not None
        return model.result

    def _persist(self, model: TrainedModel) -> None:
        path = self.artifact_path(model.domain)
        try:
            model.save(path)
            model.write_metadata(
                path.with_suffix(".json"),
                dataset_version=(self.dataset_path(model.domain) or Path(f"{model.domain.value}.json")).name,
            )
        except (OSError, RuntimeError) as exc:
            logger.error("Artifact write failed  domain=%s: %s", model.domain.value, exc)
            raise TrainingFailure(model.domain, f"artifact write failed: {exc}") from exc

    async def stream_training(self, domain: Domain | str) -> AsyncIterator[ProgressEvent]:
        """Train ``domain`` and yield its progress events as they happen.

        The generator finishes after epoch 50's event when training succeeds,
        and raises the training error (``TrainingFailure``,
        ``ConcurrentTrainingRejected``) after the last delivered event when it
        fails.  Events are buffered in a queue sized to one run's epochs, so
        a slow consumer never holds training back and no event is dropped.

        Leaving the loop early does not cancel training: the run continues in
        the background and commits as usual.

        Usage::

            async for event in predictor.stream_training("traffic"):
                progress_bar.update(event.fraction_complete)
        """
        domain = Domain(domain)
        queue: asyncio.Queue[ProgressEvent] = asyncio.Queue(maxsize=EPOCHS)

        task = asyncio.create_task(self.train_model(domain, on_progress=queue.put_nowait))
        task.add_done_callback(_log_unobserved_failure)

        while True:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
            if getter in done:
                yield getter.result()
                continue
            getter.cancel()
            while not queue.empty():
                yield queue.get_nowait()
            task.result()
            return

    async def restore_models(self) -> list[Domain]:
        """Commit previously saved artifacts into the registry.

        Domains without an artifact, or already holding a model, are skipped.

        Returns:
            Domains that were restored.

        Raises:
            ConcurrentTrainingRejected: A domain with an artifact is training.
            TrainingFailure:            An artifact exists but cannot be loaded.
        """
        restored: list[Domain] = []
        for domain in Domain:
            path = self.artifact_path(domain)
            if not path.exists() or self.registry.is_trained(domain):
                continue
            self.registry.begin_training(domain)
            try:
                model = await asyncio.to_thread(TrainedModel.load, path)
                self.registry.commit_training(domain, model)
            except Exception as exc:
                self.registry.abort_training(domain)
                logger.error("Artifact restore failed  domain=%s: %s", domain.value, exc)
                raise TrainingFailure(domain, f"cannot restore {path}: {exc}") from exc
            restored.append(domain)
        if restored:
            logger.info("Restored models: %s", ", ".join(d.value for d in restored))
        return restored

    def is_model_trained(self, domain: Domain | str) -> bool:
        return self.registry.is_trained(domain)

    def is_training(self, domain: Domain | str) -> bool:
        return self.registry.is_training(domain)

    def training_state(self, domain: Domain | str) -> TrainingState:
        return self.registry.state(domain)

    # ── Prediction & recommendation ───────────────────────────────────────────

    async def predict(
        self,
        domain: Domain | str,
        features: FeatureSet | Mapping[str, Any],
    ) -> int:
        """Predict one value in domain units.  Raises ``ModelNotTrained``."""
        return await self.predictor.predict(domain, features)

    def recommend(
        self,
        domain: Domain | str,
        current_value: float,
        predicted_value: float,
    ) -> list[str]:
        return recommend(domain, current_value, predicted_value)

    async def run_prediction(
        self,
        domain: Domain | str,
        features: FeatureSet | Mapping[str, Any],
        current_value: Optional[float] = None,
        scenario_label: Optional[str] = REALTIME_SCENARIO,
    ) -> PredictionOutcome:
        """Predict, log the prediction, and derive recommendations.

        Args:
            domain:         Domain to predict.
            features:       Raw features (model or mapping).
            current_value:  Present observed value; stored as the record's
                            ``observed_value``.  Recommendations need it and
                            are empty when it is ``None``.
            scenario_label: Scenario tag stored with the record.

        Raises:
            ModelNotTrained:      No committed model for ``domain``.
            StorageUnavailable:   The store cannot be initialized.
            StorageWriteFailure:  The record could not be written.
        """
        domain = Domain(domain)
        predicted = await self.predictor.predict(domain, features)
        validated = coerce_features(domain, features)

        record_id = await self.store.append(
            SimulationRecord(
                domain=domain,
                predicted_value=predicted,
                observed_value=current_value,
                scenario_label=scenario_label,
                context_metrics=validated.model_dump(),
            )
        )

        advisories = (
            recommend(domain, current_value, predicted) if current_value is not None else []
        )
        return PredictionOutcome(
            record_id=record_id,
            domain=domain,
            predicted_value=predicted,
            observed_value=current_value,
            recommendations=advisories,
        )

    # ── Simulation log ────────────────────────────────────────────────────────

    async def log_simulation(self, record: SimulationRecord) -> int:
        return await self.store.append(record)

    async def list_simulations(
        self,
        domain: Optional[Domain | str] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> list[SimulationRecord]:
        return await self.store.query(domain=domain, limit=limit)

    async def list_recent_simulations(
        self,
        hours: float = DEFAULT_WINDOW_HOURS,
    ) -> list[SimulationRecord]:
        return await self.store.query_recent(window_hours=hours)

    async def clear_simulations(self) -> int:
        return await self.store.clear()


def _log_unobserved_failure(task: asyncio.Task) -> None:
    """Retrieve a background training task's exception so it is logged once."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Background training finished with %s: %s", type(exc).__name__, exc)
