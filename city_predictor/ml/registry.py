"""
Model registry: one model slot and one training-state token per domain.

State machine (per domain)
--------------------------
    begin_training   untrained → training      (trained → training on retrain)
    commit_training  training  → trained       (new model becomes current)
    abort_training   training  → state before begin_training; model unchanged

``begin_training`` is a compare-and-set: a second call while the domain is
already ``training`` raises ``ConcurrentTrainingRejected`` and changes
nothing.  Domains are independent — training traffic never blocks energy.

While a domain is ``training`` the previously committed model (if any) keeps
serving; ``current_model()`` never returns a half-trained network because
models only enter the registry through ``commit_training``.

Transitions take a ``threading.Lock`` so the registry stays consistent even
when a host calls it from worker threads as well as the event loop.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from city_predictor.errors import ConcurrentTrainingRejected
from city_predictor.ml.network import TrainedModel
from city_predictor.models.training import TrainingResult
from city_predictor.taxonomy.domain import Domain, TrainingState

logger = logging.getLogger(__name__)


@dataclass
class _DomainSlot:
    state: TrainingState = TrainingState.UNTRAINED
    model: Optional[TrainedModel] = None
    state_before_training: Optional[TrainingState] = None


class ModelRegistry:
    """Holds at most one committed model per domain plus its training state."""

    def __init__(self) -> None:
        self._slots: dict[Domain, _DomainSlot] = {d: _DomainSlot() for d in Domain}
        self._lock = threading.Lock()

    # ── Queries ───────────────────────────────────────────────────────────────

    def state(self, domain: Domain | str) -> TrainingState:
        with self._lock:
            return self._slots[Domain(domain)].state

    def current_model(self, domain: Domain | str) -> Optional[TrainedModel]:
        """Return the last committed model for ``domain``, or ``None``."""
        with self._lock:
            return self._slots[Domain(domain)].model

    def is_trained(self, domain: Domain | str) -> bool:
        """True once a model has been committed, including during a retrain."""
        return self.current_model(domain) is not None

    def is_training(self, domain: Domain | str) -> bool:
        return self.state(domain) is TrainingState.TRAINING

    def last_result(self, domain: Domain | str) -> Optional[TrainingResult]:
        """Training summary of the currently served model, if it has one."""
        model = self.current_model(domain)
        return model.result if model is not None else None

    def snapshot(self) -> dict[Domain, TrainingState]:
        """Return the state of every domain at one instant."""
        with self._lock:
            return {d: slot.state for d, slot in self._slots.items()}

    # ── Transitions ───────────────────────────────────────────────────────────

    def begin_training(self, domain: Domain | str) -> None:
        """Move ``domain`` into ``training``.

        Raises:
            ConcurrentTrainingRejected: If ``domain`` is already training.
        """
        domain = Domain(domain)
        with self._lock:
            slot = self._slots[domain]
            if slot.state is TrainingState.TRAINING:
                raise ConcurrentTrainingRejected(domain)
            slot.state_before_training = slot.state
            slot.state = TrainingState.TRAINING
        logger.info("Training started  domain=%s", domain.value)

    def commit_training(self, domain: Domain | str, model: TrainedModel) -> None:
        """Install ``model`` as the current model and mark ``domain`` trained.

        Raises:
            RuntimeError: If ``domain`` is not training, or ``model`` was
                trained for a different domain.
        """
        domain = Domain(domain)
        if model.domain is not domain:
            raise RuntimeError(
                f"Cannot commit a '{model.domain.value}' model to domain '{domain.value}'."
            )
        with self._lock:
            slot = self._slots[domain]
            if slot.state is not TrainingState.TRAINING:
                raise RuntimeError(
                    f"commit_training('{domain.value}') without begin_training()."
                )
            slot.model = model
            slot.state = TrainingState.TRAINED
            slot.state_before_training = None
        logger.info("Model committed  domain=%s", domain.value)

    def abort_training(self, domain: Domain | str) -> None:
        """Revert ``domain`` to its state before ``begin_training``.

        Raises:
            RuntimeError: If ``domain`` is not training.
        """
        domain = Domain(domain)
        with self._lock:
            slot = self._slots[domain]
            if slot.state is not TrainingState.TRAINING:
                raise RuntimeError(
                    f"abort_training('{domain.value}') without begin_training()."
                )
            slot.state = slot.state_before_training or TrainingState.UNTRAINED
            slot.state_before_training = None
            reverted_to = slot.state
        logger.warning(
            "Training aborted  domain=%s reverted_to=%s", domain.value, reverted_to.value
        )
