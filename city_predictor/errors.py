"""
Error taxonomy for the predictive-model subsystem.

Every failure the core can surface is one of these classes, so callers can
branch on *what* went wrong instead of parsing messages:

  ModelNotTrained             — predict() on a domain with no committed model.
  TrainingFailure             — the numeric fit failed; registry state reverted.
  ConcurrentTrainingRejected  — the domain is already training.
  DatasetError                — a training dataset is missing or malformed.
  StorageUnavailable          — the simulation store could not be initialized.
  StorageWriteFailure         — a single append/clear failed.
  StorageReadFailure          — a single query failed.

All derive from ``CityPredictorError`` (a ``RuntimeError``).
"""

from __future__ import annotations


class CityPredictorError(RuntimeError):
    """Base class for all City Predictor errors."""


# ── Model lifecycle ───────────────────────────────────────────────────────────


class ModelNotTrained(CityPredictorError):
    """Raised when a prediction is requested for a domain with no committed model.

    Attributes:
        domain: The domain that has no model.
    """

    def __init__(self, domain: str) -> None:
        self.domain = domain
        super().__init__(
            f"No trained model for domain '{domain}'.  Train the model first."
        )


class TrainingFailure(CityPredictorError):
    """Raised when a training run aborts.

    The registry has already been reverted to its pre-training state when this
    propagates; any previously committed model is still being served.

    Attributes:
        domain: The domain whose training failed.
        reason: Short description of the failure.
    """

    def __init__(self, domain: str, reason: str) -> None:
        self.domain = domain
        self.reason = reason
        super().__init__(f"Training failed for domain '{domain}': {reason}")


class ConcurrentTrainingRejected(CityPredictorError):
    """Raised when a train request arrives while the domain is already training.

    Attributes:
        domain: The busy domain.
    """

    def __init__(self, domain: str) -> None:
        self.domain = domain
        super().__init__(
            f"Domain '{domain}' is already training.  Wait for the current run to finish."
        )


class DatasetError(CityPredictorError):
    """Raised when a training dataset cannot be loaded or fails validation.

    Attributes:
        domain: The dataset's domain.
        reason: Short description of the problem.
    """

    def __init__(self, domain: str, reason: str) -> None:
        self.domain = domain
        self.reason = reason
        super().__init__(f"Invalid dataset for domain '{domain}': {reason}")


# ── Simulation store ──────────────────────────────────────────────────────────


class StorageUnavailable(CityPredictorError):
    """Raised when the backing database cannot be opened or initialized.

    Fatal for every store operation until the store is re-initialized.

    Attributes:
        db_path: Database location that failed.
        reason:  Underlying error message.
    """

    def __init__(self, db_path: str, reason: str) -> None:
        self.db_path = db_path
        self.reason = reason
        super().__init__(f"Simulation store unavailable at '{db_path}': {reason}")


class StorageWriteFailure(CityPredictorError):
    """Raised when a single write operation (append, clear) fails."""


class StorageReadFailure(CityPredictorError):
    """Raised when a single read operation (query, query_recent) fails."""
