"""
Training progress and outcome models.

``ProgressEvent`` is emitted once per epoch, in strictly increasing epoch
order starting at 1.  ``TrainingResult`` summarises a committed run.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from city_predictor.taxonomy.domain import Domain


class ProgressEvent(BaseModel):
    """Per-epoch training progress.

    Attributes:
        domain:   Domain being trained.
        epoch:    1-based epoch index.
        epochs:   Total epochs in the run (for progress bars).
        loss:     Mean training MSE over the epoch's batches.
        val_loss: MSE on the held-out validation split.
        accuracy: Share of validation samples within 0.1 of their normalized
                  label, or ``None`` when the split is empty.
    """

    model_config = ConfigDict(frozen=True)

    domain: Domain
    epoch: int
    epochs: int
    loss: float
    val_loss: Optional[float] = None
    accuracy: Optional[float] = None

    @field_validator("epoch")
    @classmethod
    def validate_epoch(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"epoch is 1-based, got {v}.")
        return v

    @field_validator("loss")
    @classmethod
    def validate_loss(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"loss must be non-negative, got {v}.")
        return v

    @property
    def fraction_complete(self) -> float:
        return self.epoch / self.epochs


class TrainingResult(BaseModel):
    """Summary of a successful training run.

    Attributes:
        domain:          Domain that was trained.
        epochs:          Number of epochs completed.
        final_loss:      Training loss of the last epoch.
        final_val_loss:  Validation loss of the last epoch.
        training_rows:   Samples in the training split.
        validation_rows: Samples in the validation split.
        trained_at:      UTC completion time.
    """

    model_config = ConfigDict(frozen=True)

    domain: Domain
    epochs: int
    final_loss: float
    final_val_loss: Optional[float] = None
    training_rows: int
    validation_rows: int
    trained_at: datetime
