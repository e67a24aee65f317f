"""
Model trainer: fixed-recipe fit of one domain's regressor.

Recipe (fixed, not configurable)
--------------------------------
- Adam, learning rate 0.01, mean squared error on normalized labels.
- 50 epochs, batch size 4, training batches reshuffled every epoch.
- 20% of samples held out for validation.  The split is drawn once per run
  from a seeded shuffle and the validation rows are never trained on.
- Weight initialization is seeded too, so a run in isolation is reproducible.
  Dropout shares torch's global RNG, so two domains training at once can
  perturb each other's masks.

Progress
--------
``on_progress`` fires exactly once per epoch, after the epoch's batches and
validation pass, in strictly increasing order 1..50.  It may be a plain
function or a coroutine function.  The loop awaits ``asyncio.sleep(0)``
between epochs so other tasks (UI updates, predictions against the previous
model) run while training is in flight.

Failure
-------
Any numeric error (bad tensor shapes, non-finite loss, too few samples to
split) raises ``TrainingFailure``.  The partially-trained network is dropped;
reverting registry state is the caller's job.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
from collections.abc import Awaitable, Callable, Sequence
from typing import Optional, Union

import torch
from torch import nn

from city_predictor.errors import TrainingFailure
from city_predictor.ml.codec import normalize, normalize_label
from city_predictor.ml.network import TrainedModel, build_network
from city_predictor.models.sample import TrainingSample
from city_predictor.models.training import ProgressEvent, TrainingResult
from city_predictor.taxonomy.domain import Domain
from city_predictor.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

EPOCHS = 50
BATCH_SIZE = 4
LEARNING_RATE = 0.01
VALIDATION_FRACTION = 0.2
ACCURACY_TOLERANCE = 0.1

ProgressCallback = Callable[[ProgressEvent], Union[Awaitable[None], None]]


def split_indices(
    n_samples: int,
    generator: torch.Generator,
) -> tuple[list[int], list[int]]:
    """Shuffle ``range(n_samples)`` and split it 80/20 into (train, validation).

    The validation share is ``round(n * 0.2)`` but at least one row, and at
    least one row is always left for training.

    Raises:
        ValueError: Fewer than 2 samples.
    """
    if n_samples < 2:
        raise ValueError(f"need at least 2 samples to split, got {n_samples}.")
    n_val = min(max(1, round(n_samples * VALIDATION_FRACTION)), n_samples - 1)
    order = torch.randperm(n_samples, generator=generator).tolist()
    return order[n_val:], order[:n_val]


class ModelTrainer:
    """Trains one ``TrainedModel`` per call.

    The trainer holds no model state between calls; concurrent ``train()``
    calls for different domains are independent.

    Attributes:
        seed: Seed for the train/validation split and batch shuffling.
    """

    def __init__(self, seed: int = 42) -> None:
        self.seed = seed

    async def train(
        self,
        domain: Domain | str,
        samples: Sequence[TrainingSample],
        on_progress: Optional[ProgressCallback] = None,
    ) -> TrainedModel:
        """Fit a fresh network on ``samples``.

        Args:
            domain:      Domain being trained (selects the codec).
            samples:     Labeled samples from the dataset loader.
            on_progress: Called once per epoch with a ``ProgressEvent``.

        Returns:
            The fitted ``TrainedModel`` with its ``TrainingResult`` attached.

        Raises:
            TrainingFailure: If data preparation or any epoch fails numerically.
        """
        domain = Domain(domain)
        generator = torch.Generator().manual_seed(self.seed)

        try:
            features = torch.tensor(
                [normalize(domain, s) for s in samples], dtype=torch.float32
            )
            labels = torch.tensor(
                [[normalize_label(domain, s)] for s in samples], dtype=torch.float32
            )
            train_idx, val_idx = split_indices(len(samples), generator)
        except (KeyError, TypeError, ValueError, RuntimeError) as exc:
            logger.error("Training data preparation failed  domain=%s: %s", domain.value, exc)
            raise TrainingFailure(domain, f"invalid training data: {exc}") from exc

        x_train, y_train = features[train_idx], labels[train_idx]
        x_val, y_val = features[val_idx], labels[val_idx]
        del features, labels

        # weight init and dropout masks draw from the global RNG
        torch.manual_seed(self.seed)
        network = build_network()
        optimizer = torch.optim.Adam(network.parameters(), lr=LEARNING_RATE)
        loss_fn = nn.MSELoss()

        logger.info(
            "Training %s model: %d train rows, %d val rows, %d epochs",
            domain.value, len(train_idx), len(val_idx), EPOCHS,
        )

        event: Optional[ProgressEvent] = None
        try:
            for epoch in range(1, EPOCHS + 1):
                try:
                    loss = _run_epoch(network, optimizer, loss_fn, x_train, y_train, generator)
                    val_loss, accuracy = _evaluate(network, loss_fn, x_val, y_val)
                    if not math.isfinite(loss) or (val_loss is not None and not math.isfinite(val_loss)):
                        raise FloatingPointError(f"non-finite loss at epoch {epoch}")
                except (RuntimeError, ValueError, FloatingPointError) as exc:
                    logger.error(
                        "Training aborted  domain=%s epoch=%d: %s", domain.value, epoch, exc
                    )
                    raise TrainingFailure(domain, str(exc)) from exc

                event = ProgressEvent(
                    domain=domain,
                    epoch=epoch,
                    epochs=EPOCHS,
                    loss=loss,
                    val_loss=val_loss,
                    accuracy=accuracy,
                )
                logger.debug("domain=%s epoch=%d loss=%.6f", domain.value, epoch, loss)
                if on_progress is not None:
                    maybe_awaitable = on_progress(event)
                    if inspect.isawaitable(maybe_awaitable):
                        await maybe_awaitable

                await asyncio.sleep(0)
        finally:
            del x_train, y_train, x_val, y_val

        assert event is not None
        result = TrainingResult(
            domain=domain,
            epochs=EPOCHS,
            final_loss=event.loss,
            final_val_loss=event.val_loss,
            training_rows=len(train_idx),
            validation_rows=len(val_idx),
            trained_at=utcnow(),
        )
        logger.info(
            "Training complete  domain=%s loss=%.6f val_loss=%s",
            domain.value, result.final_loss, result.final_val_loss,
        )
        return TrainedModel(domain=domain, network=network, result=result)


def _run_epoch(
    network: nn.Module,
    optimizer: torch.optim.Optimizer,
    loss_fn: nn.Module,
    x_train: torch.Tensor,
    y_train: torch.Tensor,
    generator: torch.Generator,
) -> float:
    """One shuffled pass over the training split; returns the sample-weighted mean loss."""
    network.train()
    n = x_train.shape[0]
    order = torch.randperm(n, generator=generator)
    total = 0.0
    for start in range(0, n, BATCH_SIZE):
        batch = order[start:start + BATCH_SIZE]
        xb, yb = x_train[batch], y_train[batch]
        optimizer.zero_grad()
        loss = loss_fn(network(xb), yb)
        loss.backward()
        optimizer.step()
        total += float(loss.item()) * len(batch)
    return total / n


def _evaluate(
    network: nn.Module,
    loss_fn: nn.Module,
    x_val: torch.Tensor,
    y_val: torch.Tensor,
) -> tuple[Optional[float], Optional[float]]:
    """Validation MSE and within-tolerance accuracy; ``(None, None)`` if the split is empty."""
    if x_val.shape[0] == 0:
        return None, None
    network.eval()
    with torch.no_grad():
        preds = network(x_val)
        val_loss = float(loss_fn(preds, y_val).item())
        accuracy = float(((preds - y_val).abs() < ACCURACY_TOLERANCE).float().mean().item())
    return val_loss, accuracy
