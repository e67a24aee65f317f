"""
Fixed regression network and the trained-model wrapper.

Architecture (identical for both domains, not configurable)
-----------------------------------------------------------
    Linear(3 → 16) → ReLU → Dropout(0.2) → Linear(16 → 8) → ReLU
        → Linear(8 → 1) → Sigmoid

Sigmoid bounds the output to [0, 1]; ``codec.denormalize`` maps it back to
domain units.  Dropout is active only in ``train()`` mode — ``TrainedModel``
always runs inference in ``eval()`` mode.

Tensor lifetime
---------------
Inference builds its input tensor inside a ``torch.inference_mode()`` block
and converts the output to a Python float before leaving it; no tensor
outlives a ``predict_normalized()`` call.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, Sequence

import torch
from torch import nn

from city_predictor.ml.codec import N_FEATURES
from city_predictor.models.training import TrainingResult
from city_predictor.taxonomy.domain import Domain
from city_predictor.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

HIDDEN_UNITS = (16, 8)
DROPOUT_RATE = 0.2


def build_network() -> nn.Sequential:
    """Return a freshly initialised network with the fixed architecture."""
    first, second = HIDDEN_UNITS
    return nn.Sequential(
        nn.Linear(N_FEATURES, first),
        nn.ReLU(),
        nn.Dropout(p=DROPOUT_RATE),
        nn.Linear(first, second),
        nn.ReLU(),
        nn.Linear(second, 1),
        nn.Sigmoid(),
    )


class TrainedModel:
    """A fitted network for one domain.

    Instances are created by ``ModelTrainer`` (or ``TrainedModel.load``) and
    handed to ``ModelRegistry``; they are never mutated after commit.

    Attributes:
        domain:  Domain this model predicts.
        result:  Training summary, or ``None`` for models loaded without one.
        MODEL_VERSION: Version string embedded in saved artifacts.
    """

    MODEL_VERSION = "v1.0.0"

    def __init__(
        self,
        domain: Domain,
        network: nn.Module,
        result: Optional[TrainingResult] = None,
    ) -> None:
        self.domain = Domain(domain)
        self.result = result
        self._network = network
        self._network.eval()

    # ── Inference ─────────────────────────────────────────────────────────────

    def predict_normalized(self, vector: Sequence[float]) -> float:
        """Run one forward pass on a normalized feature vector.

        Args:
            vector: ``N_FEATURES`` floats from ``codec.normalize``.

        Returns:
            Model output in [0, 1].
        """
        if len(vector) != N_FEATURES:
            raise ValueError(
                f"Expected {N_FEATURES} features, got {len(vector)}."
            )
        with torch.inference_mode():
            x = torch.tensor([list(vector)], dtype=torch.float32)
            output = float(self._network(x).item())
        return output

    # ── Persistence ───────────────────────────────────────────────────────────

    def save(self, artifact_path: Path) -> None:
        """Serialize the network weights and training summary with ``torch.save``.

        Args:
            artifact_path: Target ``.pt`` path. Parent directories are created.
        """
        artifact_path = Path(artifact_path)
        artifact_path.parent.mkdir(parents=True, exist_ok=True)
        torch.save(
            {
                "state_dict":    self._network.state_dict(),
                "domain":        self.domain.value,
                "model_version": self.MODEL_VERSION,
                "result":        self.result.model_dump(mode="json") if self.result else None,
            },
            artifact_path,
        )
        logger.info("Model artifact saved: %s", artifact_path)

    @classmethod
    def load(cls, artifact_path: Path) -> "TrainedModel":
        """Load a model written by ``save()``.

        Args:
            artifact_path: Path to a ``.pt`` artifact.

        Returns:
            A ready-to-serve ``TrainedModel``.

        Raises:
            FileNotFoundError: If ``artifact_path`` does not exist.
        """
        artifact_path = Path(artifact_path)
        if not artifact_path.exists():
            raise FileNotFoundError(f"Model artifact not found: {artifact_path}")

        state: dict[str, Any] = torch.load(artifact_path, map_location="cpu", weights_only=True)
        network = build_network()
        network.load_state_dict(state["state_dict"])
        raw_result = state.get("result")
        result = TrainingResult(**raw_result) if raw_result else None
        inst = cls(domain=Domain(state["domain"]), network=network, result=result)
        logger.info(
            "Model artifact loaded: %s (domain=%s, version=%s)",
            artifact_path, inst.domain.value, state.get("model_version", "?"),
        )
        return inst

    def write_metadata(self, meta_path: Path, dataset_version: str) -> None:
        """Write a JSON metadata sidecar alongside the model artifact.

        Args:
            meta_path:       Destination ``.json`` path.
            dataset_version: Name of the dataset the model was trained on.
        """
        meta = {
            "schema_version":  self.MODEL_VERSION,
            "model_type":      "feedforward",
            "domain":          self.domain.value,
            "dataset_version": dataset_version,
            "hidden_units":    list(HIDDEN_UNITS),
            "dropout_rate":    DROPOUT_RATE,
            "written_at":      utcnow().isoformat(),
            "training":        self.result.model_dump(mode="json") if self.result else None,
        }
        meta_path = Path(meta_path)
        meta_path.parent.mkdir(parents=True, exist_ok=True)
        meta_path.write_text(json.dumps(meta, indent=2))
        logger.debug("Model metadata written: %s", meta_path)
