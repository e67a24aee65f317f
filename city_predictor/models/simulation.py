"""
Simulation log models.

``SimulationRecord`` is one logged prediction event.  ``record_id`` and
``timestamp`` are ``None`` until the record has been appended to the store:
the store assigns the id, and stamps the insertion time unless the caller
supplied one.  Records are frozen; the log is append-only.

``PredictionOutcome`` is what ``CityPredictor.run_prediction()`` hands back to
the dashboard: the served value, the id of the logged record, and the
recommendations derived from it.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from city_predictor.taxonomy.domain import Domain
from city_predictor.utils.time_utils import MAX_EPOCH_MS


class SimulationRecord(BaseModel):
    """One logged prediction event.

    Attributes:
        record_id:       Store-assigned id; ``None`` before insertion.
        timestamp:       Insertion time in epoch milliseconds (UTC).
        domain:          Domain the prediction was served for.
        predicted_value: Served prediction in domain units.
        observed_value:  Ground-truth / current value, if known.
        scenario_label:  Free-text scenario tag, e.g. ``"Real-time prediction"``.
        context_metrics: Raw features and any other context, JSON-serializable.
    """

    model_config = ConfigDict(frozen=True)

    record_id: Optional[int] = None
    timestamp: Optional[int] = None
    domain: Domain
    predicted_value: float
    observed_value: Optional[float] = None
    scenario_label: Optional[str] = None
    context_metrics: dict[str, Any] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not 0 <= v <= MAX_EPOCH_MS:
            raise ValueError(f"timestamp must be epoch ms in [0, {MAX_EPOCH_MS}], got {v}.")
        return v

    @field_validator("context_metrics")
    @classmethod
    def validate_context_metrics(cls, v: dict[str, Any]) -> dict[str, Any]:
        try:
            json.dumps(v, sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"context_metrics must be JSON-serializable: {exc}") from exc
        return v


class PredictionOutcome(BaseModel):
    """Result of one predict → log → recommend round trip."""

    model_config = ConfigDict(frozen=True)

    record_id: int
    domain: Domain
    predicted_value: int
    observed_value: Optional[float] = None
    recommendations: list[str]
