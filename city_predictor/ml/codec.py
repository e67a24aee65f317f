"""
Feature codec: raw domain units ⇄ the model's [0, 1] working range.

Per-domain constants
--------------------
  traffic : hour/24, day_of_week/7, weather (0/1, passed through)
            label congestion/100; output × 100  → percent
  energy  : hour/24, temperature/35, is_weekday (0/1, passed through)
            label demand/12000;  output × 12000 → kWh

These are fixed domain constants, not configuration.  Inputs are expected to
be validated by the caller (``TrafficFeatures`` / ``EnergyFeatures``); the
codec itself does no range checking.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from city_predictor.taxonomy.domain import Domain


@dataclass(frozen=True)
class DomainCodec:
    """Normalization constants for one domain.

    Attributes:
        feature_names: Raw feature keys, in model input order.
        divisors:      Per-feature divisor (1.0 = pass through).
        label_name:    Raw label key on training samples.
        scale:         Output denormalization factor.
    """

    feature_names: tuple[str, str, str]
    divisors: tuple[float, float, float]
    label_name: str
    scale: float


CODECS: dict[Domain, DomainCodec] = {
    Domain.TRAFFIC: DomainCodec(
        feature_names=("hour", "day_of_week", "weather"),
        divisors=(24.0, 7.0, 1.0),
        label_name="congestion",
        scale=100.0,
    ),
    Domain.ENERGY: DomainCodec(
        feature_names=("hour", "temperature", "is_weekday"),
        divisors=(24.0, 35.0, 1.0),
        label_name="demand",
        scale=12000.0,
    ),
}

N_FEATURES = 3


def _as_mapping(raw: BaseModel | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(raw, BaseModel):
        return raw.model_dump()
    return raw


def normalize(domain: Domain | str, raw_features: BaseModel | Mapping[str, Any]) -> list[float]:
    """Scale raw features to the model input vector.

    Args:
        domain:       Target domain.
        raw_features: Feature model, training sample, or plain mapping.

    Returns:
        Three floats in model input order.
    """
    codec = CODECS[Domain(domain)]
    raw = _as_mapping(raw_features)
    return [
        float(raw[name]) / divisor
        for name, divisor in zip(codec.feature_names, codec.divisors)
    ]


def normalize_label(domain: Domain | str, sample: BaseModel | Mapping[str, Any]) -> float:
    """Scale a sample's raw label to the model's [0, 1] target range."""
    codec = CODECS[Domain(domain)]
    return float(_as_mapping(sample)[codec.label_name]) / codec.scale


def denormalize(domain: Domain | str, raw_output: float) -> int:
    """Convert a model output back to domain units, rounded to the nearest integer.

    Halves round up (``2.5 → 3``), matching the dashboard's display rounding.
    """
    codec = CODECS[Domain(domain)]
    return int(math.floor(raw_output * codec.scale + 0.5))
