"""
Raw feature and training-sample models.

``TrafficFeatures`` / ``EnergyFeatures`` are the raw model inputs in domain
units (hour of day, °C, 0/1 flags).  The matching ``*Sample`` models extend
them with the raw label and are what the dataset loader yields.

All models are frozen: training samples are static reference data and
feature sets are values, not entities.  NaN and infinite floats are rejected,
and the ``*Sample`` subclasses inherit that configuration.
"""

from __future__ import annotations

from typing import Union

from pydantic import BaseModel, ConfigDict, field_validator


def _check_flag(v: int, name: str) -> int:
    if v not in (0, 1):
        raise ValueError(f"{name} must be 0 or 1, got {v}.")
    return v


class TrafficFeatures(BaseModel):
    """Raw inputs for a traffic congestion prediction.

    Attributes:
        hour:        Hour of day, 0–23.
        day_of_week: Day of week, 0 (Sunday) – 6 (Saturday).
        weather:     1 if adverse weather, else 0.
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    hour: int
    day_of_week: int
    weather: int

    @field_validator("hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError(f"hour must be in [0, 23], got {v}.")
        return v

    @field_validator("day_of_week")
    @classmethod
    def validate_day_of_week(cls, v: int) -> int:
        if not 0 <= v <= 6:
            raise ValueError(f"day_of_week must be in [0, 6], got {v}.")
        return v

    @field_validator("weather")
    @classmethod
    def validate_weather(cls, v: int) -> int:
        return _check_flag(v, "weather")


class EnergyFeatures(BaseModel):
    """Raw inputs for an energy demand prediction.

    Attributes:
        hour:        Hour of day, 0–23.
        temperature: Outdoor temperature in °C.
        is_weekday:  1 on Monday–Friday, else 0.
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    hour: int
    temperature: float
    is_weekday: int

    @field_validator("hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError(f"hour must be in [0, 23], got {v}.")
        return v

    @field_validator("is_weekday")
    @classmethod
    def validate_is_weekday(cls, v: int) -> int:
        return _check_flag(v, "is_weekday")


class TrafficSample(TrafficFeatures):
    """Labeled traffic sample.

    Attributes:
        congestion: Observed congestion percentage, 0–100.
    """

    congestion: float

    @field_validator("congestion")
    @classmethod
    def validate_congestion(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError(f"congestion must be in [0, 100], got {v}.")
        return v


class EnergySample(EnergyFeatures):
    """Labeled energy sample.

    Attributes:
        demand: Observed demand in kWh (non-negative).
    """

    demand: float

    @field_validator("demand")
    @classmethod
    def validate_demand(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"demand must be non-negative, got {v}.")
        return v


FeatureSet = Union[TrafficFeatures, EnergyFeatures]
TrainingSample = Union[TrafficSample, EnergySample]
