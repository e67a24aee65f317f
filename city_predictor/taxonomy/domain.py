"""
Domain taxonomy.

``Domain`` names the two predictive subjects.  ``TrainingState`` is the
per-domain lifecycle tracked by ``ModelRegistry``::

    untrained ──begin──▶ training ──commit──▶ trained
        ▲                   │  ▲                 │
        └──────abort────────┘  └─────begin───────┘
                (abort from a retrain returns to trained)

This module has NO imports from any other ``city_predictor`` package.
"""

from enum import StrEnum


class Domain(StrEnum):
    """Predictive subject."""

    TRAFFIC = "traffic"
    """Road congestion, in percent (0–100)."""

    ENERGY = "energy"
    """City-wide electricity demand, in kWh."""


class TrainingState(StrEnum):
    """Per-domain model lifecycle state."""

    UNTRAINED = "untrained"
    TRAINING = "training"
    TRAINED = "trained"
