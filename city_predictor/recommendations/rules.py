"""
Threshold rules mapping a prediction to operational advisories.

Rule evaluation (per domain)
----------------------------
    delta = predicted − current

    1. Delta branch (at most one fires):
         delta >  RISE_THRESHOLD  → rising-load advisories
         delta <  FALL_THRESHOLD  → falling-load advisories
    2. High-value check (independent of step 1):
         predicted > HIGH_THRESHOLD → high-load advisories

Output order is step 1 then step 2, each in the listed order, so the most
urgent advisory comes first.  All comparisons are strict: a delta of exactly
15 (traffic) fires nothing.  An empty list means no threshold was crossed.

    ┌─────────┬──────────┬──────────┬──────────┐
    │ domain  │ rise  >  │ fall  <  │ high  >  │
    ├─────────┼──────────┼──────────┼──────────┤
    │ traffic │    15    │   -10    │    80    │
    │ energy  │   1500   │  -1000   │   9000   │
    └─────────┴──────────┴──────────┴──────────┘
"""

from __future__ import annotations

from dataclasses import dataclass

from city_predictor.taxonomy.domain import Domain


@dataclass(frozen=True)
class RuleSet:
    """Thresholds and advisory texts for one domain."""

    rise_threshold: float
    fall_threshold: float
    high_threshold: float
    rising: tuple[str, ...]
    falling: tuple[str, ...]
    high: tuple[str, ...]


RULES: dict[Domain, RuleSet] = {
    Domain.TRAFFIC: RuleSet(
        rise_threshold=15,
        fall_threshold=-10,
        high_threshold=80,
        rising=(
            "Activate smart traffic light optimization",
            "Send congestion alerts to commuters",
            "Deploy additional public transport units",
        ),
        falling=(
            "Reduce traffic light cycle times",
            "Open express lanes for faster flow",
        ),
        high=(
            "Suggest alternative routes via mobile app",
            "Adjust street lighting for better visibility",
        ),
    ),
    Domain.ENERGY: RuleSet(
        rise_threshold=1500,
        fall_threshold=-1000,
        high_threshold=9000,
        rising=(
            "Activate grid storage reserves",
            "Maximize solar panel output",
            "Pre-cool buildings to reduce peak load",
        ),
        falling=(
            "Store excess energy in batteries",
            "Schedule non-urgent industrial loads",
        ),
        high=(
            "Send energy conservation alerts",
            "Adjust smart thermostat settings citywide",
        ),
    ),
}


def recommend(domain: Domain | str, current_value: float, predicted_value: float) -> list[str]:
    """Return the advisories triggered by a prediction.

    Args:
        domain:          ``"traffic"`` or ``"energy"``.
        current_value:   Present value in domain units.
        predicted_value: Predicted value in domain units.

    Returns:
        A new list of advisory strings, most urgent first.  May be empty.
    """
    rules = RULES[Domain(domain)]
    delta = predicted_value - current_value

    advisories: list[str] = []
    if delta > rules.rise_threshold:
        advisories.extend(rules.rising)
    elif delta < rules.fall_threshold:
        advisories.extend(rules.falling)

    if predicted_value > rules.high_threshold:
        advisories.extend(rules.high)

    return advisories
