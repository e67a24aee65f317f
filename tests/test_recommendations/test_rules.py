"""Tests for threshold-based recommendations."""

from __future__ import annotations

import pytest

from city_predictor.recommendations.rules import RULES, recommend
from city_predictor.taxonomy.domain import Domain

TRAFFIC = RULES[Domain.TRAFFIC]
ENERGY = RULES[Domain.ENERGY]


class TestTrafficRules:
    def test_rising_and_high(self):
        advisories = recommend(Domain.TRAFFIC, 70, 90)
        assert advisories == list(TRAFFIC.rising) + list(TRAFFIC.high)
        assert advisories[0] == "Activate smart traffic light optimization"
        assert len(advisories) == 5

    def test_rising_only(self):
        assert recommend("traffic", 40, 60) == list(TRAFFIC.rising)

    def test_falling(self):
        assert recommend(Domain.TRAFFIC, 60, 45) == list(TRAFFIC.falling)

    def test_high_without_delta(self):
        assert recommend(Domain.TRAFFIC, 85, 86) == list(TRAFFIC.high)

    def test_falling_and_high(self):
        assert recommend(Domain.TRAFFIC, 99, 85) == list(TRAFFIC.falling) + list(TRAFFIC.high)

    @pytest.mark.parametrize(
        "current, predicted",
        [(50, 65), (50, 40), (70, 80)],
        ids=["rise-boundary", "fall-boundary", "high-boundary"],
    )
    def test_boundaries_are_strict(self, current, predicted):
        assert recommend(Domain.TRAFFIC, current, predicted) == []


class TestEnergyRules:
    def test_rising_not_high(self):
        advisories = recommend(Domain.ENERGY, 6000, 7600)
        assert advisories == [
            "Activate grid storage reserves",
            "Maximize solar panel output",
            "Pre-cool buildings to reduce peak load",
        ]

    def test_high(self):
        assert recommend(Domain.ENERGY, 9000, 9500) == list(ENERGY.high)

    def test_falling(self):
        assert recommend(Domain.ENERGY, 8000, 6500) == list(ENERGY.falling)

    @pytest.mark.parametrize(
        "current, predicted",
        [(6000, 7500), (6000, 5000), (8500, 9000)],
        ids=["rise-boundary", "fall-boundary", "high-boundary"],
    )
    def test_boundaries_are_strict(self, current, predicted):
        assert recommend(Domain.ENERGY, current, predicted) == []


class TestPurity:
    def test_returns_fresh_list(self):
        first = recommend(Domain.TRAFFIC, 70, 90)
        first.clear()
        assert len(recommend(Domain.TRAFFIC, 70, 90)) == 5

    def test_unknown_domain(self):
        with pytest.raises(ValueError):
            recommend("water", 1, 2)
