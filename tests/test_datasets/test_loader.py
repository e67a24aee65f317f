"""Tests for the dataset loader — bundled datasets and validation failures."""

from __future__ import annotations

import pytest

from city_predictor.datasets.loader import default_dataset_path, load_samples
from city_predictor.errors import DatasetError
from city_predictor.models.sample import EnergySample, TrafficSample
from city_predictor.taxonomy.domain import Domain


class TestBundledDatasets:
    def test_bundled_files_exist(self):
        for domain in Domain:
            assert default_dataset_path(domain).exists()

    def test_traffic(self, traffic_samples):
        assert len(traffic_samples) == 20
        assert all(isinstance(s, TrafficSample) for s in traffic_samples)
        assert all(0 <= s.congestion <= 100 for s in traffic_samples)

    def test_energy(self, energy_samples):
        assert len(energy_samples) == 20
        assert all(isinstance(s, EnergySample) for s in energy_samples)
        assert all(s.demand <= 12000 for s in energy_samples)

    def test_is_immutable_tuple(self, traffic_samples):
        assert isinstance(traffic_samples, tuple)

    def test_string_domain(self):
        assert load_samples("energy") == load_samples(Domain.ENERGY)


class TestCustomDatasets:
    def test_explicit_path(self, write_dataset):
        path = write_dataset(
            {"training_data": [
                {"hour": 1, "day_of_week": 0, "weather": 0, "congestion": 5},
                {"hour": 17, "day_of_week": 5, "weather": 1, "congestion": 91},
            ]}
        )
        samples = load_samples(Domain.TRAFFIC, path)
        assert [s.congestion for s in samples] == [5, 91]

    def test_missing_file(self, tmp_path):
        with pytest.raises(DatasetError, match="file not found"):
            load_samples(Domain.TRAFFIC, tmp_path / "missing.json")

    def test_malformed_json(self, write_dataset):
        with pytest.raises(DatasetError, match="malformed JSON"):
            load_samples(Domain.ENERGY, write_dataset("{not json"))

    def test_top_level_array(self, write_dataset):
        with pytest.raises(DatasetError, match="must be an object"):
            load_samples(Domain.ENERGY, write_dataset([]))

    @pytest.mark.parametrize("payload", [{}, {"training_data": []}, {"training_data": "x"}])
    def test_missing_or_empty_rows(self, write_dataset, payload):
        with pytest.raises(DatasetError, match="non-empty list"):
            load_samples(Domain.TRAFFIC, write_dataset(payload))

    def test_invalid_row_reports_index(self, write_dataset):
        path = write_dataset(
            {"training_data": [
                {"hour": 1, "temperature": 5, "is_weekday": 1, "demand": 4000},
                {"hour": 30, "temperature": 5, "is_weekday": 1, "demand": 4000},
            ]}
        )
        with pytest.raises(DatasetError, match="row 1"):
            load_samples(Domain.ENERGY, path)

    def test_non_object_row(self, write_dataset):
        with pytest.raises(DatasetError, match="row 0"):
            load_samples(Domain.ENERGY, write_dataset({"training_data": [42]}))
