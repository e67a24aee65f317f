"""Tests for ModelTrainer — split, progress events, determinism, failure."""

from __future__ import annotations

import pytest
import torch

from city_predictor.errors import TrainingFailure
from city_predictor.ml.trainer import EPOCHS, ModelTrainer, split_indices
from city_predictor.models.sample import EnergySample, TrafficSample
from city_predictor.taxonomy.domain import Domain


class TestSplitIndices:
    def test_twenty_samples_split_16_4(self):
        train, val = split_indices(20, torch.Generator().manual_seed(0))
        assert len(train) == 16
        assert len(val) == 4

    def test_partition_is_disjoint_and_complete(self):
        train, val = split_indices(20, torch.Generator().manual_seed(1))
        assert set(train).isdisjoint(val)
        assert sorted(train + val) == list(range(20))

    def test_small_sets_keep_one_of_each(self):
        train, val = split_indices(2, torch.Generator().manual_seed(0))
        assert len(train) == 1 and len(val) == 1
        train, val = split_indices(3, torch.Generator().manual_seed(0))
        assert len(val) == 1 and len(train) == 2

    def test_same_seed_same_split(self):
        a = split_indices(20, torch.Generator().manual_seed(42))
        b = split_indices(20, torch.Generator().manual_seed(42))
        assert a == b

    def test_too_few_samples(self):
        with pytest.raises(ValueError):
            split_indices(1, torch.Generator())


class TestTrain:
    async def test_emits_one_event_per_epoch_in_order(self, traffic_samples):
        events = []
        await ModelTrainer().train(Domain.TRAFFIC, traffic_samples, on_progress=events.append)

        assert [e.epoch for e in events] == list(range(1, EPOCHS + 1))
        assert all(e.epochs == EPOCHS for e in events)
        assert all(e.domain is Domain.TRAFFIC for e in events)
        assert all(e.loss >= 0 for e in events)
        assert all(e.val_loss is not None and 0.0 <= e.accuracy <= 1.0 for e in events)

    async def test_async_callback_is_awaited(self, energy_samples):
        seen = []

        async def on_progress(event):
            seen.append(event.epoch)

        await ModelTrainer().train(Domain.ENERGY, energy_samples, on_progress=on_progress)
        assert seen[-1] == EPOCHS

    async def test_result_attached(self, energy_samples):
        model = await ModelTrainer().train(Domain.ENERGY, energy_samples)
        assert model.domain is Domain.ENERGY
        assert model.result is not None
        assert model.result.epochs == EPOCHS
        assert model.result.training_rows == 16
        assert model.result.validation_rows == 4

    async def test_loss_decreases(self, traffic_samples):
        events = []
        await ModelTrainer().train(Domain.TRAFFIC, traffic_samples, on_progress=events.append)
        assert events[-1].loss < events[0].loss

    async def test_same_seed_is_reproducible(self, traffic_samples):
        vec = [8 / 24, 2 / 7, 1.0]
        first = await ModelTrainer(seed=7).train(Domain.TRAFFIC, traffic_samples)
        second = await ModelTrainer(seed=7).train(Domain.TRAFFIC, traffic_samples)
        assert first.predict_normalized(vec) == pytest.approx(second.predict_normalized(vec))

    async def test_single_sample_fails(self):
        samples = [TrafficSample(hour=8, day_of_week=1, weather=0, congestion=50)]
        with pytest.raises(TrainingFailure, match="invalid training data"):
            await ModelTrainer().train(Domain.TRAFFIC, samples)

    async def test_wrong_domain_samples_fail(self, traffic_samples):
        with pytest.raises(TrainingFailure):
            await ModelTrainer().train(Domain.ENERGY, traffic_samples)

    async def test_non_finite_loss_fails(self, energy_samples):
        poisoned = list(energy_samples) + [
            EnergySample.model_construct(
                hour=1, temperature=float("nan"), is_weekday=1, demand=100.0
            )
        ]
        # replicate so the NaN row is guaranteed to land in the training split
        poisoned = poisoned + [poisoned[-1]] * 10
        with pytest.raises(TrainingFailure, match="non-finite"):
            await ModelTrainer().train(Domain.ENERGY, poisoned)

    async def test_callback_error_propagates(self, traffic_samples):
        def on_progress(event):
            if event.epoch == 3:
                raise RuntimeError("ui went away")

        with pytest.raises(RuntimeError, match="ui went away"):
            await ModelTrainer().train(Domain.TRAFFIC, traffic_samples, on_progress=on_progress)
