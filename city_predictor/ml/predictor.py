"""
Prediction service: registry-backed point predictions.

Flow per call
-------------
1. Look up the last committed model — ``ModelNotTrained`` if there is none.
2. Validate raw features into ``TrafficFeatures`` / ``EnergyFeatures``
   (plain mappings are accepted and validated here).
3. ``codec.normalize`` → one forward pass → ``codec.denormalize``.

The service holds no state of its own and does not log predictions to the
simulation store; ``CityPredictor.run_prediction`` does that.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from city_predictor.errors import ModelNotTrained
from city_predictor.ml.codec import denormalize, normalize
from city_predictor.ml.registry import ModelRegistry
from city_predictor.models.sample import EnergyFeatures, FeatureSet, TrafficFeatures
from city_predictor.taxonomy.domain import Domain

logger = logging.getLogger(__name__)

_FEATURE_MODELS: dict[Domain, type[TrafficFeatures] | type[EnergyFeatures]] = {
    Domain.TRAFFIC: TrafficFeatures,
    Domain.ENERGY: EnergyFeatures,
}


def coerce_features(domain: Domain | str, features: FeatureSet | Mapping[str, Any]) -> FeatureSet:
    """Return ``features`` as the domain's validated feature model.

    Raises:
        TypeError:                 A feature model of the other domain was passed.
        pydantic.ValidationError:  A mapping failed validation.
    """
    model = _FEATURE_MODELS[Domain(domain)]
    if isinstance(features, model):
        return features
    if isinstance(features, (TrafficFeatures, EnergyFeatures)):
        raise TypeError(
            f"{type(features).__name__} given for domain '{Domain(domain).value}'."
        )
    return model(**features)


class PredictionService:
    """Serves predictions from whatever ``ModelRegistry`` currently holds."""

    def __init__(self, registry: ModelRegistry) -> None:
        self.registry = registry

    async def predict(
        self,
        domain: Domain | str,
        features: FeatureSet | Mapping[str, Any],
    ) -> int:
        """Predict one value in domain units (percent or kWh).

        Args:
            domain:   Domain to predict.
            features: Feature model or mapping of raw feature values.

        Returns:
            Prediction rounded to the nearest integer.

        Raises:
            ModelNotTrained: No model has been committed for ``domain``.
        """
        domain = Domain(domain)
        model = self.registry.current_model(domain)
        if model is None:
            raise ModelNotTrained(domain)

        validated = coerce_features(domain, features)

        raw_output = model.predict_normalized(normalize(domain, validated))
        value = denormalize(domain, raw_output)
        logger.debug("Prediction  domain=%s features=%s value=%d", domain.value, validated, value)
        return value
