"""
Dataset loader: bundled JSON → validated, immutable training samples.

Each domain ships one JSON file under ``city_predictor/data/``::

    {
      "description": "...",
      "training_data": [
        {"hour": 8, "day_of_week": 2, "weather": 0, "congestion": 88},
        ...
      ]
    }

Validation rules
----------------
- The file must exist and parse as a JSON object.
- ``training_data`` must be a non-empty list.
- Every row must validate against the domain's sample model
  (``TrafficSample`` or ``EnergySample``); the first failing row is reported
  by index.

Usage
-----
    from city_predictor.datasets.loader import load_samples

    samples = load_samples(Domain.TRAFFIC)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from city_predictor.errors import DatasetError
from city_predictor.models.sample import EnergySample, TrafficSample, TrainingSample
from city_predictor.taxonomy.domain import Domain

log = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent.parent / "data"

_SAMPLE_MODELS: dict[Domain, type[TrafficSample] | type[EnergySample]] = {
    Domain.TRAFFIC: TrafficSample,
    Domain.ENERGY: EnergySample,
}


def default_dataset_path(domain: Domain) -> Path:
    """Return the path of the dataset bundled with the package for ``domain``."""
    return _DATA_DIR / f"{Domain(domain).value}.json"


def _validate_rows(domain: Domain, rows: list[dict[str, Any]]) -> tuple[TrainingSample, ...]:
    """Validate raw rows into sample models, raising DatasetError on the first bad row."""
    model = _SAMPLE_MODELS[domain]
    samples: list[TrainingSample] = []
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            raise DatasetError(domain, f"row {i} is not an object.")
        try:
            samples.append(model(**row))
        except ValidationError as exc:
            raise DatasetError(domain, f"row {i} is invalid: {exc}") from exc
    return tuple(samples)


def load_samples(
    domain: Domain | str,
    path: Optional[Path] = None,
) -> tuple[TrainingSample, ...]:
    """Load and validate the training samples for one domain.

    Args:
        domain: ``Domain`` (or its string value) to load.
        path:   Explicit JSON path; defaults to the bundled dataset.

    Returns:
        Immutable tuple of validated samples, in file order.

    Raises:
        DatasetError: If the file is missing, unparsable, empty, or has an
            invalid row.
    """
    domain = Domain(domain)
    path = Path(path) if path is not None else default_dataset_path(domain)

    if not path.exists():
        raise DatasetError(domain, f"file not found: {path}")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise DatasetError(domain, f"malformed JSON in {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise DatasetError(domain, "top-level JSON value must be an object.")

    rows = raw.get("training_data")
    if not isinstance(rows, list) or not rows:
        raise DatasetError(domain, "'training_data' must be a non-empty list.")

    samples = _validate_rows(domain, rows)
    log.info("Loaded %d %s samples from %s", len(samples), domain.value, path)
    return samples
