from __future__ import annotations

import numpy as np

from whynotyet.errors import ConfigurationError
from whynotyet.io import DataTuple, Relation

DISTRIBUTIONS = ("uniform", "correlated", "anti-correlated")


def _correlated(rng: np.random.Generator, anchor: np.ndarray, num_attributes: int) -> np.ndarray:
    """Values within +-0.1 of each row's anchor; overflow is pushed just inside [0, 1]."""
    values = (rng.random((anchor.shape[0], num_attributes)) - 0.5) / 5 + anchor[:, None]
    nudge = rng.random(values.shape) / 100
    values = np.where(values > 1, 1 - nudge, values)
    values = np.where(values < 0, nudge, values)
    return values


def generate_values(
    num_tuples: int,
    num_attributes: int,
    distribution: str = "uniform",
    seed: int = 0,
) -> np.ndarray:
    if distribution not in DISTRIBUTIONS:
        raise ConfigurationError(
            f"unknown distribution {distribution!r}, expected one of {DISTRIBUTIONS}"
        )
    if num_tuples < 1 or num_attributes < 1:
        raise ConfigurationError("synthetic relations need at least one tuple and one attribute")
    rng = np.random.default_rng(seed)
    if distribution == "uniform":
        values = rng.random((num_tuples, num_attributes))
    else:
        anchor = rng.random(num_tuples)
        values = _correlated(rng, anchor, num_attributes)
        if distribution == "anti-correlated":
            # every second attribute moves against the anchor
            values[:, 1::2] = 1 - values[:, 1::2]
    return np.round(values, 3)


def generate_relation(
    num_tuples: int,
    num_attributes: int,
    distribution: str = "uniform",
    seed: int = 0,
    name: str = "Relation Data",
) -> Relation:
    values = generate_values(num_tuples, num_attributes, distribution, seed)
    tuples = [
        DataTuple(tuple_id=str(i + 1), values=tuple(float(v) for v in row))
        for i, row in enumerate(values)
    ]
    print(
        f"synthetic relation: tuples={num_tuples} attributes={num_attributes} "
        f"distribution={distribution} seed={seed}",
        flush=True,
    )
    return Relation(name=name, tuples=tuples)
