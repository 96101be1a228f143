"""Pure in-memory synthetic datasets."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from .registry import DatasetSpec, add_intercept, register_dataset


@register_dataset("separable")
def make_separable(
    negative: Sequence[float] = (0.0, 1.0, 2.0),
    positive: Sequence[float] = (8.0, 9.0, 10.0),
) -> DatasetSpec:
    """Two threshold-separable classes on a single covariate."""

    x = np.concatenate([np.asarray(negative, float), np.asarray(positive, float)])
    y = np.concatenate([np.zeros(len(negative)), np.ones(len(positive))]).reshape(-1, 1)
    return DatasetSpec(
        name="separable",
        covariate=add_intercept(x),
        response=y,
        covariate_names=["x"],
        response_names=["y"],
        provenance={"type": "synthetic", "negative": list(negative), "positive": list(positive)},
    )


@register_dataset("xor")
def make_xor(copies: int = 1) -> DatasetSpec:
    """The four XOR points, optionally repeated ``copies`` times."""

    x = np.array([[0, 0], [0, 1], [1, 0], [1, 1]], dtype=np.float64)
    y = np.array([[0], [1], [1], [0]], dtype=np.float64)
    x = np.tile(x, (copies, 1))
    y = np.tile(y, (copies, 1))
    return DatasetSpec(
        name="xor",
        covariate=add_intercept(x),
        response=y,
        covariate_names=["a", "b"],
        response_names=["xor"],
        provenance={"type": "synthetic", "copies": copies},
    )


@register_dataset("linear")
def make_linear(
    n_points: int = 32,
    slope: float = 2.0,
    intercept: float = 1.0,
    noise: float = 0.05,
    seed: int = 0,
) -> DatasetSpec:
    """Noisy straight line on ``[0, 1]``."""

    rng = np.random.default_rng(seed)
    x = np.linspace(0.0, 1.0, n_points)
    y = slope * x + intercept + noise * rng.standard_normal(n_points)
    return DatasetSpec(
        name="linear",
        covariate=add_intercept(x),
        response=y.reshape(-1, 1),
        covariate_names=["x"],
        response_names=["y"],
        provenance={
            "type": "synthetic",
            "n_points": n_points,
            "slope": slope,
            "intercept": intercept,
            "noise": noise,
            "seed": seed,
        },
    )


__all__ = ["make_linear", "make_separable", "make_xor"]
