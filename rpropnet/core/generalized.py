"""Generalized weights (Intrator & Intrator, 1993)."""

from __future__ import annotations

import warnings
from typing import Sequence

import numpy as np

from .errors import GeneralizedWeightWarning
from .types import Array


def generalized_weights(
    weights: Sequence[Array],
    layer_derivs: Sequence[Array],
    output: Array,
) -> Array:
    """Return per-observation sensitivities of every output to every input.

    For output unit ``k`` the derivative chain is seeded with
    ``deriv_out[:, k] / (o_k * (1 - o_k))`` times the outgoing weights of
    ``k`` and walked back to the inputs. The seed assumes a logistic output
    unit. The result has one row per observation and ``input_count`` columns
    per output unit, output units side by side.
    """

    stripped = [np.asarray(W)[1:, :] for W in weights]
    last = len(stripped) - 1
    blocks = []
    with np.errstate(divide="ignore", invalid="ignore"):
        for k in range(output.shape[1]):
            o = output[:, k]
            seed = layer_derivs[last][:, k] * (1.0 / (o * (1.0 - o)))
            delta = np.outer(seed, stripped[last][:, k])
            for idx in range(last - 1, -1, -1):
                delta = (delta * layer_derivs[idx]) @ stripped[idx].T
            blocks.append(delta)
    return np.hstack(blocks)


def warn_if_not_logistic(output_is_logistic: bool) -> None:
    if not output_is_logistic:
        warnings.warn(
            "Generalized weights assume a logistic output activation; values "
            "computed for other output activations are not interpretable as "
            "log-odds sensitivities.",
            GeneralizedWeightWarning,
            stacklevel=3,
        )


__all__ = ["generalized_weights", "warn_if_not_logistic"]
