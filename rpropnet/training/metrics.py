"""Error totals and information criteria for trained repetitions."""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from ..core.types import Array
from .losses import ErrorFunction


@dataclass(frozen=True)
class InformationCriteria:
    aic: float
    bic: float


def total_error(error: ErrorFunction, output: Array, response: Array) -> float:
    """Sum of the elementwise error.

    Cross-entropy terms of the form ``0 * log(0)`` come out as NaN; when
    every output is a valid probability those terms are dropped.
    """

    with np.errstate(divide="ignore", invalid="ignore"):
        terms = np.asarray(error(output, response), dtype=np.float64)
    value = float(np.sum(terms))
    if math.isnan(value) and error.is_cross_entropy:
        if np.all((output >= 0) & (output <= 1)):
            value = float(np.nansum(terms))
    if math.isnan(value):
        warnings.warn(
            "The error function does not fit the data or the activation function",
            RuntimeWarning,
            stacklevel=2,
        )
    return value


def information_criteria(error: float, synapse_count: int, observations: int) -> InformationCriteria:
    """AIC and BIC, treating ``error`` as a negative log-likelihood."""

    return InformationCriteria(
        aic=2 * error + 2 * synapse_count,
        bic=2 * error + math.log(observations) * synapse_count,
    )


def repetition_metrics(
    error: float,
    reached_threshold: float,
    steps: int,
    aic: Optional[float] = None,
    bic: Optional[float] = None,
) -> Dict[str, float]:
    """Named result rows for one converged repetition."""

    metrics = {
        "error": float(error),
        "reached.threshold": float(reached_threshold),
        "steps": float(steps),
    }
    if aic is not None and bic is not None:
        metrics["aic"] = float(aic)
        metrics["bic"] = float(bic)
    return metrics


__all__ = [
    "InformationCriteria",
    "information_criteria",
    "repetition_metrics",
    "total_error",
]
