"""Weight-update rules for rpropnet.

Every rule works on the flat vector of trainable (non-excluded) weights and
the matching gradient vector, and threads a :class:`RuleState` holding the
per-weight learning rates and the previous gradient (or its sign).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Protocol, Tuple

import numpy as np

from .errors import ConfigurationError
from .types import Array, RuleState

GRPROP_DELTA = 1e-6


class UpdateRule(Protocol):
    """Protocol implemented by every weight-update rule."""

    def init(self, count: int) -> RuleState:
        """Fresh state for ``count`` trainable weights."""

    def step(
        self,
        weights: Array,
        gradients: Array,
        state: RuleState,
    ) -> Tuple[Array, RuleState]:
        """Return updated weights and the (new) state."""


@dataclass(frozen=True)
class _AdaptiveRule:
    factor_minus: float = 0.5
    factor_plus: float = 1.2
    rate_min: float = 1e-10
    rate_max: float = 0.1
    initial_rate: float = 0.1

    def init(self, count: int) -> RuleState:
        start = min(max(self.initial_rate, self.rate_min), self.rate_max)
        return RuleState(
            learning_rates=np.full(count, start, dtype=np.float64),
            gradients_old=np.zeros(count, dtype=np.float64),
        )


@dataclass(frozen=True)
class RpropPlus(_AdaptiveRule):
    """Resilient backpropagation with weight backtracking."""

    def step(
        self,
        weights: Array,
        gradients: Array,
        state: RuleState,
    ) -> Tuple[Array, RuleState]:
        weights = weights.copy()
        rates = state.learning_rates.copy()
        old = state.gradients_old.copy()

        sign = np.sign(gradients)
        product = old * sign
        positive = product > 0
        negative = product < 0
        keep = ~negative

        rates[positive] = np.minimum(rates[positive] * self.factor_plus, self.rate_max)
        # Undo the previous step before shrinking the rate it was taken with.
        weights[negative] += old[negative] * rates[negative]
        rates[negative] = np.maximum(rates[negative] * self.factor_minus, self.rate_min)
        old[negative] = 0.0

        weights[keep] -= sign[keep] * rates[keep]
        old[keep] = sign[keep]
        return weights, replace(state, learning_rates=rates, gradients_old=old)


@dataclass(frozen=True)
class RpropMinus(_AdaptiveRule):
    """Resilient backpropagation without weight backtracking."""

    def step(
        self,
        weights: Array,
        gradients: Array,
        state: RuleState,
    ) -> Tuple[Array, RuleState]:
        rates = state.learning_rates.copy()
        product = state.gradients_old * gradients
        positive = product > 0
        negative = product < 0
        rates[positive] = np.minimum(rates[positive] * self.factor_plus, self.rate_max)
        rates[negative] = np.maximum(rates[negative] * self.factor_minus, self.rate_min)
        rates = self._rebalance(rates, gradients)

        updated = weights - np.sign(gradients) * rates
        return updated, replace(state, learning_rates=rates, gradients_old=gradients.copy())

    def _rebalance(self, rates: Array, gradients: Array) -> Array:
        return rates


@dataclass(frozen=True)
class GRprop(RpropMinus):
    """Globally convergent RPROP.

    After the RPROP- adaptation one learning rate is recomputed so that the
    sum of ``rate * gradient`` over all non-zero gradients equals
    ``GRPROP_DELTA``. ``selection="sag"`` picks the weight with the smallest
    absolute gradient, ``selection="slr"`` the one with the smallest rate.
    """

    selection: str = "sag"

    def __post_init__(self) -> None:
        if self.selection not in {"sag", "slr"}:
            raise ConfigurationError(f"Unknown GRPROP selection: {self.selection}")

    def _rebalance(self, rates: Array, gradients: Array) -> Array:
        notzero = np.flatnonzero(gradients != 0)
        if notzero.size == 0:
            return rates
        grads = gradients[notzero]
        if self.selection == "slr":
            pick = int(np.argmin(rates[notzero]))
        else:
            pick = int(np.argmin(np.abs(grads)))
        products = rates[notzero] * grads
        total = products.sum() - products[pick] + GRPROP_DELTA
        target = notzero[pick]
        rates[target] = min(max(-total / grads[pick], self.rate_min), self.rate_max)
        return rates


@dataclass(frozen=True)
class Backprop:
    """Plain gradient descent with a fixed learning rate."""

    learningrate: float

    def init(self, count: int) -> RuleState:
        return RuleState(
            learning_rates=np.full(count, self.learningrate, dtype=np.float64),
            gradients_old=np.zeros(count, dtype=np.float64),
        )

    def step(
        self,
        weights: Array,
        gradients: Array,
        state: RuleState,
    ) -> Tuple[Array, RuleState]:
        updated = weights - gradients * self.learningrate
        return updated, replace(state, gradients_old=gradients.copy())


ALGORITHMS = ("backprop", "rprop+", "rprop-", "sag", "slr")


def build_rule(
    algorithm: str,
    *,
    learningrate: float | None = None,
    rate_min: float = 1e-10,
    rate_max: float = 0.1,
    factor_minus: float = 0.5,
    factor_plus: float = 1.2,
) -> UpdateRule:
    """Return the update rule named ``algorithm``."""

    bounds = dict(
        factor_minus=factor_minus,
        factor_plus=factor_plus,
        rate_min=rate_min,
        rate_max=rate_max,
    )
    if algorithm == "rprop+":
        return RpropPlus(**bounds)
    if algorithm == "rprop-":
        return RpropMinus(**bounds)
    if algorithm in {"sag", "slr"}:
        return GRprop(selection=algorithm, **bounds)
    if algorithm == "backprop":
        if learningrate is None or isinstance(learningrate, bool):
            raise ConfigurationError(
                "Argument 'learningrate' must be a numeric value, if the "
                "backpropagation algorithm is used."
            )
        return Backprop(learningrate=float(learningrate))
    raise ConfigurationError(f"Unknown algorithm: {algorithm!r}")


__all__ = [
    "ALGORITHMS",
    "Backprop",
    "GRprop",
    "RpropMinus",
    "RpropPlus",
    "UpdateRule",
    "build_rule",
]
