"""Exception and warning types raised by rpropnet."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid training inputs, detected before any step runs."""


class NumericalError(FloatingPointError):
    """A derivative produced a non-finite value during training."""


class ConvergenceWarning(UserWarning):
    """Some repetitions exhausted their step budget."""


class GeneralizedWeightWarning(UserWarning):
    """Generalized weights requested for a non-logistic output unit."""


__all__ = [
    "ConfigurationError",
    "NumericalError",
    "ConvergenceWarning",
    "GeneralizedWeightWarning",
]
