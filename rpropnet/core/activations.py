"""Activation functions and their closed-form derivatives."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from .errors import ConfigurationError
from .types import Array

ArrayFn = Callable[[Array], Array]


def logistic(x: Array) -> Array:
    """Return the logistic sigmoid of ``x``."""

    return 1.0 / (1.0 + np.exp(-x))


def logistic_deriv(a: Array) -> Array:
    """Logistic derivative expressed through the activation output ``a``."""

    return a * (1.0 - a)


def tanh(x: Array) -> Array:
    return np.tanh(x)


def tanh_deriv(a: Array) -> Array:
    """Hyperbolic tangent derivative expressed through its output ``a``."""

    return 1.0 - a**2


def identity(x: Array) -> Array:
    return x


def identity_deriv(x: Array) -> Array:
    return np.ones_like(x)


@dataclass(frozen=True)
class Activation:
    """An activation function paired with its derivative.

    ``output_based`` marks the built-ins whose derivative takes the
    activation *output*; custom functions are differentiated at the
    pre-activation input instead. Only built-ins (``builtin``) qualify for
    the logistic cross-entropy shortcut, whatever a custom function is named.
    """

    name: str
    fn: ArrayFn
    deriv: ArrayFn
    output_based: bool
    builtin: bool = True

    def __call__(self, x: Array) -> Array:
        return self.fn(x)

    def derivative(self, pre: Array, act: Array) -> Array:
        """Return the derivative for a layer with pre-activation ``pre``."""

        if self.output_based:
            return self.deriv(act)
        return np.asarray(self.deriv(pre), dtype=np.float64) * np.ones_like(pre)

    @property
    def is_logistic(self) -> bool:
        return self.builtin and self.name == "logistic"


LOGISTIC = Activation("logistic", logistic, logistic_deriv, output_based=True)
TANH = Activation("tanh", tanh, tanh_deriv, output_based=True)
IDENTITY = Activation("identity", identity, identity_deriv, output_based=True)

_BUILTINS: Dict[str, Activation] = {"logistic": LOGISTIC, "tanh": TANH}


def custom(fn: ArrayFn, deriv: ArrayFn, name: str | None = None) -> Activation:
    """Wrap a user-supplied differentiable function."""

    if not callable(fn) or not callable(deriv):
        raise ConfigurationError("Custom activation needs a callable and a callable derivative")
    return Activation(
        name or getattr(fn, "__name__", "custom"),
        fn,
        deriv,
        output_based=False,
        builtin=False,
    )


def resolve_activation(
    selector: str | ArrayFn | Activation,
    derivative: ArrayFn | None = None,
) -> Activation:
    """Resolve ``selector`` to an :class:`Activation`."""

    if isinstance(selector, Activation):
        return selector
    if callable(selector):
        if derivative is None:
            raise ConfigurationError(
                "A custom activation function requires 'activation_derivative'"
            )
        return custom(selector, derivative)
    try:
        return _BUILTINS[str(selector)]
    except KeyError:
        available = ", ".join(names())
        raise ConfigurationError(
            f"Unknown activation function {selector!r}. Available: {available}"
        ) from None


def names() -> Iterable[str]:
    return sorted(_BUILTINS)


__all__ = [
    "Activation",
    "LOGISTIC",
    "TANH",
    "IDENTITY",
    "custom",
    "identity",
    "logistic",
    "logistic_deriv",
    "names",
    "resolve_activation",
    "tanh",
    "tanh_deriv",
]
