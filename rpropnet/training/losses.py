"""Error function registry used by the training loop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from ..core.errors import ConfigurationError
from ..core.types import Array

ErrorFn = Callable[[Array, Array], Array]


@dataclass(frozen=True)
class ErrorFunction:
    """Elementwise error ``e(output, target)`` with its derivative in ``output``."""

    name: str
    fn: ErrorFn
    deriv: ErrorFn
    builtin: bool = True

    def __call__(self, output: Array, target: Array) -> Array:
        return self.fn(output, target)

    @property
    def is_cross_entropy(self) -> bool:
        return self.builtin and self.name == "ce"


class ErrorRegistry:
    """Central registry for named error functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, ErrorFunction] = {}

    def register(self, name: str, fn: ErrorFn, deriv: ErrorFn) -> None:
        self._registry[name] = ErrorFunction(name, fn, deriv)

    def get(self, name: str) -> ErrorFunction:
        try:
            return self._registry[name]
        except KeyError as exc:
            available = ", ".join(self.names())
            raise ConfigurationError(
                f"Unknown error function {name!r}. Available: {available}"
            ) from exc

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(
        self,
        selector: str | ErrorFn | ErrorFunction,
        derivative: ErrorFn | None = None,
    ) -> ErrorFunction:
        if isinstance(selector, ErrorFunction):
            return selector
        if callable(selector):
            if derivative is None or not callable(derivative):
                raise ConfigurationError(
                    "A custom error function requires a callable 'error_derivative'"
                )
            name = getattr(selector, "__name__", "custom")
            return ErrorFunction(name, selector, derivative, builtin=False)
        return self.get(str(selector))


REGISTRY = ErrorRegistry()


def _sse(output: Array, target: Array) -> Array:
    return 0.5 * (target - output) ** 2


def _sse_deriv(output: Array, target: Array) -> Array:
    return output - target


def _cross_entropy(output: Array, target: Array) -> Array:
    with np.errstate(divide="ignore", invalid="ignore"):
        return -(target * np.log(output) + (1 - target) * np.log(1 - output))


def _cross_entropy_deriv(output: Array, target: Array) -> Array:
    with np.errstate(divide="ignore", invalid="ignore"):
        return (1 - target) / (1 - output) - target / output


def logistic_cross_entropy_deriv(output: Array, target: Array) -> Array:
    """Cross-entropy derivative already multiplied by the logistic derivative."""

    return output * (1 - target) - target * (1 - output)


REGISTRY.register("sse", _sse, _sse_deriv)
REGISTRY.register("ce", _cross_entropy, _cross_entropy_deriv)

__all__ = ["ErrorFunction", "ErrorRegistry", "REGISTRY", "logistic_cross_entropy_deriv"]
