"""Core numerical primitives for rpropnet."""

from . import activations, errors, generalized, strategies, types, weights

__all__ = ["activations", "errors", "generalized", "strategies", "types", "weights"]
