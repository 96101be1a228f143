"""rpropnet public API."""

from .core import activations  # noqa: F401
from .core import strategies  # noqa: F401
from .core import types  # noqa: F401
from .core.errors import (
    ConfigurationError,
    ConvergenceWarning,
    GeneralizedWeightWarning,
    NumericalError,
)
from .data import design_matrix, get_dataset
from .training.pipelines import FitResult, fit, load_preset, presets, run_pipeline
from .training.trainer import FeedForwardModel, Trainer

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "ConvergenceWarning",
    "FeedForwardModel",
    "FitResult",
    "GeneralizedWeightWarning",
    "NumericalError",
    "Trainer",
    "activations",
    "design_matrix",
    "fit",
    "get_dataset",
    "load_preset",
    "presets",
    "run_pipeline",
    "strategies",
    "types",
]
