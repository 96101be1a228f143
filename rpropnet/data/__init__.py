"""Dataset registry and design-matrix helpers."""

# Ensure built-in datasets register themselves when the package is imported.
from . import csv_generic as _csv_generic  # noqa: F401
from . import synthetic as _synthetic  # noqa: F401
from .csv_generic import design_matrix
from .registry import (
    DatasetSpec,
    add_intercept,
    available_datasets,
    get_dataset,
    register_dataset,
)

__all__ = [
    "DatasetSpec",
    "add_intercept",
    "available_datasets",
    "design_matrix",
    "get_dataset",
    "register_dataset",
]
