"""Dataset registry and design-matrix contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, MutableMapping

import numpy as np

from ..core.types import Array


@dataclass(frozen=True)
class DatasetSpec:
    """Numeric design matrices ready for training.

    Attributes
    ----------
    covariate:
        ``n x (p + 1)`` matrix whose first column is the constant intercept.
    response:
        ``n x q`` matrix, one column per output unit.
    covariate_names / response_names:
        Labels used when naming weights in result tables.
    provenance:
        Free-form description of where the data came from.
    """

    name: str
    covariate: Array
    response: Array
    covariate_names: List[str]
    response_names: List[str]
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def observations(self) -> int:
        return int(self.covariate.shape[0])


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("xor")
        def make_xor(**kwargs):
            ...

    or directly::

        register_dataset("xor", make_xor)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(dataset: str, /, **options: Any) -> DatasetSpec:
    """Return the :class:`DatasetSpec` for ``dataset``."""

    if dataset not in _REGISTRY:
        raise KeyError(f"Unknown dataset: {dataset}")
    spec = _REGISTRY[dataset](**options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def add_intercept(values: Array) -> Array:
    """Prepend the constant intercept column to ``values``."""

    values = np.asarray(values, dtype=np.float64)
    if values.ndim == 1:
        values = values.reshape(-1, 1)
    return np.column_stack([np.ones(values.shape[0]), values])


def _validate_spec(spec: DatasetSpec) -> None:
    if spec.covariate.ndim != 2 or spec.response.ndim != 2:
        raise ValueError("Covariate and response must be two-dimensional")
    if spec.covariate.shape[0] != spec.response.shape[0]:
        raise ValueError(
            f"Covariate has {spec.covariate.shape[0]} rows but response has "
            f"{spec.response.shape[0]}"
        )
    if len(spec.covariate_names) != spec.covariate.shape[1] - 1:
        raise ValueError("One covariate name per non-intercept column is required")
    if len(spec.response_names) != spec.response.shape[1]:
        raise ValueError("One response name per response column is required")


__all__ = [
    "DatasetSpec",
    "add_intercept",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
