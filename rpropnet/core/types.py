"""Core typing contracts for rpropnet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

Array = np.ndarray


@dataclass(frozen=True)
class ModelDescription:
    """Layer topology ``[input_count, hidden_1, ..., hidden_k, output_count]``."""

    layer_dims: List[int]

    @property
    def shapes(self) -> List[tuple[int, int]]:
        """Weight matrix shapes, one per layer boundary (bias row included)."""

        dims = self.layer_dims
        return [(dims[idx] + 1, dims[idx + 1]) for idx in range(len(dims) - 1)]

    @property
    def weight_count(self) -> int:
        return int(sum(rows * cols for rows, cols in self.shapes))


@dataclass
class ForwardCache:
    """Intermediate values captured during the forward pass.

    ``layer_inputs[i]`` is the input of weight matrix ``i`` (bias column
    included) and ``layer_derivs[i]`` the activation derivative of the layer
    that matrix feeds. Only valid until the matching backward pass.
    """

    layer_inputs: List[Array]
    layer_derivs: List[Array]
    output: Array


@dataclass
class RuleState:
    """Per-weight state persisted by an update rule between steps."""

    learning_rates: Array
    gradients_old: Array


@dataclass
class RepetitionResult:
    """Outcome of one training repetition."""

    index: int
    weights: List[Array]
    startweights: List[Array]
    output: Array
    steps: int
    reached_threshold: float
    min_reached_threshold: float
    converged: bool
    error: float = float("nan")
    aic: Optional[float] = None
    bic: Optional[float] = None
    generalized_weights: Optional[Array] = None
    excluded: List[Array] = field(default_factory=list)
