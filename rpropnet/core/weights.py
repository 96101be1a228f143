"""Weight arena, exclusion masks and start-weight generation.

Weights live in one matrix per layer boundary; row 0 of each matrix is the
bias row. Whenever a flat view is needed the order is layer by layer and
column-major inside a layer, so flat index ``k`` of a ``rows x cols``
matrix addresses ``(k % rows, k // rows)``. Public flat indices and
``[layer, row, col]`` triples are 1-based.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError
from .types import Array, ModelDescription

Position = Tuple[int, int, int]


def build_topology(input_count: int, hidden: int | Sequence[int], output_count: int) -> ModelDescription:
    """Return the layer topology for ``hidden`` (``0`` means no hidden layer)."""

    if isinstance(hidden, (int, np.integer)):
        hidden_list = [int(hidden)]
    else:
        try:
            hidden_list = [int(h) for h in hidden]
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                "Argument 'hidden' must be an integer vector or a single integer."
            ) from exc
    if not hidden_list or any(h < 0 for h in hidden_list):
        raise ConfigurationError("Argument 'hidden' must contain non-negative integers.")
    if len(hidden_list) > 1 and any(h == 0 for h in hidden_list):
        raise ConfigurationError("Argument 'hidden' contains at least one 0.")
    if input_count < 1 or output_count < 1:
        raise ConfigurationError("At least one covariate and one response column are required")
    if hidden_list == [0]:
        hidden_list = []
    return ModelDescription(layer_dims=[int(input_count), *hidden_list, int(output_count)])


@dataclass(frozen=True)
class Exclusion:
    """Frozen connections, optionally pinned to constant values.

    ``positions`` are 0-based ``(layer, row, col)`` triples in the order the
    caller gave them; the first ``len(constants)`` positions receive the
    constant values, the rest stay at zero.
    """

    positions: Tuple[Position, ...] = ()
    constants: Tuple[float, ...] = ()

    def __len__(self) -> int:
        return len(self.positions)

    def masks(self, model: ModelDescription) -> List[Array]:
        masks = [np.zeros(shape, dtype=bool) for shape in model.shapes]
        for layer, row, col in self.positions:
            masks[layer][row, col] = True
        return masks

    def pinned_values(self) -> List[Tuple[Position, float]]:
        values = list(self.constants) + [0.0] * (len(self.positions) - len(self.constants))
        return list(zip(self.positions, values))

    @property
    def zero_pinned_count(self) -> int:
        return sum(1 for _, value in self.pinned_values() if value == 0)


def flat_to_position(model: ModelDescription, index: int) -> Position:
    """Map a 0-based flat index onto ``(layer, row, col)``."""

    offset = index
    for layer, (rows, cols) in enumerate(model.shapes):
        size = rows * cols
        if offset < size:
            return layer, offset % rows, offset // rows
        offset -= size
    raise IndexError(index)


def parse_exclusion(
    model: ModelDescription,
    exclude: Sequence[int] | Sequence[Sequence[int]] | Array | None,
    constant_weights: Sequence[float] | Array | None = None,
) -> Exclusion:
    """Validate ``exclude`` / ``constant_weights`` against ``model``."""

    total = model.weight_count
    constants = _as_float_tuple(constant_weights, "constant_weights")
    if exclude is None:
        if constants:
            raise ConfigurationError("constant_weights contains more weights than exclude")
        return Exclusion()

    try:
        spec = np.asarray(exclude)
    except ValueError as exc:
        raise ConfigurationError("'exclude' must be a vector or matrix") from exc
    if spec.size == 0:
        positions: List[Position] = []
    elif spec.ndim == 1:
        flat = _as_int_array(spec)
        if flat.min() < 1 or flat.max() > total:
            raise ConfigurationError("'exclude' contains at least one invalid weight")
        positions = [flat_to_position(model, int(idx) - 1) for idx in flat]
    elif spec.ndim == 2:
        triples = _as_int_array(spec)
        if triples.shape[1] != 3 or triples.shape[0] >= total:
            raise ConfigurationError("'exclude' has wrong dimensions")
        if np.any(triples < 1):
            raise ConfigurationError("'exclude' contains at least one invalid weight")
        shapes = model.shapes
        selected = set()
        for layer, row, col in triples.tolist():
            if layer > len(shapes) or row > shapes[layer - 1][0] or col > shapes[layer - 1][1]:
                raise ConfigurationError("'exclude' contains at least one invalid weight")
            selected.add((layer - 1, row - 1, col - 1))
        positions = sorted(selected, key=lambda pos: _flat_key(model, pos))
    else:
        raise ConfigurationError("'exclude' must be a vector or matrix")

    positions = list(dict.fromkeys(positions))
    if len(positions) >= total:
        raise ConfigurationError("all weights are excluded")
    if len(constants) > len(positions):
        raise ConfigurationError("constant_weights contains more weights than exclude")
    return Exclusion(positions=tuple(positions), constants=constants)


@dataclass
class WeightSet:
    """Per-layer weight matrices plus the matching exclusion masks."""

    matrices: List[Array]
    excluded: List[Array] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.excluded:
            self.excluded = [np.zeros(W.shape, dtype=bool) for W in self.matrices]

    def __len__(self) -> int:
        return len(self.matrices)

    def __getitem__(self, idx: int) -> Array:
        return self.matrices[idx]

    def copy(self) -> "WeightSet":
        return WeightSet(
            matrices=[W.copy() for W in self.matrices],
            excluded=[mask.copy() for mask in self.excluded],
        )

    @property
    def weight_count(self) -> int:
        return int(sum(W.size for W in self.matrices))

    @property
    def trainable_count(self) -> int:
        return int(sum((~mask).sum() for mask in self.excluded))

    def flat(self) -> Array:
        """All weights in flat order, excluded ones included."""

        return np.concatenate([W.ravel(order="F") for W in self.matrices])

    def trainable(self) -> Array:
        """Non-excluded weights in flat order."""

        return self.select(self.matrices)

    def select(self, per_layer: Sequence[Array]) -> Array:
        """Flatten ``per_layer`` arrays and drop excluded positions."""

        return np.concatenate(
            [
                values.ravel(order="F")[~mask.ravel(order="F")]
                for values, mask in zip(per_layer, self.excluded)
            ]
        )

    def with_trainable(self, vector: Array) -> "WeightSet":
        """Return a copy whose non-excluded weights are taken from ``vector``."""

        updated = self.copy()
        offset = 0
        for idx, (W, mask) in enumerate(zip(updated.matrices, updated.excluded)):
            keep = ~mask.ravel(order="F")
            count = int(keep.sum())
            flat = W.ravel(order="F").copy()
            flat[keep] = vector[offset : offset + count]
            updated.matrices[idx] = flat.reshape(W.shape, order="F")
            offset += count
        if offset != vector.size:
            raise ValueError(
                f"Expected {offset} trainable values but received {vector.size}"
            )
        return updated


def initialize_weights(
    model: ModelDescription,
    rng: np.random.Generator,
    *,
    exclusion: Exclusion | None = None,
    startweights: Array | None = None,
    repetition: int = 0,
) -> WeightSet:
    """Create the start weights for repetition ``repetition`` (0-based).

    A ``startweights`` vector long enough to cover this repetition is sliced
    per repetition; otherwise the trainable weights are drawn from the
    standard normal distribution.
    """

    exclusion = exclusion or Exclusion()
    weights = WeightSet(
        matrices=[np.zeros(shape, dtype=np.float64) for shape in model.shapes],
        excluded=exclusion.masks(model),
    )
    count = weights.trainable_count
    if startweights is not None and startweights.size >= (repetition + 1) * count:
        values = np.asarray(
            startweights[repetition * count : (repetition + 1) * count], dtype=np.float64
        )
    else:
        values = rng.standard_normal(count)
    weights = weights.with_trainable(values)
    for (layer, row, col), value in exclusion.pinned_values():
        weights.matrices[layer][row, col] = value
    return weights


def weight_names(
    model: ModelDescription,
    covariate_names: Sequence[str],
    response_names: Sequence[str],
) -> List[str]:
    """Row labels for every weight in flat order."""

    labels: List[str] = []
    last = len(model.shapes)
    for w, (rows, cols) in enumerate(model.shapes, start=1):
        for j in range(1, cols + 1):
            target = response_names[j - 1] if w == last else f"{w}layhid{j}"
            for i in range(1, rows + 1):
                if i == 1:
                    source = "Intercept"
                elif w == 1:
                    source = covariate_names[i - 2]
                else:
                    source = f"{w - 1}layhid.{i - 1}"
                labels.append(f"{source}.to.{target}")
    return labels


def _flat_key(model: ModelDescription, position: Position) -> int:
    layer, row, col = position
    shapes = model.shapes
    return sum(r * c for r, c in shapes[:layer]) + col * shapes[layer][0] + row


def _as_int_array(values: Array) -> Array:
    if values.dtype.kind in "iu":
        return values.astype(np.int64)
    try:
        as_float = values.astype(np.float64)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("'exclude' must contain integer weight positions") from exc
    if not np.all(np.isfinite(as_float)) or not np.all(as_float == np.round(as_float)):
        raise ConfigurationError("'exclude' must contain integer weight positions")
    return as_float.astype(np.int64)


def _as_float_tuple(values: Iterable[float] | Array | None, name: str) -> Tuple[float, ...]:
    if values is None:
        return ()
    try:
        array = np.asarray(values, dtype=np.float64).ravel()
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"'{name}' must be a numeric vector") from exc
    if not np.all(np.isfinite(array)):
        raise ConfigurationError(f"'{name}' must contain finite values")
    return tuple(float(v) for v in array)


__all__ = [
    "Exclusion",
    "WeightSet",
    "build_topology",
    "flat_to_position",
    "initialize_weights",
    "parse_exclusion",
    "weight_names",
]
