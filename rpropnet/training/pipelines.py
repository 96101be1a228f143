"""Configuration, multi-repetition orchestration and presets for rpropnet."""

from __future__ import annotations

import json
import math
import warnings
from copy import deepcopy
from dataclasses import dataclass, field, fields
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd

from ..core.activations import resolve_activation
from ..core.errors import ConfigurationError, ConvergenceWarning
from ..core.generalized import warn_if_not_logistic
from ..core.strategies import ALGORITHMS, build_rule
from ..core.types import Array, ModelDescription, RepetitionResult
from ..core.weights import (
    Exclusion,
    build_topology,
    initialize_weights,
    parse_exclusion,
    weight_names,
)
from ..data import registry
from ..reporting.metrics import CsvSink, JsonlSink, LifesignPrinter
from ..reporting.summary import format_summary, result_table, write_summary
from .losses import REGISTRY as ERROR_REGISTRY
from .trainer import FeedForwardModel, Trainer

_LIFESIGNS = ("none", "minimal", "full")


@dataclass(frozen=True)
class TrainingConfig:
    """Validated options for one call to :func:`fit`."""

    threshold: float = 0.01
    stepmax: int = 100000
    repetitions: int = 1
    algorithm: str = "rprop+"
    activation: Any = "logistic"
    activation_derivative: Callable | None = None
    error: Any = "sse"
    error_derivative: Callable | None = None
    linear_output: bool = True
    learningrate: float | None = None
    learningrate_limit: Tuple[float, float] = (1e-10, 0.1)
    learningrate_factor: Tuple[float, float] = (0.5, 1.2)
    exclude: Any = None
    constant_weights: Any = None
    startweights: Any = None
    likelihood: bool = False
    lifesign: str = "none"
    lifesign_step: int = 1000
    seed: int | None = None

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "TrainingConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigurationError(f"Unknown option(s): {', '.join(unknown)}")
        values = dict(options)
        values["threshold"] = _number("threshold", values.get("threshold", cls.threshold))
        values["stepmax"] = _integer("stepmax", values.get("stepmax", cls.stepmax))
        values["repetitions"] = _integer("repetitions", values.get("repetitions", cls.repetitions))
        values["lifesign_step"] = _integer(
            "lifesign_step", values.get("lifesign_step", cls.lifesign_step)
        )
        values["learningrate_limit"] = _pair(
            "learningrate_limit", values.get("learningrate_limit"), ("min", "max"),
            cls.learningrate_limit,
        )
        values["learningrate_factor"] = _pair(
            "learningrate_factor", values.get("learningrate_factor"), ("minus", "plus"),
            cls.learningrate_factor,
        )
        if values.get("learningrate") is not None:
            values["learningrate"] = _number("learningrate", values["learningrate"])
        config = cls(**values)
        config.validate()
        return config

    def validate(self) -> None:
        if self.threshold < 0:
            raise ConfigurationError("Argument 'threshold' must be non-negative.")
        if self.stepmax < 1:
            raise ConfigurationError("Argument 'stepmax' must be a positive integer.")
        if self.repetitions < 1:
            raise ConfigurationError("Argument 'repetitions' must be at least 1.")
        if self.algorithm not in ALGORITHMS:
            raise ConfigurationError(
                f"Unknown algorithm {self.algorithm!r}. Expected one of {', '.join(ALGORITHMS)}"
            )
        if self.lifesign not in _LIFESIGNS:
            raise ConfigurationError("Argument 'lifesign' must be one of 'none', 'minimal', 'full'.")
        low, high = self.learningrate_limit
        if low > high:
            raise ConfigurationError("'learningrate_limit' min must not exceed max")
        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int)):
            raise ConfigurationError("Argument 'seed' must be an integer")
        build_rule(self.algorithm, learningrate=self.learningrate)


@dataclass
class FitResult:
    """Aggregate of every repetition of one :func:`fit` call."""

    repetitions: int
    results: List[RepetitionResult]
    model: ModelDescription
    network: FeedForwardModel
    covariate_names: List[str]
    response_names: List[str]
    exclusion: Exclusion = field(default_factory=Exclusion)
    attempted: int = 0

    @property
    def converged_count(self) -> int:
        return len(self.results)

    @property
    def failed_count(self) -> int:
        return (self.attempted or self.repetitions) - self.converged_count

    @property
    def weights(self) -> List[List[Array]]:
        return [result.weights for result in self.results]

    @property
    def net_result(self) -> List[Array]:
        return [result.output for result in self.results]

    @property
    def generalized_weights(self) -> List[Array]:
        return [result.generalized_weights for result in self.results]

    @property
    def weight_labels(self) -> List[str]:
        return weight_names(self.model, self.covariate_names, self.response_names)

    @property
    def result_table(self) -> pd.DataFrame:
        return result_table(self.results, self.weight_labels)

    def ranked(self) -> List[RepetitionResult]:
        """Converged repetitions ordered by increasing error."""

        return sorted(self.results, key=lambda result: result.error)

    def best(self) -> RepetitionResult:
        if not self.results:
            raise ValueError("No repetition converged; there are no trained weights")
        return self.ranked()[0]

    def predict(self, covariate: Array, repetition: int | None = None) -> Array:
        """Network output for ``covariate``.

        ``covariate`` may include the intercept column or not. ``repetition``
        is a 0-based position among the converged repetitions; by default the
        one with the lowest error is used.
        """

        covariate = np.asarray(covariate, dtype=np.float64)
        if covariate.ndim == 1:
            covariate = covariate.reshape(-1, 1)
        inputs = self.model.layer_dims[0]
        if covariate.shape[1] == inputs:
            covariate = registry.add_intercept(covariate)
        elif covariate.shape[1] != inputs + 1:
            raise ValueError(
                f"Expected {inputs} covariate columns (optionally plus intercept), "
                f"got {covariate.shape[1]}"
            )
        result = self.best() if repetition is None else self.results[repetition]
        return self.network.predict(result.weights, covariate)

    def summary(self) -> str:
        return format_summary(self.result_table, self.repetitions)


def fit(
    covariate: Array,
    response: Array,
    hidden: int | Sequence[int] = 1,
    *,
    covariate_names: Sequence[str] | None = None,
    response_names: Sequence[str] | None = None,
    callbacks: Sequence[object] | None = None,
    **options: Any,
) -> FitResult:
    """Train ``options['repetitions']`` independent networks.

    ``covariate`` must carry the constant intercept as its first column.
    Remaining keyword arguments are :class:`TrainingConfig` options.
    """

    config = TrainingConfig.from_mapping(options)
    covariate, response = _check_matrices(covariate, response)
    model = build_topology(covariate.shape[1] - 1, hidden, response.shape[1])
    covariate_names = list(covariate_names or [f"x{i}" for i in range(1, model.layer_dims[0] + 1)])
    response_names = list(response_names or [f"y{i}" for i in range(1, model.layer_dims[-1] + 1)])
    if len(covariate_names) != model.layer_dims[0] or len(response_names) != model.layer_dims[-1]:
        raise ConfigurationError("Names must match the covariate and response column counts")

    exclusion = parse_exclusion(model, config.exclude, config.constant_weights)
    activation = resolve_activation(config.activation, config.activation_derivative)
    error = ERROR_REGISTRY.resolve(config.error, config.error_derivative)
    network = FeedForwardModel.build(activation, error, config.linear_output)
    rule = build_rule(
        config.algorithm,
        learningrate=config.learningrate,
        rate_min=config.learningrate_limit[0],
        rate_max=config.learningrate_limit[1],
        factor_minus=config.learningrate_factor[0],
        factor_plus=config.learningrate_factor[1],
    )
    startweights = _startweights(config.startweights)
    trainable = model.weight_count - len(exclusion)
    if startweights is not None and startweights.size < config.repetitions * trainable:
        warnings.warn(
            "Some weights were randomly generated, because 'startweights' did not "
            "contain enough values.",
            UserWarning,
            stacklevel=2,
        )

    observers = list(callbacks or [])
    if config.lifesign != "none":
        observers.append(
            LifesignPrinter(
                config.lifesign,
                hidden=model.layer_dims[1:-1],
                threshold=config.threshold,
                repetitions=config.repetitions,
            )
        )
    trainer = Trainer(
        network,
        rule,
        threshold=config.threshold,
        stepmax=config.stepmax,
        likelihood=config.likelihood,
        synapse_count=model.weight_count - exclusion.zero_pinned_count,
        callbacks=observers,
        lifesign_step=config.lifesign_step,
    )

    seeds = np.random.SeedSequence(config.seed).spawn(config.repetitions)
    tasks = [
        partial(
            run_repetition,
            trainer,
            model,
            covariate,
            response,
            index=index,
            rng=np.random.default_rng(seed),
            exclusion=exclusion,
            startweights=startweights,
        )
        for index, seed in enumerate(seeds)
    ]
    results = [task() for task in tasks]

    aggregated = aggregate(
        results,
        config.repetitions,
        model=model,
        network=network,
        covariate_names=covariate_names,
        response_names=response_names,
        exclusion=exclusion,
    )
    if aggregated.results:
        warn_if_not_logistic(network.output_activation.is_logistic)
    warn_non_convergence(aggregated)
    return aggregated


def run_repetition(
    trainer: Trainer,
    model: ModelDescription,
    covariate: Array,
    response: Array,
    *,
    index: int,
    rng: np.random.Generator,
    exclusion: Exclusion,
    startweights: Array | None = None,
) -> RepetitionResult:
    """One independent repetition with its own weights and rule state."""

    weights = initialize_weights(
        model,
        rng,
        exclusion=exclusion,
        startweights=startweights,
        repetition=index,
    )
    return trainer.run(weights, covariate, response, index=index)


def aggregate(
    results: Sequence[RepetitionResult],
    repetitions: int,
    *,
    model: ModelDescription,
    network: FeedForwardModel,
    covariate_names: Sequence[str],
    response_names: Sequence[str],
    exclusion: Exclusion | None = None,
) -> FitResult:
    """Keep converged repetitions, in repetition order."""

    converged = sorted((r for r in results if r.converged), key=lambda r: r.index)
    return FitResult(
        repetitions=repetitions,
        results=converged,
        model=model,
        network=network,
        covariate_names=list(covariate_names),
        response_names=list(response_names),
        exclusion=exclusion or Exclusion(),
        attempted=len(results),
    )


def warn_non_convergence(result: FitResult) -> None:
    if result.failed_count > 0:
        warnings.warn(
            f"Algorithm did not converge in {result.failed_count} of "
            f"{result.repetitions} repetition(s) within the stepmax.",
            ConvergenceWarning,
            stacklevel=3,
        )


# ----------------------------------------------------------------------
# Pipeline configs

_MODEL_KEYS = ("activation", "linear_output", "exclude", "constant_weights", "startweights")

_PRESETS: Dict[str, Mapping[str, object]] = {
    "separable-logistic": {
        "data": {"name": "separable", "options": {}},
        "model": {"hidden": [1], "activation": "logistic", "linear_output": False},
        "train": {
            "algorithm": "rprop+",
            "error": "ce",
            "threshold": 0.01,
            "stepmax": 10000,
            "repetitions": 1,
            "seed": 0,
        },
    },
    "xor-rprop": {
        "data": {"name": "xor", "options": {}},
        "model": {"hidden": [3], "activation": "logistic", "linear_output": False},
        "train": {
            "algorithm": "rprop+",
            "error": "sse",
            "threshold": 0.01,
            "stepmax": 100000,
            "repetitions": 3,
            "seed": 1,
        },
    },
    "xor-sag": {
        "data": {"name": "xor", "options": {}},
        "model": {"hidden": [3], "activation": "logistic", "linear_output": False},
        "train": {
            "algorithm": "sag",
            "error": "sse",
            "threshold": 0.01,
            "stepmax": 100000,
            "repetitions": 3,
            "seed": 1,
        },
    },
    "xor-slr": {
        "data": {"name": "xor", "options": {}},
        "model": {"hidden": [3], "activation": "logistic", "linear_output": False},
        "train": {
            "algorithm": "slr",
            "error": "sse",
            "threshold": 0.01,
            "stepmax": 100000,
            "repetitions": 3,
            "seed": 1,
        },
    },
    "xor-backprop": {
        "data": {"name": "xor", "options": {}},
        "model": {"hidden": [3], "activation": "logistic", "linear_output": False},
        "train": {
            "algorithm": "backprop",
            "learningrate": 0.5,
            "error": "sse",
            "threshold": 0.01,
            "stepmax": 100000,
            "repetitions": 3,
            "seed": 1,
        },
    },
}


def load_config_file(path: str | Path) -> Mapping[str, object]:
    """Decode a JSON or YAML file into a mapping (full config or override)."""

    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        import yaml

        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")
    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def read_config(path: str | Path) -> Mapping[str, object]:
    """Load a complete JSON or YAML pipeline config."""

    path = Path(path)
    data = load_config_file(path)
    missing = {"data", "model", "train"} - set(data)
    if missing:
        raise KeyError(f"Config {path.name} is missing required sections: {', '.join(sorted(missing))}")
    return data


def presets() -> Mapping[str, Mapping[str, object]]:
    return {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}


def load_preset(name: str) -> Mapping[str, object]:
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def run_pipeline(config: Mapping[str, object], *, verbose: bool = True) -> FitResult:
    """Train on the dataset named in ``config`` and return the aggregate."""

    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    dataset = registry.get_dataset(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    hidden = model_cfg.pop("hidden", 1)
    unknown = sorted(set(model_cfg) - set(_MODEL_KEYS))
    if unknown:
        raise ConfigurationError(f"Unknown model option(s): {', '.join(unknown)}")
    run_dir = train_cfg.pop("run_dir", None)

    options: Dict[str, Any] = {**train_cfg, **model_cfg}
    callbacks: List[object] = []
    if run_dir is not None:
        run_dir = Path(str(run_dir))
        run_dir.mkdir(parents=True, exist_ok=True)
        callbacks.append(JsonlSink(run_dir / "progress.jsonl", seed=options.get("seed")))
        callbacks.append(CsvSink(run_dir / "repetitions.csv"))

    if verbose:
        model = build_topology(len(dataset.covariate_names), hidden, len(dataset.response_names))
        _print_startup_summary(
            dataset_name=dataset.name,
            dims=model.layer_dims,
            algorithm=str(options.get("algorithm", TrainingConfig.algorithm)),
            activation=str(options.get("activation", TrainingConfig.activation)),
            error=str(options.get("error", TrainingConfig.error)),
            repetitions=int(options.get("repetitions", TrainingConfig.repetitions)),
            weight_count=model.weight_count,
        )

    result = fit(
        dataset.covariate,
        dataset.response,
        hidden,
        covariate_names=dataset.covariate_names,
        response_names=dataset.response_names,
        callbacks=callbacks,
        **options,
    )
    if run_dir is not None:
        write_summary(result.result_table, run_dir / "summary.json", repetitions=result.repetitions)
        (run_dir / "config.json").write_text(json.dumps(_safe_config(config), indent=2))
    return result


# ----------------------------------------------------------------------
# Internal helpers


def _check_matrices(covariate: Array, response: Array) -> Tuple[Array, Array]:
    try:
        covariate = np.asarray(covariate, dtype=np.float64)
        response = np.asarray(response, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("Covariate and response must be numeric matrices") from exc
    if response.ndim == 1:
        response = response.reshape(-1, 1)
    if covariate.ndim != 2 or response.ndim != 2:
        raise ConfigurationError("Covariate and response must be two-dimensional")
    if covariate.shape[0] == 0 or covariate.shape[0] != response.shape[0]:
        raise ConfigurationError("Covariate and response must have the same, non-zero row count")
    if covariate.shape[1] < 2 or not np.all(covariate[:, 0] == 1):
        raise ConfigurationError(
            "Covariate must start with a constant intercept column of ones "
            "followed by at least one variable"
        )
    if not (np.all(np.isfinite(covariate)) and np.all(np.isfinite(response))):
        raise ConfigurationError("Covariate and response must not contain missing values")
    return covariate, response


def _startweights(values: Any) -> Array | None:
    if values is None:
        return None
    try:
        array = np.asarray(values, dtype=np.float64).ravel()
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("'startweights' must be a numeric vector") from exc
    if not np.all(np.isfinite(array)):
        raise ConfigurationError("'startweights' must contain finite values")
    return array


def _number(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        raise ConfigurationError(f"Argument '{name}' must be a numeric value.")
    value = float(value)
    if math.isnan(value):
        raise ConfigurationError(f"Argument '{name}' must be a numeric value.")
    return value


def _integer(name: str, value: Any) -> int:
    number = _number(name, value)
    if not math.isfinite(number) or number != int(number):
        raise ConfigurationError(f"Argument '{name}' must be an integer.")
    return int(number)


def _pair(
    name: str,
    value: Any,
    keys: Tuple[str, str],
    default: Tuple[float, float],
) -> Tuple[float, float]:
    if value is None:
        return default
    if isinstance(value, Mapping):
        if set(value) != set(keys):
            raise ConfigurationError(f"Argument '{name}' must have the keys {keys[0]!r} and {keys[1]!r}.")
        items = [value[keys[0]], value[keys[1]]]
    else:
        items = list(value)
        if len(items) != 2:
            raise ConfigurationError(f"Argument '{name}' must consist of two components.")
    return _number(name, items[0]), _number(name, items[1])


def _safe_config(config: Mapping[str, object]) -> Mapping[str, object]:
    return json.loads(json.dumps(config, default=str))


def _print_startup_summary(
    *,
    dataset_name: str,
    dims: Sequence[int],
    algorithm: str,
    activation: str,
    error: str,
    repetitions: int,
    weight_count: int,
) -> None:
    print("=== rpropnet run ===")
    print(f"Dataset       : {dataset_name}")
    print(f"Topology      : {list(dims)}")
    print(f"Algorithm     : {algorithm}")
    print(f"Activation    : {activation}")
    print(f"Error         : {error}")
    print(f"Repetitions   : {repetitions}")
    print(f"Weights       : {weight_count}")
    print("====================")


__all__ = [
    "FitResult",
    "TrainingConfig",
    "aggregate",
    "fit",
    "load_config_file",
    "load_preset",
    "presets",
    "read_config",
    "run_pipeline",
    "run_repetition",
    "warn_non_convergence",
]
