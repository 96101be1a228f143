"""Forward evaluation, gradients and the per-repetition training loop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np

from ..core.activations import IDENTITY, Activation
from ..core.errors import NumericalError
from ..core.generalized import generalized_weights
from ..core.strategies import UpdateRule
from ..core.types import Array, ForwardCache, RepetitionResult
from ..core.weights import WeightSet
from .losses import ErrorFn, ErrorFunction, logistic_cross_entropy_deriv
from .metrics import information_criteria, repetition_metrics, total_error


def _prepend_bias(values: Array) -> Array:
    return np.column_stack([np.ones(values.shape[0]), values])


@dataclass(frozen=True)
class FeedForwardModel:
    """Fully connected network with bias rows in every weight matrix.

    ``linear_delta`` means the output-layer delta is the error derivative
    itself: either the output is linear, or the logistic derivative has
    already been folded into the cross-entropy derivative.
    """

    hidden_activation: Activation
    output_activation: Activation
    error: ErrorFunction
    error_deriv: ErrorFn
    linear_delta: bool

    @classmethod
    def build(
        cls,
        activation: Activation,
        error: ErrorFunction,
        linear_output: bool,
    ) -> "FeedForwardModel":
        if linear_output:
            return cls(activation, IDENTITY, error, error.deriv, linear_delta=True)
        if error.is_cross_entropy and activation.is_logistic:
            return cls(
                activation,
                activation,
                error,
                logistic_cross_entropy_deriv,
                linear_delta=True,
            )
        return cls(activation, activation, error, error.deriv, linear_delta=False)

    def forward(self, weights: WeightSet | Sequence[Array], covariate: Array) -> ForwardCache:
        matrices = list(weights.matrices if isinstance(weights, WeightSet) else weights)
        layer_inputs = [covariate]
        layer_derivs = []
        x = covariate
        for W in matrices[:-1]:
            pre = x @ W
            act = self.hidden_activation(pre)
            layer_derivs.append(self.hidden_activation.derivative(pre, act))
            x = _prepend_bias(act)
            layer_inputs.append(x)
        pre = x @ matrices[-1]
        output = self.output_activation(pre)
        layer_derivs.append(self.output_activation.derivative(pre, output))
        if any(not np.all(np.isfinite(deriv)) for deriv in layer_derivs):
            raise NumericalError(
                "Neuron derivatives contain a non-finite value; verify that the "
                "derivative function does not divide by 0"
            )
        return ForwardCache(layer_inputs=layer_inputs, layer_derivs=layer_derivs, output=output)

    def predict(self, weights: WeightSet | Sequence[Array], covariate: Array) -> Array:
        return self.forward(weights, covariate).output

    def gradients(self, weights: WeightSet, cache: ForwardCache, response: Array) -> Array:
        """Gradient over the trainable weights, in flat order."""

        with np.errstate(divide="ignore", invalid="ignore"):
            err_deriv = np.asarray(self.error_deriv(cache.output, response), dtype=np.float64)
        if not np.all(np.isfinite(err_deriv)):
            raise NumericalError(
                "The error derivative contains a non-finite value; verify that the "
                "derivative function does not divide by 0 (e.g. cross entropy)"
            )
        matrices = weights.matrices
        last = len(matrices) - 1
        delta = err_deriv if self.linear_delta else cache.layer_derivs[last] * err_deriv
        grads = [np.empty(0)] * len(matrices)
        grads[last] = cache.layer_inputs[last].T @ delta
        for idx in range(last - 1, -1, -1):
            delta = cache.layer_derivs[idx] * (delta @ matrices[idx + 1][1:, :].T)
            grads[idx] = cache.layer_inputs[idx].T @ delta
        return weights.select(grads)


class Trainer:
    """Drive one repetition from start weights to convergence or ``stepmax``."""

    def __init__(
        self,
        model: FeedForwardModel,
        rule: UpdateRule,
        *,
        threshold: float,
        stepmax: int,
        likelihood: bool = False,
        synapse_count: int | None = None,
        callbacks: Sequence[object] | None = None,
        lifesign_step: int = 1000,
    ) -> None:
        self.model = model
        self.rule = rule
        self.threshold = threshold
        self.stepmax = stepmax
        self.likelihood = likelihood
        self.synapse_count = synapse_count
        self.callbacks = list(callbacks or [])
        self.lifesign_step = max(1, int(lifesign_step))

    def run(
        self,
        weights: WeightSet,
        covariate: Array,
        response: Array,
        index: int = 0,
    ) -> RepetitionResult:
        startweights = weights.copy()
        state = self.rule.init(weights.trainable_count)

        cache = self.model.forward(weights, covariate)
        gradients = self.model.gradients(weights, cache, response)
        reached = float(np.max(np.abs(gradients)))
        min_reached = reached
        step = 1

        while step < self.stepmax and reached > self.threshold:
            if step % self.lifesign_step == 0:
                self._emit_step(
                    step,
                    {"reached.threshold": reached, "min.reached.threshold": min_reached},
                )
            vector, state = self.rule.step(weights.trainable(), gradients, state)
            weights = weights.with_trainable(vector)
            cache = self.model.forward(weights, covariate)
            gradients = self.model.gradients(weights, cache, response)
            reached = float(np.max(np.abs(gradients)))
            min_reached = min(min_reached, reached)
            step += 1

        converged = reached <= self.threshold
        result = RepetitionResult(
            index=index,
            weights=[W.copy() for W in weights.matrices],
            startweights=[W.copy() for W in startweights.matrices],
            output=cache.output,
            steps=step,
            reached_threshold=reached,
            min_reached_threshold=min_reached,
            converged=converged,
            excluded=[mask.copy() for mask in weights.excluded],
        )
        if converged:
            self._finalise(result, cache, response)
        self._emit_repetition(index, result)
        return result

    # ------------------------------------------------------------------
    # Internal helpers

    def _finalise(self, result: RepetitionResult, cache: ForwardCache, response: Array) -> None:
        result.error = total_error(self.model.error, cache.output, response)
        if self.likelihood:
            synapses = self.synapse_count
            if synapses is None:
                synapses = int(sum(W.size for W in result.weights))
            criteria = information_criteria(result.error, synapses, response.shape[0])
            result.aic = criteria.aic
            result.bic = criteria.bic
        result.generalized_weights = generalized_weights(
            result.weights, cache.layer_derivs, cache.output
        )

    def _emit_step(self, step: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_step"):
                callback.on_step(step, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(step, metrics)

    def _emit_repetition(self, index: int, result: RepetitionResult) -> None:
        if result.converged:
            metrics = repetition_metrics(
                result.error, result.reached_threshold, result.steps, result.aic, result.bic
            )
        else:
            metrics = {
                "reached.threshold": result.reached_threshold,
                "min.reached.threshold": result.min_reached_threshold,
                "steps": float(result.steps),
            }
        metrics["converged"] = float(result.converged)
        for callback in self.callbacks:
            if hasattr(callback, "on_repetition"):
                callback.on_repetition(index, metrics)  # type: ignore[attr-defined]


__all__ = ["FeedForwardModel", "Trainer"]
