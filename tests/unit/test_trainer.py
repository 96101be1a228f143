import numpy as np
import pytest

from rpropnet.core import activations
from rpropnet.core.errors import NumericalError
from rpropnet.core.generalized import generalized_weights
from rpropnet.core.strategies import build_rule
from rpropnet.core.weights import build_topology, initialize_weights
from rpropnet.data import add_intercept
from rpropnet.training.losses import REGISTRY
from rpropnet.training.trainer import FeedForwardModel, Trainer


def _data(n=6, inputs=2, outputs=1, seed=0):
    rng = np.random.default_rng(seed)
    covariate = add_intercept(rng.uniform(-1, 1, size=(n, inputs)))
    response = (rng.uniform(size=(n, outputs)) > 0.5).astype(float)
    return covariate, response


def _numeric_gradient(network, weights, covariate, response, eps=1e-6):
    def total(ws):
        output = network.predict(ws, covariate)
        return float(np.sum(network.error(output, response)))

    base = weights.trainable()
    grads = np.zeros_like(base)
    for k in range(base.size):
        up = base.copy()
        down = base.copy()
        up[k] += eps
        down[k] -= eps
        grads[k] = (total(weights.with_trainable(up)) - total(weights.with_trainable(down))) / (
            2 * eps
        )
    return grads


@pytest.mark.parametrize(
    "activation,error,linear_output",
    [
        ("logistic", "sse", False),
        ("tanh", "sse", True),
        ("logistic", "ce", False),
    ],
)
def test_gradients_match_finite_differences(activation, error, linear_output):
    covariate, response = _data()
    model = build_topology(2, [3, 2], 1)
    network = FeedForwardModel.build(
        activations.resolve_activation(activation), REGISTRY.get(error), linear_output
    )
    weights = initialize_weights(model, np.random.default_rng(3))
    cache = network.forward(weights, covariate)
    analytic = network.gradients(weights, cache, response)
    numeric = _numeric_gradient(network, weights, covariate, response)
    assert analytic.shape == (model.weight_count,)
    assert np.allclose(analytic, numeric, rtol=1e-4, atol=1e-6)


def test_cross_entropy_keeps_logistic_output():
    network = FeedForwardModel.build(activations.LOGISTIC, REGISTRY.get("ce"), False)
    assert network.output_activation.is_logistic
    assert network.linear_delta
    linear = FeedForwardModel.build(activations.LOGISTIC, REGISTRY.get("sse"), True)
    assert linear.output_activation is activations.IDENTITY


def test_forward_is_deterministic():
    covariate, _ = _data()
    model = build_topology(2, 3, 2)
    network = FeedForwardModel.build(activations.LOGISTIC, REGISTRY.get("sse"), False)
    weights = initialize_weights(model, np.random.default_rng(1))
    first = network.forward(weights, covariate)
    second = network.forward(weights.copy(), covariate)
    assert np.array_equal(first.output, second.output)
    assert first.output.shape == (6, 2)
    assert [x.shape[1] for x in first.layer_inputs] == [3, 4]


def test_non_finite_activation_derivative_raises():
    covariate, response = _data()
    broken = activations.custom(lambda x: x, lambda x: np.full_like(x, np.inf))
    network = FeedForwardModel.build(broken, REGISTRY.get("sse"), True)
    weights = initialize_weights(build_topology(2, 2, 1), np.random.default_rng(0))
    with pytest.raises(NumericalError):
        network.forward(weights, covariate)


def test_non_finite_error_derivative_raises():
    covariate, response = _data()
    error = REGISTRY.resolve(lambda o, t: o - t, lambda o, t: np.full_like(o, np.nan))
    network = FeedForwardModel.build(activations.LOGISTIC, error, True)
    weights = initialize_weights(build_topology(2, 2, 1), np.random.default_rng(0))
    cache = network.forward(weights, covariate)
    with pytest.raises(NumericalError):
        network.gradients(weights, cache, response)


def test_generalized_weights_without_hidden_layer_equal_input_weights():
    covariate = add_intercept(np.linspace(-1, 1, 5))
    network = FeedForwardModel.build(activations.LOGISTIC, REGISTRY.get("sse"), False)
    weights = [np.array([[0.3], [0.7]])]
    cache = network.forward(weights, covariate)
    gw = generalized_weights(weights, cache.layer_derivs, cache.output)
    assert gw.shape == (5, 1)
    assert np.allclose(gw, 0.7)


def test_generalized_weights_shape():
    covariate, _ = _data(n=5, inputs=2, outputs=2)
    network = FeedForwardModel.build(activations.LOGISTIC, REGISTRY.get("sse"), False)
    weights = initialize_weights(build_topology(2, 3, 2), np.random.default_rng(2))
    cache = network.forward(weights, covariate)
    gw = generalized_weights(weights.matrices, cache.layer_derivs, cache.output)
    assert gw.shape == (5, 4)


def test_trainer_respects_stepmax_and_reports_progress():
    covariate, response = _data()
    network = FeedForwardModel.build(activations.LOGISTIC, REGISTRY.get("sse"), False)
    weights = initialize_weights(build_topology(2, 2, 1), np.random.default_rng(0))
    steps = []
    repetitions = []

    class Recorder:
        def on_repetition(self, index, metrics):
            repetitions.append((index, dict(metrics)))

    trainer = Trainer(
        network,
        build_rule("rprop+"),
        threshold=0.0,
        stepmax=7,
        callbacks=[lambda step, metrics: steps.append(step), Recorder()],
        lifesign_step=2,
    )
    result = trainer.run(weights, covariate, response, index=4)
    assert result.steps == 7
    assert not result.converged
    assert np.isnan(result.error)
    assert result.generalized_weights is None
    assert result.min_reached_threshold <= result.reached_threshold
    assert steps == [2, 4, 6]
    assert repetitions[0][0] == 4
    assert repetitions[0][1]["converged"] == 0.0
    assert np.array_equal(result.startweights[0], weights.matrices[0])


def test_trainer_converges_immediately_with_loose_threshold():
    covariate, response = _data()
    network = FeedForwardModel.build(activations.LOGISTIC, REGISTRY.get("sse"), False)
    weights = initialize_weights(build_topology(2, 2, 1), np.random.default_rng(0))
    trainer = Trainer(
        network,
        build_rule("rprop+"),
        threshold=1e6,
        stepmax=100,
        likelihood=True,
        synapse_count=9,
    )
    result = trainer.run(weights, covariate, response)
    assert result.converged
    assert result.steps == 1
    expected = float(np.sum(0.5 * (response - result.output) ** 2))
    assert result.error == pytest.approx(expected)
    assert result.aic == pytest.approx(2 * expected + 18)
    assert result.bic == pytest.approx(2 * expected + np.log(6) * 9)
    assert result.generalized_weights.shape == (6, 2)


def test_custom_function_named_logistic_gets_no_cross_entropy_shortcut():
    def logistic(x):
        return 1.0 / (1.0 + np.exp(-2.0 * x))

    def logistic_prime(x):
        s = logistic(x)
        return 2.0 * s * (1.0 - s)

    covariate, response = _data()
    activation = activations.resolve_activation(logistic, logistic_prime)
    network = FeedForwardModel.build(activation, REGISTRY.get("ce"), False)
    assert not activation.is_logistic
    assert not network.linear_delta
    weights = initialize_weights(build_topology(2, 3, 1), np.random.default_rng(4))
    cache = network.forward(weights, covariate)
    analytic = network.gradients(weights, cache, response)
    numeric = _numeric_gradient(network, weights, covariate, response)
    assert np.allclose(analytic, numeric, rtol=1e-4, atol=1e-6)
