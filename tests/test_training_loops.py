import warnings

import numpy as np
import pytest

from rpropnet import (
    ConfigurationError,
    ConvergenceWarning,
    GeneralizedWeightWarning,
    fit,
    get_dataset,
)


def _separable(**options):
    data = get_dataset("separable")
    params = dict(
        hidden=1,
        covariate_names=data.covariate_names,
        response_names=data.response_names,
        activation="logistic",
        error="ce",
        linear_output=False,
        threshold=0.01,
        stepmax=10000,
        seed=0,
    )
    params.update(options)
    hidden = params.pop("hidden")
    return data, fit(data.covariate, data.response, hidden, **params)


def test_separable_classes_are_learned():
    data, result = _separable()
    assert result.converged_count == 1
    best = result.best()
    assert best.reached_threshold <= 0.01
    assert best.steps <= 10000
    prediction = result.predict(data.covariate)
    assert np.all(prediction[:3, 0] < 0.1)
    assert np.all(prediction[3:, 0] > 0.9)
    assert np.allclose(prediction, best.output)
    assert np.allclose(result.predict(data.covariate[:, 1:]), prediction)
    assert best.generalized_weights.shape == (6, 1)


def test_xor_is_learned_by_rprop():
    data = get_dataset("xor")
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        result = fit(
            data.covariate,
            data.response,
            3,
            linear_output=False,
            repetitions=3,
            seed=1,
        )
    assert result.converged_count >= 1
    assert np.array_equal(np.round(result.predict(data.covariate)), data.response)


@pytest.mark.parametrize("algorithm", ["rprop-", "sag", "slr"])
def test_adaptive_rules_stop_at_stepmax(algorithm):
    with pytest.warns(ConvergenceWarning):
        _, result = _separable(algorithm=algorithm, stepmax=200, threshold=0.0)
    assert result.converged_count == 0
    assert result.failed_count == 1


def test_stepmax_bounds_every_repetition():
    data = get_dataset("xor")
    with pytest.warns(ConvergenceWarning, match="did not converge in 2 of 2 repetition"):
        result = fit(data.covariate, data.response, 3, stepmax=5, repetitions=2, seed=0)
    assert result.converged_count == 0
    assert result.failed_count == 2


def test_zero_threshold_never_converges():
    with pytest.warns(ConvergenceWarning):
        _, result = _separable(threshold=0.0, stepmax=50)
    assert result.results == []


def test_seed_makes_fits_reproducible():
    _, first = _separable(repetitions=2, seed=7)
    _, second = _separable(repetitions=2, seed=7)
    assert first.result_table.equals(second.result_table)


def test_startweights_override_the_seed():
    start = np.array([0.1, -0.2, 0.3, -0.4])
    _, first = _separable(startweights=start, seed=1, threshold=1e6)
    _, second = _separable(startweights=start, seed=2, threshold=1e6)
    assert np.array_equal(first.results[0].startweights[0].ravel(order="F"), start[:2])
    assert first.result_table.equals(second.result_table)


def test_short_startweights_warn():
    with pytest.warns(UserWarning, match="startweights"):
        _separable(startweights=[0.1, 0.2])


def test_excluded_weights_stay_pinned_and_reduce_synapses():
    data, result = _separable(exclude=[1], constant_weights=[0.0], likelihood=True)
    best = result.best()
    assert best.weights[0][0, 0] == 0.0
    assert best.excluded[0][0, 0]
    assert best.aic == pytest.approx(2 * best.error + 2 * 3)
    assert best.bic == pytest.approx(2 * best.error + np.log(6) * 3)
    assert "aic" in result.result_table.index


def test_nonzero_constants_count_as_synapses():
    _, result = _separable(exclude=[1], constant_weights=[-1.0], likelihood=True)
    best = result.best()
    assert best.weights[0][0, 0] == -1.0
    assert best.aic == pytest.approx(2 * best.error + 2 * 4)


def test_linear_regression_with_backprop():
    data = get_dataset("linear", n_points=32, seed=0)
    with pytest.warns(GeneralizedWeightWarning):
        result = fit(
            data.covariate,
            data.response,
            0,
            algorithm="backprop",
            learningrate=0.01,
            threshold=0.001,
            linear_output=True,
            seed=0,
        )
    assert result.converged_count == 1
    expected, *_ = np.linalg.lstsq(data.covariate, data.response, rcond=None)
    assert np.allclose(result.best().weights[0], expected, atol=1e-2)
    assert result.best().generalized_weights.shape == (32, 1)


def test_lifesign_prints_progress(capsys):
    _separable(lifesign="full", lifesign_step=5)
    out = capsys.readouterr().out
    assert "rep: 1/1" in out
    assert "min thresh" in out


@pytest.mark.parametrize(
    "options",
    [
        {"threshold": -1.0},
        {"stepmax": 0},
        {"repetitions": 0},
        {"algorithm": "adam"},
        {"algorithm": "backprop"},
        {"activation": "relu"},
        {"error": "mae"},
        {"lifesign": "loud"},
        {"learningrate_limit": {"low": 0.0, "high": 1.0}},
        {"learningrate_factor": [0.5]},
        {"learningrate_limit": [0.5, 0.1]},
        {"threshold": "small"},
        {"unknown_option": 1},
        {"exclude": [99]},
        {"hidden": [2, 0]},
        {"startweights": [0.1, np.nan, 0.2, 0.3]},
        {"startweights": [0.1, 0.2, np.inf, 0.3]},
    ],
)
def test_configuration_errors(options):
    with pytest.raises(ConfigurationError):
        _separable(**options)


def test_covariate_must_carry_intercept():
    data = get_dataset("separable")
    with pytest.raises(ConfigurationError):
        fit(data.covariate[:, 1:], data.response)
    with pytest.raises(ConfigurationError):
        fit(data.covariate, data.response[:3])
    with pytest.raises(ConfigurationError):
        fit(data.covariate, data.response, covariate_names=["a", "b"])


def test_custom_function_named_logistic_warns_about_generalized_weights():
    def logistic(x):
        return 1.0 / (1.0 + np.exp(-2.0 * x))

    def logistic_prime(x):
        s = logistic(x)
        return 2.0 * s * (1.0 - s)

    with pytest.warns(GeneralizedWeightWarning):
        _separable(activation=logistic, activation_derivative=logistic_prime, threshold=1e6)
