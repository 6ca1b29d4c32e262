"""
Tests for the robust ("symmetric") family of the loess smoother.
"""
import numpy as np
import pytest
from scatter_loess import LoessSmoother


@pytest.fixture
def outlier_data():
    rng = np.random.default_rng(9)
    x = np.linspace(0, 10, 50)
    y = 2 * x + 1 + rng.normal(0, 0.1, 50)
    y[25] += 50.0
    return x, y


def test_robust_fit_resists_outlier(outlier_data):
    x, y = outlier_data
    truth = 2 * x[25] + 1

    gaussian = LoessSmoother(x, span=0.5).smooth(y)
    robust = LoessSmoother(x, span=0.5, family="symmetric").smooth(y)

    assert abs(gaussian.predict([x[25]])[0] - truth) > 1.0
    assert abs(robust.predict([x[25]])[0] - truth) < 0.5
    assert robust.robustness_weights_[25] == 0
    assert np.median(robust.robustness_weights_) > 0.5


def test_single_iteration_is_gaussian(outlier_data):
    x, y = outlier_data
    gaussian = LoessSmoother(x, span=0.5).smooth(y).predict()
    robust = LoessSmoother(x, span=0.5, family="symmetric", iterations=1).smooth(y).predict()
    np.testing.assert_array_equal(gaussian, robust)


def test_exact_data_stops_iterating():
    x = np.linspace(0, 10, 30)
    y = 0.5 * x
    robust = LoessSmoother(x, span=0.5, family="symmetric").smooth(y)
    np.testing.assert_array_equal(robust.robustness_weights_, 1.0)
    np.testing.assert_allclose(robust.predict(), y, atol=1e-10)


def test_robust_standard_errors_use_prior_weights(outlier_data):
    """
    Standard errors of a robust fit hold the final robustness weights fixed
    inside the operator and weight the variance by the prior weights only.
    """
    x, y = outlier_data
    robust = LoessSmoother(x, span=0.5, family="symmetric").smooth(y)
    L = robust.operator()
    expected = robust.statistics_.residual_scale * np.sqrt(np.sum(L**2, axis=1))

    result = robust.evaluate(robust.x_sorted_, se=True)
    np.testing.assert_allclose(result.se, expected, rtol=1e-10)
    # the downweighted outlier contributes nothing to the neighbouring fits
    np.testing.assert_allclose(L[:, 25], 0, atol=1e-14)
