"""
Tests for the standard errors and confidence bands of the loess curve.

Standard errors come from the hat vector of each local fit and a residual
scale estimated from the operator matrix of the training fit. These tests
compare both against a brute force computation of the full operator.
"""
import numpy as np
import pytest
from scipy import stats
from scatter_loess import LoessSmoother, confidence_band
from .reference_loess import ReferenceLoess


@pytest.mark.parametrize("degree", [1, 2])
@pytest.mark.parametrize("weighted", [False, True])
def test_standard_errors_match_reference(degree, weighted):
    rng = np.random.default_rng(42)
    n = 60
    x = np.sort(rng.uniform(0, 10, n))
    y = np.sin(x) + rng.normal(0, 0.3, n)
    w = rng.uniform(0.5, 1.5, n) if weighted else None

    ref = ReferenceLoess(x, w=w, span=0.5, degree=degree).smooth(y)
    fitter = LoessSmoother(x, w=w, span=0.5, degree=degree).smooth(y)

    np.testing.assert_allclose(fitter.operator(), ref.operator(), atol=1e-10)
    assert fitter.statistics_.residual_scale == pytest.approx(ref.residual_scale(), rel=1e-8)

    x_new = np.linspace(0.5, 9.5, 15)
    result = fitter.evaluate(x_new, se=True)
    np.testing.assert_allclose(result.se, ref.standard_error(x_new), rtol=1e-7)


def test_operator_statistics():
    rng = np.random.default_rng(0)
    n = 50
    x = np.linspace(0, 1, n)
    y = x**2 + rng.normal(0, 0.05, n)
    fitter = LoessSmoother(x, span=0.4, degree=1).smooth(y)

    L = fitter.operator()
    I_L = np.eye(n) - L
    M = I_L.T @ I_L
    stats_ = fitter.statistics_

    assert stats_.enp == pytest.approx(np.trace(L))
    assert stats_.one_delta == pytest.approx(np.trace(M))
    assert stats_.two_delta == pytest.approx(np.trace(M @ M))
    assert stats_.lookup_df == pytest.approx(np.trace(M)**2 / np.trace(M @ M))
    assert 2 < stats_.enp < n
    np.testing.assert_allclose(L @ y, fitter.fitted_values_)


def test_standard_error_scales_with_noise():
    rng = np.random.default_rng(1)
    x = rng.uniform(0, 10, 40)
    y = np.cos(x) + rng.normal(0, 0.2, 40)

    se1 = LoessSmoother(x, span=0.6).smooth(y).evaluate(se=True).se
    se3 = LoessSmoother(x, span=0.6).smooth(3 * y).evaluate(se=True).se
    np.testing.assert_allclose(se3, 3 * se1)


def test_exact_data_has_zero_standard_error():
    x = np.linspace(0, 10, 25)
    result = LoessSmoother(x, span=0.5).smooth(3 * x + 2).evaluate(se=True)
    np.testing.assert_allclose(result.se, 0, atol=1e-10)


def test_band():
    rng = np.random.default_rng(2)
    x = np.linspace(0, 10, 50)
    y = np.sin(x) + rng.normal(0, 0.3, 50)
    result = LoessSmoother(x, span=0.5).smooth(y).evaluate(se=True)

    lower, upper = result.band(0.95)
    q = stats.t.ppf(0.975, result.df)
    np.testing.assert_allclose(upper - result.fit, q * result.se)
    np.testing.assert_allclose(result.fit - lower, q * result.se)

    lower99, upper99 = result.band(0.99)
    assert np.all(upper99 >= upper)
    assert np.all(lower99 <= lower)


def test_band_requires_standard_errors():
    x = np.linspace(0, 10, 20)
    result = LoessSmoother(x).smooth(x).evaluate()
    assert result.se is None
    with pytest.raises(ValueError):
        result.band()


def test_confidence_band_normal_limit():
    lower, upper = confidence_band([1.0], [2.0], np.inf, level=0.95)
    np.testing.assert_allclose(upper - 1.0, 2.0 * stats.norm.ppf(0.975))
    with pytest.raises(ValueError):
        confidence_band([1.0], [2.0], 10, level=1.5)
