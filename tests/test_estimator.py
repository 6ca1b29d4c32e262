"""
Tests for the scikit-learn interface of the loess smoother.
"""
import numpy as np
import pytest
from sklearn.base import clone
from sklearn.model_selection import KFold, cross_val_score
from scatter_loess import LoessRegressor, LoessSmoother


@pytest.fixture
def data():
    rng = np.random.default_rng(12)
    x = np.sort(rng.uniform(0, 10, 80))
    y = np.sin(x) + rng.normal(0, 0.2, 80)
    return x, y


def test_matches_smoother(data):
    x, y = data
    reg = LoessRegressor(span=0.4, degree=2).fit(x[:, None], y)
    smoother = LoessSmoother(x, span=0.4, degree=2).smooth(y)

    x_new = np.linspace(0, 10, 30)
    np.testing.assert_allclose(reg.predict(x_new[:, None]), smoother.predict(x_new))
    assert reg.n_features_in_ == 1


def test_sample_weight(data):
    x, y = data
    w = np.linspace(0.5, 2, len(x))
    reg = LoessRegressor(span=0.4).fit(x[:, None], y, sample_weight=w)
    smoother = LoessSmoother(x, w=w, span=0.4).smooth(y)
    np.testing.assert_allclose(reg.predict(x[:, None]), smoother.predict(x))


def test_clone_and_params():
    reg = LoessRegressor(span=0.3, family="symmetric")
    params = reg.get_params()
    assert params["span"] == 0.3
    assert params["family"] == "symmetric"

    copy = clone(reg)
    assert copy.get_params() == params
    assert not hasattr(copy, "smoother_")


def test_cross_validation(data):
    x, y = data
    scores = cross_val_score(LoessRegressor(span=0.2), x[:, None], y,
                             cv=KFold(3, shuffle=True, random_state=0))
    assert len(scores) == 3
    assert np.all(scores > 0.5)


def test_rejects_multiple_features(data):
    x, y = data
    with pytest.raises(ValueError):
        LoessRegressor().fit(np.column_stack([x, x]), y)
