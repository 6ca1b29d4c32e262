from dataclasses import dataclass
import numpy as np
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.utils.validation import check_is_fitted

from .loess import LoessSmoother


def _as_predictor(X):
    X = np.asarray(X, dtype=float)
    if X.ndim == 2:
        if X.shape[1] != 1:
            raise ValueError(f"LoessRegressor expects a single feature, got {X.shape[1]}.")
        X = X[:, 0]
    elif X.ndim != 1:
        raise ValueError("X must be one- or two-dimensional.")
    return X


@dataclass
class LoessRegressor(RegressorMixin, BaseEstimator):
    """
    Loess estimator with the scikit-learn interface.

    Wraps `LoessSmoother` so that a loess curve can be cloned, cross-validated
    and used inside pipelines. `X` must hold a single feature.
    """
    span: float = 0.75
    degree: int = 1
    family: str = "gaussian"
    iterations: int = 4
    on_error: str = "raise"

    def fit(self, X, y, sample_weight=None):
        """
        Fit the loess curve.
        """
        x = _as_predictor(X)
        self.smoother_ = LoessSmoother(x,
                                       w=sample_weight,
                                       span=self.span,
                                       degree=self.degree,
                                       family=self.family,
                                       iterations=self.iterations,
                                       on_error=self.on_error)
        self.smoother_.smooth(y)
        self.n_features_in_ = 1
        return self

    def predict(self, X):
        """
        Predict using the fitted loess curve.
        """
        check_is_fitted(self)
        return self.smoother_.predict(_as_predictor(X))
