from dataclasses import dataclass, field
import numpy as np


@dataclass
class _BaseLocalFitter:
    """
    Base class for local regression smoothers.

    Handles validation of the smoothing parameters, exclusion of missing
    observations, the stable sort by predictor and the global linear part
    of the fitted curve.
    """
    x: np.ndarray
    w: np.ndarray = None
    span: float = None
    n_neighbors: int = None
    degree: int = 1

    y: np.ndarray = field(init=False, default=None, repr=False)

    def __post_init__(self):
        self.x = np.asarray(self.x, dtype=float)
        if self.x.ndim != 1:
            raise ValueError("`x` must be one-dimensional.")
        if self.w is not None:
            self.w = self._check_weights(self.w)

        if self.span is not None and self.n_neighbors is not None:
            raise ValueError("Only one of `span` or `n_neighbors` can be provided.")
        if self.span is None and self.n_neighbors is None:
            self.span = 0.75
        if self.span is not None and not 0 < self.span <= 1:
            raise ValueError(f"`span` must lie in (0, 1], got {self.span}.")
        if self.n_neighbors is not None and self.n_neighbors < 1:
            raise ValueError(f"`n_neighbors` must be at least 1, got {self.n_neighbors}.")
        if not isinstance(self.degree, (int, np.integer)) or self.degree not in [0, 1, 2]:
            raise ValueError("Degree must be 0, 1 or 2.")
        self._reset()

    def _reset(self):
        self._coef = self._intercept = None

    def _check_weights(self, w):
        w = np.asarray(w, dtype=float)
        if w.shape != self.x.shape:
            raise ValueError(f"Weights have shape {w.shape}, expected {self.x.shape}.")
        if np.any(w < 0):
            raise ValueError("Weights must be non-negative.")
        return w

    def _prepare_observations(self, y):
        """
        Drop observations with a missing predictor, response or weight and
        sort the rest by predictor, ties keeping their input order.
        """
        y = np.asarray(y, dtype=float)
        if y.shape != self.x.shape:
            raise ValueError(f"`y` has shape {y.shape}, expected {self.x.shape}.")
        valid = np.isfinite(self.x) & np.isfinite(y)
        if self.w is not None:
            valid &= np.isfinite(self.w)

        index = np.flatnonzero(valid)
        order = index[np.argsort(self.x[index], kind="stable")]
        k = self._n_neighbors(len(order))
        self.valid_ = valid
        self.order_ = order
        self.x_sorted_ = self.x[order]
        self.y_sorted_ = y[order]
        self.w_sorted_ = self.w[order] if self.w is not None else np.ones(len(order))
        self.n_obs_ = len(order)
        self.k_ = k

    def _n_neighbors(self, n):
        if self.n_neighbors is not None:
            if n and self.n_neighbors > n:
                raise ValueError(
                    f"`n_neighbors` ({self.n_neighbors}) exceeds the number of valid observations ({n}).")
            return self.n_neighbors
        # rounding guards against products such as 0.7 * 10 = 7.000000000000001
        return int(np.ceil(np.round(self.span * n, 8)))

    def _check_fitted(self):
        if self.y is None:
            raise ValueError("Model has not been fitted yet. Call smooth(y) first.")

    def update_weights(self, w):
        """
        Update the observation weights, refitting if a response is stored.

        Parameters
        ----------
        w : np.ndarray
            New weights.
        """
        self.w = self._check_weights(w)
        self._reset()
        if self.y is not None:
            self.smooth(self.y)

    @property
    def fitted_values_(self):
        """
        Fitted values at the observations in input order, NaN where an
        observation was excluded from the fit.
        """
        raise NotImplementedError

    def _compute_linear_part(self):
        if self._coef is None:
            self._check_fitted()
            y_hat = self.fitted_values_
            keep = np.isfinite(y_hat)
            w_eff = self.w[keep] if self.w is not None else np.ones(keep.sum())

            X = np.vander(self.x[keep], 2)
            Xw = X * w_eff[:, None]
            yw = y_hat[keep] * w_eff
            beta = np.linalg.lstsq(Xw, yw, rcond=None)[0]

            self._intercept = beta[1]
            self._coef = beta[0]

    @property
    def intercept_(self):
        self._compute_linear_part()
        return self._intercept

    @property
    def coef_(self):
        self._compute_linear_part()
        return self._coef

    @property
    def nonlinear_(self):
        """
        The non-linear component of the fitted curve.
        """
        if self.y is None:
            return None
        linear_part = self.coef_ * self.x + self.intercept_
        return self.fitted_values_ - linear_part
