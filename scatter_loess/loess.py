import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import numpy as np

from .base import _BaseLocalFitter
from .errors import InsufficientData, LoessError
from .local_fit import bisquare, local_hat, local_mean_hat, local_weights, neighborhood
from .statistics import confidence_band, hat_standard_error, operator_statistics

logger = logging.getLogger(__name__)

FAMILIES = ("gaussian", "symmetric")
ON_ERROR = ("raise", "omit", "mean", "nan")


@dataclass
class LoessFit:
    """
    Result of evaluating a loess curve.

    Parameters
    ----------
    x : np.ndarray
        Query points, in query order.
    fit : np.ndarray
        Fitted values at `x`.
    se : np.ndarray, optional
        Standard errors of `fit`, when requested.
    df : float, optional
        Degrees of freedom for the confidence band, when `se` is set.
    index : np.ndarray, optional
        Position of each returned point in the query.
    errors : dict
        Failures recovered from, keyed by position in the query.
    """
    x: np.ndarray
    fit: np.ndarray
    se: np.ndarray = None
    df: float = None
    index: np.ndarray = None
    errors: dict = field(default_factory=dict)

    def __len__(self):
        return len(self.x)

    def band(self, level=0.95):
        """
        Pointwise confidence band ``fit -/+ t * se``.

        Parameters
        ----------
        level : float, optional
            Confidence level (default is 0.95).

        Returns
        -------
        lower, upper : np.ndarray
        """
        if self.se is None:
            raise ValueError("Standard errors were not computed. Evaluate with se=True.")
        return confidence_band(self.fit, self.se, self.df, level)

    def points(self):
        """
        The result as a list of ``(x0, y_hat, se)`` triples.
        """
        se = self.se if self.se is not None else [None] * len(self.x)
        return list(zip(self.x, self.fit, se))


@dataclass
class LoessSmoother(_BaseLocalFitter):
    """
    Locally weighted polynomial regression (LOESS).

    Each fitted value comes from a weighted least squares polynomial fit to
    the `k` observations nearest the query point, weighted by the tricube of
    their distance relative to the farthest of them.

    Parameters
    ----------
    x : np.ndarray
        The predictor variable.
    w : np.ndarray, optional
        Prior weights for the observations.
    span : float, optional
        Fraction of the observations used as neighbours, in (0, 1].
        Default is 0.75 unless `n_neighbors` is given.
    n_neighbors : int, optional
        Number of neighbours, as an alternative to `span`.
    degree : int, optional
        The degree of the local polynomial (0, 1 or 2). Default is 1.
    family : str, optional
        "gaussian" for a single least squares pass, "symmetric" for
        bisquare robustness iterations. Default is "gaussian".
    iterations : int, optional
        Number of passes of the "symmetric" family. Default is 4.
    on_error : str, optional
        What to do when the fit at a query point fails: "raise" (default),
        "omit" the point, substitute the local "mean", or report "nan".
    n_jobs : int, optional
        Number of threads evaluating query points; -1 uses every CPU.
        Default is 1.
    """
    family: str = "gaussian"
    iterations: int = 4
    on_error: str = "raise"
    n_jobs: int = 1

    def __post_init__(self):
        super().__post_init__()
        if self.family not in FAMILIES:
            raise ValueError(f"`family` must be one of {FAMILIES}, got {self.family!r}.")
        if self.on_error not in ON_ERROR:
            raise ValueError(f"`on_error` must be one of {ON_ERROR}, got {self.on_error!r}.")
        if self.iterations < 1:
            raise ValueError("`iterations` must be at least 1.")
        if self.n_jobs != -1 and self.n_jobs < 1:
            raise ValueError("`n_jobs` must be -1 or a positive integer.")

    def _reset(self):
        super()._reset()
        self._fitted = self._stats = None

    def smooth(self, y, sample_weight=None):
        """
        Fit the Loess model.

        Parameters
        ----------
        y : np.ndarray
            Response variable. Missing values are excluded from the fit.
        sample_weight : np.ndarray, optional
            Observation weights. If provided, updates the instance weights.

        Returns
        -------
        LoessSmoother
            The fitted smoother.
        """
        if sample_weight is not None:
            self.w = self._check_weights(sample_weight)
        # the smoother counts as fitted only once every step below succeeds
        self.y = None
        self._reset()
        self._prepare_observations(y)
        if self.n_obs_ == 0:
            raise InsufficientData("No valid observations to smooth.")

        logger.debug("Smoothing %d observations (%d excluded) with k=%d, degree=%d",
                     self.n_obs_, len(self.x) - self.n_obs_, self.k_, self.degree)
        self.robustness_weights_ = np.ones(self.n_obs_)
        if self.family == "symmetric":
            self._robustify()
        self.y = np.asarray(y, dtype=float)
        return self

    def _robustify(self):
        # residuals below this are rounding error of an exact fit
        tol = 1e-7 * np.mean(np.abs(self.y_sorted_))
        for it in range(self.iterations - 1):
            residuals = self.y_sorted_ - self._training_fit()
            scale = np.nanmedian(np.abs(residuals))
            if not scale > tol:
                logger.debug("Residuals vanish, stopping after %d robustness iterations", it)
                break
            # observations whose fit failed keep full weight
            self.robustness_weights_ = np.where(np.isfinite(residuals),
                                                bisquare(residuals / (6 * scale)), 1.0)
            logger.debug("Robustness iteration %d: residual median %g, %d observations downweighted to 0",
                         it + 1, scale, int(np.sum(self.robustness_weights_ == 0)))

    def _solve(self, x0, deriv=0):
        """
        Hat vector of the local fit at `x0`, applying the error policy.

        Returns ``(start, stop, hat, error)``; `hat` is None when the point
        failed and no substitute applies.
        """
        start, stop, d_max = neighborhood(self.x_sorted_, x0, self.k_)
        x_local = self.x_sorted_[start:stop]
        prior = self.w_sorted_[start:stop]
        weights = local_weights(x_local, x0, d_max) * prior * self.robustness_weights_[start:stop]
        try:
            if self.k_ < self.degree + 1:
                raise InsufficientData(
                    f"{self.k_} neighbours cannot support a local polynomial of degree {self.degree}.", x0)
            hat = local_hat(x_local, weights, x0, d_max, self.degree, deriv)
        except LoessError as exc:
            if self.on_error == "raise":
                raise
            if self.on_error == "mean":
                if deriv:
                    return start, stop, np.zeros(stop - start), exc
                return start, stop, local_mean_hat(weights, prior), exc
            return start, stop, None, exc
        return start, stop, hat, None

    def _solve_all(self, x_query, deriv=0):
        if self.n_jobs == 1:
            return [self._solve(x0, deriv) for x0 in x_query]
        workers = os.cpu_count() if self.n_jobs == -1 else self.n_jobs
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda x0: self._solve(x0, deriv), x_query))

    def _training_fit(self):
        """
        Fitted values at the sorted valid observations.
        """
        return np.array([np.nan if hat is None else hat @ self.y_sorted_[start:stop]
                         for start, stop, hat, _ in self._solve_all(self.x_sorted_)])

    def operator(self):
        """
        The operator matrix `L` of the fit at the valid observations,
        in sorted order, with ``fitted = L @ y``.

        Rows of points whose fit failed are NaN.
        """
        self._check_fitted()
        n = self.n_obs_
        L = np.zeros((n, n))
        for i, (start, stop, hat, _) in enumerate(self._solve_all(self.x_sorted_)):
            if hat is None:
                L[i] = np.nan
            else:
                L[i, start:stop] = hat
        return L

    @property
    def statistics_(self):
        """
        Equivalent number of parameters, residual scale and lookup degrees
        of freedom of the fit.

        The operator includes the final robustness weights; the residual
        scale weights squared residuals by the prior weights only.
        """
        self._check_fitted()
        if self._stats is None:
            self._stats = operator_statistics(self.operator(), self.y_sorted_, self.w_sorted_)
        return self._stats

    @property
    def fitted_values_(self):
        self._check_fitted()
        if self._fitted is None:
            fitted = np.full(len(self.x), np.nan)
            fitted[self.order_] = self._training_fit()
            self._fitted = fitted
        return self._fitted

    @property
    def residuals_(self):
        """
        Response minus fitted values, in input order.
        """
        return self.y - self.fitted_values_

    def evaluate(self, x_new=None, se=False, deriv=0, distinct=False):
        """
        Evaluate the loess curve.

        Parameters
        ----------
        x_new : np.ndarray, optional
            Query points. If None, uses the observed `x` values with a
            finite predictor, in input order.
        se : bool, optional
            Whether to compute standard errors (default is False).
            With family="symmetric" the final robustness weights are
            treated as fixed: they enter the local fits, but the variance
            uses only the prior weights.
        deriv : int, optional
            The order of the derivative to compute (default is 0).
        distinct : bool, optional
            When `x_new` is None, evaluate once per distinct observed
            value, in increasing order, instead of once per observation.

        Returns
        -------
        LoessFit
        """
        self._check_fitted()
        if x_new is None:
            finite = np.isfinite(self.x)
            if distinct:
                x_query = np.unique(self.x[finite])
                positions = np.arange(len(x_query))
            else:
                positions = np.flatnonzero(finite)
                x_query = self.x[positions]
        else:
            x_query = np.atleast_1d(np.asarray(x_new, dtype=float))
            if not np.all(np.isfinite(x_query)):
                raise ValueError("Query points must be finite.")
            positions = np.arange(len(x_query))

        if se:
            stats = self.statistics_
        solved = self._solve_all(x_query, deriv)

        fit = np.full(len(x_query), np.nan)
        se_vals = np.full(len(x_query), np.nan)
        keep = np.ones(len(x_query), dtype=bool)
        errors = {}
        for i, (start, stop, hat, exc) in enumerate(solved):
            if exc is not None:
                errors[int(positions[i])] = exc
                keep[i] = self.on_error != "omit"
            if hat is None:
                continue
            fit[i] = hat @ self.y_sorted_[start:stop]
            if se:
                se_vals[i] = hat_standard_error(hat, self.w_sorted_[start:stop],
                                                stats.residual_scale)

        if errors:
            logger.warning("Local fit failed at %d of %d query points (on_error=%r)",
                           len(errors), len(x_query), self.on_error)
        return LoessFit(x=x_query[keep],
                        fit=fit[keep],
                        se=se_vals[keep] if se else None,
                        df=stats.lookup_df if se else None,
                        index=positions[keep],
                        errors=errors)

    def predict(self, x_new=None, deriv=0):
        """
        Predict the response for a new set of predictor variables.

        Parameters
        ----------
        x_new : np.ndarray, optional
            The predictor variables. If None, uses the initial `x` values.
        deriv : int, optional
            The order of the derivative to compute (default is 0).

        Returns
        -------
        np.ndarray
            The predicted response or its derivative, NaN where the fit
            failed and was not substituted.
        """
        result = self.evaluate(x_new, deriv=deriv)
        n = len(self.x) if x_new is None else len(np.atleast_1d(x_new))
        y_pred = np.full(n, np.nan)
        y_pred[result.index] = result.fit
        return y_pred

    def curve(self, n=80, se=True):
        """
        Evaluate on `n` evenly spaced points spanning the observed range,
        the grid drawn by a plotted smoothing layer.
        """
        self._check_fitted()
        grid = np.linspace(self.x_sorted_[0], self.x_sorted_[-1], n)
        return self.evaluate(grid, se=se)


def fit_loess(x, y, x_new=None, span=None, degree=1, w=None, se=False, distinct=None, **kwargs):
    """
    Fit a loess curve and evaluate it.

    Parameters
    ----------
    x, y : array-like
        Observations; pairs with a missing value are excluded.
    x_new : array-like, optional
        Query points. If None, evaluates at the observed `x`.
    span : float, optional
        Fraction of the observations used as neighbours. Default is 0.75
        unless `n_neighbors` is passed.
    degree : int, optional
        Degree of the local polynomial (default is 1).
    w : array-like, optional
        Prior weights.
    se : bool, optional
        Whether to compute standard errors (default is False).
    distinct : bool, optional
        Evaluate once per distinct observed `x` rather than once per
        observation. Defaults to True when `x_new` is None.
    **kwargs
        Further `LoessSmoother` parameters.

    Returns
    -------
    LoessFit
    """
    if distinct is None:
        distinct = x_new is None
    smoother = LoessSmoother(x, w=w, span=span, degree=degree, **kwargs)
    return smoother.smooth(y).evaluate(x_new, se=se, distinct=distinct)
