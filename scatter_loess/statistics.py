from dataclasses import dataclass

import numpy as np
from scipy import stats


@dataclass
class LoessStatistics:
    """
    Summary statistics of a loess fit derived from its operator matrix.

    Parameters
    ----------
    enp : float
        Equivalent number of parameters, the trace of the operator.
    one_delta : float
        ``tr((I - L)^T (I - L))``.
    two_delta : float
        ``tr(((I - L)^T (I - L))^2)``.
    residual_scale : float
        Estimate of the residual standard deviation.
    """
    enp: float
    one_delta: float
    two_delta: float
    residual_scale: float

    @property
    def lookup_df(self):
        """
        Degrees of freedom of the t distribution used for confidence bands.
        """
        if self.two_delta <= 0:
            return np.inf
        return self.one_delta**2 / self.two_delta


def operator_statistics(L, y, w=None):
    """
    Compute fit statistics from the operator of a linear smoother.

    Parameters
    ----------
    L : np.ndarray
        Operator matrix with ``y_hat = L @ y``.
    y : np.ndarray
        Response the smoother was fit to.
    w : np.ndarray, optional
        Prior weights; observation `i` has variance ``sigma^2 / w[i]``.

    Returns
    -------
    LoessStatistics
    """
    n = L.shape[0]
    if w is None:
        w = np.ones(n)
    I_L = np.eye(n) - L
    M = I_L.T @ I_L
    one_delta = np.trace(M)
    # M is symmetric so tr(M^2) is its squared Frobenius norm
    two_delta = np.sum(M * M)

    residuals = I_L @ y
    rss = np.sum(w * residuals**2)
    if one_delta > 0:
        residual_scale = np.sqrt(rss / one_delta)
    else:
        residual_scale = np.nan

    return LoessStatistics(enp=np.trace(L),
                           one_delta=one_delta,
                           two_delta=two_delta,
                           residual_scale=residual_scale)


def hat_standard_error(hat, prior, residual_scale):
    """
    Standard error of ``hat @ y`` for independent observations with
    variances ``residual_scale^2 / prior``.
    """
    inv_prior = np.divide(1.0, prior, out=np.zeros_like(prior), where=prior > 0)
    return residual_scale * np.sqrt(np.sum(hat**2 * inv_prior))


def confidence_band(fit, se, df, level=0.95):
    """
    Pointwise Student-t confidence band.

    Parameters
    ----------
    fit : np.ndarray
        Fitted values.
    se : np.ndarray
        Their standard errors.
    df : float
        Degrees of freedom; an infinite value uses the normal quantile.
    level : float, optional
        Confidence level (default is 0.95).

    Returns
    -------
    lower, upper : np.ndarray
    """
    if not 0 < level < 1:
        raise ValueError(f"Confidence level must lie in (0, 1), got {level}.")
    p = (1 + level) / 2
    if np.isfinite(df):
        q = stats.t.ppf(p, df)
    else:
        q = stats.norm.ppf(p)
    fit = np.asarray(fit, dtype=float)
    se = np.asarray(se, dtype=float)
    return fit - q * se, fit + q * se
