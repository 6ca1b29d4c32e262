"""
Building blocks of a single local fit: tricube weights, neighbourhood
selection over sorted predictors and the weighted least squares solve.

The solve returns the hat vector of the query point rather than the fitted
value, so that the same computation serves the fit (``hat @ y``), its
standard error and the operator matrix of the training fit.
"""
import math

import numpy as np

from .errors import DegenerateFit

# relative size of the part of the evaluation functional that may lie
# outside the row space of the weighted design
_ESTIMABLE_TOL = np.sqrt(np.finfo(float).eps)


def tricube(u):
    """
    Tricube kernel ``(1 - |u|^3)^3`` on ``|u| < 1``, zero elsewhere.
    """
    u = np.abs(np.asarray(u, dtype=float))
    return np.where(u < 1, (1 - u**3)**3, 0.0)


def bisquare(u):
    """
    Bisquare kernel ``(1 - u^2)^2`` on ``|u| < 1``, zero elsewhere.
    """
    u = np.abs(np.asarray(u, dtype=float))
    return np.where(u < 1, (1 - u**2)**2, 0.0)


def neighborhood(x_sorted, x0, k):
    """
    Locate the `k` nearest neighbours of `x0`.

    In sorted order the `k` nearest observations form a contiguous window,
    so the window is found by bisection on its left edge. Observations tied
    with the farthest neighbour are added to the window.

    Parameters
    ----------
    x_sorted : np.ndarray
        Sorted predictor values.
    x0 : float
        The query point.
    k : int
        Number of neighbours, ``1 <= k <= len(x_sorted)``.

    Returns
    -------
    start, stop : int
        The neighbourhood is ``x_sorted[start:stop]``.
    d_max : float
        Distance from `x0` to its farthest neighbour.
    """
    n = len(x_sorted)
    lo, hi = 0, n - k
    while lo < hi:
        mid = (lo + hi) // 2
        if x0 - x_sorted[mid] > x_sorted[mid + k] - x0:
            lo = mid + 1
        else:
            hi = mid
    start, stop = lo, lo + k
    d_max = max(abs(x0 - x_sorted[start]), abs(x_sorted[stop - 1] - x0))

    while start > 0 and abs(x0 - x_sorted[start - 1]) <= d_max:
        start -= 1
    while stop < n and abs(x_sorted[stop] - x0) <= d_max:
        stop += 1
    return start, stop, d_max


def local_weights(x, x0, d_max):
    """
    Tricube distance weights of a neighbourhood.

    When every neighbour sits at `x0` (``d_max == 0``) all weights are 1.
    """
    if d_max <= 0:
        return np.ones(len(x))
    return tricube((x - x0) / d_max)


def local_hat(x, weights, x0, d_max, degree, deriv=0):
    """
    Hat vector of a weighted local polynomial fit evaluated at `x0`.

    The polynomial is fit in the coordinate ``(x - x0) / d_max`` so the
    fitted value is the intercept and the design stays well scaled.
    The solve goes through the SVD of the weighted design; a rank
    deficient design is accepted as long as the requested quantity at
    `x0` is determined by it.

    Parameters
    ----------
    x : np.ndarray
        Predictor values of the neighbourhood.
    weights : np.ndarray
        Non-negative weights of the neighbourhood.
    x0 : float
        The query point.
    d_max : float
        Neighbourhood radius.
    degree : int
        Degree of the local polynomial.
    deriv : int, optional
        Order of the derivative to estimate (default is 0).

    Returns
    -------
    np.ndarray
        Vector `l` with ``l @ y`` the estimate at `x0`.
    """
    m = len(x)
    if deriv > degree:
        return np.zeros(m)
    if not np.any(weights > 0):
        raise DegenerateFit(f"All weights vanish in the neighbourhood of x={x0:g}.", x0)

    scale = d_max if d_max > 0 else 1.0
    z = (x - x0) / scale
    sqrt_w = np.sqrt(weights)
    X_w = np.vander(z, degree + 1, increasing=True) * sqrt_w[:, None]

    U, s, Vt = np.linalg.svd(X_w, full_matrices=False)
    tol = s.max() * max(X_w.shape) * np.finfo(float).eps
    r = int(np.sum(s > tol))
    V_r = Vt[:r]

    e = np.zeros(degree + 1)
    e[deriv] = 1.0
    proj = V_r @ e
    if np.linalg.norm(e - V_r.T @ proj) > _ESTIMABLE_TOL:
        raise DegenerateFit(
            f"Local design of degree {degree} does not determine the fit at x={x0:g}.", x0)

    hat = (U[:, :r] @ (proj / s[:r])) * sqrt_w
    if deriv:
        hat *= math.factorial(deriv) / scale**deriv
    return hat


def local_mean_hat(weights, prior):
    """
    Hat vector of the weighted mean of a neighbourhood.

    Falls back to the prior weights, then to equal weights, when the
    weights vanish.
    """
    for w in (weights, prior):
        total = w.sum()
        if total > 0:
            return w / total
    return np.full(len(weights), 1.0 / len(weights))
