# locpoly.py
# Local-likelihood density estimates of degree 0, 1 and 2 from kernel
# derivative estimates, and their influence values.
# Conventions (all arrays are per grid point):
#   f0, f1, f2   kernel estimates of f, f', f'' at bandwidth bw
#   b = f1 / f0  local slope of log f
# Degree 1 (local log-linear):
#   fhat = f0 * exp(-0.5 * b^2 * S),             S = bw^2
# Degree 2 (local log-quadratic, Hjort & Jones, 1996):
#   D = f2 / f0 - b^2,  R = 1 / sqrt(1 + bw^2 D),  S = (R / bw)^2
#   fhat = bw * sqrt(S) * f0 * exp(-0.5 * (bw^2 b)^2 * S)
# Influence:
#   infl = K0 * w / (n * bw) * [M^-1]_00
# with M the local information matrix of the polynomial fit.

from __future__ import annotations

import numpy as np

from .kernels import K0

__all__ = ["fit_local_polynomial", "influence"]


def influence(
    n: int,
    f0: np.ndarray,
    b: np.ndarray,
    bw: float,
    s: np.ndarray,
    weight: np.ndarray,
    deg: int,
) -> np.ndarray:
    """
    Influence of a single observation on the density estimate.

    The (0, 0) element of the inverse information matrix is computed in
    closed form, vectorized over grid points.

    Parameters
    ----------
    n : int
        Number of observations.
    f0 : ndarray
        Kernel density estimate.
    b : ndarray
        Slope of the local log-density (rescaled by ``bw^2`` for ``deg=2``).
    bw : float
        Bandwidth.
    s : ndarray
        Local scale ``S`` of the equivalent kernel.
    weight : ndarray
        Average observation weight per grid point.
    deg : {0, 1, 2}
        Degree of the local polynomial.

    Returns
    -------
    ndarray
        Influence values; non-finite values are set to zero.
    """
    f0 = np.asarray(f0, dtype=float)
    b = np.asarray(b, dtype=float)
    s = np.asarray(s, dtype=float)
    bw2 = bw * bw
    b2 = b * b
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        if deg == 0:
            m_inv00 = 1.0 / f0
        elif deg == 1:
            m00 = f0
            m01 = bw2 * b * f0
            m11 = f0 * bw2 + f0 * bw2 * bw2 * b2
            m_inv00 = m11 / (m00 * m11 - m01 * m01)
        elif deg == 2:
            m00 = f0
            m01 = f0 * b
            m11 = f0 * bw2 + f0 * b2
            m12 = 0.5 * f0 * (3.0 / s * b + b * b2)
            m22 = 0.25 * f0 * (3.0 / s**2 + 6.0 / s * b2 + b2 * b2)
            m02 = m22
            cof00 = m11 * m22 - m12 * m12
            det = (
                m00 * cof00
                - m01 * (m01 * m22 - m12 * m02)
                + m02 * (m01 * m12 - m11 * m02)
            )
            m_inv00 = cof00 / det
        else:
            raise ValueError(f"deg must be 0, 1 or 2, got {deg}")
        infl = K0 * np.asarray(weight, dtype=float) / (n * bw) * m_inv00
    return np.where(np.isfinite(infl), infl, 0.0)


def fit_local_polynomial(
    f0: np.ndarray,
    f1: np.ndarray | None,
    f2: np.ndarray | None,
    bw: float,
    weight: np.ndarray,
    n: int,
    deg: int = 2,
) -> np.ndarray:
    """
    Local polynomial density estimate and influence on a grid.

    Parameters
    ----------
    f0, f1, f2 : ndarray
        Kernel estimates of the density and its first two derivatives.
        ``f1`` is only needed for ``deg >= 1`` and ``f2`` for ``deg == 2``.
    bw : float
        Bandwidth.
    weight : ndarray
        Average observation weight per grid point.
    n : int
        Number of observations.
    deg : {0, 1, 2}, default=2
        Degree of the local polynomial.

    Returns
    -------
    ndarray, shape (m, 2)
        Density estimate in the first column and influence in the second.
        Grid points where the estimate is NaN get zero in both columns.
    """
    f0 = np.asarray(f0, dtype=float)
    weight = np.asarray(weight, dtype=float)
    res = np.empty((f0.size, 2))
    res[:, 0] = f0
    if deg == 0:
        res[:, 1] = influence(n, f0, np.zeros_like(f0), bw, np.ones_like(f0), weight, 0)
        return res
    if deg not in (1, 2):
        raise ValueError(f"deg must be 0, 1 or 2, got {deg}")

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        b = np.asarray(f1, dtype=float) / f0
        s = np.full(f0.size, bw * bw)
        if deg == 2:
            d = np.asarray(f2, dtype=float) / f0 - b * b
            r = 1.0 / np.sqrt(1.0 + bw * bw * d)
            s = (r / bw) ** 2
            b = b * bw * bw
            res[:, 0] = bw * np.sqrt(s) * res[:, 0]
        res[:, 0] = res[:, 0] * np.exp(-0.5 * b * b * s)

    res[:, 1] = influence(n, f0, b, bw, s, weight, deg)
    res[np.isnan(res[:, 0])] = 0.0
    return res
