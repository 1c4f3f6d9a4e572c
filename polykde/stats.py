# stats.py
# Normal-distribution helpers, uniform sampling and jittering of discrete data.
# Conventions:
#   phi(x)      standard normal density
#   Phi(x)      standard normal CDF
#   phi^(r)(x) = (-1)^r He_r(x) phi(x), He_r the probabilists' Hermite polynomial

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.polynomial import hermite_e
from scipy.special import ndtr, ndtri

__all__ = [
    "dnorm",
    "pnorm",
    "qnorm",
    "dnorm_drv",
    "simulate_uniform",
    "equi_jitter",
    "weighted_quantile",
]

_SQRT_2PI = np.sqrt(2.0 * np.pi)


def dnorm(x: np.ndarray) -> np.ndarray:
    """Standard normal density."""
    x = np.asarray(x, dtype=float)
    return np.exp(-0.5 * x * x) / _SQRT_2PI


def pnorm(x: np.ndarray) -> np.ndarray:
    """Standard normal CDF."""
    return ndtr(np.asarray(x, dtype=float))


def qnorm(p: np.ndarray) -> np.ndarray:
    """Standard normal quantile function."""
    return ndtri(np.asarray(p, dtype=float))


def dnorm_drv(x: np.ndarray, drv: int) -> np.ndarray:
    """
    Derivative of order ``drv`` of the standard normal density.

    Parameters
    ----------
    x : array-like
        Evaluation points.
    drv : int
        Order of the derivative (>= 0).

    Returns
    -------
    ndarray
        ``(-1)^drv He_drv(x) phi(x)``.
    """
    if drv < 0:
        raise ValueError("drv must be non-negative")
    x = np.asarray(x, dtype=float)
    coef = np.zeros(drv + 1)
    coef[drv] = 1.0
    sign = -1.0 if drv % 2 else 1.0
    return sign * hermite_e.hermeval(x, coef) * dnorm(x)


def simulate_uniform(n: int, seeds: Sequence[int] = ()) -> np.ndarray:
    """
    Draw ``n`` uniform random numbers on the open interval (0, 1).

    Parameters
    ----------
    n : int
        Number of draws.
    seeds : sequence of int, optional
        Seeds for the generator. Identical seeds give identical draws; an
        empty sequence uses fresh entropy.

    Returns
    -------
    ndarray, shape (n,)
    """
    n = int(n)
    if n < 0:
        raise ValueError(f"n must be non-negative, got {n}")
    # negative seeds are folded into the unsigned 32-bit range
    seeds = [int(s) % 2**32 for s in seeds]
    rng = np.random.default_rng(seeds if seeds else None)
    u = rng.random(n)
    # random() samples [0, 1); keep exact zeros out of the quantile function
    tiny = np.finfo(float).tiny
    return np.where(u > 0.0, u, tiny)


def equi_jitter(x: np.ndarray) -> np.ndarray:
    """
    Spread integer-valued observations evenly over their unit cells.

    The ``m`` tied copies of a level ``v`` are moved to
    ``v - 0.5 + (k - 0.5) / m`` for ``k = 1, ..., m``, so every level
    contributes a stratified uniform sample of the cell ``[v - 0.5, v + 0.5)``.
    The jitter is deterministic and keeps the input order.
    """
    x = np.asarray(x, dtype=float)
    if x.size == 0:
        return x.copy()
    order = np.argsort(x, kind="stable")
    srt = x[order]
    levels, start, counts = np.unique(srt, return_index=True, return_counts=True)
    rank = np.arange(srt.size) - np.repeat(start, counts)
    m = np.repeat(counts, counts)
    jittered = np.empty_like(x)
    jittered[order] = srt - 0.5 + (rank + 0.5) / m
    return jittered


def weighted_quantile(
    x: np.ndarray, q: np.ndarray, weights: np.ndarray | None = None
) -> np.ndarray:
    """
    Empirical quantiles of weighted data.

    Uses the weighted analogue of linear interpolation between order
    statistics (type 7 for unit weights).

    Parameters
    ----------
    x : array-like
        Observations.
    q : array-like
        Probabilities in [0, 1].
    weights : array-like, optional
        Non-negative observation weights. ``None`` or an empty array means
        unit weights.

    Returns
    -------
    ndarray
        Quantiles, same shape as ``q``.
    """
    x = np.asarray(x, dtype=float).ravel()
    q = np.asarray(q, dtype=float)
    if weights is None or np.size(weights) == 0:
        return np.quantile(x, q)
    weights = np.asarray(weights, dtype=float).ravel()
    if weights.shape != x.shape:
        raise ValueError("x and weights must have the same size")
    keep = weights > 0
    if not np.any(keep):
        raise ValueError("weights must not all be zero")
    x, weights = x[keep], weights[keep]
    order = np.argsort(x)
    xs, ws = x[order], weights[order]
    # cumulative weight positions rescaled to [0, 1]
    cw = np.cumsum(ws) - ws[0]
    total = cw[-1]
    if total <= 0:
        return np.full(q.shape, xs[0])
    return np.interp(q, cw / total, xs)
