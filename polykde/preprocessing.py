"""Cleaning, weighting, jittering and transforming observations before a fit."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .boundary import BoundaryTransform
from .stats import equi_jitter

__all__ = ["PreparedData", "remove_nans", "prepare"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedData:
    """Observations ready for smoothing.

    Attributes:
        raw: Observations after removing missing values, original scale.
        transformed: Jittered (if discrete) and boundary-transformed data.
        weights: Weights with mean one, or an empty array for unit weights.
    """

    raw: np.ndarray
    transformed: np.ndarray
    weights: np.ndarray

    @property
    def n(self) -> int:
        return int(self.raw.size)


def remove_nans(x: np.ndarray, weights: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Drops observations that are NaN or carry a NaN weight.

    Args:
        x: Observations.
        weights: Weights, same length as ``x`` or empty.

    Returns:
        The aligned observations and weights without missing entries.
    """
    keep = ~np.isnan(x)
    if weights.size:
        keep &= ~np.isnan(weights)
        return x[keep], weights[keep]
    return x[keep], weights


def prepare(
    x: np.ndarray,
    weights: Optional[np.ndarray],
    transform: BoundaryTransform,
    discrete: bool = False,
) -> PreparedData:
    """Prepares observations for fitting.

    Args:
        x: Observations.
        weights: Optional observation weights.
        transform: Boundary transform of the model.
        discrete: Whether ``x`` holds integer levels that need jittering.

    Returns:
        The prepared data.

    Raises:
        ValueError: If ``x`` and ``weights`` differ in length, if no
            observation is left after removing missing values, or if
            observations fall outside the bounds of ``transform``.
    """
    x = np.asarray(x, dtype=float).ravel()
    w = np.empty(0) if weights is None else np.asarray(weights, dtype=float).ravel()
    if w.size > 0 and w.size != x.size:
        raise ValueError(
            f"x and weights must have the same size, got {x.size} and {w.size}"
        )

    n_in = x.size
    x, w = remove_nans(x, w)
    if x.size == 0:
        raise ValueError("no observations left after removing missing values")
    if x.size < n_in:
        logger.debug("dropped %d observations with missing values", n_in - x.size)
    if not np.all(np.isfinite(x)):
        raise ValueError("observations must be finite or NaN")
    if w.size:
        if np.any(w < 0) or not np.all(np.isfinite(w)):
            raise ValueError("weights must be finite and non-negative")
        if not w.mean() > 0:
            raise ValueError("weights must not all be zero")
        w = w / w.mean()

    if transform.xmin is not None and np.any(x < transform.xmin):
        raise ValueError(f"observations below xmin={transform.xmin}")
    if transform.xmax is not None and np.any(x > transform.xmax):
        raise ValueError(f"observations above xmax={transform.xmax}")

    xx = equi_jitter(x) if discrete else x
    return PreparedData(raw=x, transformed=transform.forward(xx), weights=w)
