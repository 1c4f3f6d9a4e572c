"""
Boundary transforms for densities with bounded support.

Data on a bounded support are mapped to the real line before smoothing, and
the density estimate is mapped back with the Jacobian of the transform.  This
removes the bias a kernel estimator has near a boundary.  Four cases exist,
depending on which of ``xmin`` and ``xmax`` are finite:

=========  ===========================================  ==================
case       forward transform y(x)                        inverse x(y)
=========  ===========================================  ==================
``BOTH``   ``qnorm((x - xmin + a) / (r + 2a))``           ``pnorm(y) (r + 2a) + xmin - a``
``LEFT``   ``log(x - xmin + 1e-5)``                        ``exp(y) + xmin - 1e-5``
``RIGHT``  ``log(xmax - x + 1e-5)``                        ``xmax + 1e-5 - exp(y)``
``NONE``   ``x``                                           ``y``
=========  ===========================================  ==================

with ``r = xmax - xmin`` and ``a = 5e-5 r``.  The ``RIGHT`` transform is
decreasing, so grids built in the transformed domain come out in descending
order and are reversed before use.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from .stats import dnorm, pnorm, qnorm

__all__ = ["BoundaryCase", "BoundaryTransform"]

_LOG_OFFSET = 1e-5
_PROBIT_INSET = 5e-5
_MIN_JACOBIAN = 1e-6


class BoundaryCase(enum.Enum):
    """Which ends of the support are bounded."""

    NONE = "none"
    LEFT = "left"
    RIGHT = "right"
    BOTH = "both"


# ---------------------------------------------------------------------------
# Per-case transforms.  Each takes (x, xmin, xmax) and returns an array;
# ``_dxdy`` functions return the derivative of the inverse transform at the
# original-domain points x.
# ---------------------------------------------------------------------------


def _probit_scale(xmin, xmax):
    rng = xmax - xmin
    return _PROBIT_INSET * rng, rng + 2.0 * _PROBIT_INSET * rng


def _forward_both(x, xmin, xmax):
    inset, width = _probit_scale(xmin, xmax)
    return qnorm((x - xmin + inset) / width)


def _inverse_both(y, xmin, xmax):
    inset, width = _probit_scale(xmin, xmax)
    return pnorm(y) * width + xmin - inset


def _dxdy_both(x, xmin, xmax):
    inset, width = _probit_scale(xmin, xmax)
    return dnorm(qnorm((x - xmin + inset) / width)) * width


def _forward_left(x, xmin, xmax):
    return np.log(x - xmin + _LOG_OFFSET)


def _inverse_left(y, xmin, xmax):
    return np.exp(y) + xmin - _LOG_OFFSET


def _dxdy_left(x, xmin, xmax):
    return x - xmin + _LOG_OFFSET


def _forward_right(x, xmin, xmax):
    return np.log(xmax - x + _LOG_OFFSET)


def _inverse_right(y, xmin, xmax):
    return xmax + _LOG_OFFSET - np.exp(y)


def _dxdy_right(x, xmin, xmax):
    # |dx/dy|; the transform itself is decreasing
    return xmax - x + _LOG_OFFSET


def _identity(x, xmin, xmax):
    return np.array(x, dtype=float, copy=True)


def _dxdy_none(x, xmin, xmax):
    return np.ones_like(x, dtype=float)


_Fn = Callable[[np.ndarray, Optional[float], Optional[float]], np.ndarray]

_CASES: Dict[BoundaryCase, Tuple[_Fn, _Fn, _Fn]] = {
    BoundaryCase.BOTH: (_forward_both, _inverse_both, _dxdy_both),
    BoundaryCase.LEFT: (_forward_left, _inverse_left, _dxdy_left),
    BoundaryCase.RIGHT: (_forward_right, _inverse_right, _dxdy_right),
    BoundaryCase.NONE: (_identity, _identity, _dxdy_none),
}


@dataclass(frozen=True)
class BoundaryTransform:
    """Domain transform for a support bounded by ``xmin`` and/or ``xmax``.

    ``None`` means the corresponding side is unbounded.
    """

    xmin: Optional[float] = None
    xmax: Optional[float] = None

    def __post_init__(self) -> None:
        for name in ("xmin", "xmax"):
            value = getattr(self, name)
            if value is not None:
                value = float(value)
                if not np.isfinite(value):
                    raise ValueError(f"{name} must be finite or None, got {value}")
                object.__setattr__(self, name, value)
        if self.xmin is not None and self.xmax is not None and self.xmin >= self.xmax:
            raise ValueError(
                f"xmin must be smaller than xmax, "
                f"got xmin={self.xmin}, xmax={self.xmax}"
            )

    @classmethod
    def from_bounds(
        cls, xmin: Optional[float] = None, xmax: Optional[float] = None
    ) -> "BoundaryTransform":
        return cls(xmin, xmax)

    @property
    def case(self) -> BoundaryCase:
        if self.xmin is not None and self.xmax is not None:
            return BoundaryCase.BOTH
        if self.xmin is not None:
            return BoundaryCase.LEFT
        if self.xmax is not None:
            return BoundaryCase.RIGHT
        return BoundaryCase.NONE

    @property
    def reverses_order(self) -> bool:
        return self.case is BoundaryCase.RIGHT

    def forward(self, x: np.ndarray) -> np.ndarray:
        """Map original-domain points to the real line."""
        fn = _CASES[self.case][0]
        return fn(np.asarray(x, dtype=float), self.xmin, self.xmax)

    def inverse(self, y: np.ndarray) -> np.ndarray:
        """Map transformed points back to the original domain."""
        fn = _CASES[self.case][1]
        return fn(np.asarray(y, dtype=float), self.xmin, self.xmax)

    def correct_density(self, x: np.ndarray, fhat: np.ndarray) -> np.ndarray:
        """
        Turn a density of the transformed data into a density of the data.

        Parameters
        ----------
        x : array-like
            Grid points in the original domain, in the order produced by
            :meth:`construct_grid`.
        fhat : array-like
            Density estimate of the transformed data at ``forward(x)``.

        Returns
        -------
        ndarray
            ``fhat / max(|dx/dy|, 1e-6)``, reversed for the ``RIGHT`` case so
            that it matches the ascending grid of :meth:`finalize_grid`.
        """
        fn = _CASES[self.case][2]
        dxdy = fn(np.asarray(x, dtype=float), self.xmin, self.xmax)
        f_corr = np.asarray(fhat, dtype=float) / np.maximum(np.abs(dxdy), _MIN_JACOBIAN)
        if self.reverses_order:
            f_corr = f_corr[::-1].copy()
        return f_corr

    def construct_grid(
        self, transformed: np.ndarray, bandwidth: float, num_points: int = 401
    ) -> np.ndarray:
        """
        Equally spaced grid in the transformed domain.

        Spans the range of the transformed data, extended by four bandwidths
        on each side if the support is unbounded (or the data have no
        spread).

        Returns
        -------
        ndarray, shape (num_points,)
            Ascending grid in the *transformed* domain; map it back with
            :meth:`inverse`.
        """
        transformed = np.asarray(transformed, dtype=float)
        lo, hi = float(transformed.min()), float(transformed.max())
        if self.case is BoundaryCase.NONE or not hi > lo:
            lo -= 4.0 * bandwidth
            hi += 4.0 * bandwidth
        return np.linspace(lo, hi, num_points)

    def finalize_grid(self, grid_points: np.ndarray) -> np.ndarray:
        """
        Ascending grid with its end points moved to the finite bounds.

        Raises
        ------
        FloatingPointError
            If the resulting grid is not strictly increasing.
        """
        grid_points = np.array(grid_points, dtype=float, copy=True)
        if self.reverses_order:
            grid_points = grid_points[::-1].copy()
        if self.xmin is not None:
            grid_points[0] = self.xmin
        if self.xmax is not None:
            grid_points[-1] = self.xmax
        if not np.all(np.diff(grid_points) > 0):
            raise FloatingPointError("grid points are not strictly increasing")
        return grid_points
