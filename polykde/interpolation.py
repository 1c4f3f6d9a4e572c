"""
Piecewise-linear interpolation grid holding a fitted density.

The grid stores (knot, value) pairs.  Values are interpolated linearly
between knots and are zero outside the grid.  Integrals are computed with the
trapezoidal rule, which is exact for the piecewise-linear interpolant, so the
CDF implied by :meth:`InterpolationGrid.integrate` is consistent with the
density implied by :meth:`InterpolationGrid.interpolate`.
"""

from __future__ import annotations

import numpy as np

__all__ = ["InterpolationGrid"]


class InterpolationGrid:
    """Immutable piecewise-linear interpolation grid.

    Args:
        grid_points: Strictly increasing knots.
        values: Function values at the knots.
        norm_times: Number of renormalization passes; each pass divides the
            values by their integral over the grid (``0`` keeps them as is).
    """

    def __init__(
        self, grid_points: np.ndarray, values: np.ndarray, norm_times: int = 3
    ) -> None:
        grid_points = np.array(grid_points, dtype=float).ravel()
        values = np.array(values, dtype=float).ravel()
        if grid_points.shape != values.shape:
            raise ValueError("grid_points and values must have the same size")
        if grid_points.size < 2:
            raise ValueError("need at least two grid points")
        if not np.all(np.diff(grid_points) > 0):
            raise ValueError("grid_points must be strictly increasing")
        if norm_times < 0:
            raise ValueError("norm_times must be non-negative")
        self._grid_points = grid_points
        self._values = values
        for _ in range(norm_times):
            total = self._total()
            if not (total > 0 and np.isfinite(total)):
                raise FloatingPointError(f"cannot normalize a grid with mass {total}")
            self._values = self._values / total
        self._grid_points.setflags(write=False)
        self._values.setflags(write=False)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_grid_points(self) -> np.ndarray:
        return self._grid_points.copy()

    def get_values(self) -> np.ndarray:
        return self._values.copy()

    def get_grid_min(self) -> float:
        return float(self._grid_points[0])

    def get_grid_max(self) -> float:
        return float(self._grid_points[-1])

    def __len__(self) -> int:
        return self._grid_points.size

    def __repr__(self) -> str:
        return (
            f"InterpolationGrid(n_points={len(self)}, "
            f"range=[{self.get_grid_min():.4g}, {self.get_grid_max():.4g}])"
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def normalize(self, times: int = 1) -> "InterpolationGrid":
        """Copy of the grid with ``times`` renormalization passes applied."""
        return InterpolationGrid(self._grid_points, self._values, norm_times=times)

    def interpolate(self, x: np.ndarray) -> np.ndarray:
        """
        Linear interpolation of the values.

        Parameters
        ----------
        x : array-like
            Evaluation points.

        Returns
        -------
        ndarray
            Interpolated values, zero outside the grid and NaN where ``x`` is
            NaN.
        """
        x = np.asarray(x, dtype=float)
        out = np.full(x.shape, np.nan)
        ok = ~np.isnan(x)
        out[ok] = np.interp(x[ok], self._grid_points, self._values, left=0.0, right=0.0)
        return out

    def integrate(self, x: np.ndarray, normalize: bool = False) -> np.ndarray:
        """
        Integral of the interpolant from the lowest knot to ``x``.

        Parameters
        ----------
        x : array-like
            Upper integration limits.
        normalize : bool, default=False
            Divide by the integral over the whole grid so the result lies in
            [0, 1].

        Returns
        -------
        ndarray
            Integrals, NaN where ``x`` is NaN.
        """
        x = np.asarray(x, dtype=float)
        g, v = self._grid_points, self._values
        cum = self._cumulative()

        out = np.full(x.shape, np.nan)
        ok = ~np.isnan(x)
        xx = np.clip(x[ok], g[0], g[-1])
        i = np.clip(np.searchsorted(g, xx, side="right") - 1, 0, g.size - 2)
        t = xx - g[i]
        fx = v[i] + (v[i + 1] - v[i]) * t / (g[i + 1] - g[i])
        out[ok] = cum[i] + 0.5 * t * (v[i] + fx)

        if normalize:
            out = out / cum[-1]
            out[ok] = np.clip(out[ok], 0.0, 1.0)
        return out

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cumulative(self) -> np.ndarray:
        g, v = self._grid_points, self._values
        areas = 0.5 * (v[1:] + v[:-1]) * np.diff(g)
        return np.concatenate(([0.0], np.cumsum(areas)))

    def _total(self) -> float:
        return float(self._cumulative()[-1])
