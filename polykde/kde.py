"""
Local-polynomial kernel density estimation for univariate data.

This module implements :class:`Kde1d`, a kernel density estimator that fits
a local polynomial (of degree 0, 1 or 2) to the log-density.  The bandwidth
is selected automatically by a plug-in rule, bounded supports are handled by
transforming the data to the real line, and discrete data are handled by
jittering.  The fit is stored as a piecewise-linear interpolation grid from
which the density, distribution function, quantiles and random draws are
computed.

Example
-------
>>> import numpy as np
>>> from polykde import Kde1d
>>> x = np.random.default_rng(0).uniform(size=1000)
>>> fit = Kde1d(xmin=0, xmax=1).fit(x)
>>> fit.pdf([0.25, 0.5, 0.75])  # doctest: +SKIP
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from numbers import Integral, Real
from typing import Optional, Union, cast

import numpy as np
from sklearn.base import BaseEstimator  # type: ignore
from sklearn.utils.validation import check_is_fitted  # type: ignore

from .bandwidth import select_bandwidth
from .boundary import BoundaryTransform
from .fft import KdeFFT
from .interpolation import InterpolationGrid
from .locpoly import fit_local_polynomial
from .preprocessing import PreparedData, prepare
from .stats import simulate_uniform

__all__ = [
    "Kde1d",
    "FittedModel",
    "ContinuousSupport",
    "DiscreteSupport",
]

logger = logging.getLogger(__name__)

NUM_GRID_POINTS = 401
NORMALIZATION_PASSES = 3
QUANTILE_ITERATIONS = 35
LOGLIK_FLOOR = 1e-20
INFLUENCE_CLIP = (0.0, 2.0)
DISCRETE_MIN_BANDWIDTH = 0.1

# ---------------------------------------------------------------------------
# Fitted model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContinuousSupport:
    """Support of a continuous model; ``None`` marks an unbounded side."""

    xmin: Optional[float] = None
    xmax: Optional[float] = None


@dataclass(frozen=True)
class DiscreteSupport:
    """Integer support of a discrete model with its probability tables.

    Attributes
    ----------
    levels : ndarray
        Consecutive integer levels from the smallest to the largest
        observation.
    pmf : ndarray
        Probability of each level, sums to one.
    cum : ndarray
        Cumulative probabilities, ending at exactly one.
    """

    levels: np.ndarray
    pmf: np.ndarray
    cum: np.ndarray

    @classmethod
    def from_grid(
        cls, grid: InterpolationGrid, lowest: float, highest: float
    ) -> "DiscreteSupport":
        """Tables for the levels from ``lowest`` to ``highest`` inside the grid."""
        lo = max(math.ceil(grid.get_grid_min()), int(lowest))
        hi = min(math.floor(grid.get_grid_max()), int(highest))
        levels = np.arange(lo, hi + 1, dtype=float)
        dens = np.maximum(grid.interpolate(levels), 0.0)
        pmf = dens / dens.sum()
        cum = np.minimum(np.cumsum(pmf), 1.0)
        cum[-1] = 1.0
        for arr in (levels, pmf, cum):
            arr.setflags(write=False)
        return cls(levels=levels, pmf=pmf, cum=cum)

    @property
    def lowest(self) -> float:
        return float(self.levels[0])

    @property
    def highest(self) -> float:
        return float(self.levels[-1])


Support = Union[ContinuousSupport, DiscreteSupport]


@dataclass(frozen=True)
class FittedModel:
    """Immutable result of :meth:`Kde1d.fit`.

    Attributes
    ----------
    grid : InterpolationGrid
        Density values on an ascending grid, normalized to unit mass.
    influence_grid : InterpolationGrid or None
        Influence of an observation on the fit, clipped to [0, 2].
    support : ContinuousSupport or DiscreteSupport
        Support of the model.
    bandwidth : float or None
        Bandwidth used for the fit (``None`` for models built from a grid).
    loglik : float
        Log-likelihood of the fit at the observations.
    edf : float
        Effective degrees of freedom.
    nobs : int
        Number of observations used in the fit.
    """

    grid: InterpolationGrid
    influence_grid: Optional[InterpolationGrid]
    support: Support
    bandwidth: Optional[float]
    loglik: float
    edf: float
    nobs: int

    @property
    def is_discrete(self) -> bool:
        return isinstance(self.support, DiscreteSupport)


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------


def _check_params(bandwidth, multiplier, xmin, xmax, degree) -> None:
    if (
        isinstance(degree, bool)
        or not isinstance(degree, Integral)
        or degree not in (0, 1, 2)
    ):
        raise ValueError(f"degree must be 0, 1 or 2, got {degree!r}")
    if (
        isinstance(multiplier, bool)
        or not isinstance(multiplier, Real)
        or not (np.isfinite(multiplier) and multiplier > 0)
    ):
        raise ValueError(f"multiplier must be positive, got {multiplier!r}")
    if bandwidth is not None and (
        isinstance(bandwidth, bool)
        or not isinstance(bandwidth, Real)
        or not (np.isfinite(bandwidth) and bandwidth > 0)
    ):
        raise ValueError(f"bandwidth must be None or positive, got {bandwidth!r}")
    for name, value in (("xmin", xmin), ("xmax", xmax)):
        if value is not None and (
            isinstance(value, bool)
            or not isinstance(value, Real)
            or not np.isfinite(value)
        ):
            raise ValueError(
                f"{name} must be a finite number or None (unbounded), got {value!r}"
            )
    if xmin is not None and xmax is not None and xmin > xmax:
        raise ValueError(f"xmin must not exceed xmax, got xmin={xmin}, xmax={xmax}")


def _as_points(x) -> np.ndarray:
    return np.atleast_1d(np.asarray(x, dtype=float))


# ---------------------------------------------------------------------------
# Estimator
# ---------------------------------------------------------------------------


class Kde1d(BaseEstimator):
    """
    Local-polynomial kernel density estimator in one dimension.

    Parameters
    ----------
    bandwidth : float, optional
        Positive bandwidth. ``None`` selects it automatically with a plug-in
        rule matched to ``degree``.
    multiplier : float, default=1.0
        Factor applied to the (selected or given) bandwidth.
    xmin, xmax : float, optional
        Lower and upper bounds of the support; ``None`` means unbounded.
    degree : {0, 1, 2}, default=2
        Degree of the local polynomial fitted to the log-density.

    Attributes
    ----------
    model_ : FittedModel or None
        The fitted model, ``None`` until :meth:`fit` succeeds.

    Notes
    -----
    Bounded supports are handled by transforming the data to the real line
    (probit transform for two bounds, log transform for one) and correcting
    the density estimate by the Jacobian of the transform.  Discrete data are
    jittered over unit cells centered at the integer levels; the probability
    mass function is the estimated density at the levels, renormalized to sum
    to one.

    A fitted instance can be evaluated concurrently; calling :meth:`fit` on
    an instance that is being evaluated or fitted elsewhere is not safe.
    """

    def __init__(
        self,
        bandwidth: Optional[float] = None,
        multiplier: float = 1.0,
        xmin: Optional[float] = None,
        xmax: Optional[float] = None,
        degree: int = 2,
    ) -> None:
        _check_params(bandwidth, multiplier, xmin, xmax, degree)
        self.bandwidth = bandwidth
        self.multiplier = multiplier
        self.xmin = xmin
        self.xmax = xmax
        self.degree = degree
        self.model_: Optional[FittedModel] = None

    @classmethod
    def from_grid(
        cls,
        grid_points: np.ndarray,
        values: np.ndarray,
        xmin: Optional[float] = None,
        xmax: Optional[float] = None,
    ) -> "Kde1d":
        """
        Build a fitted continuous model from density values on a grid.

        The values are renormalized to unit mass.  Log-likelihood and
        effective degrees of freedom are unknown and set to NaN.
        """
        kde = cls(xmin=xmin, xmax=xmax)
        grid = InterpolationGrid(grid_points, values, NORMALIZATION_PASSES)
        kde.model_ = FittedModel(
            grid=grid,
            influence_grid=None,
            support=ContinuousSupport(xmin, xmax),
            bandwidth=None,
            loglik=math.nan,
            edf=math.nan,
            nobs=0,
        )
        return kde

    # ------------------------------------------------------------------
    # scikit-learn protocol
    # ------------------------------------------------------------------

    def __sklearn_is_fitted__(self) -> bool:
        return getattr(self, "model_", None) is not None

    def set_params(self, **params) -> "Kde1d":
        """Set parameters; bounds cannot change once the model is fitted."""
        if self.__sklearn_is_fitted__():
            for name in ("xmin", "xmax"):
                if name in params and params[name] != getattr(self, name):
                    raise ValueError(f"cannot change {name} of a fitted model")
        merged = {**self.get_params(), **params}
        _check_params(
            merged["bandwidth"],
            merged["multiplier"],
            merged["xmin"],
            merged["xmax"],
            merged["degree"],
        )
        return super().set_params(**params)

    # ------------------------------------------------------------------
    # Fitting
    # ------------------------------------------------------------------

    def fit(self, x, weights=None) -> "Kde1d":
        """
        Fit the density estimate.

        Parameters
        ----------
        x : array-like
            Observations; NaN entries are ignored.  Integer arrays are fitted
            as discrete data (see :meth:`fit_discrete`).
        weights : array-like, optional
            Observation weights, same length as ``x``.  An observation with
            NaN weight is ignored.

        Returns
        -------
        self
        """
        x_arr = np.asarray(x)
        if np.issubdtype(x_arr.dtype, np.integer):
            return self.fit_discrete(x_arr, weights)
        self.model_ = self._fit(x_arr, weights, discrete=False)
        return self

    def fit_discrete(self, x, weights=None) -> "Kde1d":
        """
        Fit a probability mass function to integer-valued observations.

        The support bounds are cleared: the model lives on the integers
        covered by the data.

        Parameters
        ----------
        x : array-like
            Integer levels (NaN entries are ignored).
        weights : array-like, optional
            Observation weights, same length as ``x``.

        Returns
        -------
        self
        """
        x_arr = np.asarray(x, dtype=float)
        levels = x_arr[~np.isnan(x_arr)]
        if np.any(levels != np.round(levels)):
            raise ValueError("discrete observations must be integer-valued")
        if self.xmin is not None or self.xmax is not None:
            logger.debug("discrete fit ignores xmin=%s, xmax=%s", self.xmin, self.xmax)
        self.xmin = None
        self.xmax = None
        self.model_ = self._fit(x_arr, weights, discrete=True)
        return self

    def _select_bw(self, data: PreparedData, discrete: bool) -> float:
        bw = self.bandwidth
        if bw is None:
            bw = select_bandwidth(data.transformed, data.weights, self.degree)
        bw = float(bw) * self.multiplier
        if discrete:
            bw = max(bw, DISCRETE_MIN_BANDWIDTH)
        return bw

    def _fit(self, x: np.ndarray, weights, discrete: bool) -> FittedModel:
        transform = BoundaryTransform(self.xmin, self.xmax)
        data = prepare(x, weights, transform, discrete=discrete)
        bw = self._select_bw(data, discrete)

        # fit in the transformed domain
        zgrid = transform.construct_grid(data.transformed, bw, NUM_GRID_POINTS)
        grid_points = transform.inverse(zgrid)
        kde_fft = KdeFFT(
            data.transformed,
            bw,
            zgrid[0],
            zgrid[-1],
            data.weights,
            num_bins=NUM_GRID_POINTS - 1,
        )
        f0 = kde_fft.kde_drv(0)
        f1 = kde_fft.kde_drv(1) if self.degree > 0 else None
        f2 = kde_fft.kde_drv(2) if self.degree > 1 else None
        fitted = fit_local_polynomial(
            f0, f1, f2, bw, kde_fft.average_bin_weights(), data.n, self.degree
        )

        # back to the original domain
        values = transform.correct_density(grid_points, np.maximum(fitted[:, 0], 0.0))
        infl = np.clip(fitted[:, 1], *INFLUENCE_CLIP)
        if transform.reverses_order:
            infl = infl[::-1]
        grid_points = transform.finalize_grid(grid_points)

        grid = InterpolationGrid(grid_points, values, NORMALIZATION_PASSES)
        loglik = float(
            np.sum(np.log(np.maximum(grid.interpolate(data.raw), LOGLIK_FLOOR)))
        )
        infl_grid = InterpolationGrid(grid_points, infl, 0)
        edf = float(np.sum(infl_grid.interpolate(data.raw)))

        support: Support
        if discrete:
            support = DiscreteSupport.from_grid(
                grid, data.raw.min(), data.raw.max()
            )
        else:
            support = ContinuousSupport(transform.xmin, transform.xmax)
        logger.debug(
            "fitted %s model: nobs=%d, bw=%.4g, loglik=%.4f, edf=%.3f",
            "discrete" if discrete else "continuous",
            data.n,
            bw,
            loglik,
            edf,
        )
        return FittedModel(
            grid=grid,
            influence_grid=infl_grid,
            support=support,
            bandwidth=bw,
            loglik=loglik,
            edf=edf,
            nobs=data.n,
        )

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _model(self) -> FittedModel:
        check_is_fitted(self)
        return cast(FittedModel, self.model_)

    def pdf(self, x) -> np.ndarray:
        """
        Density (or probability mass) at ``x``.

        Parameters
        ----------
        x : array-like
            Evaluation points.

        Returns
        -------
        ndarray
            Non-negative values, zero outside the support and NaN where ``x``
            is NaN.  Discrete models are zero at non-integer points.
        """
        model = self._model()
        x = _as_points(x)
        if model.is_discrete:
            return self._pdf_discrete(model.support, x)
        return self._pdf_continuous(model, x)

    @staticmethod
    def _pdf_continuous(model: FittedModel, x: np.ndarray) -> np.ndarray:
        fhat = model.grid.interpolate(x)
        support = model.support
        if support.xmin is not None:
            fhat[x < support.xmin] = 0.0
        if support.xmax is not None:
            fhat[x > support.xmax] = 0.0
        return np.where(np.isnan(fhat), fhat, np.maximum(fhat, 0.0))

    @staticmethod
    def _pdf_discrete(support: DiscreteSupport, x: np.ndarray) -> np.ndarray:
        out = np.full(x.shape, np.nan)
        ok = ~np.isnan(x)
        xx = x[ok]
        vals = np.zeros(xx.shape)
        in_range = (xx >= support.lowest) & (xx <= support.highest)
        on_level = (xx == np.round(xx)) & in_range
        idx = (xx[on_level] - support.lowest).astype(int)
        vals[on_level] = support.pmf[idx]
        out[ok] = vals
        return out

    def cdf(self, x) -> np.ndarray:
        """
        Distribution function at ``x``.

        Parameters
        ----------
        x : array-like
            Evaluation points.

        Returns
        -------
        ndarray
            Values in [0, 1], NaN where ``x`` is NaN.
        """
        model = self._model()
        x = _as_points(x)
        if model.is_discrete:
            return self._cdf_discrete(model.support, x)
        return model.grid.integrate(x, normalize=True)

    @staticmethod
    def _cdf_discrete(support: DiscreteSupport, x: np.ndarray) -> np.ndarray:
        out = np.full(x.shape, np.nan)
        ok = ~np.isnan(x)
        k = np.floor(x[ok])
        idx = np.clip(k - support.lowest, 0, support.cum.size - 1).astype(int)
        vals = support.cum[idx]
        vals = np.where(k < support.lowest, 0.0, vals)
        vals = np.where(k >= support.highest, 1.0, vals)
        out[ok] = np.clip(vals, 0.0, 1.0)
        return out

    def quantile(self, p) -> np.ndarray:
        """
        Quantile function at probabilities ``p``.

        Continuous models invert the distribution function by bisection on
        the grid range; discrete models return the smallest level whose
        cumulative probability reaches ``p``.

        Parameters
        ----------
        p : array-like
            Probabilities in [0, 1]; NaN entries give NaN.

        Returns
        -------
        ndarray
            Quantiles.

        Raises
        ------
        ValueError
            If any probability lies outside [0, 1].
        """
        model = self._model()
        p = _as_points(p)
        if np.any((p < 0.0) | (p > 1.0)):
            raise ValueError("probabilities must lie in [0, 1]")
        nan = np.isnan(p)
        if model.is_discrete:
            support = model.support
            idx = np.searchsorted(support.cum, np.where(nan, 0.0, p), side="left")
            q = support.levels[np.minimum(idx, support.levels.size - 1)]
        else:
            q = self._quantile_continuous(model, p)
        return np.where(nan, np.nan, q)

    @staticmethod
    def _quantile_continuous(model: FittedModel, p: np.ndarray) -> np.ndarray:
        lower = np.full(p.shape, model.grid.get_grid_min())
        upper = np.full(p.shape, model.grid.get_grid_max())
        for _ in range(QUANTILE_ITERATIONS):
            mid = 0.5 * (lower + upper)
            below = model.grid.integrate(mid, normalize=True) < p
            lower = np.where(below, mid, lower)
            upper = np.where(below, upper, mid)
        return 0.5 * (lower + upper)

    def simulate(self, n: int, seeds: Sequence[int] = ()) -> np.ndarray:
        """
        Draw ``n`` observations from the fitted model.

        Parameters
        ----------
        n : int
            Number of draws.
        seeds : sequence of int, optional
            Seeds making the draws reproducible.

        Returns
        -------
        ndarray, shape (n,)
        """
        self._model()
        return self.quantile(simulate_uniform(n, seeds))

    def score_samples(self, x) -> np.ndarray:
        """Log-density at ``x`` (``-inf`` where the density is zero)."""
        with np.errstate(divide="ignore"):
            return np.log(self.pdf(x))

    def score(self, x, y=None) -> float:
        """Total log-likelihood of ``x`` under the model."""
        return float(np.sum(self.score_samples(x)))

    # ------------------------------------------------------------------
    # Accessors and diagnostics
    # ------------------------------------------------------------------

    @property
    def grid_points(self) -> np.ndarray:
        return self._model().grid.get_grid_points()

    @property
    def values(self) -> np.ndarray:
        return self._model().grid.get_values()

    @property
    def bandwidth_(self) -> Optional[float]:
        """Bandwidth used for the fit."""
        return self._model().bandwidth

    @property
    def loglik(self) -> float:
        return self._model().loglik

    @property
    def edf(self) -> float:
        return self._model().edf

    @property
    def nobs(self) -> int:
        return self._model().nobs

    @property
    def is_discrete(self) -> bool:
        return self._model().is_discrete

    def aic(self) -> float:
        """Akaike information criterion, ``-2 loglik + 2 edf``."""
        return -2.0 * self.loglik + 2.0 * self.edf

    def bic(self) -> float:
        """Bayesian information criterion, ``-2 loglik + log(nobs) edf``."""
        if self.nobs == 0:
            return math.nan
        return -2.0 * self.loglik + math.log(self.nobs) * self.edf

    def summary(self) -> str:
        """One-line description of the parameters and, if fitted, the fit."""
        fitted = self.__sklearn_is_fitted__()
        bw = self.model_.bandwidth if fitted else self.bandwidth
        out = (
            f"Kde1d(bw={bw}, mult={self.multiplier}, xmin={self.xmin}, "
            f"xmax={self.xmax}, deg={self.degree})"
        )
        if fitted:
            out += f": loglik={self.loglik:.4f}, edf={self.edf:.3f}, nobs={self.nobs}"
            if self.is_discrete:
                out += " (discrete)"
        return out

    def __str__(self) -> str:
        return self.summary()
