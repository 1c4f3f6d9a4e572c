"""
Polykde: local-polynomial kernel density estimation in one dimension.

This package fits univariate densities (or probability mass functions for
discrete data) by local polynomial smoothing of the log-density.  Bandwidths
are selected automatically with a degree-aware plug-in rule, densities with
bounded support are corrected for boundary bias, and kernel estimates are
computed on a grid with the fast Fourier transform.

Key Features
------------
- Local constant, linear and quadratic fits (``degree`` 0, 1, 2)
- Plug-in bandwidth selection with a normal reference pilot
- Boundary correction for one- and two-sided supports
- Discrete data via jittering
- Observation weights and missing values (NaN)
- Density, distribution function, quantiles and simulation
- Log-likelihood and effective degrees of freedom of the fit

Main Classes and Functions
--------------------------
Kde1d : Local-polynomial kernel density estimator
select_bandwidth : Plug-in bandwidth for a given polynomial degree
InterpolationGrid : Piecewise-linear grid holding a fitted density

Example
-------
>>> import numpy as np
>>> from polykde import Kde1d
>>> x = np.random.default_rng(1).normal(size=1000)
>>> fit = Kde1d().fit(x)
>>> fit.pdf([-1.0, 0.0, 1.0])  # doctest: +SKIP
>>> fit.quantile([0.05, 0.5, 0.95])  # doctest: +SKIP

For bounded and discrete data:
>>> fit = Kde1d(xmin=0.0).fit(np.random.default_rng(2).exponential(size=500))
>>> counts = np.random.default_rng(3).poisson(4, size=500)
>>> pmf = Kde1d().fit(counts).pdf(np.arange(10))  # doctest: +SKIP
"""

from .bandwidth import DegenerateDataError, PluginBandwidthSelector, select_bandwidth
from .boundary import BoundaryTransform
from .interpolation import InterpolationGrid
from .kde import ContinuousSupport, DiscreteSupport, FittedModel, Kde1d

__all__ = [
    "Kde1d",
    "FittedModel",
    "ContinuousSupport",
    "DiscreteSupport",
    "InterpolationGrid",
    "BoundaryTransform",
    "select_bandwidth",
    "PluginBandwidthSelector",
    "DegenerateDataError",
]
