import numpy as np
import pytest

from polykde.stats import (
    dnorm,
    dnorm_drv,
    equi_jitter,
    pnorm,
    qnorm,
    simulate_uniform,
    weighted_quantile,
)


def test_normal_helpers_consistent():
    p = np.linspace(0.01, 0.99, 25)
    assert np.allclose(pnorm(qnorm(p)), p)
    assert np.isclose(dnorm(0.0), 1 / np.sqrt(2 * np.pi))
    assert np.isnan(pnorm(np.nan))


def test_dnorm_drv_closed_forms():
    x = np.linspace(-3, 3, 13)
    phi = dnorm(x)
    assert np.allclose(dnorm_drv(x, 0), phi)
    assert np.allclose(dnorm_drv(x, 1), -x * phi)
    assert np.allclose(dnorm_drv(x, 2), (x**2 - 1) * phi)
    assert np.allclose(dnorm_drv(x, 4), (x**4 - 6 * x**2 + 3) * phi)


def test_dnorm_drv_matches_finite_differences():
    x = np.linspace(-2, 2, 9)
    eps = 1e-5
    for drv in [1, 2, 3]:
        fd = (dnorm_drv(x + eps, drv - 1) - dnorm_drv(x - eps, drv - 1)) / (2 * eps)
        assert np.allclose(dnorm_drv(x, drv), fd, atol=1e-7)


def test_simulate_uniform_reproducible():
    u1 = simulate_uniform(100, seeds=[1, 2])
    u2 = simulate_uniform(100, seeds=[1, 2])
    u3 = simulate_uniform(100, seeds=[3])
    assert u1.shape == (100,)
    assert np.array_equal(u1, u2)
    assert not np.array_equal(u1, u3)
    assert np.all((u1 > 0) & (u1 < 1))
    assert simulate_uniform(0).size == 0
    with pytest.raises(ValueError):
        simulate_uniform(-1)


def test_simulate_uniform_accepts_negative_seeds():
    u1 = simulate_uniform(50, seeds=[-1, 7])
    u2 = simulate_uniform(50, seeds=[-1, 7])
    assert np.array_equal(u1, u2)
    assert np.all((u1 > 0) & (u1 < 1))
    assert not np.array_equal(u1, simulate_uniform(50, seeds=[1, 7]))


def test_equi_jitter_spreads_ties_within_cells():
    x = np.array([3, 1, 3, 3, 1, 7], dtype=float)
    jit = equi_jitter(x)
    assert np.all(np.abs(jit - x) < 0.5)
    # three copies of 3 land at 3 - 0.5 + (k - 0.5) / 3
    assert np.allclose(np.sort(jit[x == 3]), [2.5 + 1 / 6, 3.0, 3.5 - 1 / 6])
    # single observations stay at the cell center
    assert jit[x == 7][0] == 7.0
    assert np.array_equal(equi_jitter(x), jit)


def test_weighted_quantile_unit_weights_match_numpy():
    rng = np.random.default_rng(0)
    x = rng.normal(size=101)
    q = [0.1, 0.25, 0.5, 0.75, 0.9]
    assert np.allclose(weighted_quantile(x, q, np.ones_like(x)), np.quantile(x, q))
    assert np.allclose(weighted_quantile(x, q), np.quantile(x, q))


def test_weighted_quantile_ignores_zero_weight_tail():
    x = np.array([0.0, 1.0, 2.0, 100.0])
    w = np.array([1.0, 1.0, 1.0, 0.0])
    assert weighted_quantile(x, 1.0, w) == pytest.approx(2.0)
