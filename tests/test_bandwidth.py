import logging

import numpy as np
import pytest

from polykde.bandwidth import (
    DegenerateDataError,
    PluginBandwidthSelector,
    normal_reference_bandwidth,
    select_bandwidth,
)


def silverman(x):
    return 1.06 * np.std(x, ddof=1) * x.size ** (-1 / 5)


@pytest.mark.parametrize("deg", [0, 1, 2])
def test_bandwidth_positive_and_finite(deg):
    rng = np.random.default_rng(0)
    x = rng.normal(size=500)
    bw = select_bandwidth(x, degree=deg)
    assert np.isfinite(bw) and bw > 0


def test_local_constant_matches_normal_reference_for_normal_data():
    rng = np.random.default_rng(1)
    x = rng.normal(size=2000)
    bw = select_bandwidth(x, degree=0)
    ref = silverman(x)
    assert 0.5 * ref < bw < 2.0 * ref


def test_bandwidth_shrinks_with_sample_size():
    rng = np.random.default_rng(2)
    small = select_bandwidth(rng.normal(size=200), degree=1)
    large = select_bandwidth(rng.normal(size=20000), degree=1)
    assert large < small


def test_bandwidth_scales_with_data():
    rng = np.random.default_rng(3)
    x = rng.normal(size=1000)
    bw = select_bandwidth(x, degree=1)
    assert select_bandwidth(10 * x, degree=1) == pytest.approx(10 * bw, rel=1e-6)


def test_uniform_weights_equal_no_weights():
    rng = np.random.default_rng(4)
    x = rng.gamma(2.0, size=400)
    for deg in (0, 1, 2):
        bw = select_bandwidth(x, degree=deg)
        bw_w = select_bandwidth(x, np.full(x.size, 2.5), degree=deg)
        assert bw_w == pytest.approx(bw, rel=1e-12)


def test_weights_change_effective_sample_size():
    rng = np.random.default_rng(5)
    x = rng.normal(size=300)
    w = rng.uniform(0, 2, size=300)
    sel = PluginBandwidthSelector(x, w)
    assert sel.n_eff < x.size
    assert PluginBandwidthSelector(x).n_eff == pytest.approx(x.size)


def test_constant_data_raise():
    with pytest.raises(DegenerateDataError):
        select_bandwidth(np.full(50, 3.0))
    with pytest.raises(DegenerateDataError):
        select_bandwidth(np.array([1.0]))
    # still an arithmetic error for callers catching the builtin
    with pytest.raises(ArithmeticError):
        select_bandwidth(np.zeros(10))


def test_invalid_degree():
    with pytest.raises(ValueError):
        PluginBandwidthSelector(np.arange(10.0)).select_bw(3)


def test_normal_reference_bandwidth_silverman_constant():
    # drv = 0 gives (4 / 3)^(1/5) ~ 1.06
    assert normal_reference_bandwidth(1.0, 1.0, drv=0) == pytest.approx(
        (4.0 / 3.0) ** 0.2
    )
    assert normal_reference_bandwidth(2.0, 1.0, drv=2) == pytest.approx(
        2.0 * normal_reference_bandwidth(1.0, 1.0, drv=2)
    )


def test_fallback_logs_warning(monkeypatch, caplog):
    rng = np.random.default_rng(6)
    x = rng.normal(size=100)
    sel = PluginBandwidthSelector(x)
    monkeypatch.setattr(sel, "_bias_functional", lambda deg, pilot: float("nan"))
    with caplog.at_level(logging.WARNING, logger="polykde.bandwidth"):
        bw = sel.select_bw(1)
    assert bw == pytest.approx(1.06 * sel.scale * x.size ** (-1 / 5))
    assert "normal reference" in caplog.text
