# tests/test_kernels.py
import numpy as np
import pytest

from polykde.kernels import (
    KERNEL_TRUNCATION,
    gaussian_kernel,
    gaussian_kernel_drv,
    scaled_kernel_drv,
)


def test_truncated_kernel_integrates_to_one():
    u = np.linspace(-KERNEL_TRUNCATION, KERNEL_TRUNCATION, 200001)
    mass = gaussian_kernel(u).sum() * (u[1] - u[0])
    assert mass == pytest.approx(1.0, abs=1e-8)


def test_kernel_vanishes_beyond_truncation():
    u = np.array([-7.0, -5.01, 5.01, 9.0])
    for drv in range(5):
        assert np.all(gaussian_kernel_drv(u, drv) == 0.0)
    assert gaussian_kernel(4.99) > 0


def test_kernel_derivative_symmetry():
    u = np.linspace(0.1, 4.0, 10)
    for drv in range(5):
        sign = -1.0 if drv % 2 else 1.0
        expected = sign * gaussian_kernel_drv(u, drv)
        assert np.allclose(gaussian_kernel_drv(-u, drv), expected)


def test_scaled_kernel_requires_positive_bandwidth():
    assert np.all(np.isfinite(scaled_kernel_drv(np.zeros(3), 0.5, 2)))
    with pytest.raises(ValueError):
        scaled_kernel_drv(np.zeros(3), 0.0)
