import logging

import numpy as np
import pytest

from polykde.boundary import BoundaryTransform
from polykde.preprocessing import prepare, remove_nans


def test_remove_nans_aligns_weights():
    x = np.array([1.0, np.nan, 3.0, 4.0])
    w = np.array([1.0, 2.0, np.nan, 4.0])
    xx, ww = remove_nans(x, w)
    assert np.array_equal(xx, [1.0, 4.0])
    assert np.array_equal(ww, [1.0, 4.0])
    xx, ww = remove_nans(x, np.empty(0))
    assert xx.size == 3 and ww.size == 0


def test_prepare_normalizes_weights(caplog):
    x = np.array([0.5, np.nan, 1.5, 2.5])
    with caplog.at_level(logging.DEBUG, logger="polykde.preprocessing"):
        data = prepare(x, [2.0, 1.0, 4.0, 6.0], BoundaryTransform())
    assert data.n == 3
    assert np.array_equal(data.raw, [0.5, 1.5, 2.5])
    assert data.weights.mean() == pytest.approx(1.0)
    assert np.allclose(data.weights, [0.5, 1.0, 1.5])
    assert np.array_equal(data.transformed, data.raw)
    assert "missing values" in caplog.text


def test_prepare_applies_transform():
    x = np.array([0.1, 1.0, 3.0])
    data = prepare(x, None, BoundaryTransform(xmin=0.0))
    assert np.allclose(data.transformed, np.log(x + 1e-5))
    assert data.weights.size == 0


def test_prepare_jitters_discrete_levels():
    x = np.array([0.0, 0.0, 1.0, 2.0, 2.0, 2.0, 2.0])
    data = prepare(x, None, BoundaryTransform(), discrete=True)
    assert np.array_equal(data.raw, x)
    assert np.all(np.abs(data.transformed - x) < 0.5)
    assert np.allclose(np.sort(data.transformed[3:]), [1.625, 1.875, 2.125, 2.375])


def test_prepare_errors():
    tr = BoundaryTransform()
    with pytest.raises(ValueError):
        prepare(np.ones(3), np.ones(2), tr)
    with pytest.raises(ValueError):
        prepare(np.array([np.nan, np.nan]), None, tr)
    with pytest.raises(ValueError):
        prepare(np.array([1.0, np.inf]), None, tr)
    with pytest.raises(ValueError):
        prepare(np.ones(3), [1.0, -1.0, 1.0], tr)
    with pytest.raises(ValueError):
        prepare(np.ones(3), np.zeros(3), tr)
    with pytest.raises(ValueError):
        prepare(np.array([-0.5, 1.0]), None, BoundaryTransform(xmin=0.0))
    with pytest.raises(ValueError):
        prepare(np.array([0.5, 1.5]), None, BoundaryTransform(0.0, 1.0))
