import numpy as np
import pytest

from salesman.errors import ConfigurationError
from salesman.matrix import DistanceMatrix, REFERENCE_ROWS, tour_cost, validate_tour


@pytest.mark.parametrize("rows", [
    [[0, 1, 2], [1, 0, 3]],
    [[0, -1], [-1, 0]],
    [[1, 2], [2, 0]],
    [[0, np.nan], [1, 0]],
    np.zeros((0, 0)),
])
def test_invalid_matrices_rejected(rows):
    with pytest.raises(ConfigurationError):
        DistanceMatrix(rows)


def test_random_matrix_is_symmetric_integral_and_in_range():
    d = DistanceMatrix.random(6, np.random.default_rng(0), low=1, high=8)
    a = d.values
    assert d.is_symmetric and d.is_integral
    off = a[~np.eye(6, dtype=bool)]
    assert off.min() >= 1 and off.max() <= 8
    assert np.all(np.diag(a) == 0)


def test_matrix_is_read_only():
    d = DistanceMatrix.reference()
    with pytest.raises(ValueError):
        d.values[0, 1] = 3.0
    assert d.tolist() == [list(map(float, r)) for r in REFERENCE_ROWS]


def test_asymmetric_matrix_allowed():
    d = DistanceMatrix([[0, 1], [2, 0]])
    assert not d.is_symmetric
    assert tour_cost(d, (0, 1, 0)) == 3


def test_validate_tour():
    assert validate_tour([0, 1, 2, 0], 3) == (0, 1, 2, 0)
    with pytest.raises(ValueError):
        validate_tour([0, 1, 2], 3)
    with pytest.raises(ValueError):
        validate_tour([0, 1, 1, 0], 3)
    with pytest.raises(ValueError):
        validate_tour([0, 1, 2, 1], 3)
