import numpy as np
import pytest

from dissimilarity import distance_matrix, distances_to, total_dissimilarity


def test_euclidean_matrix_is_symmetric_with_zero_diagonal():
    X = np.array([[0.0, 0.0], [3.0, 4.0], [6.0, 8.0]])
    D = distance_matrix(X)

    np.testing.assert_allclose(D, [[0, 5, 10], [5, 0, 5], [10, 5, 0]])
    np.testing.assert_array_equal(D, D.T)
    assert np.all(np.diag(D) == 0.0)


def test_other_metrics_are_passed_through():
    X = np.array([[0.0, 0.0], [3.0, 4.0]])

    assert distance_matrix(X, metric="manhattan")[0, 1] == pytest.approx(7.0)
    assert distance_matrix(X, metric="chebyshev")[0, 1] == pytest.approx(4.0)


def test_precomputed_is_returned_as_float():
    D = [[0, 2], [2, 0]]
    out = distance_matrix(D, metric="precomputed")

    assert out.dtype == np.float64
    np.testing.assert_array_equal(out, [[0.0, 2.0], [2.0, 0.0]])


def test_precomputed_must_be_square():
    with pytest.raises(ValueError, match="square"):
        distance_matrix(np.zeros((2, 3)), metric="precomputed")


def test_nan_observations_are_rejected():
    with pytest.raises(ValueError):
        distance_matrix(np.array([[0.0, np.nan], [1.0, 1.0]]))


def test_distances_to_shape():
    X = np.array([[0.0], [1.0], [5.0]])
    Y = np.array([[0.0], [4.0]])

    np.testing.assert_allclose(distances_to(X, Y), [[0, 4], [1, 3], [5, 1]])


def test_total_dissimilarity():
    X = np.array([[1.0], [2.0], [3.0], [10.0]])
    D = distance_matrix(X)

    assert total_dissimilarity(D, [1, 1, 1, 3]) == pytest.approx(2.0)
