"""
dissimilarity.py
----------------
Builds the pairwise dissimilarity matrix PAM works on.

Any metric accepted by sklearn.metrics.pairwise_distances can be used, or
"precomputed" when the caller already holds an n x n matrix.
"""

import numpy as np
from sklearn.metrics.pairwise import pairwise_distances
from sklearn.utils import check_array


def distance_matrix(X, metric="euclidean"):
    """
    Return the symmetric n x n dissimilarity matrix of the rows of X.

    The diagonal is forced to exactly zero so floating point noise from the
    ||x||^2 + ||y||^2 - 2*x*y expansion never makes an object look further
    from itself than from a duplicate.
    """
    if metric == "precomputed":
        D = check_array(X, dtype=np.float64)
        if D.shape[0] != D.shape[1]:
            raise ValueError(f"precomputed distance matrix must be square, got shape {D.shape}")
        return D

    X = check_array(X, dtype=np.float64)
    D = pairwise_distances(X, metric=metric)
    np.fill_diagonal(D, 0.0)
    return D


def distances_to(X, Y, metric="euclidean"):
    """Distances from every row of X to every row of Y, shape (len(X), len(Y))."""
    return pairwise_distances(check_array(X, dtype=np.float64), Y, metric=metric)


def total_dissimilarity(distances, classification):
    """Sum of distances from every object to the medoid it is assigned to."""
    classification = np.asarray(classification)
    return float(distances[np.arange(len(classification)), classification].sum())
