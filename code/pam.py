"""
pam.py
------
Partitioning Around Medoids (Kaufman & Rousseeuw).

BUILD picks k medoids greedily, one at a time. SWAP then keeps exchanging
a medoid with a nonselected object for as long as some exchange lowers the
total dissimilarity. Both phases run on a precomputed distance matrix and
track, for every object, its nearest and second nearest medoid, so a
candidate swap is costed in O(n) without rescanning all medoids.
"""

import time
import warnings
from bisect import insort
from dataclasses import dataclass

import numpy as np
from sklearn.exceptions import ConvergenceWarning
from sklearn.utils import check_array

from dissimilarity import distance_matrix, distances_to, total_dissimilarity


@dataclass(frozen=True)
class PAMResult:
    """Final clustering: the medoid set and the medoid every object belongs to."""
    medoids: frozenset
    classification: tuple
    total_dissimilarity: float


class ClusteringState:
    """
    Partition mutated in place while PAM runs.

    medoids and nonselected are kept sorted, so every scan visits objects in
    index order and "first minimum/maximum wins" is reproducible.

    An object whose second_closest_medoid equals its own assignment has no
    second closest medoid yet (single medoid, or a placeholder left by
    swap_medoid).
    """

    def __init__(self, n_objects, initial_medoid):
        self.medoids = [initial_medoid]
        self.nonselected = [i for i in range(n_objects) if i != initial_medoid]
        self.classification = np.full(n_objects, initial_medoid, dtype=int)
        self.second_closest_medoid = np.full(n_objects, initial_medoid, dtype=int)

    def assign_medoid(self, obj, medoid):
        self.classification[obj] = medoid

    def add_medoid(self, medoid):
        insort(self.medoids, medoid)
        self.nonselected.remove(medoid)
        self.assign_medoid(medoid, medoid)

    def swap_medoid(self, old_medoid, new_medoid):
        """
        Replace old_medoid with new_medoid.

        Everything that pointed at old_medoid now points at new_medoid. That
        is only a placeholder: run reclassify_objects before reading
        classification or second_closest_medoid again.
        """
        self.medoids.remove(old_medoid)
        insort(self.nonselected, old_medoid)
        self.add_medoid(new_medoid)

        self.classification[self.classification == old_medoid] = new_medoid
        self.second_closest_medoid[self.second_closest_medoid == old_medoid] = new_medoid


def _second_distances(distances, state, objects):
    """Distance from each object to its second closest medoid, inf if it has none."""
    nearest = state.classification[objects]
    second = state.second_closest_medoid[objects]
    E = distances[objects, second]
    E[second == nearest] = np.inf
    return E


def find_initial_medoid(distances):
    """The object with the minimum sum of dissimilarities to all other objects."""
    return int(np.argmin(distances.sum(axis=1)))


def find_next_medoid(distances, state):
    """
    The nonselected object whose promotion lowers the objective the most.

    gain(i) = sum over nonselected j != i of max(D_j - d(j, i), 0), with D_j
    the distance from j to its current medoid. On ties the lowest index wins,
    and an object is returned even when every gain is zero.
    """
    candidates = np.asarray(state.nonselected, dtype=int)
    D = distances[candidates, state.classification[candidates]]

    # entry (j, i): how much closer j gets if i is promoted
    improvement = np.maximum(D[:, None] - distances[np.ix_(candidates, candidates)], 0.0)
    np.fill_diagonal(improvement, 0.0)
    gain = improvement.sum(axis=0)

    return int(candidates[np.argmax(gain)])


def reclassify_objects(distances, state):
    """
    Recompute the nearest and second nearest medoid of every nonselected object.

    Medoids are visited in index order and only a strictly smaller distance
    displaces the current nearest (or second nearest), so ties keep the
    incumbent. Returns the total dissimilarity of the resulting clustering.
    """
    objects = np.asarray(state.nonselected, dtype=int)
    nearest = state.classification[objects]
    second = state.second_closest_medoid[objects]
    nearest_dist = distances[objects, nearest]
    second_dist = _second_distances(distances, state, objects)

    for medoid in state.medoids:
        d = distances[objects, medoid]
        other = nearest != medoid
        closer = other & (d < nearest_dist)
        runner_up = other & ~closer & (d < second_dist)

        # the old nearest medoid drops to second place
        second[closer] = nearest[closer]
        second_dist[closer] = nearest_dist[closer]
        nearest[closer] = medoid
        nearest_dist[closer] = d[closer]

        second[runner_up] = medoid
        second_dist[runner_up] = d[runner_up]

    state.classification[objects] = nearest
    state.second_closest_medoid[objects] = second

    # medoids are at distance zero from themselves
    return float(nearest_dist.sum())


def build(k, distances):
    """BUILD phase: an initial clustering with k medoids chosen greedily."""
    state = ClusteringState(len(distances), find_initial_medoid(distances))

    for _ in range(k - 1):
        state.add_medoid(find_next_medoid(distances, state))
        reclassify_objects(distances, state)

    return state


def swap_cost(distances, i, h, state):
    """
    Change in total dissimilarity if medoid i were replaced by object h.

    For a nonselected j other than h, with D_j its nearest medoid distance
    and E_j its second nearest:
      - j loses i (D_j >= d(j, i)): it moves to h or to its second medoid,
        contributing min(d(j, h), E_j) - d(j, i)
      - otherwise j only moves if h is strictly closer than its medoid,
        contributing min(d(j, h) - D_j, 0)
    h itself stops paying D_h, and i starts paying the distance to the
    nearest of h and the medoids that remain.

    state must be freshly reclassified.
    """
    nonselected = np.asarray(state.nonselected, dtype=int)
    others = nonselected[nonselected != h]

    D = distances[others, state.classification[others]]
    E = _second_distances(distances, state, others)
    d_i = distances[others, i]
    d_h = distances[others, h]

    contribution = np.where(
        D >= d_i,
        np.minimum(d_h, E) - d_i,
        np.minimum(d_h - D, 0.0),
    )

    remaining = [m for m in state.medoids if m != i]
    outgoing = distances[i, remaining + [h]].min()
    incoming = distances[h, state.classification[h]]

    return float(contribution.sum() + outgoing - incoming)


def find_best_swap(distances, state):
    """Cheapest (medoid, nonselected) exchange; the first one found wins ties."""
    best_cost = np.inf
    best_pair = None

    for i in state.medoids:
        for h in state.nonselected:
            cost = swap_cost(distances, i, h, state)
            if cost < best_cost:
                best_cost = cost
                best_pair = (i, h)

    return best_cost, best_pair


def refine(distances, state, max_iter=300, tol=1e-9):
    """
    SWAP phase: apply the best exchange until none lowers the objective by more than tol.

    At most max_iter swaps are applied; if an improving swap is still left
    after that a ConvergenceWarning is raised and the current clustering is
    kept. Returns the applied swaps as (old_medoid, new_medoid, objective).
    """
    swaps = []

    while True:
        cost, pair = find_best_swap(distances, state)
        if pair is None or cost >= -tol:
            break

        if len(swaps) >= max_iter:
            warnings.warn(
                f"PAM did not converge after {max_iter} swaps; "
                f"an exchange with cost {cost:.6g} is still available",
                ConvergenceWarning,
            )
            break

        state.swap_medoid(*pair)
        objective = reclassify_objects(distances, state)
        swaps.append((pair[0], pair[1], objective))

    return swaps


class PartitionAroundMedoids:
    """
    k-medoids clustering with the PAM BUILD and SWAP phases.

    Any dissimilarity works: give a metric name understood by
    sklearn.metrics.pairwise_distances, or metric="precomputed" and pass
    an n x n distance matrix to fit().

    labels_ holds, for every object, the index of its medoid (not a 0..k-1
    cluster number), so labels_[m] == m for every medoid m.
    """

    def __init__(self, k, metric="euclidean", max_iter=300, tol=1e-9):
        self.k = k
        self.metric = metric
        self.max_iter = max_iter
        self.tol = tol

        self.medoid_indices_ = None
        self.medoids_ = None
        self.labels_ = None
        self.inertia_ = None
        self.result_ = None
        self.n_iter_ = 0
        self.build_time_ = 0
        self.swap_time_ = 0

        self.cost_history_ = []   # objective after BUILD, then after each swap
        self.swap_history_ = []   # (old medoid, new medoid) per applied swap

    def _check_partitions(self, n):
        if self.k < 2:
            raise ValueError(f"fewer than two partitions requested (k={self.k})")
        if n < self.k:
            raise ValueError(f"not enough observations for k partitions (k={self.k}, n={n})")

    def fit(self, X):
        # validate before paying O(n^2) for the distance matrix
        self._check_partitions(len(X))
        distances = distance_matrix(X, metric=self.metric)

        t0 = time.time()
        state = build(self.k, distances)
        self.build_time_ = time.time() - t0
        self.cost_history_ = [total_dissimilarity(distances, state.classification)]

        t0 = time.time()
        swaps = refine(distances, state, max_iter=self.max_iter, tol=self.tol)
        self.swap_time_ = time.time() - t0

        self.swap_history_ = [(old, new) for old, new, _ in swaps]
        self.cost_history_ += [objective for _, _, objective in swaps]
        self.n_iter_ = len(swaps)

        self.medoid_indices_ = np.array(state.medoids, dtype=int)
        self.labels_ = state.classification.copy()
        self.inertia_ = total_dissimilarity(distances, self.labels_)
        if self.metric != "precomputed":
            self.medoids_ = check_array(X, dtype=np.float64)[self.medoid_indices_]

        self.result_ = PAMResult(
            medoids=frozenset(int(m) for m in state.medoids),
            classification=tuple(int(m) for m in state.classification),
            total_dissimilarity=self.inertia_,
        )
        return self

    def predict(self, X):
        """
        Medoid index of the nearest training medoid for every row of X.

        With metric="precomputed", X holds distances from the new objects
        to every training object (shape n_new x n_train).
        """
        if self.result_ is None:
            raise ValueError("Call fit() before predict().")

        if self.metric == "precomputed":
            D = check_array(X, dtype=np.float64)[:, self.medoid_indices_]
        else:
            D = distances_to(X, self.medoids_, metric=self.metric)
        return self.medoid_indices_[np.argmin(D, axis=1)]

    def get_performance_stats(self):
        return {
            'n_iterations': self.n_iter_,
            'build_time':   self.build_time_,
            'swap_time':    self.swap_time_,
            'total_time':   self.build_time_ + self.swap_time_,
            'inertia':      self.inertia_,
        }


def partition_around_medoids(k, observations, metric="euclidean", max_iter=300, tol=1e-9):
    """
    Cluster the rows of observations around k medoids.

    Raises ValueError if k < 2 or there are fewer than k observations;
    both are checked before any distance is computed.
    """
    model = PartitionAroundMedoids(k, metric=metric, max_iter=max_iter, tol=tol)
    return model.fit(observations).result_
