#!/usr/bin/env python3
# dissimilarity.py
"""
Dissimilarity input handling and the live-cluster dissimilarity store.

The store keeps a dense N x N matrix (O(n^2) memory) addressed by slot. Cluster ids are
mapped onto slots; when two clusters merge, the new cluster takes over the slot of the
lower-id parent and the other slot is retired. Rows of retired slots are filled with +inf
so they never win a minimum search.

Doxygen-style docstrings are used (with @param / @return tags).
"""

import logging
from typing import Dict, Iterable, List, Mapping, Tuple
import numpy as np
from scipy.spatial.distance import squareform

from constrained_hclust.errors import InvalidInput, UnknownPair
from constrained_hclust.methods import LinkageMethod, lance_williams_update

__all__ = [
    "compute_pairwise_distances",
    "as_dissimilarity_matrix",
    "DissimilarityStore",
]

logger = logging.getLogger(__name__)


def compute_pairwise_distances(X: np.ndarray) -> np.ndarray:
    """
    Compute full pairwise Euclidean distance matrix for rows of X.

    @param X: 2D array, shape (n_samples, n_features). Rows are observations.
    @return: 2D array D shape (n_samples, n_samples) where D[i, j] is the Euclidean
             distance between X[i] and X[j]. The diagonal entries are zero.
    """
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise InvalidInput("X must be a 2D array (n_samples, n_features).")
    sq = np.sum(X * X, axis=1, keepdims=True)  # (n,1)
    D2 = sq + sq.T - 2.0 * (X @ X.T)
    # rounding can leave tiny negatives
    D2[D2 < 0] = 0.0
    D = np.sqrt(D2, dtype=float)
    np.fill_diagonal(D, 0.0)
    return D


def as_dissimilarity_matrix(d, atol: float = 1e-9, rtol: float = 1e-12) -> np.ndarray:
    """
    Validate a dissimilarity source and return it as a square float matrix.

    @param d: square (n, n) matrix, or a SciPy-style condensed vector of length n(n-1)/2
    @param atol: absolute tolerance for the symmetry check
    @param rtol: relative tolerance for the symmetry check
    @return: new (n, n) float array; the diagonal is set to 0
    @raises InvalidInput: wrong shape, non-finite or negative values, asymmetry, n < 1
    """
    try:
        arr = np.asarray(d, dtype=float)
    except (TypeError, ValueError) as exc:
        raise InvalidInput("dissimilarities must be a numeric matrix or condensed vector") from exc
    if arr.ndim == 1:
        if arr.size == 0:
            # a condensed vector of length 0 describes a single observation
            return np.zeros((1, 1), dtype=float)
        try:
            arr = squareform(arr, force="tomatrix", checks=False)
        except ValueError as exc:
            raise InvalidInput(f"condensed dissimilarity vector has invalid length {arr.size}") from exc
    elif arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
        raise InvalidInput(f"dissimilarity matrix must be square, got shape {arr.shape}")

    n = arr.shape[0]
    if n < 1:
        raise InvalidInput("at least one observation is required")

    arr = np.array(arr, dtype=float, copy=True)
    np.fill_diagonal(arr, 0.0)
    if not np.all(np.isfinite(arr)):
        raise InvalidInput("dissimilarities must be finite")
    if np.any(arr < 0):
        raise InvalidInput("dissimilarities must be non-negative")
    if not np.allclose(arr, arr.T, rtol=rtol, atol=atol):
        raise InvalidInput("dissimilarity matrix is not symmetric")
    # average out round-off so both triangles agree exactly
    return (arr + arr.T) / 2.0


class DissimilarityStore:
    """
    Current dissimilarities between live clusters.

    @param D: validated (n, n) dissimilarity matrix; it is copied, not referenced
    """

    def __init__(self, D: np.ndarray):
        D = np.array(D, dtype=float, copy=True)
        n = D.shape[0]
        np.fill_diagonal(D, np.inf)
        self._D = D
        self._slot: Dict[int, int] = {i: i for i in range(n)}
        self._slot_ids = np.arange(n, dtype=int)  # slot -> live id, -1 when retired
        self._active = np.ones(n, dtype=bool)

    def __len__(self) -> int:
        return len(self._slot)

    def __contains__(self, cluster_id: int) -> bool:
        return cluster_id in self._slot

    def live_ids(self) -> List[int]:
        return sorted(self._slot)

    def _slots(self, a: int, b: int) -> Tuple[int, int]:
        if a == b or a not in self._slot or b not in self._slot:
            raise UnknownPair(a, b)
        return self._slot[a], self._slot[b]

    def get(self, a: int, b: int) -> float:
        """
        @param a: live cluster id
        @param b: live cluster id, b != a
        @return: d(a, b)
        @raises UnknownPair: if either id is not live, or a == b
        """
        sa, sb = self._slots(a, b)
        return float(self._D[sa, sb])

    def distances_from(self, a: int, ids: Iterable[int]) -> np.ndarray:
        """Vector of d(a, k) for each k in ids."""
        ids = list(ids)
        if a not in self._slot:
            raise UnknownPair(a, ids[0] if ids else a)
        cols = []
        for k in ids:
            if k == a or k not in self._slot:
                raise UnknownPair(a, k)
            cols.append(self._slot[k])
        return self._D[self._slot[a], cols].copy()

    def global_min_pair(self) -> Tuple[float, int, int]:
        """
        Minimum dissimilarity over all live pairs.

        Ties are broken by the lowest (a, b) id pair with a < b.

        @return: tuple (distance, a, b)
        @raises UnknownPair: fewer than two clusters are live
        """
        if len(self._slot) < 2:
            raise UnknownPair(-1, -1)
        # retired slots and the diagonal hold +inf, so the full matrix can be scanned in place
        best = self._D.min()
        rows, cols = np.nonzero(self._D == best)
        pairs = []
        for r, c in zip(rows, cols):
            a = int(self._slot_ids[r])
            b = int(self._slot_ids[c])
            if a < b:
                pairs.append((a, b))
        a, b = min(pairs)
        return float(best), a, b

    def update_after_merge(self, a: int, b: int, new_id: int,
                           method: LinkageMethod,
                           sizes: Mapping[int, int]) -> Dict[int, float]:
        """
        Replace clusters a and b by new_id and fold the matrix with the Lance-Williams update.

        Negative results are clamped to 0.0; the affected clusters and their unclamped
        values are returned so the caller can report them.

        @param a: live cluster id
        @param b: live cluster id
        @param new_id: id of the merged cluster; must not be live
        @param method: LinkageMethod
        @param sizes: observation counts of the live clusters (must contain a, b and every other live id)
        @return: dict k -> d(new_id, k) for every k whose value was negative before clamping
        """
        sa, sb = self._slots(a, b)
        if new_id in self._slot:
            raise ValueError(f"cluster id {new_id} is already live")

        act_idx = np.flatnonzero(self._active)
        others = act_idx[(act_idx != sa) & (act_idx != sb)]
        other_ids = self._slot_ids[others]

        D = self._D
        if others.size:
            n_k = np.array([sizes[int(k)] for k in other_ids], dtype=float)
            d_new = lance_williams_update(method, D[sa, others], D[sb, others], D[sa, sb],
                                          sizes[a], sizes[b], n_k)
            negative = d_new < 0
            clamped = {int(k): float(v) for k, v in zip(other_ids[negative], d_new[negative])}
            if clamped:
                logger.warning("clamping %d negative dissimilarities from cluster %d (min %.6g)",
                               len(clamped), new_id, min(clamped.values()))
                d_new = np.where(negative, 0.0, d_new)
        else:
            d_new = np.empty(0, dtype=float)
            clamped = {}

        keep, drop = (sa, sb) if a < b else (sb, sa)
        D[keep, others] = d_new
        D[others, keep] = d_new

        # retire the other slot
        D[drop, :] = np.inf
        D[:, drop] = np.inf
        self._active[drop] = False
        self._slot_ids[drop] = -1
        self._slot_ids[keep] = new_id
        del self._slot[a]
        del self._slot[b]
        self._slot[new_id] = keep
        return clamped
