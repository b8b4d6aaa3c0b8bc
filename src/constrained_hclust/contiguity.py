#!/usr/bin/env python3
# contiguity.py
"""
Contiguity constraint between clusters.

Two clusters are eligible to merge when at least one observation of one shares an edge
with at least one observation of the other. The relation is kept per live cluster as a
set of neighbour ids; a merge folds the smaller neighbour set into the larger one and
relabels every neighbour of the result, so it costs O(|N(a)| + |N(b)|) rather than a
rebuild of the whole relation.
Without an edge list every pair is eligible.
"""

import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple
import numpy as np
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components

from constrained_hclust.errors import InvalidInput

__all__ = ["chain_edges", "as_edge_array", "ContiguityGraph"]

logger = logging.getLogger(__name__)


def chain_edges(n: int) -> np.ndarray:
    """
    Edges (i, i + 1) for n observations laid out along a sequence.

    Clustering under this constraint only ever joins consecutive runs, as in
    chronological or along-transect clustering.
    """
    if n < 0:
        raise InvalidInput("n must be non-negative")
    idx = np.arange(max(n - 1, 0), dtype=int)
    return np.column_stack([idx, idx + 1])


def as_edge_array(edges, n: int) -> np.ndarray:
    """
    Validate an edge list over n observations.

    @param edges: iterable of (i, j) pairs of observation indices
    @param n: number of observations
    @return: int array of shape (m, 2) with i < j, self-loops and duplicates removed
    @raises InvalidInput: malformed pairs, non-integer or out-of-range indices
    """
    if not isinstance(edges, np.ndarray):
        # zip objects, generators and sets do not convert to a 2-D array directly
        try:
            edges = list(edges)
        except TypeError as exc:
            raise InvalidInput("edges must be an iterable of (i, j) pairs") from exc
    try:
        arr = np.asarray(edges)
    except ValueError as exc:
        raise InvalidInput("edges must be (i, j) pairs") from exc
    if arr.size == 0:
        return np.empty((0, 2), dtype=int)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise InvalidInput(f"edges must be (i, j) pairs, got shape {arr.shape}")
    if not np.issubdtype(arr.dtype, np.integer):
        as_int = arr.astype(int) if np.issubdtype(arr.dtype, np.number) else None
        if as_int is None or not np.array_equal(as_int, arr):
            raise InvalidInput("edge endpoints must be integer observation indices")
        arr = as_int
    arr = arr.astype(int)
    if np.any(arr < 0) or np.any(arr >= n):
        bad = arr[(arr < 0).any(axis=1) | (arr >= n).any(axis=1)][0]
        raise InvalidInput(f"edge ({bad[0]}, {bad[1]}) references an observation outside 0..{n - 1}")
    arr = np.sort(arr, axis=1)
    arr = arr[arr[:, 0] != arr[:, 1]]
    if arr.size == 0:
        return np.empty((0, 2), dtype=int)
    return np.unique(arr, axis=0)


class ContiguityGraph:
    """
    Adjacency between live clusters.

    @param n: number of observations (leaf clusters 0..n-1)
    @param edges: optional edge list over observations; None means unconstrained
    """

    def __init__(self, n: int, edges=None):
        self.n = n
        self.constrained = edges is not None
        self._live: Set[int] = set(range(n))
        self._neighbors: Dict[int, Set[int]] = {}
        if self.constrained:
            self.edges = as_edge_array(edges, n)
            self._neighbors = {i: set() for i in range(n)}
            for i, j in self.edges:
                self._neighbors[int(i)].add(int(j))
                self._neighbors[int(j)].add(int(i))
        else:
            self.edges = None

    def n_components(self) -> int:
        """Number of connected components of the observation-level graph."""
        if not self.constrained or self.n == 0:
            return 1 if self.n else 0
        m = len(self.edges)
        graph = coo_matrix((np.ones(m), (self.edges[:, 0], self.edges[:, 1])), shape=(self.n, self.n))
        n_comp, _ = connected_components(graph, directed=False)
        return int(n_comp)

    def _check(self, a: int) -> None:
        if a not in self._live:
            raise KeyError(f"cluster {a} is not live")

    def are_adjacent(self, a: int, b: int) -> bool:
        self._check(a)
        self._check(b)
        if a == b:
            return False
        if not self.constrained:
            return True
        return b in self._neighbors[a]

    def neighbors(self, a: int) -> FrozenSet[int]:
        """Live clusters eligible to merge with a."""
        self._check(a)
        if not self.constrained:
            return frozenset(self._live - {a})
        return frozenset(self._neighbors[a])

    def eligible_pairs(self) -> List[Tuple[int, int]]:
        """All eligible (a, b) pairs with a < b."""
        live = sorted(self._live)
        if not self.constrained:
            return [(a, b) for idx, a in enumerate(live) for b in live[idx + 1:]]
        return sorted((a, b) for a in live for b in self._neighbors[a] if a < b)

    def has_any_eligible_pair(self, live_ids: Optional[Iterable[int]] = None) -> bool:
        ids = self._live if live_ids is None else live_ids
        if not self.constrained:
            return sum(1 for _ in ids) > 1
        return any(self._neighbors[a] for a in ids)

    def merge(self, a: int, b: int, new_id: int) -> FrozenSet[int]:
        """
        Replace a and b by new_id, whose neighbours are the union of theirs.

        Each neighbour of new_id has its own set relabelled.

        @return: neighbours of new_id
        """
        self._check(a)
        self._check(b)
        if a == b or new_id in self._live:
            raise ValueError(f"cannot merge {a} and {b} into {new_id}")
        self._live.discard(a)
        self._live.discard(b)
        self._live.add(new_id)
        if not self.constrained:
            return frozenset(self._live - {new_id})

        na = self._neighbors.pop(a)
        nb = self._neighbors.pop(b)
        if len(na) < len(nb):
            na, nb = nb, na
        na |= nb
        na.discard(a)
        na.discard(b)
        for k in na:
            kn = self._neighbors[k]
            kn.discard(a)
            kn.discard(b)
            kn.add(new_id)
        self._neighbors[new_id] = na
        logger.debug("cluster %d inherits %d neighbours from %d and %d", new_id, len(na), a, b)
        return frozenset(na)
