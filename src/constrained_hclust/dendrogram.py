#!/usr/bin/env python3
# dendrogram.py
"""
Merge history of an agglomerative clustering run.

Clusters live in an append-only arena: leaves take ids 0..n-1 and the cluster created by
the m-th merge takes id n + m, the same numbering SciPy uses for linkage matrices.
Insertion order of the merge records is the canonical traversal order; heights are kept
exactly as produced, inversions included.
"""

from typing import List, NamedTuple, Optional, Tuple
import numpy as np

from constrained_hclust.errors import InvalidInput

__all__ = ["Cluster", "MergeRecord", "Dendrogram"]


class Cluster(NamedTuple):
    id: int
    size: int
    left: Optional[int] = None
    right: Optional[int] = None
    height: float = 0.0

    @property
    def is_leaf(self) -> bool:
        return self.left is None


class MergeRecord(NamedTuple):
    left: int
    right: int
    height: float
    hybrid: bool = False


class Dendrogram:
    """
    Ordered merge records plus the cluster arena they describe.

    Args:
        n_observations (int): Number of leaves.
    """

    def __init__(self, n_observations: int):
        if n_observations < 1:
            raise InvalidInput("a dendrogram needs at least one observation")
        self.n_observations = n_observations
        self._clusters: List[Cluster] = [Cluster(i, 1) for i in range(n_observations)]
        self._records: List[MergeRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    @property
    def records(self) -> Tuple[MergeRecord, ...]:
        return tuple(self._records)

    @property
    def clusters(self) -> Tuple[Cluster, ...]:
        return tuple(self._clusters)

    @property
    def complete(self) -> bool:
        return len(self._records) == self.n_observations - 1

    @property
    def root(self) -> int:
        return len(self._clusters) - 1

    @property
    def next_id(self) -> int:
        return len(self._clusters)

    def append(self, left: int, right: int, height: float, hybrid: bool = False) -> int:
        """
        Record the merge of two existing clusters.

        Returns:
            int: Id of the new cluster.
        """
        n_clusters = len(self._clusters)
        if left == right or not (0 <= left < n_clusters and 0 <= right < n_clusters):
            raise ValueError(f"invalid merge ({left}, {right})")
        if self.complete:
            raise ValueError("dendrogram is already complete")
        if left > right:
            left, right = right, left
        new_id = n_clusters
        size = self._clusters[left].size + self._clusters[right].size
        self._clusters.append(Cluster(new_id, size, left, right, float(height)))
        self._records.append(MergeRecord(left, right, float(height), bool(hybrid)))
        return new_id

    def heights(self) -> np.ndarray:
        return np.array([r.height for r in self._records], dtype=float)

    def hybrid_mask(self) -> np.ndarray:
        return np.array([r.hybrid for r in self._records], dtype=bool)

    def inversions(self) -> List[int]:
        """Indices m where merge m is lower than merge m - 1."""
        h = self.heights()
        return [int(m) for m in np.flatnonzero(np.diff(h) < 0) + 1]

    def members(self, cluster_id: int) -> List[int]:
        """Sorted observation ids under cluster_id."""
        if not 0 <= cluster_id < len(self._clusters):
            raise KeyError(cluster_id)
        out = []
        stack = [cluster_id]
        while stack:
            c = self._clusters[stack.pop()]
            if c.is_leaf:
                out.append(c.id)
            else:
                stack.append(c.left)
                stack.append(c.right)
        return sorted(out)

    def order(self) -> List[int]:
        """Leaf order of the drawn tree, left child before right child."""
        if not self.complete:
            raise ValueError("leaf order needs a complete dendrogram")
        out = []
        stack = [self.root]
        while stack:
            c = self._clusters[stack.pop()]
            if c.is_leaf:
                out.append(c.id)
            else:
                stack.append(c.right)
                stack.append(c.left)
        return out

    def cut(self, k: int) -> np.ndarray:
        """
        Partition into k clusters by applying the first n - k merges in insertion order.

        Args:
            k (int): Number of clusters, 1 <= k <= n.

        Returns:
            np.ndarray: Labels of shape (n,), numbered 0..k-1 by first appearance.
        """
        n = self.n_observations
        if not self.complete:
            raise ValueError("cutting needs a complete dendrogram")
        if not 1 <= k <= n:
            raise InvalidInput(f"k must be between 1 and {n}, got {k}")

        # union-find over the arena ids used by the applied merges
        parent = list(range(n + (n - k)))

        def find(x: int) -> int:
            while parent[x] != x:
                parent[x] = parent[parent[x]]
                x = parent[x]
            return x

        for m, rec in enumerate(self._records[:n - k]):
            new_id = n + m
            parent[find(rec.left)] = new_id
            parent[find(rec.right)] = new_id

        labels = np.empty(n, dtype=int)
        seen = {}
        for obs in range(n):
            root = find(obs)
            labels[obs] = seen.setdefault(root, len(seen))
        return labels

    def to_linkage_matrix(self) -> np.ndarray:
        """
        SciPy-style linkage matrix Z shape (n-1, 4) with rows [left, right, height, size].

        Z can be handed to scipy.cluster.hierarchy.dendrogram and friends. Hybrid flags
        are not part of that layout; see hybrid_mask().
        """
        rows = [[float(r.left), float(r.right), r.height, float(self._clusters[self.n_observations + m].size)]
                for m, r in enumerate(self._records)]
        return np.array(rows, dtype=float).reshape(len(rows), 4)
