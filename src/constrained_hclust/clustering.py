#!/usr/bin/env python3
# clustering.py
"""
Constrained hierarchical agglomerative clustering.

The merge loop keeps a heap of (distance, a, b) entries for contiguity-eligible cluster
pairs and pops the smallest one at each step. Cluster ids are never reused, so an entry
whose clusters are both still live is always current; entries involving merged clusters
are dropped lazily when popped. When the heap runs dry while several clusters remain
(the contiguity graph is disconnected), the globally closest pair is merged instead and
the merge is flagged as hybrid. From the first hybrid merge on, a second heap over all live
pairs serves those forced merges, so each one costs a heap pop rather than a matrix scan.

Ties are broken by the heap tuple order: among equal distances the pair with the lowest
first id wins, then the lowest second id. Older clusters therefore merge before newer ones.

Doxygen-style docstrings are used (with @param / @return tags).
"""

import heapq
import logging
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple
import numpy as np

from constrained_hclust.contiguity import ContiguityGraph
from constrained_hclust.dendrogram import Dendrogram, MergeRecord
from constrained_hclust.dissimilarity import (
    DissimilarityStore,
    as_dissimilarity_matrix,
    compute_pairwise_distances,
)
from constrained_hclust.errors import (
    ClusteringAborted,
    ClusteringWarning,
    DisconnectedConstraintWarning,
    InvalidInput,
    NegativeDissimilarityWarning,
)
from constrained_hclust.methods import LinkageMethod, parse_method

__all__ = [
    "ClusteringResult",
    "pair_to_heap_entries",
    "extract_min_pair",
    "run_agglomeration",
    "constrained_hclust",
    "agglomerative",
]

logger = logging.getLogger(__name__)

HeapEntry = Tuple[float, int, int]


class ClusteringResult(NamedTuple):
    """Complete dendrogram of one run plus the anomalies met on the way."""

    dendrogram: Dendrogram
    method: LinkageMethod
    warnings: Tuple[ClusteringWarning, ...] = ()

    @property
    def records(self) -> Tuple[MergeRecord, ...]:
        return self.dendrogram.records

    def cut(self, k: int) -> np.ndarray:
        return self.dendrogram.cut(k)

    def to_linkage_matrix(self) -> np.ndarray:
        return self.dendrogram.to_linkage_matrix()


def pair_to_heap_entries(store: DissimilarityStore,
                         pairs: Iterable[Tuple[int, int]]) -> List[HeapEntry]:
    """
    Create heap entries (distance, a, b) with a < b for the given live pairs,
    and heapify them for efficient pop-min.

    @param store: dissimilarity store holding every id in pairs
    @param pairs: iterable of (a, b) cluster id pairs
    @return: list suitable for heapq operations (heapified).
    """
    entries: List[HeapEntry] = []
    for a, b in pairs:
        if a > b:
            a, b = b, a
        entries.append((store.get(a, b), a, b))
    heapq.heapify(entries)
    return entries


def extract_min_pair(heap: List[HeapEntry], store: DissimilarityStore) -> Optional[HeapEntry]:
    """
    Pop from heap until an entry whose clusters are both live is found.

    @param heap: heap list managed with heapq
    @param store: dissimilarity store; defines which ids are live
    @return: tuple (distance, a, b), or None when the heap holds no live pair
    """
    while heap:
        dist, a, b = heapq.heappop(heap)
        if a in store and b in store:
            return dist, a, b
    return None


def run_agglomeration(store: DissimilarityStore,
                      graph: ContiguityGraph,
                      method: LinkageMethod,
                      abort: Optional[Callable[[], bool]] = None
                      ) -> Tuple[Dendrogram, List[ClusteringWarning]]:
    """
    Merge clusters until one is left.

    The store and graph are consumed: on return they describe the single root cluster.

    @param store: store over observations 0..n-1
    @param graph: contiguity graph over the same observations
    @param method: LinkageMethod used for the updates
    @param abort: optional callable polled before every merge; returning True stops the run
    @return: tuple (dendrogram, warnings)
    @raises ClusteringAborted: if abort() returned True
    """
    n = len(store)
    dendrogram = Dendrogram(n)
    warnings: List[ClusteringWarning] = []
    sizes: Dict[int, int] = {i: 1 for i in range(n)}
    heap = pair_to_heap_entries(store, graph.eligible_pairs())
    global_heap: Optional[List[HeapEntry]] = None
    disconnected_reported = False

    while len(store) > 1:
        if abort is not None and abort():
            raise ClusteringAborted(f"aborted after {len(dendrogram)} of {n - 1} merges")

        step = len(dendrogram)
        entry = extract_min_pair(heap, store)
        hybrid = entry is None
        if hybrid:
            if graph.has_any_eligible_pair(store.live_ids()):
                raise RuntimeError("Heap exhausted while eligible pairs remain.")
            if global_heap is None:
                live = store.live_ids()
                global_heap = pair_to_heap_entries(
                    store, ((a, b) for idx, a in enumerate(live) for b in live[idx + 1:]))
            entry = extract_min_pair(global_heap, store)
            if not disconnected_reported:
                n_comp = graph.n_components()
                warnings.append(DisconnectedConstraintWarning(step, n_comp))
                logger.warning("contiguity graph has %d components; forcing hybrid merges", n_comp)
                disconnected_reported = True
        dist, a, b = entry

        new_id = dendrogram.next_id
        sizes[new_id] = sizes[a] + sizes[b]
        negative = store.update_after_merge(a, b, new_id, method, sizes)
        if negative:
            warnings.append(NegativeDissimilarityWarning(
                step, new_id, sorted(negative), min(negative.values())))
        del sizes[a]
        del sizes[b]

        neighbors = graph.merge(a, b, new_id)
        if neighbors:
            ids = sorted(neighbors)
            for k, d in zip(ids, store.distances_from(new_id, ids)):
                heapq.heappush(heap, (float(d), k, new_id))
        if global_heap is not None and len(store) > 1:
            ids = [k for k in store.live_ids() if k != new_id]
            for k, d in zip(ids, store.distances_from(new_id, ids)):
                heapq.heappush(global_heap, (float(d), k, new_id))

        height = float(np.sqrt(dist)) if method.squared_input else dist
        dendrogram.append(a, b, height, hybrid)
        logger.debug("merge %d: %d + %d -> %d at %.6g%s", step, a, b, new_id, height,
                     " (hybrid)" if hybrid else "")

    return dendrogram, warnings


def constrained_hclust(d,
                       edges=None,
                       method="ward",
                       beta: Optional[float] = None,
                       abort: Optional[Callable[[], bool]] = None) -> ClusteringResult:
    """
    Hierarchical clustering of n observations, optionally under a contiguity constraint.

    @param d: dissimilarities, square (n, n) or SciPy condensed vector
    @param edges: optional iterable of (i, j) observation pairs allowed to be adjacent;
                  None clusters without constraint
    @param method: one of 'single', 'complete', 'average', 'weighted', 'centroid',
                   'median', 'ward', 'ward_d2', 'flexible' (or an alias)
    @param beta: parameter of the flexible method (default -0.25)
    @param abort: optional callable polled before every merge
    @return: ClusteringResult holding the complete dendrogram (n - 1 merge records)
    @raises InvalidInput: invalid dissimilarities, edges or method; nothing is merged
    @raises ClusteringAborted: abort() returned True; no partial dendrogram is returned
    """
    linkage = parse_method(method, beta)
    D = as_dissimilarity_matrix(d)
    n = D.shape[0]
    graph = ContiguityGraph(n, edges)
    if linkage.squared_input:
        D = D * D

    logger.info("clustering %d observations with %s linkage (%s)", n, linkage.name,
                "constrained, %d edges" % len(graph.edges) if graph.constrained else "unconstrained")
    dendrogram, warnings = run_agglomeration(DissimilarityStore(D), graph, linkage, abort)
    logger.info("finished %d merges, %d hybrid", len(dendrogram), int(dendrogram.hybrid_mask().sum()))
    return ClusteringResult(dendrogram, linkage, tuple(warnings))


def agglomerative(X: np.ndarray,
                  n_clusters: int = 1,
                  linkage: str = "average",
                  return_linkage: bool = False,
                  edges=None,
                  beta: Optional[float] = None) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Perform agglomerative clustering on data matrix X using Euclidean distances.

    @param X: data matrix shape (n_samples, n_features)
    @param n_clusters: desired number of clusters (1 <= n_clusters <= n_samples)
    @param linkage: Lance-Williams method name, see constrained_hclust
    @param return_linkage: if True, also return SciPy-style linkage matrix Z shape (n-1, 4)
                           with rows [idx1, idx2, dist, new_cluster_size]
    @param edges: optional contiguity edge list over the rows of X
    @param beta: parameter of the flexible method

    @return: tuple (labels, linkage_matrix_or_None)
        - labels: integer array shape (n_samples,) with labels 0..(n_clusters-1)
        - linkage_matrix_or_None: np.ndarray shape (n-1, 4) if return_linkage else None
    """
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise InvalidInput("X must be a 2D array (n_samples, n_features).")
    n = X.shape[0]
    if not (1 <= n_clusters <= n):
        raise InvalidInput("n_clusters must be between 1 and n_samples.")

    result = constrained_hclust(compute_pairwise_distances(X), edges=edges, method=linkage, beta=beta)
    labels = result.cut(n_clusters)
    if return_linkage:
        return labels, result.to_linkage_matrix()
    return labels, None
