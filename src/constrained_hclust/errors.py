"""
Exceptions and warning records raised or collected during clustering.
"""

__all__ = [
    "ClusteringError",
    "InvalidInput",
    "UnknownPair",
    "ClusteringAborted",
    "ClusteringWarning",
    "NegativeDissimilarityWarning",
    "DisconnectedConstraintWarning",
]


class ClusteringError(Exception):
    """Base class for errors raised by constrained_hclust."""


class InvalidInput(ClusteringError, ValueError):
    """Malformed dissimilarities, edge list or method selection."""


class UnknownPair(ClusteringError, KeyError):
    """A dissimilarity was requested for a cluster that is not live."""

    def __init__(self, a: int, b: int):
        super().__init__(a, b)
        self.a = a
        self.b = b

    def __str__(self) -> str:
        return f"no live dissimilarity for pair ({self.a}, {self.b})"


class ClusteringAborted(ClusteringError, RuntimeError):
    """The abort hook asked the merge loop to stop."""


class ClusteringWarning(Warning):
    """Base class for anomalies recorded on a clustering result."""


class NegativeDissimilarityWarning(ClusteringWarning, RuntimeWarning):
    """
    An update produced negative dissimilarities, which were clamped to zero.

    @param step: 0-based merge index at which the values appeared
    @param cluster_id: id of the cluster created by that merge
    @param others: ids of the clusters whose dissimilarity went negative
    @param minimum: most negative value before clamping
    """

    def __init__(self, step: int, cluster_id: int, others, minimum: float):
        self.step = step
        self.cluster_id = cluster_id
        self.others = tuple(int(k) for k in others)
        self.minimum = float(minimum)
        super().__init__(
            f"merge {step}: {len(self.others)} negative dissimilarities from cluster "
            f"{cluster_id} clamped to 0 (min {self.minimum:.6g})"
        )


class DisconnectedConstraintWarning(ClusteringWarning, UserWarning):
    """The contiguity graph is disconnected; hybrid merges were forced."""

    def __init__(self, step: int, n_components: int):
        self.step = step
        self.n_components = n_components
        super().__init__(
            f"contiguity graph has {n_components} components; "
            f"forcing hybrid merges from merge {step} onwards"
        )
