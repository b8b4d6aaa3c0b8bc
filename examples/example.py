from constrained_hclust.clustering import agglomerative, constrained_hclust
from constrained_hclust.contiguity import chain_edges
from constrained_hclust.dissimilarity import compute_pairwise_distances

if __name__ == "__main__":
    # Example dataset: points along a transect, in sampling order
    X = [
        [1.0, 0.0],
        [9.0, 1.0],
        [1.0, 1.0],
        [6.0, 2.0],
        [5.0, 6.0],
    ]

    # Unconstrained clustering
    clusters, _ = agglomerative(X, n_clusters=3, linkage="average")
    for data, cluster in zip(X, clusters):
        print(f"Data point: {data}, Cluster: {cluster}")

    # Only consecutive samples may be grouped
    result = constrained_hclust(compute_pairwise_distances(X), edges=chain_edges(len(X)), method="ward_d2")
    for record in result.records:
        print(record)
    print("3 groups along the transect:", result.cut(3))
