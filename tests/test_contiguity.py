import numpy as np
import pytest
from constrained_hclust.contiguity import ContiguityGraph, as_edge_array, chain_edges
from constrained_hclust.errors import InvalidInput


def test_chain_edges():
    assert chain_edges(4).tolist() == [[0, 1], [1, 2], [2, 3]]
    assert chain_edges(1).shape == (0, 2)
    assert chain_edges(0).shape == (0, 2)


def test_as_edge_array_normalizes():
    """
    Pairs are ordered, self-loops dropped and duplicates removed.
    """
    edges = as_edge_array([(2, 1), (1, 2), (0, 0), (0, 3)], 4)
    assert edges.tolist() == [[0, 3], [1, 2]]
    assert as_edge_array([(0.0, 1.0)], 2).tolist() == [[0, 1]]
    assert as_edge_array([], 3).shape == (0, 2)


@pytest.mark.parametrize(
    "edges",
    [
        [(0, 5)],
        [(-1, 0)],
        [(0, 1, 2)],
        [(0, 1.5)],
        [("a", "b")],
        [(0, 1), (2,)],
    ],
)
def test_as_edge_array_rejects(edges):
    with pytest.raises(InvalidInput):
        as_edge_array(edges, 4)


def test_graph_merge_unions_neighbors():
    """
    Path 0-1-2-3: merging 1 and 2 gives a cluster adjacent to both ends.

    Checks:
    - adjacency before and after the merge
    - merged ids are gone
    - neighbours of the outer nodes point at the new id
    """
    graph = ContiguityGraph(4, chain_edges(4))
    assert graph.are_adjacent(0, 1)
    assert not graph.are_adjacent(0, 2)

    neighbors = graph.merge(1, 2, 4)
    assert neighbors == frozenset({0, 3})
    assert graph.are_adjacent(0, 4)
    assert graph.are_adjacent(4, 3)
    assert not graph.are_adjacent(0, 3)
    assert graph.neighbors(0) == frozenset({4})
    assert graph.eligible_pairs() == [(0, 4), (3, 4)]
    with pytest.raises(KeyError):
        graph.are_adjacent(1, 0)


def test_graph_merge_drops_internal_edge():
    graph = ContiguityGraph(3, [(0, 1), (1, 2), (0, 2)])
    assert graph.merge(0, 1, 3) == frozenset({2})
    assert graph.neighbors(3) == frozenset({2})
    assert graph.merge(2, 3, 4) == frozenset()
    assert not graph.has_any_eligible_pair()


def test_graph_disconnected_components():
    graph = ContiguityGraph(5, [(0, 1), (2, 3)])
    assert graph.n_components() == 3
    assert graph.has_any_eligible_pair()
    assert not graph.has_any_eligible_pair([4])

    graph.merge(0, 1, 5)
    graph.merge(2, 3, 6)
    assert not graph.has_any_eligible_pair()

    # a forced merge between components still unions their (empty) neighbourhoods
    assert graph.merge(4, 5, 7) == frozenset()


def test_graph_without_edges_is_constrained():
    graph = ContiguityGraph(3, [])
    assert graph.constrained
    assert graph.n_components() == 3
    assert graph.eligible_pairs() == []
    assert not graph.has_any_eligible_pair()


def test_unconstrained_graph():
    """
    Without an edge list every live pair is eligible.
    """
    graph = ContiguityGraph(4)
    assert not graph.constrained
    assert graph.n_components() == 1
    assert graph.eligible_pairs() == [(0, 1), (0, 2), (0, 3), (1, 2), (1, 3), (2, 3)]
    assert graph.are_adjacent(0, 3)

    assert graph.merge(0, 3, 4) == frozenset({1, 2})
    assert graph.neighbors(4) == frozenset({1, 2})
    graph.merge(1, 2, 5)
    assert graph.has_any_eligible_pair()
    graph.merge(4, 5, 6)
    assert not graph.has_any_eligible_pair()


def test_graph_merge_rejects_invalid():
    graph = ContiguityGraph(3, chain_edges(3))
    with pytest.raises(ValueError):
        graph.merge(0, 0, 3)
    with pytest.raises(ValueError):
        graph.merge(0, 1, 2)
    with pytest.raises(KeyError):
        graph.merge(0, 7, 3)


def test_graph_edges_out_of_range():
    with pytest.raises(InvalidInput):
        ContiguityGraph(3, np.array([[0, 3]]))


def test_as_edge_array_accepts_any_iterable():
    """
    Lazily produced edge lists are accepted.

    Checks:
    - zip objects
    - sets of tuples
    - generators
    """
    assert as_edge_array(zip(range(2), range(1, 3)), 3).tolist() == [[0, 1], [1, 2]]
    assert as_edge_array({(1, 2), (0, 1)}, 3).tolist() == [[0, 1], [1, 2]]
    assert as_edge_array(((i, i + 1) for i in range(2)), 3).tolist() == [[0, 1], [1, 2]]

    graph = ContiguityGraph(3, zip(range(2), range(1, 3)))
    assert graph.are_adjacent(0, 1)
    assert not graph.are_adjacent(0, 2)


def test_as_edge_array_rejects_non_iterable():
    with pytest.raises(InvalidInput):
        as_edge_array(5, 3)
