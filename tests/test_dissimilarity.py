import numpy as np
import pytest
from scipy.spatial.distance import pdist
from constrained_hclust.dissimilarity import (
    DissimilarityStore,
    as_dissimilarity_matrix,
    compute_pairwise_distances,
)
from constrained_hclust.errors import InvalidInput, UnknownPair
from constrained_hclust.methods import parse_method


def test_pairwise_distances_basic_properties():
    """
    Verify basic mathematical properties of pairwise distances.

    Checks:
    - correct output shape
    - zeros on the diagonal
    - symmetry
    - correctness on a known example
    """
    X = np.array([[0, 0], [3, 4], [6, 8]])
    D = compute_pairwise_distances(X)

    assert D.shape == (3, 3)
    assert np.allclose(np.diag(D), 0)
    assert np.allclose(D, D.T)
    assert pytest.approx(D[0, 1]) == 5.0
    assert pytest.approx(D[1, 0]) == 5.0


def test_pairwise_distances_matches_scipy():
    rng = np.random.default_rng(0)
    X = rng.normal(size=(7, 3))
    D = compute_pairwise_distances(X)
    assert np.allclose(D, as_dissimilarity_matrix(pdist(X)), atol=1e-6)


def test_as_dissimilarity_matrix_accepts_condensed_and_square():
    square = np.array([[0.0, 1.0, 2.0],
                       [1.0, 0.0, 3.0],
                       [2.0, 3.0, 0.0]])
    assert np.array_equal(as_dissimilarity_matrix([1.0, 2.0, 3.0]), square)
    assert np.array_equal(as_dissimilarity_matrix(square), square)
    assert as_dissimilarity_matrix(np.zeros((1, 1))).shape == (1, 1)


def test_as_dissimilarity_matrix_ignores_diagonal():
    D = as_dissimilarity_matrix([[7.0, 1.0], [1.0, -3.0]])
    assert np.array_equal(np.diag(D), [0.0, 0.0])


@pytest.mark.parametrize(
    "bad",
    [
        np.zeros((0, 0)),
        np.zeros((2, 3)),
        np.zeros((2, 2, 2)),
        [1.0, 2.0],  # not a triangular number
        [[0.0, 1.0], [2.0, 0.0]],  # asymmetric
        [[0.0, -1.0], [-1.0, 0.0]],  # negative
        [[0.0, np.nan], [np.nan, 0.0]],
        [[0.0, np.inf], [np.inf, 0.0]],
        [[0.0, 1.0], [1.0]],  # ragged
        [["a", "b"], ["c", "d"]],
    ],
)
def test_as_dissimilarity_matrix_rejects(bad):
    with pytest.raises(InvalidInput):
        as_dissimilarity_matrix(bad)


def _store():
    D = as_dissimilarity_matrix([[0, 1, 5, 9],
                                 [1, 0, 4, 8],
                                 [5, 4, 0, 2],
                                 [9, 8, 2, 0]])
    return DissimilarityStore(D)


def test_store_get_and_unknown_pair():
    store = _store()
    assert len(store) == 4
    assert store.get(0, 1) == 1.0
    assert store.get(3, 2) == 2.0
    with pytest.raises(UnknownPair):
        store.get(0, 0)
    with pytest.raises(UnknownPair):
        store.get(0, 4)


def test_store_update_after_merge():
    """
    Merging 0 and 1 into 4 with average linkage.

    Checks:
    - merged ids are no longer live, the new one is
    - new row follows the Lance-Williams update, symmetric
    - untouched pairs keep their value
    """
    store = _store()
    sizes = {0: 1, 1: 1, 2: 1, 3: 1, 4: 2}
    clamped = store.update_after_merge(0, 1, 4, parse_method("average"), sizes)

    assert clamped == {}
    assert store.live_ids() == [2, 3, 4]
    assert 0 not in store and 1 not in store
    assert store.get(4, 2) == pytest.approx(4.5)
    assert store.get(2, 4) == pytest.approx(4.5)
    assert store.get(4, 3) == pytest.approx(8.5)
    assert store.get(2, 3) == 2.0
    with pytest.raises(UnknownPair):
        store.get(0, 2)
    assert np.allclose(store.distances_from(4, [2, 3]), [4.5, 8.5])


def test_store_rejects_live_new_id():
    store = _store()
    with pytest.raises(ValueError):
        store.update_after_merge(0, 1, 2, parse_method("single"), {0: 1, 1: 1, 2: 1, 3: 1})


def test_store_clamps_negative_updates():
    """
    Median linkage on a pair far apart relative to a third cluster goes negative.
    """
    D = as_dissimilarity_matrix([[0, 10, 1],
                                 [10, 0, 1],
                                 [1, 1, 0]])
    store = DissimilarityStore(D)
    clamped = store.update_after_merge(0, 1, 3, parse_method("median"), {0: 1, 1: 1, 2: 1, 3: 2})
    assert clamped == {2: pytest.approx(-1.5)}
    assert store.get(2, 3) == 0.0


def test_store_global_min_pair_ties():
    """
    Equal dissimilarities resolve to the lowest id pair.
    """
    D = as_dissimilarity_matrix([[0, 3, 2, 2],
                                 [3, 0, 2, 2],
                                 [2, 2, 0, 3],
                                 [2, 2, 3, 0]])
    store = DissimilarityStore(D)
    assert store.global_min_pair() == (2.0, 0, 2)

    store.update_after_merge(0, 2, 4, parse_method("single"), {0: 1, 1: 1, 2: 1, 3: 1, 4: 2})
    assert store.global_min_pair() == (2.0, 1, 3)


def test_store_global_min_pair_needs_two_clusters():
    store = DissimilarityStore(np.zeros((1, 1)))
    with pytest.raises(UnknownPair):
        store.global_min_pair()


def test_as_dissimilarity_matrix_symmetry_is_relative():
    """
    Round-off asymmetry on large values is tolerated and averaged away.
    """
    big = 1e8
    D = as_dissimilarity_matrix([[0.0, big], [np.nextafter(big, np.inf), 0.0]])
    assert D[0, 1] == D[1, 0]
    assert D[0, 1] == pytest.approx(big)

    with pytest.raises(InvalidInput):
        as_dissimilarity_matrix([[0.0, big], [big * 1.001, 0.0]])


def test_store_global_min_pair_skips_retired_slots():
    store = _store()
    sizes = {0: 1, 1: 1, 2: 1, 3: 1, 4: 2}
    store.update_after_merge(2, 3, 4, parse_method("complete"), sizes)
    # pair (0, 1) survives untouched; the retired slot of 3 must not win
    assert store.global_min_pair() == (1.0, 0, 1)
    store.update_after_merge(0, 1, 5, parse_method("complete"), {0: 1, 1: 1, 4: 2, 5: 2})
    assert store.global_min_pair() == (9.0, 4, 5)
