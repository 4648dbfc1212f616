import math

import numpy as np
import pytest

from passage_rag.retrieval.ranker import cosine_similarity, rank, similarity_scores


def _unit_with_cosine(score: float) -> list[float]:
    """2-D unit vector whose cosine similarity to ``[1, 0]`` is ``score``."""
    return [score, math.sqrt(1.0 - score * score)]


def test_cosine_similarity_basic_angles():
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-2.0, 0.0]) == pytest.approx(-1.0)


def test_cosine_similarity_ignores_magnitude():
    assert cosine_similarity([1.0, 1.0], [10.0, 10.0]) == pytest.approx(1.0)


def test_cosine_similarity_of_zero_vector_is_nan():
    assert math.isnan(cosine_similarity([0.0, 0.0], [1.0, 0.0]))


def test_cosine_similarity_rejects_dimension_mismatch():
    with pytest.raises(ValueError):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


def test_similarity_scores_match_pairwise_cosine():
    query = [0.3, -0.2, 0.9]
    vectors = [[1.0, 0.0, 0.0], [0.3, -0.2, 0.9], [0.5, 0.5, 0.5]]

    scores = similarity_scores(query, vectors)

    assert scores == pytest.approx([cosine_similarity(query, v) for v in vectors])


def test_similarity_scores_accept_numpy_input():
    scores = similarity_scores(np.array([1.0, 0.0]), np.array([[1.0, 0.0], [0.0, 1.0]]))

    assert scores == pytest.approx([1.0, 0.0])


def test_rank_returns_top_k_in_document_order():
    """
    Similarities [0.1, 0.9, 0.5, 0.8] with top_k=2 select chunks 1 and 3,
    returned in document order rather than by score.
    """
    vectors = [_unit_with_cosine(s) for s in (0.1, 0.9, 0.5, 0.8)]

    assert rank([1.0, 0.0], vectors, top_k=2) == [1, 3]


def test_rank_reorders_by_position_not_score():
    vectors = [_unit_with_cosine(s) for s in (0.2, 0.95, 0.3, 0.99, 0.1)]

    assert rank([1.0, 0.0], vectors, top_k=2) == [1, 3]


def test_rank_with_top_k_larger_than_input_returns_everything():
    vectors = [[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]]

    assert rank([1.0, 0.0], vectors, top_k=10) == [0, 1, 2]


def test_rank_with_non_positive_top_k_or_no_vectors_is_empty():
    assert rank([1.0, 0.0], [[1.0, 0.0]], top_k=0) == []
    assert rank([1.0, 0.0], [], top_k=5) == []


def test_rank_breaks_ties_by_earlier_index():
    vectors = [[1.0, 0.0], [2.0, 0.0], [3.0, 0.0]]

    assert rank([1.0, 0.0], vectors, top_k=2) == [0, 1]


def test_rank_treats_zero_vectors_as_least_similar():
    vectors = [[0.0, 0.0], [-1.0, 0.0]]

    assert rank([1.0, 0.0], vectors, top_k=1) == [1]
