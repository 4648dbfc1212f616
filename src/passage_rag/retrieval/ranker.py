"""passage_rag.retrieval.ranker

Cosine-similarity ranking of chunk embeddings against a query embedding.

Selection is by similarity, but the returned indices are always in document
order: the top-K indices are re-sorted ascending before being returned.

Functions
---------
cosine_similarity
    Cosine of the angle between two vectors.
similarity_scores
    Cosine similarity of every chunk vector against a query vector.
rank
    Indices of the top-K most similar chunk vectors, in document order.
"""

import math
from typing import List, Sequence

import numpy as np


def _as_vector(values: Sequence[float]) -> np.ndarray:
    vec = np.asarray(values, dtype=np.float64)
    if vec.ndim != 1:
        raise ValueError(f"Expected a 1-D vector, got shape {vec.shape}")
    return vec


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine similarity of ``a`` and ``b``.

    Parameters
    ----------
    a, b : Sequence[float]
        Vectors of equal length.

    Returns
    -------
    float
        Similarity in ``[-1, 1]``, or ``nan`` if either vector has zero norm.

    Raises
    ------
    ValueError
        If the vectors differ in length.
    """
    va = _as_vector(a)
    vb = _as_vector(b)
    if va.shape != vb.shape:
        raise ValueError(f"Dimension mismatch: {va.shape[0]} != {vb.shape[0]}")

    denom = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denom == 0.0 or not math.isfinite(denom):
        return float("nan")

    return float(np.clip(np.dot(va, vb) / denom, -1.0, 1.0))


def similarity_scores(
        query_vector: Sequence[float],
        chunk_vectors: Sequence[Sequence[float]],
    ) -> List[float]:
    """Return the cosine similarity of each chunk vector against the query.

    Parameters
    ----------
    query_vector : Sequence[float]
        Query embedding.
    chunk_vectors : Sequence[Sequence[float]]
        Chunk embeddings, all with the query's dimensionality.

    Returns
    -------
    list[float]
        One score per chunk vector; ``nan`` for zero vectors.
    """
    if len(chunk_vectors) == 0:
        return []

    query = _as_vector(query_vector)
    matrix = np.asarray(chunk_vectors, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[1] != query.shape[0]:
        raise ValueError(
            f"Chunk vectors of shape {matrix.shape} do not match query dimension {query.shape[0]}"
        )

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = (matrix @ query) / norms
    scores = np.where(norms == 0.0, np.nan, np.clip(scores, -1.0, 1.0))
    return [float(s) for s in scores]


def _descending_key(score: float) -> float:
    # nan sorts after every real score.
    return math.inf if math.isnan(score) else -score


def rank(
        query_vector: Sequence[float],
        chunk_vectors: Sequence[Sequence[float]],
        top_k: int,
    ) -> List[int]:
    """Return the indices of the ``top_k`` most similar chunks, in document order.

    Parameters
    ----------
    query_vector : Sequence[float]
        Query embedding.
    chunk_vectors : Sequence[Sequence[float]]
        Chunk embeddings in document order.
    top_k : int
        Number of chunks to select.

    Returns
    -------
    list[int]
        Strictly increasing indices into ``chunk_vectors``, of length
        ``min(top_k, len(chunk_vectors))`` (``[]`` when ``top_k <= 0``).

    Notes
    -----
    Ties are broken by original index (the earlier chunk wins) since the
    descending sort is stable. Zero vectors score ``nan`` and are treated as
    least similar.
    """
    if top_k <= 0 or len(chunk_vectors) == 0:
        return []

    scores = similarity_scores(query_vector, chunk_vectors)
    by_similarity = sorted(range(len(scores)), key=lambda i: _descending_key(scores[i]))
    return sorted(by_similarity[:top_k])


__all__ = ["cosine_similarity", "similarity_scores", "rank"]
