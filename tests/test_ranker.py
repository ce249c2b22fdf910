"""Tests for similarity scoring and ranking."""

from __future__ import annotations

import math

import pytest

from semantic_find.content import TextChunk
from semantic_find.errors import DimensionMismatchError
from semantic_find.search import rank, similarity


def _chunk(index: int, embedding: list[float] | None) -> TextChunk:
    return TextChunk(
        id=f"chunk_{index}",
        text=f"text {index}",
        source_ref=None,
        dom_path="body > p",
        position=index,
        embedding=embedding,
    )


def test_similarity_of_vector_with_itself_is_one() -> None:
    assert math.isclose(similarity([0.3, -1.2, 4.0], [0.3, -1.2, 4.0]), 1.0)


def test_similarity_with_zero_vector_is_exactly_zero() -> None:
    assert similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
    assert similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0]) == 0.0


def test_similarity_of_orthogonal_and_opposite_vectors() -> None:
    assert similarity([1.0, 0.0], [0.0, 1.0]) == 0.0
    assert math.isclose(similarity([1.0, 0.0], [-2.0, 0.0]), -1.0)


def test_similarity_ignores_magnitude() -> None:
    assert math.isclose(similarity([1.0, 1.0], [10.0, 10.0]), 1.0)


def test_similarity_rejects_mismatched_dimensions() -> None:
    with pytest.raises(DimensionMismatchError, match="3 != 2"):
        similarity([1.0, 2.0, 3.0], [1.0, 2.0])


def test_rank_orders_by_descending_score_and_applies_threshold() -> None:
    query = [1.0, 0.0]
    chunks = [
        _chunk(0, [0.0, 1.0]),  # 0.0
        _chunk(1, [1.0, 1.0]),  # ~0.707
        _chunk(2, [1.0, 0.0]),  # 1.0
        _chunk(3, [1.0, 3.0]),  # ~0.316
        _chunk(4, [1.0, 4.0]),  # ~0.243
    ]

    results = rank(query, chunks, threshold=0.3)

    assert [result.chunk.id for result in results] == ["chunk_2", "chunk_1", "chunk_3"]
    scores = [result.score for result in results]
    assert scores == sorted(scores, reverse=True)
    assert all(score > 0.3 for score in scores)


def test_rank_truncates_to_top_k() -> None:
    chunks = [_chunk(index, [1.0, index / 10]) for index in range(8)]

    results = rank([1.0, 0.0], chunks, top_k=3)

    assert len(results) == 3
    assert [result.chunk.id for result in results] == ["chunk_0", "chunk_1", "chunk_2"]


def test_rank_breaks_ties_by_chunk_order() -> None:
    chunks = [_chunk(index, [2.0, 0.0]) for index in range(4)]

    results = rank([1.0, 0.0], chunks)

    assert [result.order for result in results] == [0, 1, 2, 3]


def test_rank_skips_chunks_without_embeddings() -> None:
    chunks = [_chunk(0, None), _chunk(1, [1.0, 0.0]), _chunk(2, None)]

    results = rank([1.0, 0.0], chunks)

    assert [result.chunk.id for result in results] == ["chunk_1"]


def test_rank_scores_never_exceed_one() -> None:
    vector = [0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7]
    results = rank(vector, [_chunk(0, list(vector))])

    assert results[0].score <= 1.0


def test_new_results_are_unresolved() -> None:
    result = rank([1.0], [_chunk(0, [1.0])])[0]

    assert result.element is None
    assert result.navigable is False
    assert result.vertical_position == math.inf
