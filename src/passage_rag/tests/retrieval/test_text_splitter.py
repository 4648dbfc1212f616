import pytest

from passage_rag.common import Chunk
from passage_rag.retrieval.text_splitter import (
    TextChunker,
    overlap_word_count,
    split_text_into_chunks,
)


def _numbered_words(n: int) -> list[str]:
    """Distinct four-character words ``w000``, ``w001``, ..."""
    return [f"w{i:03d}" for i in range(n)]


def test_long_document_is_split_with_word_overlap():
    """
    500 four-character words (2499 characters) with the default settings
    should produce three chunks of at most 1000 characters, each later chunk
    starting with the last 20 words of its predecessor.
    """
    words = _numbered_words(500)
    text = " ".join(words)
    assert len(text) == 2499

    chunks = split_text_into_chunks(text, chunk_size=1000, overlap=200)

    assert len(chunks) == 3
    assert [c.index for c in chunks] == [0, 1, 2]
    assert [c.overlap_words for c in chunks] == [0, 20, 20]

    for chunk in chunks:
        assert 0 < len(chunk.text) <= 1000

    for prev, curr in zip(chunks, chunks[1:]):
        assert curr.text.split()[:20] == prev.text.split()[-20:]


def test_chunks_reconstruct_the_original_word_sequence():
    words = _numbered_words(500)
    chunks = split_text_into_chunks(" ".join(words), chunk_size=1000, overlap=200)

    rebuilt = chunks[0].text.split()
    for chunk in chunks[1:]:
        rebuilt.extend(chunk.text.split()[chunk.overlap_words:])

    assert rebuilt == words


def test_short_text_is_a_single_chunk_without_overlap():
    chunks = split_text_into_chunks("A short note about chunking.", chunk_size=1000, overlap=200)

    assert chunks == [Chunk(index=0, text="A short note about chunking.", overlap_words=0)]


def test_whitespace_runs_are_collapsed_to_single_spaces():
    chunks = split_text_into_chunks("  hello\n\nworld\t again  ", chunk_size=100, overlap=0)

    assert [c.text for c in chunks] == ["hello world again"]


@pytest.mark.parametrize("text", ["", "   ", "\n\t\n"])
def test_text_without_words_gives_no_chunks(text):
    assert split_text_into_chunks(text) == []


def test_overlap_words_are_dropped_to_stay_within_chunk_size():
    """
    With chunk_size=12 and three overlap words, carrying all three words plus
    the next word would exceed the budget, so the oldest overlap word is
    dropped instead.
    """
    chunks = split_text_into_chunks("aaa bbb ccc ddd eee", chunk_size=12, overlap=30)

    assert [c.text for c in chunks] == ["aaa bbb ccc", "bbb ccc ddd", "ccc ddd eee"]
    assert [c.overlap_words for c in chunks] == [0, 2, 2]
    assert all(len(c.text) <= 12 for c in chunks)


def test_word_longer_than_chunk_size_becomes_its_own_chunk():
    long_word = "x" * 50
    chunks = split_text_into_chunks(f"a {long_word} b", chunk_size=10, overlap=0)

    assert [c.text for c in chunks] == ["a", long_word, "b"]


def test_zero_overlap_produces_disjoint_chunks():
    chunks = split_text_into_chunks("one two three four five six", chunk_size=9, overlap=0)

    assert [c.text for c in chunks] == ["one two", "three", "four five", "six"]
    assert all(c.overlap_words == 0 for c in chunks)


@pytest.mark.parametrize(
    "overlap, expected",
    [(0, 0), (5, 1), (10, 1), (15, 2), (200, 20)],
)
def test_overlap_word_count(overlap, expected):
    assert overlap_word_count(overlap) == expected


def test_invalid_settings_are_rejected():
    with pytest.raises(ValueError):
        split_text_into_chunks("text", chunk_size=0)
    with pytest.raises(ValueError):
        split_text_into_chunks("text", overlap=-1)
    with pytest.raises(ValueError):
        TextChunker(chunk_size=0)


def test_text_chunker_is_callable():
    chunker = TextChunker(chunk_size=9, overlap=0)
    text = "one two three four five six"

    assert chunker(text) == chunker.split(text) == split_text_into_chunks(text, 9, 0)
