"""passage_rag.retrieval.text_splitter

Text splitting and chunking utilities for the retrieval layer.

Documents are split on whitespace into words, and words are packed into
chunks bounded by a character budget. Each chunk after the first starts with
a few tail words of the previous chunk so that context spanning a boundary is
not lost.

The overlap is sized in *words*, approximating ten characters per word
(``ceil(overlap / 10)`` words), not as an exact character count.

Classes
-------
TextChunker
    Callable splitter bound to a chunk size and overlap.

Functions
---------
split_text_into_chunks
    Split raw text into overlapping :class:`~passage_rag.common.schemas.Chunk` objects.
overlap_word_count
    Number of overlap words carried for a given character overlap.
"""

import math
from dataclasses import dataclass
from typing import List

from passage_rag.common import Chunk

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_OVERLAP = 200
CHARS_PER_OVERLAP_WORD = 10


def overlap_word_count(overlap: int) -> int:
    """Return the number of words carried between chunks for ``overlap`` characters."""
    return math.ceil(overlap / CHARS_PER_OVERLAP_WORD)


def _joined_length(words: List[str]) -> int:
    if not words:
        return 0
    return sum(len(w) for w in words) + len(words) - 1


def _fit_overlap(tail: List[str], next_word: str, chunk_size: int) -> List[str]:
    """Drop leading overlap words until ``tail + [next_word]`` fits ``chunk_size``."""
    tail = list(tail)
    while tail and _joined_length(tail) + 1 + len(next_word) > chunk_size:
        tail.pop(0)
    return tail


def split_text_into_chunks(
        text: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
    ) -> List[Chunk]:
    """Split text into overlapping, character-bounded chunks.

    Parameters
    ----------
    text : str
        Raw document text.
    chunk_size : int, optional
        Maximum chunk length in characters. Defaults to ``1000``.
    overlap : int, optional
        Approximate overlap in characters; converted to ``ceil(overlap / 10)``
        words. Defaults to ``200``.

    Returns
    -------
    list[Chunk]
        Chunks in reading order. Empty if ``text`` contains no words.

    Raises
    ------
    ValueError
        If ``chunk_size`` is smaller than 1 or ``overlap`` is negative.

    Notes
    -----
    - The overlap words count towards the character budget of the chunk they
      are carried into; leading overlap words are dropped when the overlap and
      the next word would not fit together.
    - A single word longer than ``chunk_size`` becomes a chunk of its own and
      is never split.
    - The trailing partial chunk is always emitted.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    if overlap < 0:
        raise ValueError(f"overlap must be >= 0, got {overlap}")

    words = text.split() if text else []
    n_overlap = overlap_word_count(overlap)

    chunks: List[Chunk] = []
    current: List[str] = []
    current_length = 0
    carried = 0

    for word in words:
        candidate = len(word) if not current else current_length + 1 + len(word)

        if current and candidate > chunk_size:
            chunks.append(Chunk(index=len(chunks), text=" ".join(current), overlap_words=carried))

            tail = current[-n_overlap:] if n_overlap else []
            tail = _fit_overlap(tail, word, chunk_size)

            current = tail + [word]
            carried = len(tail)
            current_length = _joined_length(current)
        else:
            current.append(word)
            current_length = candidate

    if current:
        chunks.append(Chunk(index=len(chunks), text=" ".join(current), overlap_words=carried))

    return chunks


@dataclass(frozen=True)
class TextChunker:
    """Splitter bound to a chunk size and overlap.

    Attributes
    ----------
    chunk_size : int
        Maximum chunk length in characters.
    overlap : int
        Approximate overlap in characters.
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    overlap: int = DEFAULT_OVERLAP

    def __post_init__(self):
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.overlap < 0:
            raise ValueError(f"overlap must be >= 0, got {self.overlap}")

    def split(self, text: str) -> List[Chunk]:
        """Split ``text`` with the configured chunk size and overlap."""
        return split_text_into_chunks(text, chunk_size=self.chunk_size, overlap=self.overlap)

    def __call__(self, text: str) -> List[Chunk]:
        return self.split(text)


__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_OVERLAP",
    "TextChunker",
    "overlap_word_count",
    "split_text_into_chunks",
]
