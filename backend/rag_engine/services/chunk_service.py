import math
from dataclasses import dataclass
from enum import Enum
from typing import List

from rag_engine.constants.embedding_models import (
    CHARS_PER_TOKEN,
    DEFAULT_CHUNK_OVERLAP_FRACTION,
    DEFAULT_CHUNK_SIZE_TOKENS,
)


SENTENCE_ENDINGS = (".", "!", "?")


class ChunkPosition(str, Enum):
    ONLY = "only"
    START = "start"
    MIDDLE = "middle"
    END = "end"


@dataclass
class TextChunk:
    """Data class representing a text chunk"""
    content: str
    chunk_index: int
    token_count: int
    position: ChunkPosition
    start_char: int
    end_char: int


def estimate_tokens(text: str) -> int:
    """Approximate token count from character length."""
    if not text:
        return 0
    return max(1, math.ceil(len(text) / CHARS_PER_TOKEN))


def normalize_whitespace(text: str) -> str:
    return " ".join((text or "").split())


class ChunkService:
    """
    Sliding-window chunker with sentence-aware break points.

    Windows are ``chunk_size_tokens * CHARS_PER_TOKEN`` characters long and
    consecutive windows overlap by ``overlap_fraction`` of that size. Near the
    end of each window the chunker looks for a sentence end, then a word
    boundary, before cutting hard at the window edge.
    """

    def __init__(self,
                 chunk_size_tokens: int = DEFAULT_CHUNK_SIZE_TOKENS,
                 overlap_fraction: float = DEFAULT_CHUNK_OVERLAP_FRACTION,
                 sentence_search_fraction: float = 0.2,
                 min_break_fraction: float = 0.5,
                 word_break_lookback: int = 50):
        self.chunk_size_tokens = chunk_size_tokens
        self.overlap_fraction = overlap_fraction
        self.sentence_search_fraction = sentence_search_fraction
        self.min_break_fraction = min_break_fraction
        self.word_break_lookback = word_break_lookback

    def chunk_text(self, text: str, chunk_size_tokens: int | None = None,
                   overlap_fraction: float | None = None) -> List[TextChunk]:
        """
        Split text into overlapping, token-bounded chunks.

        Args:
            text: Raw text; whitespace runs are collapsed first
            chunk_size_tokens: Target chunk size in estimated tokens
            overlap_fraction: Share of the window repeated in the next chunk

        Returns:
            List of TextChunk objects with contiguous zero-based chunk_index
        """
        chunk_size_tokens = self.chunk_size_tokens if chunk_size_tokens is None else chunk_size_tokens
        overlap_fraction = self.overlap_fraction if overlap_fraction is None else overlap_fraction
        if chunk_size_tokens <= 0:
            raise ValueError(f"Chunk size must be positive, got {chunk_size_tokens}")
        if not 0 <= overlap_fraction < 1:
            raise ValueError(f"Overlap fraction must be in [0, 1), got {overlap_fraction}")

        text = normalize_whitespace(text)
        if not text:
            return []

        target_chars = chunk_size_tokens * CHARS_PER_TOKEN
        if len(text) <= target_chars:
            return [TextChunk(content=text, chunk_index=0, token_count=estimate_tokens(text),
                              position=ChunkPosition.ONLY, start_char=0, end_char=len(text))]

        overlap_chars = int(target_chars * overlap_fraction)
        min_advance = max(int(target_chars * 0.5), 1)
        spans: list[tuple[int, int, str]] = []
        pos = 0

        while pos < len(text):
            end = min(pos + target_chars, len(text))
            if end < len(text):
                end = self._find_break_point(text, pos, end)

            content = text[pos:end].strip()
            if content:
                spans.append((pos, end, content))

            if end >= len(text):
                break

            next_pos = end - overlap_chars
            if next_pos <= pos:
                next_pos = pos + min_advance
            pos = next_pos

        return self._label(spans)

    def _find_break_point(self, text: str, pos: int, end: int) -> int:
        window = end - pos
        search_start = max(pos, end - int(window * self.sentence_search_fraction))
        min_break = pos + int(window * self.min_break_fraction)

        for i in range(end - 1, search_start - 1, -1):
            if text[i] in SENTENCE_ENDINGS and i + 1 < len(text) and text[i + 1].isspace():
                if i + 1 > min_break:
                    return i + 1
                break

        space = text.rfind(" ", max(pos, end - self.word_break_lookback), end)
        if space > pos:
            return space + 1

        return end

    @staticmethod
    def _label(spans: list[tuple[int, int, str]]) -> List[TextChunk]:
        chunks = []
        last = len(spans) - 1
        for index, (start, end, content) in enumerate(spans):
            if last == 0:
                position = ChunkPosition.ONLY
            elif index == 0:
                position = ChunkPosition.START
            elif index == last:
                position = ChunkPosition.END
            else:
                position = ChunkPosition.MIDDLE
            chunks.append(TextChunk(content=content, chunk_index=index,
                                    token_count=estimate_tokens(content), position=position,
                                    start_char=start, end_char=end))
        return chunks
