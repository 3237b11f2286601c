"""Document chunker: separator-aware splits with a fixed-window alternative.

Chunks of one document form an overlapping, ordered cover of the source text.
Positions are character offsets into the text passed to ``split_into_chunks``;
``content`` is the stripped slice ``text[start_pos:end_pos]``.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", "! ", "? ")
PARAGRAPH_SEPARATORS: tuple[str, ...] = ("\n\n",)

# The fixed window only nudges its cut back this far looking for whitespace.
_WORD_BREAK_LOOKBACK = 50

_WHITESPACE_RUN_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ChunkConfig:
    """Chunking tunables. Sizes are in characters."""

    max_size: int = 800
    overlap: int = 100
    min_size: int = 50
    method: str = "sentence"  # sentence | paragraph | fixed
    separators: tuple[str, ...] = DEFAULT_SEPARATORS

    def __post_init__(self) -> None:
        if self.max_size < 1:
            raise ValueError("max_size must be >= 1")
        if not 0 <= self.overlap < self.max_size:
            raise ValueError("overlap must be in [0, max_size)")
        if self.min_size < 0:
            raise ValueError("min_size must be >= 0")
        if self.method not in _CHUNKERS:
            raise ValueError(
                f"unknown chunk method '{self.method}' (expected one of {', '.join(_CHUNKERS)})"
            )

    @property
    def budget(self) -> int:
        """Characters of new text per chunk; the overlap fills the rest."""
        return self.max_size - self.overlap


@dataclass(frozen=True)
class TextChunk:
    content: str
    start_pos: int
    end_pos: int
    token_count: int
    oversized: bool = False


class BaseChunker(ABC):
    """Abstract base for chunking strategies.

    Token counting uses a 4-chars-per-token approximation; no external
    tokenizer dependency is required.
    """

    def __init__(self, config: ChunkConfig) -> None:
        self.config = config

    @abstractmethod
    def split(self, text: str) -> list[TextChunk]:
        """Split *text* into ordered chunks. Whitespace-only text yields []."""

    @staticmethod
    def count_tokens(text: str) -> int:
        """Approximate token count: 4 characters ≈ 1 token."""
        return max(1, len(text) // 4)

    def _make_chunk(
        self, text: str, start: int, end: int, oversized: bool = False
    ) -> TextChunk:
        content = text[start:end].strip()
        return TextChunk(
            content=content,
            start_pos=start,
            end_pos=end,
            token_count=self.count_tokens(content),
            oversized=oversized,
        )


# ---------------------------------------------------------------------------
# Separator-based splitting (sentence / paragraph)
# ---------------------------------------------------------------------------


@dataclass
class _Span:
    start: int
    end: int
    oversized: bool = False


class SeparatorChunker(BaseChunker):
    """Recursive separator splitting, greedy merging, then backward overlap.

    Strategy:
    - Any span longer than the budget (``max_size - overlap``) is split on the
      highest-priority separator it contains, the separator staying with the
      preceding piece. Pieces still too long recurse with the remaining
      separators, then fall back to whitespace.
    - A run with no break point that exceeds the budget is kept whole and
      flagged ``oversized``.
    - Pieces are merged greedily into units of at most the budget.
    - Units shorter than ``min_size`` (after stripping) join a neighbour when
      the result still fits. Whitespace-only units are handed to neighbours
      under the same limit, split between both when neither fits alone.
    - Every unit after the first is extended back by up to ``overlap``
      characters, snapped forward to the start of a word, but always starts
      after the previous chunk does.
    """

    def __init__(self, config: ChunkConfig, separators: tuple[str, ...] | None = None) -> None:
        super().__init__(config)
        self.separators = tuple(
            s for s in (separators if separators is not None else config.separators) if s
        )

    def split(self, text: str) -> list[TextChunk]:
        if not text.strip():
            return []

        pieces = self._split_span(text, 0, len(text), self.separators)
        units = self._merge_pieces(pieces)
        units = self._absorb_small_units(text, units)
        units = self._absorb_blank_units(text, units)

        chunks: list[TextChunk] = []
        for i, unit in enumerate(units):
            start = unit.start
            if i > 0 and self.config.overlap > 0:
                start = self._overlap_start(text, unit.start, chunks[-1].start_pos + 1)
            chunks.append(self._make_chunk(text, start, unit.end, unit.oversized))
        return chunks

    def _split_span(
        self, text: str, start: int, end: int, separators: tuple[str, ...]
    ) -> list[_Span]:
        if end - start <= self.config.budget:
            return [_Span(start, end)]

        segment = text[start:end]
        for i, sep in enumerate(separators):
            if sep in segment:
                spans: list[_Span] = []
                for piece_start, piece_end in _cut_after(segment, sep, start):
                    spans.extend(
                        self._split_span(text, piece_start, piece_end, separators[i + 1 :])
                    )
                return spans

        return self._split_on_whitespace(text, start, end)

    def _split_on_whitespace(self, text: str, start: int, end: int) -> list[_Span]:
        segment = text[start:end]
        cuts = [start + m.end() for m in _WHITESPACE_RUN_RE.finditer(segment)]
        bounds = [start] + [c for c in cuts if start < c < end] + [end]
        spans: list[_Span] = []
        for piece_start, piece_end in zip(bounds, bounds[1:]):
            oversized = piece_end - piece_start > self.config.budget
            spans.append(_Span(piece_start, piece_end, oversized))
        return spans

    def _merge_pieces(self, pieces: list[_Span]) -> list[_Span]:
        budget = self.config.budget
        units: list[_Span] = []
        current: _Span | None = None
        for piece in pieces:
            if piece.oversized:
                if current is not None:
                    units.append(current)
                    current = None
                units.append(piece)
            elif current is not None and piece.end - current.start <= budget:
                current.end = piece.end
            else:
                if current is not None:
                    units.append(current)
                current = _Span(piece.start, piece.end)
        if current is not None:
            units.append(current)
        return units

    def _absorb_small_units(self, text: str, units: list[_Span]) -> list[_Span]:
        budget = self.config.budget
        min_size = self.config.min_size

        def small(unit: _Span) -> bool:
            return not unit.oversized and len(text[unit.start : unit.end].strip()) < min_size

        # Fold into the previous unit.
        merged: list[_Span] = []
        for unit in units:
            if merged and small(unit):
                prev = merged[-1]
                if not prev.oversized and unit.end - prev.start <= budget:
                    prev.end = unit.end
                    continue
            merged.append(unit)

        # A small leading unit can only fold forward.
        if len(merged) > 1 and small(merged[0]):
            first, second = merged[0], merged[1]
            if not second.oversized and second.end - first.start <= budget:
                second.start = first.start
                merged.pop(0)

        return merged

    def _absorb_blank_units(self, text: str, units: list[_Span]) -> list[_Span]:
        """Hand whitespace-only units to their neighbours without exceeding the budget.

        A run is folded whole into a neighbour that is oversized or still fits,
        otherwise split between both neighbours when their spare room covers
        it. A run that fits nowhere stays a unit of its own.
        """
        budget = self.config.budget
        result: list[_Span] = []
        for i, unit in enumerate(units):
            if text[unit.start : unit.end].strip():
                result.append(unit)
                continue
            prev = result[-1] if result else None
            nxt = units[i + 1] if i + 1 < len(units) else None
            if prev is not None and (prev.oversized or unit.end - prev.start <= budget):
                prev.end = unit.end
            elif nxt is not None and (nxt.oversized or nxt.end - unit.start <= budget):
                nxt.start = unit.start
            elif prev is not None and nxt is not None and nxt.end - prev.start <= 2 * budget:
                prev.end = prev.start + budget
                nxt.start = prev.end
            else:
                result.append(unit)
        return result

    def _overlap_start(self, text: str, unit_start: int, floor: int) -> int:
        """Earliest word start within ``overlap`` characters before *unit_start*."""
        raw = max(floor, unit_start - self.config.overlap, 0)
        pos = raw
        while pos < unit_start and pos > 0 and not text[pos - 1].isspace():
            pos += 1
        if pos >= unit_start:
            # No word boundary inside the window: overlap mid-word instead.
            return raw if raw < unit_start else unit_start
        return pos


def _cut_after(segment: str, sep: str, offset: int) -> list[tuple[int, int]]:
    """Split *segment* after every *sep*; returns absolute (start, end) pairs."""
    bounds: list[tuple[int, int]] = []
    pos = 0
    while True:
        idx = segment.find(sep, pos)
        if idx == -1:
            break
        cut = idx + len(sep)
        bounds.append((offset + pos, offset + cut))
        pos = cut
    if pos < len(segment):
        bounds.append((offset + pos, offset + len(segment)))
    return bounds


# ---------------------------------------------------------------------------
# Fixed window
# ---------------------------------------------------------------------------


class FixedWindowChunker(BaseChunker):
    """Slide a ``max_size`` window forward by about ``max_size - overlap``.

    Each cut (except at end of text) moves back to the nearest whitespace
    within the last 50 characters of the window, but never so far that the
    next window advances by less than half the budget. Whitespace-only
    windows are kept so the chunks still cover the whole text.
    """

    def split(self, text: str) -> list[TextChunk]:
        if not text.strip():
            return []

        max_size = self.config.max_size
        overlap = self.config.overlap
        min_advance = max(1, self.config.budget // 2)
        length = len(text)
        chunks: list[TextChunk] = []
        start = 0

        while start < length:
            end = min(start + max_size, length)
            if end < length:
                lower = max(start + overlap + min_advance, end - _WORD_BREAK_LOOKBACK)
                for i in range(end - 1, lower - 1, -1):
                    if text[i].isspace():
                        end = i
                        break

            chunks.append(self._make_chunk(text, start, end))
            if end >= length:
                break
            start = end - overlap

        return chunks


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

_CHUNKERS = ("sentence", "paragraph", "fixed")


def chunker_for(config: ChunkConfig) -> BaseChunker:
    """Return the chunker implementing ``config.method``."""
    if config.method == "fixed":
        return FixedWindowChunker(config)
    if config.method == "paragraph":
        return SeparatorChunker(config, PARAGRAPH_SEPARATORS)
    return SeparatorChunker(config)


def split_into_chunks(text: str, config: ChunkConfig | None = None) -> list[TextChunk]:
    """Split *text* into overlapping chunks according to *config*."""
    config = config or ChunkConfig()
    chunks = chunker_for(config).split(text)
    logger.debug(
        "Split %d characters into %d chunk(s) using '%s'", len(text), len(chunks), config.method
    )
    return chunks
