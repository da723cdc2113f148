"""Chunking utilities."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator

from assistant_kb.utils.text import profile

_PARAGRAPH_RE = re.compile(r"\n\s*\n", re.MULTILINE)
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")
_STRUCTURE_RE = re.compile(r"[.!?](?:\s|$)")
_UNUSABLE_RE = re.compile(r"[^A-Za-z0-9\s]")


@dataclass(slots=True)
class ChunkDraft:
    """A chunk of cleaned text with its position in the document."""

    index: int
    text: str


def chunk_text(
    text: str,
    max_chars: int = 1800,
    min_paragraph_chars: int = 20,
    split_ratio: float = 0.6,
    min_usable_chars: int = 60,
    min_alnum_ratio: float = 0.5,
    min_vowel_ratio: float = 0.2,
    max_digit_ratio: float = 0.4,
) -> list[ChunkDraft]:
    """Split cleaned text into ordered chunks of at most ``max_chars``.

    Paragraphs are packed greedily; oversized pieces are split on word
    boundaries. Indices are assigned before the quality filter runs, so
    dropped chunks leave gaps but never reorder the survivors.
    """
    if not text.strip():
        return []

    paragraphs = [p.strip() for p in _PARAGRAPH_RE.split(text) if len(p.strip()) > min_paragraph_chars]
    pieces = _pack(paragraphs, "\n\n", max_chars, split_ratio)
    if not pieces:
        sentences = [s.strip() for s in _SENTENCE_RE.split(text) if len(s.strip()) > min_paragraph_chars]
        pieces = _pack(sentences, " ", max_chars, split_ratio)
    if not pieces:
        pieces = split_on_words(text.strip(), max_chars, split_ratio)

    bounded: list[str] = []
    for piece in pieces:
        if len(piece) > max_chars:
            bounded.extend(split_on_words(piece, max_chars, split_ratio))
        else:
            bounded.append(piece)

    return [
        ChunkDraft(index=index, text=piece)
        for index, piece in enumerate(bounded)
        if is_meaningful(
            piece,
            min_usable_chars=min_usable_chars,
            min_alnum_ratio=min_alnum_ratio,
            min_vowel_ratio=min_vowel_ratio,
            max_digit_ratio=max_digit_ratio,
        )
    ]


def _pack(units: Iterable[str], separator: str, max_chars: int, split_ratio: float) -> list[str]:
    chunks: list[str] = []
    buffer = ""
    for unit in units:
        if len(unit) > max_chars:
            if buffer:
                chunks.append(buffer)
                buffer = ""
            chunks.extend(split_on_words(unit, max_chars, split_ratio))
            continue
        if not buffer:
            buffer = unit
        elif len(buffer) + len(separator) + len(unit) <= max_chars:
            buffer = f"{buffer}{separator}{unit}"
        else:
            chunks.append(buffer)
            buffer = unit
    if buffer:
        chunks.append(buffer)
    return chunks


def split_on_words(text: str, max_chars: int, split_ratio: float = 0.6) -> list[str]:
    """Hard-split ``text`` into pieces of at most ``max_chars``.

    The cut goes at the last space of the window when that space lies past
    ``split_ratio * max_chars``; otherwise the window is cut mid-word.
    """
    return list(_iter_word_splits(text, max_chars, split_ratio))


def _iter_word_splits(text: str, max_chars: int, split_ratio: float) -> Iterator[str]:
    remaining = text.strip()
    floor = int(max_chars * split_ratio)
    while len(remaining) > max_chars:
        window = remaining[: max_chars + 1]
        cut = window.rfind(" ")
        if cut <= floor:
            cut = max_chars
        piece = remaining[:cut].rstrip()
        if piece:
            yield piece
        remaining = remaining[cut:].lstrip()
    if remaining:
        yield remaining


def is_meaningful(
    chunk: str,
    min_usable_chars: int = 60,
    min_alnum_ratio: float = 0.5,
    min_vowel_ratio: float = 0.2,
    max_digit_ratio: float = 0.4,
) -> bool:
    """Reject chunks that look like tables, codes or extraction debris."""
    usable = _UNUSABLE_RE.sub("", chunk).strip()
    if len(usable) <= min_usable_chars:
        return False
    stats = profile(chunk)
    if stats.alnum_ratio < min_alnum_ratio:
        return False
    if stats.vowel_ratio < min_vowel_ratio:
        return False
    if stats.digit_ratio >= max_digit_ratio:
        return False
    return bool(_STRUCTURE_RE.search(chunk)) or "\n" in chunk


__all__ = ["ChunkDraft", "chunk_text", "split_on_words", "is_meaningful"]
