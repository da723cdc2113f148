"""Heuristic text extraction from raw PDF bytes.

There is no real PDF parser here. The extractor scans the byte stream with a
series of increasingly desperate strategies and stops adding text as soon as
the collected output carries enough signal:

1. text-show operators inside ``BT ... ET`` blocks of uncompressed streams
2. the same scan over inflated ``/FlateDecode`` streams (images skipped)
3. readable parenthesis and hex strings anywhere in the file
4. structured tokens such as amounts, dates and phone numbers

Downstream stages only depend on :class:`BaseExtractor`, so the heuristics can
be swapped for a proper content-stream parser without touching them.
"""

from __future__ import annotations

import re
import zlib
from typing import Callable, Iterator

from assistant_kb.core.errors import ExtractionError
from assistant_kb.core.logging import get_logger
from assistant_kb.utils.text import is_readable

logger = get_logger(__name__)

# A literal string: balanced on escapes, not on nested parentheses.
_LITERAL = r"\(((?:\\.|[^\\()])*)\)"

_TEXT_BLOCK_RE = re.compile(r"\bBT\b(.*?)\bET\b", re.S)
_SHOW_TEXT_RE = re.compile(_LITERAL + r"\s*(?:Tj|'|\")", re.S)
_SHOW_ARRAY_RE = re.compile(r"\[((?:\\.|[^\]\\])*)\]\s*TJ", re.S)
_LITERAL_RE = re.compile(_LITERAL, re.S)
_LOOSE_LITERAL_RE = re.compile(r"\(([^)]{3,})\)")
_HEX_STRING_RE = re.compile(r"<([0-9A-Fa-f]{6,})>")
_ESCAPE_RE = re.compile(r"\\([nrtbf()\\]|[0-7]{1,3}|\r\n|\r|\n)")

_STREAM_RE = re.compile(rb"<<((?:(?!endobj).)*?)>>\s*stream\r?\n", re.S)
_IMAGE_SUBTYPE_RE = re.compile(rb"/Subtype\s*/Image")

_NAMED_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "(": "(",
    ")": ")",
    "\\": "\\",
}

_DOMAIN_PATTERNS = (
    re.compile(r"\b\d{4}[\s-]\d{4}[\s-]\d{4}[\s-]\d{4}\b"),
    re.compile(r"[$€£]\s?\d[\d,]*\.\d{2}"),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"),
    re.compile(
        r"\b(?:Invoice|Payment|Balance|Transaction|Credit|Debit|Account|Statement"
        r"|Due|Date|Amount|Interest|Total|Summary)\b",
        re.I,
    ),
)


class BaseExtractor:
    """Common extractor interface."""

    def extract(self, data: bytes) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class HeuristicPDFExtractor(BaseExtractor):
    """Best-effort text recovery from a PDF byte stream."""

    def __init__(self, min_chars: int = 100, readable_ratio: float = 0.4) -> None:
        self.min_chars = min_chars
        self.readable_ratio = readable_ratio

    def extract(self, data: bytes) -> str:
        if not data:
            raise ExtractionError("Document is empty")
        if not data.lstrip()[:5].startswith(b"%PDF"):
            logger.warning("Input does not start with a %PDF header; extracting anyway")
        if b"/Encrypt" in data:
            logger.warning("PDF declares /Encrypt; extracted text is likely unusable")

        content = data.decode("latin-1")
        strategies: list[tuple[str, Callable[[], Iterator[str]]]] = [
            ("operators", lambda: extract_text_operators(content)),
            ("compressed", lambda: self._compressed_fragments(data)),
            ("patterns", lambda: self._pattern_fragments(content)),
            ("domain", lambda: domain_fragments(content)),
        ]

        collected = _Collector()
        used: list[str] = []
        for name, strategy in strategies:
            if len(collected) >= self.min_chars:
                break
            collected.next_strategy()
            before = len(collected)
            for fragment in strategy():
                collected.add(fragment)
            if len(collected) > before:
                used.append(name)

        text = collected.text()
        if not text:
            raise ExtractionError(
                "Unable to extract readable text from PDF. The document may be "
                "encrypted, image-based, or corrupted."
            )
        logger.info(
            "Extracted %s characters using %s",
            len(text),
            ", ".join(used),
            extra={"ctx_strategies": used},
        )
        return text

    # Strategies -------------------------------------------------------

    def _compressed_fragments(self, data: bytes) -> Iterator[str]:
        for stream in iter_flate_streams(data):
            content = stream.decode("latin-1")
            found = False
            for fragment in extract_text_operators(content):
                found = True
                yield fragment
            if not found:
                for match in _LOOSE_LITERAL_RE.finditer(content):
                    fragment = decode_literal(match.group(1))
                    if is_readable(fragment, self.readable_ratio):
                        yield fragment

    def _pattern_fragments(self, content: str) -> Iterator[str]:
        for match in _LOOSE_LITERAL_RE.finditer(content):
            fragment = decode_literal(match.group(1))
            if is_readable(fragment, self.readable_ratio):
                yield fragment
        for match in _HEX_STRING_RE.finditer(content):
            fragment = decode_hex(match.group(1))
            if is_readable(fragment, self.readable_ratio):
                yield fragment


class _Collector:
    """Accumulates fragments in order.

    A fragment is dropped only when an earlier strategy already produced the
    exact same line; repeats within one strategy are kept.
    """

    def __init__(self) -> None:
        self._fragments: list[str] = []
        self._earlier: set[str] = set()
        self._current: set[str] = set()
        self._length = 0

    def __len__(self) -> int:
        return self._length

    def next_strategy(self) -> None:
        self._earlier |= self._current
        self._current = set()

    def add(self, fragment: str) -> None:
        fragment = fragment.strip()
        if not fragment or fragment in self._earlier:
            return
        if self._fragments:
            self._length += 1
        self._fragments.append(fragment)
        self._current.add(fragment)
        self._length += len(fragment)

    def text(self) -> str:
        return "\n".join(self._fragments)


def extract_text_operators(content: str) -> Iterator[str]:
    """Yield one line of shown text per ``BT ... ET`` block."""
    for block in _TEXT_BLOCK_RE.finditer(content):
        pieces: list[tuple[int, str]] = []
        body = block.group(1)
        for match in _SHOW_TEXT_RE.finditer(body):
            pieces.append((match.start(), decode_literal(match.group(1))))
        for match in _SHOW_ARRAY_RE.finditer(body):
            elements = [decode_literal(item.group(1)) for item in _LITERAL_RE.finditer(match.group(1))]
            pieces.append((match.start(), "".join(elements)))
        pieces.sort(key=lambda item: item[0])
        line = " ".join(piece for _, piece in pieces if piece.strip())
        if line.strip():
            yield line


def iter_flate_streams(data: bytes) -> Iterator[bytes]:
    """Yield inflated payloads of non-image ``/FlateDecode`` streams."""
    for match in _STREAM_RE.finditer(data):
        dictionary = match.group(1)
        if b"/FlateDecode" not in dictionary or _IMAGE_SUBTYPE_RE.search(dictionary):
            continue
        start = match.end()
        end = data.find(b"endstream", start)
        if end == -1:
            continue
        payload = data[start:end].rstrip(b"\r\n")
        inflated = inflate(payload)
        if inflated is None:
            logger.debug("Skipping undecodable stream at offset %s", match.start())
            continue
        yield inflated


def inflate(payload: bytes) -> bytes | None:
    """Inflate zlib-wrapped or raw deflate data; ``None`` when neither works."""
    for wbits in (zlib.MAX_WBITS, -zlib.MAX_WBITS):
        try:
            return zlib.decompressobj(wbits).decompress(payload)
        except zlib.error:
            continue
    return None


def decode_literal(raw: str) -> str:
    """Decode the escape sequences of a PDF literal string."""

    def _replace(match: re.Match[str]) -> str:
        token = match.group(1)
        if token in _NAMED_ESCAPES:
            return _NAMED_ESCAPES[token]
        if token[0] in "\r\n":
            return ""
        return chr(int(token, 8) & 0xFF)

    return _ESCAPE_RE.sub(_replace, raw)


def decode_hex(raw: str) -> str:
    """Decode a hex string byte pair by byte pair, keeping printable ASCII."""
    chars: list[str] = []
    for idx in range(0, len(raw) - 1, 2):
        code = int(raw[idx : idx + 2], 16)
        if 32 <= code <= 126:
            chars.append(chr(code))
    return "".join(chars)


def domain_fragments(content: str) -> Iterator[str]:
    for pattern in _DOMAIN_PATTERNS:
        for match in pattern.finditer(content):
            yield match.group(0)


__all__ = [
    "BaseExtractor",
    "HeuristicPDFExtractor",
    "extract_text_operators",
    "iter_flate_streams",
    "inflate",
    "decode_literal",
    "decode_hex",
    "domain_fragments",
]
