"""Normalisation and readability checks for extracted text."""

from __future__ import annotations

import re

from assistant_kb.core.errors import InsufficientTextError
from assistant_kb.utils.text import normalize_whitespace, profile

_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F\uFFFD]")
_BINARY_BLOCK_RE = re.compile(r"\bstream\b.*?\bendstream\b", re.S)
_STRUCTURE_LINE_RE = re.compile(
    r"^(?:\s*(?:xref|trailer|startxref|%PDF-|%%EOF)|.*(?:"
    r"\b\d+\s+\d+\s+obj\b|\bendobj\b"
    r"|/(?:Filter|FlateDecode|DCTDecode|ASCIIHexDecode|ASCII85Decode|LZWDecode|Length|Type"
    r"|Pages?|Kids|Parent|Count|MediaBox|CropBox|Resources|ProcSet|XObject|Font|BaseFont"
    r"|FontDescriptor|FirstChar|LastChar|Widths|Encoding|Encrypt|Subtype|Catalog|Root"
    r"|Info|Producer|Creator|ExtGState|ColorSpace|DecodeParms)\b"
    r")).*$",
    re.M,
)
_NAME_TOKEN_RE = re.compile(r"(?<![\w/])/[A-Za-z][\w.+-]*")
_OPERAND = r"-?(?:\d+\.?\d*|\.\d+)"
_OPERATOR_WITH_OPERANDS_RE = re.compile(
    rf"(?<![\w.])(?:{_OPERAND}\s+){{1,6}}(?:Tf|Td|TD|Tm|TL|Tc|Tw|Tz|Ts|Tr|re|cm|rg|RG|g|G|k|K|w|m|l|c|v|y|d|i|j|J|M)(?![\w*])"
)
_NAMED_OPERATOR_RE = re.compile(r"/[A-Za-z][\w.+-]*\s+(?:Do|gs|cs|CS|BMC)(?![\w*])")
_CONTENT_OPERATORS = frozenset(
    "BT ET BDC BMC EMC Tj TJ T* Tf Td TD Tm TL Tc Tw Tz Ts Tr re cm rg RG g G k K w m l c v y d i j J M"
    " Do gs cs CS sc SC scn SCN f f* F S s n W W* B B* b b* q Q h".split()
)
_SYNTAX_PUNCTUATION = frozenset({"[", "]", "<<", ">>"})
_BARE_OPERATOR_RE = re.compile(r"(?<!\w)(?:BT|ET|BDC|EMC|Tj|TJ|T\*|scn|SCN|f\*|W\*|B\*|b\*)(?![\w*])")
_HEX_RUN_RE = re.compile(r"\b[0-9A-Fa-f]{16,}\b")
_LONG_TOKEN_RE = re.compile(r"\S{40,}")
_REPEAT_RE = re.compile(r"(.)\1{10,}")
_NUMBER_TOKEN_RE = re.compile(r"^[\[\]()<>]*-?\d+(?:\.\d+)?[\[\]()<>]*$")


def clean_text(raw: str) -> str:
    """Strip PDF structure, operators and binary noise from extracted text."""
    text = _CONTROL_RE.sub("", raw)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _BINARY_BLOCK_RE.sub("\n", text)
    text = _STRUCTURE_LINE_RE.sub("", text)
    text = "\n".join(_strip_operators(line) for line in text.split("\n"))
    text = _NAME_TOKEN_RE.sub(" ", text)
    text = _HEX_RUN_RE.sub(" ", text)
    text = _LONG_TOKEN_RE.sub(" ", text)
    text = "\n".join(line for line in text.split("\n") if not _is_numeric_line(line))
    text = _REPEAT_RE.sub(r"\1", text)
    return normalize_whitespace(text)


def validate_text(
    text: str,
    min_letter_ratio: float = 0.45,
    min_vowel_ratio: float = 0.18,
    max_digit_ratio: float = 0.45,
    min_chars: int = 60,
    short_text_prefix: str | None = None,
    short_text_chars: int = 200,
) -> str:
    """Return ``text`` (possibly prefixed) or raise :class:`InsufficientTextError`."""
    stats = profile(text)
    if stats.letter_ratio < min_letter_ratio:
        raise InsufficientTextError(
            f"Insufficient readable text: letter ratio {stats.letter_ratio:.2f} below {min_letter_ratio}"
        )
    if stats.vowel_ratio < min_vowel_ratio:
        raise InsufficientTextError(
            f"Insufficient readable text: vowel ratio {stats.vowel_ratio:.2f} below {min_vowel_ratio}"
        )
    if stats.digit_ratio > max_digit_ratio:
        raise InsufficientTextError(
            f"Insufficient readable text: digit ratio {stats.digit_ratio:.2f} above {max_digit_ratio}"
        )
    if short_text_prefix and len(text) < short_text_chars:
        text = f"{short_text_prefix.strip()} {text}".strip()
    if len(text) < min_chars:
        raise InsufficientTextError(
            f"Insufficient readable text: {len(text)} characters, need at least {min_chars}"
        )
    return text


def clean_and_validate(raw: str, **thresholds) -> str:
    """Clean ``raw`` and apply :func:`validate_text` with ``thresholds``."""
    return validate_text(clean_text(raw), **thresholds)


def _is_content_syntax(line: str) -> bool:
    tokens = line.split()
    if not tokens:
        return False
    syntax = sum(
        1
        for token in tokens
        if token in _CONTENT_OPERATORS
        or token in _SYNTAX_PUNCTUATION
        or token.startswith("/")
        or _NUMBER_TOKEN_RE.match(token)
    )
    return syntax / len(tokens) >= 0.6


def _strip_operators(line: str) -> str:
    # Operators only come off lines that are mostly content-stream syntax.
    if not _is_content_syntax(line):
        return line
    line = _NAMED_OPERATOR_RE.sub(" ", line)
    line = _OPERATOR_WITH_OPERANDS_RE.sub(" ", line)
    return _BARE_OPERATOR_RE.sub(" ", line)


def _is_numeric_line(line: str) -> bool:
    tokens = line.split()
    if len(tokens) < 4:
        return False
    numeric = sum(1 for token in tokens if _NUMBER_TOKEN_RE.match(token))
    return numeric / len(tokens) >= 0.8


__all__ = ["clean_text", "validate_text", "clean_and_validate"]
