"""Text processing helpers shared by the cleaner and the chunker."""

from __future__ import annotations

import re
from dataclasses import dataclass

HORIZONTAL_WS_RE = re.compile(r"[ \t\f\v]+")
_VOWELS = frozenset("aeiouAEIOU")


@dataclass(slots=True)
class TextProfile:
    """Character class counts for a piece of text."""

    length: int
    letters: int
    vowels: int
    digits: int
    alnum: int

    @property
    def letter_ratio(self) -> float:
        return self.letters / self.length if self.length else 0.0

    @property
    def vowel_ratio(self) -> float:
        return self.vowels / self.letters if self.letters else 0.0

    @property
    def digit_ratio(self) -> float:
        return self.digits / self.length if self.length else 0.0

    @property
    def alnum_ratio(self) -> float:
        return self.alnum / self.length if self.length else 0.0


def profile(text: str) -> TextProfile:
    """Count letters, vowels and digits in ``text``."""
    letters = vowels = digits = 0
    for char in text:
        if char.isalpha():
            letters += 1
            if char in _VOWELS:
                vowels += 1
        elif char.isdigit():
            digits += 1
    return TextProfile(
        length=len(text),
        letters=letters,
        vowels=vowels,
        digits=digits,
        alnum=letters + digits,
    )


def is_readable(text: str, min_alnum_ratio: float = 0.4) -> bool:
    """Heuristic used on raw fragments: mostly alphanumeric with some letters."""
    if not text or len(text) < 3:
        return False
    stats = profile(text)
    return stats.alnum_ratio > min_alnum_ratio and re.search(r"[A-Za-z]", text) is not None


def normalize_whitespace(text: str) -> str:
    """Collapse horizontal whitespace, trim lines and keep single blank lines."""
    lines = [HORIZONTAL_WS_RE.sub(" ", line).strip() for line in text.split("\n")]
    collapsed = re.sub(r"\n{3,}", "\n\n", "\n".join(lines))
    return collapsed.strip()


__all__ = ["TextProfile", "profile", "is_readable", "normalize_whitespace"]
