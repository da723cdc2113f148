"""Tests for text cleaning and validation."""

import pytest

from assistant_kb.core.errors import InsufficientTextError
from assistant_kb.ingest.cleaner import clean_and_validate, clean_text, validate_text


def test_clean_strips_pdf_structure() -> None:
    raw = (
        "%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n"
        "BT /F1 12 Tf 72 720 Td\nQuarterly results were strong.\nET\ntrailer\n%%EOF"
    )
    assert clean_text(raw) == "Quarterly results were strong."


def test_clean_keeps_prose_words() -> None:
    raw = "Do not forget the trailer park meeting.\n/Im1 Do"
    assert clean_text(raw) == "Do not forget the trailer park meeting."


def test_clean_keeps_units_in_prose() -> None:
    raw = "Add 5 g of flour and walk 2 m to the oven."
    assert clean_text(raw) == raw


def test_clean_strips_path_operators_on_content_lines() -> None:
    raw = "0 0 1 rg 72 720 m 300 720 l\nWalk 2 m to the oven."
    assert clean_text(raw) == "Walk 2 m to the oven."


def test_clean_drops_numeric_lines_and_noise() -> None:
    raw = "Summary of the year.\n0 0 612 792 0 0\nMore text\x00 here.\ufffd"
    assert clean_text(raw) == "Summary of the year.\nMore text here."


def test_clean_collapses_repeats_and_whitespace() -> None:
    raw = "Total ..............................   due\n\n\n\nNext   paragraph."
    assert clean_text(raw) == "Total . due\n\nNext paragraph."


def test_validate_rejects_low_letter_ratio() -> None:
    with pytest.raises(InsufficientTextError, match="letter ratio"):
        validate_text("12345 67890 " * 10)


def test_validate_rejects_low_vowel_ratio() -> None:
    with pytest.raises(InsufficientTextError, match="vowel ratio"):
        validate_text("bcdfg hjklm npqrst " * 5)


def test_validate_rejects_high_digit_ratio() -> None:
    with pytest.raises(InsufficientTextError, match="digit ratio"):
        validate_text("a1" * 40)


def test_validate_rejects_short_text() -> None:
    with pytest.raises(InsufficientTextError, match="11 characters") as excinfo:
        validate_text("Short text.")
    assert excinfo.value.stage == "validation"


def test_validate_prefixes_short_text_when_configured() -> None:
    text = validate_text("Short but valid text.", min_chars=20, short_text_prefix="Document content:")
    assert text == "Document content: Short but valid text."


def test_clean_and_validate_passes_readable_text(prose_lines) -> None:
    raw = "BT\n" + "\n".join(prose_lines) + "\nET"
    assert clean_and_validate(raw) == "\n".join(prose_lines)
