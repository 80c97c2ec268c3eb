"""Deterministic text canonicalization ahead of fingerprinting.

Processing flow (order matters; changing it changes every fingerprint):
1. Unicode NFKC normalization.
2. Strip zero-width characters and byte-order marks.
3. Typographic punctuation to ASCII (quotes, dashes, non-breaking space).
4. Line endings to "\\n"; rejoin words hyphenated across a line break.
5. Collapse horizontal whitespace runs and blank-line runs.
6. Rewrite unit synonyms ("mg per dl", "mg dl") to "mg/dl".
7. Trim, then optionally case-fold to lowercase.

The flow is repeated until the text stops changing. A single pass is not
enough: removing a zero-width character or a line-break hyphen can join a base
letter to a combining mark that NFKC has not composed yet.
"""

import re
import unicodedata
from typing import ClassVar


class Canonicalizer:
    """Maps raw extracted text to canonical text. Total and idempotent."""

    _INVISIBLE_RE: ClassVar[re.Pattern[str]] = re.compile("[\u200b-\u200d\ufeff]")

    _PUNCTUATION: ClassVar[dict[int, str]] = str.maketrans(
        {
            "\u201c": '"',
            "\u201d": '"',
            "\u2018": "'",
            "\u2019": "'",
            "\u2013": "-",
            "\u2014": "-",
            "\u00a0": " ",
        }
    )

    _HYPHEN_BREAK_RE: ClassVar[re.Pattern[str]] = re.compile(r"-\n")
    _HORIZONTAL_WS_RE: ClassVar[re.Pattern[str]] = re.compile(r"[ \t]+")
    _BLANK_LINES_RE: ClassVar[re.Pattern[str]] = re.compile(r"\n{2,}")

    _UNIT_SYNONYMS: ClassVar[list[tuple[re.Pattern[str], str]]] = [
        (re.compile(r"\bmg\s*per\s*dl\b", re.IGNORECASE), "mg/dl"),
        (re.compile(r"\bmg\s*dl\b", re.IGNORECASE), "mg/dl"),
    ]

    def __init__(self, lowercase: bool = True) -> None:
        self._lowercase = lowercase

    def canonicalize(self, raw: str) -> str:
        if not raw:
            return ""
        text = self._single_pass(raw)
        while True:
            again = self._single_pass(text)
            if again == text:
                return text
            text = again

    def _single_pass(self, text: str) -> str:
        text = unicodedata.normalize("NFKC", text)
        text = self._INVISIBLE_RE.sub("", text)
        text = text.translate(self._PUNCTUATION)
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = self._HYPHEN_BREAK_RE.sub("", text)
        text = self._HORIZONTAL_WS_RE.sub(" ", text)
        text = self._BLANK_LINES_RE.sub("\n", text)
        for pattern, replacement in self._UNIT_SYNONYMS:
            text = pattern.sub(replacement, text)
        text = text.strip()
        if self._lowercase:
            text = text.lower()
        return text


def canonicalize(raw: str, lowercase: bool = True) -> str:
    """Canonicalize raw text with a throwaway Canonicalizer."""
    return Canonicalizer(lowercase=lowercase).canonicalize(raw)
