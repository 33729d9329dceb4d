"""Text normalization for free-text catalog questions.

Handles Unicode composition, typographic punctuation, lowercasing, and
whitespace.
"""
from __future__ import annotations

import re
import unicodedata

# Typographic characters folded to their ASCII forms
_PUNCTUATION = str.maketrans({
    '“': '"',
    '”': '"',
    '‘': "'",
    '’': "'",
    '–': '-',
    '—': '-',
    '\u2212': '-',
    '\u00a0': ' ',
})

_REPEATED_PUNCTUATION = re.compile(r'([!?.]){2,}')
_WHITESPACE = re.compile(r'\s+')


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace and trim the ends."""
    return _WHITESPACE.sub(' ', text).strip()


def normalize_punctuation(text: str) -> str:
    """Fold smart quotes, dashes and non-breaking spaces; squeeze "!!", "??", "..."."""
    text = text.translate(_PUNCTUATION)
    return _REPEATED_PUNCTUATION.sub(r'\1', text)


def normalize_text(
    text: str,
    *,
    lowercase: bool = True,
    remove_extra_whitespace: bool = True,
) -> str:
    """Normalize a question before keyword matching.

    Args:
        text: Input text to normalize
        lowercase: Convert to lowercase
        remove_extra_whitespace: Collapse and trim whitespace

    Returns:
        Normalized text, or "" for blank input
    """
    if not text or not text.strip():
        return ""

    # Composed form so "₹" and accented department names compare equal
    text = unicodedata.normalize('NFC', text)
    text = normalize_punctuation(text)

    if lowercase:
        text = text.lower()

    if remove_extra_whitespace:
        text = normalize_whitespace(text)

    return text
