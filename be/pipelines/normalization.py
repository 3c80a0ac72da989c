"""Text normalization helpers for extracted PDF text and generated posts."""
from __future__ import annotations

import logging
import math
import re
import unicodedata

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


def normalize_punctuation(text: str) -> str:
    """Replace typographic quotes and dashes with ASCII equivalents."""
    text = text.replace('“', '"').replace('”', '"')
    text = text.replace('‘', "'").replace('’', "'")
    text = text.replace('–', '-').replace('—', '-')
    return text


def normalize_line_breaks(text: str) -> str:
    """Unify line endings and cap blank lines at one."""
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    text = re.sub(r'\n{3,}', '\n\n', text)
    return text.strip()


def clean_extracted_text(text: str) -> str:
    """Tidy text pulled out of a PDF before chunking.

    NFC-normalizes, fixes punctuation, strips trailing spaces on each line and
    collapses blank-line runs. Paragraph breaks are kept since the chunkers
    split on them.
    """
    if not text or not text.strip():
        return ""
    text = unicodedata.normalize('NFC', text)
    text = normalize_punctuation(text)
    text = "\n".join(line.rstrip() for line in text.splitlines())
    return normalize_line_breaks(text)


def slugify(value: str, max_length: int = 200) -> str:
    """URL slug: lowercase ASCII words joined by hyphens."""
    value = unicodedata.normalize('NFKD', value).encode('ascii', 'ignore').decode('ascii')
    value = re.sub(r'[^a-zA-Z0-9\s-]', '', value).strip().lower()
    value = re.sub(r'[\s_-]+', '-', value).strip('-')
    return value[:max_length].rstrip('-')


def word_count(text: str) -> int:
    """Number of whitespace-separated tokens."""
    return len(text.split())


def estimate_read_time(text: str, words_per_minute: int = WORDS_PER_MINUTE) -> int:
    """Minutes to read ``text``, rounded up, at least 1."""
    return max(1, math.ceil(word_count(text) / words_per_minute))


def truncate_chars(text: str, max_chars: int, suffix: str = "...") -> str:
    """Cut ``text`` to ``max_chars`` and append ``suffix`` when it was cut."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + suffix
