"""Text chunkers used before embedding or prompting.

Three strategies:
- ``chunk_text``: boundary-aware chunks for blog reference documents
- ``window_chunks``: fixed character windows for the training-material index
- ``chunk_paragraphs``: paragraph groups used as one-shot question context
"""
from __future__ import annotations

from dataclasses import dataclass

from .normalization import normalize_line_breaks


@dataclass
class TextWindow:
    """A fixed-size slice of a document and its position."""
    text: str
    chunk_index: int


def chunk_text(text: str, chunk_size: int = 1500, overlap: int = 200) -> list[str]:
    """Split text into overlapping chunks, preferring natural boundaries.

    A chunk ends at the last paragraph break, else the last sentence end,
    found past the half-chunk mark; otherwise it is cut at ``chunk_size``.
    The next chunk starts ``overlap`` characters before the previous end.

    Args:
        text: Raw document text
        chunk_size: Target chunk length in characters
        overlap: Characters shared between consecutive chunks

    Returns:
        Non-empty, stripped chunks in document order
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    overlap = max(0, min(overlap, chunk_size - 1))

    cleaned = normalize_line_breaks(text)
    chunks: list[str] = []
    start = 0
    half = chunk_size // 2

    while start < len(cleaned):
        end = start + chunk_size

        if end < len(cleaned):
            paragraph_break = cleaned.rfind('\n\n', start, end)
            if paragraph_break > start + half:
                end = paragraph_break
            else:
                sentence_break = cleaned.rfind('. ', start, end)
                if sentence_break > start + half:
                    end = sentence_break + 1

        chunk = cleaned[start:end].strip()
        if chunk:
            chunks.append(chunk)

        if end >= len(cleaned):
            break
        start = max(end - overlap, start + 1)

    return chunks


def window_chunks(
    text: str,
    chunk_size: int = 1000,
    overlap: int = 200,
    min_chars: int = 100,
) -> list[TextWindow]:
    """Slide a fixed window across ``text``.

    Windows whose stripped text is shorter than ``min_chars`` are dropped, but
    chunk indices keep counting so they reflect the window position.
    """
    step = chunk_size - overlap
    if step <= 0:
        raise ValueError("overlap must be smaller than chunk_size")

    windows: list[TextWindow] = []
    for i in range(0, len(text), step):
        piece = text[i:i + chunk_size]
        if len(piece.strip()) < min_chars:
            continue
        windows.append(TextWindow(text=piece, chunk_index=i // step))
    return windows


def chunk_paragraphs(text: str, max_chunk: int = 3000, min_chunk: int = 500) -> list[str]:
    """Group paragraphs into chunks below ``max_chunk`` characters.

    Paragraphs of 50 characters or fewer are ignored. Groups shorter than
    ``min_chunk`` are discarded.
    """
    paragraphs = [p for p in text.split('\n\n') if len(p.strip()) > 50]
    chunks: list[str] = []
    current = ""

    for paragraph in paragraphs:
        if len(current) + len(paragraph) < max_chunk:
            current += paragraph + "\n\n"
        else:
            if len(current) > min_chunk:
                chunks.append(current)
            current = paragraph + "\n\n"

    if len(current) > min_chunk:
        chunks.append(current)
    return chunks
