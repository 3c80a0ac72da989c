"""Tests for the text chunkers."""

import pytest

from be.pipelines.chunking import chunk_paragraphs, chunk_text, window_chunks


def _letters(n: int) -> str:
    return "".join(chr(97 + i % 26) for i in range(n))


class TestChunkText:
    def test_hard_cuts_overlap_by_requested_amount(self):
        text = _letters(3000)
        chunks = chunk_text(text, chunk_size=1000, overlap=200)

        assert len(chunks) == 4
        assert all(len(c) <= 1000 for c in chunks)
        assert chunks[0][-200:] == chunks[1][:200]
        assert text.endswith(chunks[-1])

    def test_prefers_paragraph_break_past_half_chunk(self):
        text = "A" * 700 + "\n\n" + "B" * 700
        chunks = chunk_text(text, chunk_size=1000, overlap=100)

        assert chunks[0] == "A" * 700
        assert chunks[-1].endswith("B" * 700)
        assert len(chunks) == 2

    def test_falls_back_to_sentence_end(self):
        sentence = "The discount rate reflects risk. "
        text = sentence * 60
        chunks = chunk_text(text, chunk_size=500, overlap=50)

        assert all(c.endswith(".") for c in chunks[:-1])

    def test_short_text_is_single_chunk(self):
        assert chunk_text("  Duration measures rate sensitivity.  ") == ["Duration measures rate sensitivity."]

    def test_empty_text(self):
        assert chunk_text("") == []

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            chunk_text("abc", chunk_size=0)


class TestWindowChunks:
    def test_windows_step_by_size_minus_overlap(self):
        windows = window_chunks("x" * 2500, chunk_size=1000, overlap=200, min_chars=150)

        assert [w.chunk_index for w in windows] == [0, 1, 2]
        assert [len(w.text) for w in windows] == [1000, 1000, 900]

    def test_short_windows_dropped_but_indices_keep_position(self):
        text = " " * 800 + "y" * 1200
        windows = window_chunks(text, chunk_size=1000, overlap=200, min_chars=300)

        assert windows[0].chunk_index == 1

    def test_overlap_must_be_smaller_than_size(self):
        with pytest.raises(ValueError):
            window_chunks("text", chunk_size=100, overlap=100)


class TestChunkParagraphs:
    def test_groups_paragraphs_under_max(self):
        paragraph = "word " * 30
        text = "\n\n".join([paragraph] * 10)
        chunks = chunk_paragraphs(text, max_chunk=1000, min_chunk=500)

        assert len(chunks) == 2
        assert all(len(c) < 1000 for c in chunks)

    def test_ignores_short_paragraphs(self):
        paragraph = "equity valuation " * 10
        text = "short\n\n" + "\n\n".join([paragraph] * 5)
        chunks = chunk_paragraphs(text, max_chunk=3000, min_chunk=100)

        assert chunks
        assert all("short" not in c for c in chunks)

    def test_drops_groups_below_min(self):
        assert chunk_paragraphs("x" * 100, max_chunk=3000, min_chunk=500) == []
