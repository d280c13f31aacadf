"""Tests for consultantos.processing.chunker."""

import pytest

from consultantos.processing.chunker import TextChunk, chunk_content


def _assert_covers(text: str, chunks: list[TextChunk]):
    """Chunks start at 0, end at len(text), leave no gaps and are slices of text."""
    assert chunks[0].start_char == 0
    assert chunks[-1].end_char == len(text)
    for i, chunk in enumerate(chunks):
        assert chunk.index == i
        assert chunk.content == text[chunk.start_char:chunk.end_char]
        if i > 0:
            assert chunk.start_char <= chunks[i - 1].end_char
            assert chunk.start_char > chunks[i - 1].start_char


SENTENCES = " ".join(
    f"Sentence number {i} talks about the client's growth plans in detail." for i in range(80)
)


class TestChunkContent:
    def test_empty_text(self):
        assert chunk_content("") == []

    def test_whitespace_only(self):
        assert chunk_content("   \n\t  ") == []

    def test_short_text_single_chunk(self):
        chunks = chunk_content("Short note about pricing.")
        assert len(chunks) == 1
        assert chunks[0] == TextChunk(index=0, content="Short note about pricing.", start_char=0, end_char=25)

    def test_exactly_chunk_size_is_single_chunk(self):
        text = "a" * 1000
        chunks = chunk_content(text)
        assert len(chunks) == 1
        assert chunks[0].end_char == 1000

    def test_long_text_covered(self):
        chunks = chunk_content(SENTENCES)
        assert len(chunks) > 1
        _assert_covers(SENTENCES, chunks)

    def test_chunks_respect_size(self):
        for chunk in chunk_content(SENTENCES, chunk_size=300, overlap=50):
            assert len(chunk.content) <= 300

    def test_breaks_after_sentence_boundary(self):
        chunks = chunk_content(SENTENCES)
        # Window end is past the halfway point, so the break lands right after ". "
        assert chunks[0].content.endswith(".")

    def test_overlap_between_chunks(self):
        chunks = chunk_content(SENTENCES, chunk_size=500, overlap=100)
        for prev, cur in zip(chunks, chunks[1:]):
            assert cur.start_char == prev.end_char - 100

    def test_falls_back_to_space(self):
        text = ("word " * 400).strip()
        chunks = chunk_content(text, chunk_size=100, overlap=20)
        _assert_covers(text, chunks)
        assert chunks[0].end_char < 100
        assert text[chunks[0].end_char] == " "

    def test_hard_limit_without_spaces(self):
        text = "x" * 2500
        chunks = chunk_content(text, chunk_size=1000, overlap=200)
        _assert_covers(text, chunks)
        assert [c.start_char for c in chunks] == [0, 800, 1600]
        assert chunks[0].end_char == 1000

    def test_always_advances_with_early_space(self):
        # A single early space makes each break land far back; the cursor must still move forward
        text = "a " + "b" * 3000
        chunks = chunk_content(text, chunk_size=1000, overlap=200)
        _assert_covers(text, chunks)

    def test_newlines_preserved(self):
        text = "\n".join(f"Line {i}: notes from the workshop session." for i in range(100))
        chunks = chunk_content(text)
        _assert_covers(text, chunks)
        assert "\n" in chunks[0].content

    def test_deterministic(self):
        assert chunk_content(SENTENCES) == chunk_content(SENTENCES)

    def test_overlap_must_be_smaller_than_size(self):
        with pytest.raises(ValueError):
            chunk_content("anything", chunk_size=100, overlap=100)
