"""Split source content into overlapping, position-tracked chunks."""

from dataclasses import dataclass

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200


@dataclass(frozen=True)
class TextChunk:
    index: int
    content: str
    start_char: int
    end_char: int


def _find_break(text: str, start: int, end: int, chunk_size: int) -> int:
    """Pick where a chunk starting at ``start`` should end.

    Prefers the last sentence boundary in the window when it falls past the
    halfway point, then the last space, then the hard limit.
    """
    boundary = max(text.rfind(". ", start, end), text.rfind("\n", start, end))
    if boundary > start + chunk_size * 0.5:
        return boundary + 1

    last_space = text.rfind(" ", start, end)
    if last_space > start:
        return last_space

    return end


def chunk_content(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[TextChunk]:
    """Split text into chunks of at most ``chunk_size`` characters.

    Each chunk's content is exactly ``text[start_char:end_char]``. Consecutive
    chunks overlap by ``overlap`` characters whenever that still moves the
    cursor forward, so there are never gaps between chunks.

    Raises:
        ValueError: If overlap is not smaller than chunk_size.
    """
    if overlap >= chunk_size:
        raise ValueError(f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})")

    if not text or not text.strip():
        return []

    length = len(text)
    if length <= chunk_size:
        return [TextChunk(index=0, content=text, start_char=0, end_char=length)]

    chunks: list[TextChunk] = []
    start = 0
    while start < length:
        end = min(start + chunk_size, length)
        if end < length:
            end = _find_break(text, start, end, chunk_size)

        chunks.append(TextChunk(index=len(chunks), content=text[start:end], start_char=start, end_char=end))

        if end >= length:
            break

        next_start = end - overlap
        start = next_start if next_start > start else end

    return chunks
