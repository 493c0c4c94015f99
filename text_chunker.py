"""Split oversized reference sections into overlapping chunks for extraction."""

from __future__ import annotations

OVERLAP_LINES = 5


def chunk_references(section: str, max_chars: int) -> list[str]:
    """Split ``section`` into chunks of at most ``max_chars`` characters.

    A section within the limit comes back as a single chunk. Larger sections are
    split on line boundaries; each new chunk repeats the last OVERLAP_LINES lines
    of the previous one so an entry spanning the boundary is seen whole at least
    once. A single line longer than ``max_chars`` is never split.
    """
    if len(section) <= max_chars:
        return [section]

    chunks: list[str] = []
    current: list[str] = []
    current_len = 0
    # Lines appended since the last chunk closed; a chunk made only of overlap
    # lines would repeat its predecessor forever.
    fresh = 0

    for line in section.split("\n"):
        added = len(line) + (1 if current else 0)
        if current and fresh and current_len + added > max_chars:
            chunks.append("\n".join(current))
            current = current[-OVERLAP_LINES:]
            current_len = len("\n".join(current))
            fresh = 0
            added = len(line) + (1 if current else 0)
        current.append(line)
        current_len += added
        fresh += 1

    if fresh:
        chunks.append("\n".join(current))
    return chunks
