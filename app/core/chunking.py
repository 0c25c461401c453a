"""Text chunking for regulations ingestion."""

import re

MIN_CHUNK_CHARS = 50

SECTION_PATTERN = re.compile(r"(?:Part|Section|Regulation)\s+(?:[A-Z]|\d+)", re.IGNORECASE)


def chunk_text(
    text: str,
    max_size: int = 1000,
    overlap: int = 200,
    min_chars: int = MIN_CHUNK_CHARS,
) -> list[str]:
    """
    Split text into overlapping, sentence/paragraph-aware chunks.

    Each window of ``max_size`` characters is cut at the last sentence end
    (``.``) or paragraph break (``\\n\\n``) inside it, provided that break lies
    past the window's midpoint; otherwise the window is cut hard. The next
    window starts ``overlap`` characters before the previous cut.

    Args:
        text: Text to chunk
        max_size: Maximum characters per window
        overlap: Characters shared by consecutive windows
        min_chars: Chunks shorter than this (after trimming) are dropped

    Returns:
        Chunks in source order

    Raises:
        ValueError: If max_size <= overlap
    """
    if max_size <= overlap:
        raise ValueError(f"max_size ({max_size}) must be greater than overlap ({overlap})")

    chunks: list[str] = []
    start = 0
    text_length = len(text)

    while start < text_length:
        end = start + max_size

        if end < text_length:
            sentence_end = text.rfind(".", start, end)
            paragraph_end = text.rfind("\n\n", start, end)
            break_point = max(sentence_end, paragraph_end)

            if break_point > start + max_size * 0.5:
                end = break_point + 1

        chunk = text[start:end].strip()
        if len(chunk) >= min_chars:
            chunks.append(chunk)

        if end >= text_length:
            break

        # Always move forward, even when overlap exceeds the cut distance
        start = max(end - overlap, start + 1)

    return chunks


def extract_section(text: str) -> str | None:
    """Return the first 'Part X' / 'Section N' / 'Regulation N' reference in text."""
    match = SECTION_PATTERN.search(text)
    return match.group(0) if match else None
