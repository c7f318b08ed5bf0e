"""
Line-based document chunking.

Extracted text is split into one chunk per qualifying line. Lines are
trimmed, and lines that are empty or too short to carry meaning (page
numbers, stray headings, OCR noise) are dropped.
"""

DEFAULT_MIN_LENGTH = 10


def chunk_text(text: str, min_length: int = DEFAULT_MIN_LENGTH) -> list[str]:
    """
    Split text into ordered chunk strings.

    Args:
        text: Raw extracted text
        min_length: Lines whose trimmed length is at or below this are dropped

    Returns:
        Trimmed lines longer than ``min_length``, in original order

    Raises:
        ValueError: If min_length is negative
    """
    if min_length < 0:
        raise ValueError(f"min_length must be non-negative, got {min_length}")

    if not text:
        return []

    chunks: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if len(stripped) > min_length:
            chunks.append(stripped)

    return chunks
