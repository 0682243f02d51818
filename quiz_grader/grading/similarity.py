"""
Word-overlap similarity for descriptive answers.

Used when AI grading is unavailable or has failed.
"""


def tokenize(text: str) -> frozenset[str]:
    """Split text on whitespace into a set of unique lowercase words."""
    return frozenset(text.lower().split())


def similarity(a: str, b: str) -> float:
    """
    Case-insensitive Jaccard similarity of the two strings' word sets.

    Two empty strings carry no signal, so they score 0 rather than 1.

    Args:
        a: First string.
        b: Second string.

    Returns:
        |intersection| / |union|, in [0, 1].
    """
    words_a = tokenize(a or "")
    words_b = tokenize(b or "")

    if not words_a or not words_b:
        return 0.0

    union = words_a | words_b
    return len(words_a & words_b) / len(union)
