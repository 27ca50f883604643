"""Display snippets for search results."""

from __future__ import annotations


def create_snippet(text: str, max_length: int) -> str:
    """Truncate *text* to at most *max_length* characters plus "...".

    Cuts at the last space when it lies in the second half of the window,
    otherwise mid-word. Text that already fits is returned unchanged.
    """
    if len(text) <= max_length:
        return text
    truncated = text[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length / 2:
        truncated = truncated[:last_space]
    return truncated + "..."
