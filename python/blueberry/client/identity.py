"""Highlight identity resolution.

A selection is the same highlight as a stored one iff the selected text and
the page number are both exactly equal. Overlapping, superset or subset
selections are new highlights.
"""

from collections.abc import Iterable

from blueberry.client.models import Highlight


def resolve(
    candidate_text: str,
    candidate_page: int,
    known_highlights: Iterable[Highlight],
) -> Highlight | None:
    """Return the first known highlight with identical text and page, else None."""
    for highlight in known_highlights:
        if highlight.selected_text == candidate_text and highlight.page_number == candidate_page:
            return highlight
    return None
