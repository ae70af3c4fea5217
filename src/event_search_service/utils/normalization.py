"""Query text normalisation."""

import re

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    """Trim and collapse internal whitespace runs to single spaces."""
    return _WHITESPACE.sub(" ", text).strip()


def normalize_query(query: str) -> str:
    """Canonical aggregation key for a free-text query.

    Lowercases, strips punctuation and collapses whitespace, so
    ``"  Taco   Truck!"`` and ``"taco truck"`` share one analytics record.
    """
    return collapse_whitespace(_PUNCTUATION.sub("", query.lower()))
