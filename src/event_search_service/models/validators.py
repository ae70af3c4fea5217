"""Shared Pydantic types and validators for reuse across models.

Centralises id-list normalisation, range-clamped floats and Literal enums
so every model speaks the same language.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BeforeValidator, Field

# ---------------------------------------------------------------------------
# Id list normalisation
# ---------------------------------------------------------------------------


def normalize_ids(v: Any) -> list[str]:
    """Accept ``str | list | None`` and return a clean ``list[str]``.

    * ``"a, b"`` → ``["a", "b"]``
    * ``["a", None, 3]`` → ``["a", "3"]``
    * ``None`` → ``[]``
    """
    if v is None:
        return []
    if isinstance(v, str):
        return [t.strip() for t in v.split(",") if t.strip()]
    if isinstance(v, (list, tuple, set)):
        return [s for item in v if item is not None and (s := str(item).strip())]
    return []


IdList = Annotated[list[str], BeforeValidator(normalize_ids)]
"""Flexible id input: accepts str, list, or None: always outputs list[str]."""


# ---------------------------------------------------------------------------
# Numeric types
# ---------------------------------------------------------------------------

UnitFloat = Annotated[float, Field(ge=0.0, le=1.0)]
"""Float clamped to [0.0, 1.0]: for scores, thresholds, similarities."""

Percentage = Annotated[float, Field(ge=0.0, le=100.0)]
"""Float in [0.0, 100.0]: for hit rates."""

NonNegativeInt = Annotated[int, Field(ge=0)]
"""Integer ≥ 0: for counts, offsets."""


# ---------------------------------------------------------------------------
# String constraints
# ---------------------------------------------------------------------------

EntityId = Annotated[str, Field(min_length=1)]
"""Non-empty event/category identifier."""


# ---------------------------------------------------------------------------
# Literal enums
# ---------------------------------------------------------------------------

SortOrdering = Literal["score", "date"]
