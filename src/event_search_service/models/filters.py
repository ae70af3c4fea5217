"""Saved-filter variants for filter-based event search.

A saved filter is one of three shapes, discriminated by ``kind``:

* ``SemanticFilter``  : embedding only, ranked by cosine similarity
* ``StructuredFilter``: hard predicates only, listed by date
* ``HybridFilter``    : hard predicates, then ranked by cosine similarity
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from .candidate import GeoPoint


class DateRange(BaseModel):
    """Inclusive event-date window; either bound may be open."""

    model_config = ConfigDict(frozen=True)

    start: datetime | None = None
    end: datetime | None = None

    @model_validator(mode="after")
    def _ordered(self) -> "DateRange":
        if self.start and self.end and self.start > self.end:
            raise ValueError("date range start must not be after end")
        return self


class GeoRadius(BaseModel):
    """Circle around a point, radius in metres."""

    model_config = ConfigDict(frozen=True)

    center: GeoPoint
    radius_meters: float = Field(gt=0.0)


class _Predicates(BaseModel):
    """Structured hard-filter predicates shared by structured and hybrid filters."""

    model_config = ConfigDict(frozen=True)

    date_range: DateRange | None = None
    statuses: tuple[str, ...] = ()
    geo: GeoRadius | None = None


def _require_embedding(v: tuple[float, ...]) -> tuple[float, ...]:
    if not v:
        raise ValueError("embedding must not be empty")
    return v


class SemanticFilter(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["semantic"] = "semantic"
    embedding: tuple[float, ...]

    @field_validator("embedding")
    @classmethod
    def _non_empty_embedding(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        return _require_embedding(v)


class StructuredFilter(_Predicates):
    kind: Literal["structured"] = "structured"


class HybridFilter(_Predicates):
    kind: Literal["hybrid"] = "hybrid"
    embedding: tuple[float, ...]

    @field_validator("embedding")
    @classmethod
    def _non_empty_embedding(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        return _require_embedding(v)


EventFilter = Annotated[Union[SemanticFilter, StructuredFilter, HybridFilter], Field(discriminator="kind")]

_filter_adapter: TypeAdapter[EventFilter] = TypeAdapter(EventFilter)


def parse_filter(data: dict) -> SemanticFilter | StructuredFilter | HybridFilter:
    """Validate a stored filter payload into its tagged variant."""
    return _filter_adapter.validate_python(data)
