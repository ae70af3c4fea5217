"""Search candidate models.

A ``SearchCandidate`` is the read-only projection of an event that the
corpus accessor hands to the ranking engine. It is frozen: nothing in a
search call may mutate it.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .validators import EntityId


class Category(BaseModel):
    """Event category (id + display name)."""

    model_config = ConfigDict(frozen=True)

    id: EntityId
    name: str


class GeoPoint(BaseModel):
    """WGS84 coordinate pair."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)


class SearchCandidate(BaseModel):
    """Event projection used for ranking."""

    model_config = ConfigDict(frozen=True)

    id: EntityId
    title: str = ""
    description: str = ""
    address: str = ""
    location_notes: str = ""
    emoji_description: str = ""
    categories: tuple[Category, ...] = ()
    embedding: tuple[float, ...] | None = None
    event_date: datetime
    status: str = "VERIFIED"
    location: GeoPoint | None = None

    @field_validator("title", "description", "address", "location_notes", "emoji_description", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("embedding", mode="before")
    @classmethod
    def _empty_embedding_is_missing(cls, v):
        if v is None:
            return None
        v = tuple(float(x) for x in v)
        return v or None

    @field_validator("event_date")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        # Naive datetimes from the corpus are treated as UTC.
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)

    @property
    def category_ids(self) -> list[str]:
        return [c.id for c in self.categories]

    @property
    def category_names(self) -> list[str]:
        return [c.name for c in self.categories]
