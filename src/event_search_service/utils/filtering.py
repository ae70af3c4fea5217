"""Hard-filter predicates for saved-filter search.

Every filter variant is handled explicitly; an unknown variant is a
programming error and raises ``TypeError``.
"""

from __future__ import annotations

import math
from datetime import timezone

from ..models.candidate import GeoPoint, SearchCandidate
from ..models.filters import DateRange, GeoRadius, HybridFilter, SemanticFilter, StructuredFilter

EARTH_RADIUS_METERS = 6_371_008.8


def haversine_meters(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in metres."""
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


def _within_dates(candidate: SearchCandidate, date_range: DateRange | None) -> bool:
    if date_range is None:
        return True
    if date_range.start is not None:
        start = date_range.start if date_range.start.tzinfo else date_range.start.replace(tzinfo=timezone.utc)
        if candidate.event_date < start:
            return False
    if date_range.end is not None:
        end = date_range.end if date_range.end.tzinfo else date_range.end.replace(tzinfo=timezone.utc)
        if candidate.event_date > end:
            return False
    return True


def _within_radius(candidate: SearchCandidate, geo: GeoRadius | None) -> bool:
    if geo is None:
        return True
    if candidate.location is None:
        return False
    return haversine_meters(candidate.location, geo.center) <= geo.radius_meters


def _matches_predicates(candidate: SearchCandidate, f: StructuredFilter | HybridFilter) -> bool:
    if f.statuses and candidate.status not in f.statuses:
        return False
    return _within_dates(candidate, f.date_range) and _within_radius(candidate, f.geo)


def matches_filter(candidate: SearchCandidate, f: SemanticFilter | StructuredFilter | HybridFilter) -> bool:
    """True if the candidate passes every hard predicate of the filter.

    Variants that rank by embedding also require the candidate to have one.
    """
    if isinstance(f, SemanticFilter):
        return candidate.embedding is not None
    if isinstance(f, HybridFilter):
        return candidate.embedding is not None and _matches_predicates(candidate, f)
    if isinstance(f, StructuredFilter):
        return _matches_predicates(candidate, f)
    raise TypeError(f"unsupported filter type: {type(f).__name__}")
