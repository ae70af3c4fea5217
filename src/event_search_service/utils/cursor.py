"""
Opaque pagination cursors.

A cursor records the sort key and id of the last item on a page, tagged with
the ordering it belongs to:

    score ordering: score descending, id ascending
    date ordering:  event date descending, id descending

Tokens are urlsafe base64 of a compact JSON object. Decoding is total: any
input yields either a ``DecodedCursor`` or a ``CursorDecodeError`` value,
never an exception.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from ..models.validators import SortOrdering

# Longer tokens are rejected before decoding; real cursors are ~60 chars.
MAX_CURSOR_LENGTH = 512

_ORDERING_TAGS: dict[str, SortOrdering] = {"s": "score", "d": "date"}
_TAG_FOR_ORDERING = {v: k for k, v in _ORDERING_TAGS.items()}


@dataclass(frozen=True)
class DecodedCursor:
    ordering: SortOrdering
    sort_key: float | datetime
    tie_break_id: str


@dataclass(frozen=True)
class CursorDecodeError:
    """Why a cursor could not be used.

    ``malformed`` tokens are treated as "no cursor" by callers;
    ``unsupported_ordering`` means the token is well formed but belongs to an
    ordering scheme the caller cannot resume.
    """

    reason: str
    detail: str = ""

    @property
    def is_unsupported_ordering(self) -> bool:
        return self.reason == "unsupported_ordering"


def _b64encode(payload: dict[str, Any]) -> str:
    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def encode_cursor(ordering: SortOrdering, sort_key: float | datetime, tie_break_id: str) -> str:
    """Encode a resume position for the given ordering."""
    if ordering == "score":
        if isinstance(sort_key, datetime):
            raise TypeError("score cursors need a numeric sort key")
        key: Any = float(sort_key)
    elif ordering == "date":
        if not isinstance(sort_key, datetime):
            raise TypeError("date cursors need a datetime sort key")
        key = _as_utc(sort_key).isoformat()
    else:
        raise ValueError(f"unknown ordering: {ordering!r}")
    return _b64encode({"o": _TAG_FOR_ORDERING[ordering], "k": key, "i": tie_break_id})


def encode_score_cursor(score: float, tie_break_id: str) -> str:
    return encode_cursor("score", score, tie_break_id)


def encode_date_cursor(event_date: datetime, tie_break_id: str) -> str:
    return encode_cursor("date", event_date, tie_break_id)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def decode_cursor(token: Any) -> DecodedCursor | CursorDecodeError:
    """Decode a cursor token. Never raises."""
    if not isinstance(token, str) or not token:
        return CursorDecodeError("malformed", "cursor must be a non-empty string")
    if len(token) > MAX_CURSOR_LENGTH:
        return CursorDecodeError("malformed", "cursor too long")

    try:
        padded = token + "=" * (-len(token) % 4)
        raw = base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        return CursorDecodeError("malformed", f"undecodable cursor: {e.__class__.__name__}")

    if not isinstance(payload, dict) or set(payload) != {"o", "k", "i"}:
        return CursorDecodeError("malformed", "unexpected cursor shape")

    tag, key, tie_break_id = payload["o"], payload["k"], payload["i"]
    if not isinstance(tie_break_id, str) or not tie_break_id:
        return CursorDecodeError("malformed", "missing tie-break id")
    if not isinstance(tag, str):
        return CursorDecodeError("malformed", "missing ordering tag")

    ordering = _ORDERING_TAGS.get(tag)
    if ordering is None:
        return CursorDecodeError("unsupported_ordering", f"unknown ordering tag {tag!r}")

    if ordering == "score":
        if isinstance(key, bool) or not isinstance(key, (int, float)):
            return CursorDecodeError("malformed", "score cursor key must be a finite number")
        try:
            score = float(key)
        except OverflowError:
            return CursorDecodeError("malformed", "score cursor key out of range")
        if not math.isfinite(score):
            return CursorDecodeError("malformed", "score cursor key must be a finite number")
        return DecodedCursor(ordering="score", sort_key=score, tie_break_id=tie_break_id)

    if not isinstance(key, str):
        return CursorDecodeError("malformed", "date cursor key must be an ISO timestamp")
    try:
        event_date = _as_utc(datetime.fromisoformat(key))
    except ValueError:
        return CursorDecodeError("malformed", "date cursor key must be an ISO timestamp")
    return DecodedCursor(ordering="date", sort_key=event_date, tie_break_id=tie_break_id)


def is_after_score_position(score: float, candidate_id: str, cursor: DecodedCursor) -> bool:
    """True if (score, id) sorts strictly after the cursor in score ordering."""
    cursor_score = float(cursor.sort_key)  # type: ignore[arg-type]
    if score < cursor_score:
        return True
    return score == cursor_score and candidate_id > cursor.tie_break_id


def is_after_date_position(event_date: datetime, candidate_id: str, cursor: DecodedCursor) -> bool:
    """True if (date, id) sorts strictly after the cursor in date ordering."""
    cursor_date = cursor.sort_key
    event_date = _as_utc(event_date)
    if event_date < cursor_date:  # type: ignore[operator]
        return True
    return event_date == cursor_date and candidate_id < cursor.tie_break_id
