"""Parsing helpers for YouTube payloads."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Iterable, Iterator, TypeVar

T = TypeVar("T")

ISO_DURATION_RE = re.compile(
    r"^P(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)
STRICT_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
# Python 3.10 only parses 3- or 6-digit fractions.
FRACTION_RE = re.compile(r"\.(\d+)")


def parse_iso8601_duration(value: str | None) -> int | None:
    """Return the total seconds of an ISO 8601 duration such as ``PT1H5M10S``.

    ``None`` is returned when the value is missing or not a duration.
    """

    if not value:
        return None
    match = ISO_DURATION_RE.match(value.strip())
    if not match or value.strip() in {"P", "PT"}:
        return None
    parts = match.groupdict()
    days = int(parts["days"] or 0)
    hours = int(parts["hours"] or 0)
    minutes = int(parts["minutes"] or 0)
    seconds = float(parts["seconds"] or 0)
    return int(days * 86_400 + hours * 3_600 + minutes * 60 + seconds)


def parse_published_at(value: str | None) -> datetime | None:
    """Parse a publish timestamp into an aware UTC datetime.

    The strict RFC 3339 shape the API normally returns is tried first, then a
    lenient ISO 8601 parse that accepts fractional seconds and offsets.
    """

    if not value:
        return None
    cleaned = value.strip()
    try:
        parsed = datetime.strptime(cleaned, STRICT_TIMESTAMP_FORMAT)
    except ValueError:
        if cleaned.endswith(("Z", "z")):
            cleaned = cleaned[:-1] + "+00:00"
        cleaned = FRACTION_RE.sub(
            lambda match: "." + match.group(1).ljust(6, "0")[:6], cleaned, count=1
        )
        try:
            parsed = datetime.fromisoformat(cleaned)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def chunked(values: Iterable[T], size: int) -> Iterator[list[T]]:
    """Yield contiguous lists of at most ``size`` elements."""

    if size < 1:
        raise ValueError("Chunk size must be positive")
    batch: list[T] = []
    for value in values:
        batch.append(value)
        if len(batch) == size:
            yield batch
            batch = []
    if batch:
        yield batch


def unique_in_order(values: Iterable[str]) -> list[str]:
    """Drop blanks and duplicates while keeping first occurrences."""

    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered
