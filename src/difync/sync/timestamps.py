"""Normalisation of Dify ``updated_at`` values.

The Dify API has shipped ``updated_at`` as an ISO-8601 string, as integer
epoch seconds and as float epoch seconds, and sometimes omits it.
``normalize_timestamp()`` maps every shape to either a timezone-aware
``datetime`` or ``None`` (unknown).  It never raises: one malformed record
must not abort reconciliation of the rest.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

# Tried in order; first successful parse wins.  Layouts without a zone are
# interpreted as UTC.
_LAYOUTS: tuple[str, ...] = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%a, %d %b %Y %H:%M:%S %Z",
    "%a, %d %b %Y %H:%M:%S %z",
)

# strptime's %f stops at microseconds; RFC 3339 allows any precision.
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")

# RFC 1123 with a zone abbreviation %Z does not know (e.g. "MST").
_RFC1123_NAMED_ZONE = re.compile(
    r"^([A-Za-z]{3}, \d{2} [A-Za-z]{3} \d{4} \d{2}:\d{2}:\d{2}) [A-Za-z]{1,5}$"
)


def parse_timestamp_string(value: str) -> datetime | None:
    """Parse *value* against the known layouts.

    Returns:
        Timezone-aware datetime, or ``None`` if no layout matches.
    """
    text = value.strip()
    if not text:
        return None
    text = _EXCESS_FRACTION.sub(r"\1", text)
    for layout in _LAYOUTS:
        try:
            parsed = datetime.strptime(text, layout)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return _parse_rfc1123_named_zone(text)


def _parse_rfc1123_named_zone(text: str) -> datetime | None:
    """Parse RFC 1123 with an arbitrary zone abbreviation as UTC.

    Abbreviations carry no offset on their own, so an unrecognised one is
    read as offset zero.
    """
    match = _RFC1123_NAMED_ZONE.match(text)
    if match is None:
        return None
    try:
        parsed = datetime.strptime(match.group(1), "%a, %d %b %Y %H:%M:%S")
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


def from_epoch_seconds(value: int | float) -> datetime | None:
    """Convert epoch seconds to a UTC datetime, truncating fractions."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def normalize_timestamp(raw: Any) -> datetime | None:
    """Normalise a raw ``updated_at`` value.

    Args:
        raw: Value as decoded from the API JSON payload.

    Returns:
        A timezone-aware ``datetime``, or ``None`` when the value is absent,
        empty, unparseable or of an unsupported type.
    """
    match raw:
        case None:
            result = None
        case bool():
            # JSON true/false decode to bool, which is an int subclass.
            result = None
        case str():
            result = parse_timestamp_string(raw)
        case int() | float():
            result = from_epoch_seconds(raw)
        case _:
            result = None

    if result is None and raw not in (None, ""):
        logger.debug(
            "Unusable updated_at value %r (type: %s)",
            raw,
            type(raw).__name__,
        )
    return result
