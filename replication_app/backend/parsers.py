"""
Parsing helpers for loosely formatted input values.

Dates arrive from clients and spreadsheets in many shapes ("2014",
"March 2014", "2014-03-02T10:00:00Z").  ``parse_date`` normalises
them to naive UTC datetimes for storage.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Optional

import pandas as pd  # type: ignore
from dateutil import parser as date_parser  # type: ignore

logger = logging.getLogger(__name__)

_YEAR_RE = re.compile(r"\b(1[89]|20)\d{2}\b")
# Missing month/day components are taken from here rather than today.
_DEFAULT_DATE = datetime(2000, 1, 1)


def parse_date(value: Any) -> Optional[datetime]:
    """Coerce a variety of date representations into a naive UTC datetime.

    Returns ``None`` for empty values.  Strings are parsed with
    `dateutil.parser.parse`; if that fails a bare four-digit year is
    accepted.  Missing month or day parts default to the first.

    Raises:
        ValueError: if no date can be extracted.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if not isinstance(value, (str, date)) and pd.isna(value):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = date_parser.parse(str(value), default=_DEFAULT_DATE)
        except (ValueError, OverflowError):
            # fall back to regex search for a 4‑digit year
            match = _YEAR_RE.search(str(value))
            if not match:
                raise ValueError(f"Unrecognised date: {value!r}")
            logger.debug(f"Falling back to year-only date for {value!r}")
            parsed = datetime(int(match.group()), 1, 1)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
