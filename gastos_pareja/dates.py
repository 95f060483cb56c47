"""
Calendar helpers.

Dates travel as ISO strings (YYYY-MM-DD) and months as keys (YYYY-MM).
Comparisons are plain string comparisons on those keys: they sort
chronologically and never depend on the machine's timezone.
"""

import re
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

ISO_DATE_PREFIX = re.compile(r"^([0-9]{4})-([0-9]{2})-([0-9]{2})")
MONTH_KEY = re.compile(r"^[0-9]{4}-(0[1-9]|1[0-2])$")


def today_local(tz_name: Optional[str] = None) -> str:
    """
    Today's date in the creator's local timezone, as YYYY-MM-DD.

    Never derived from UTC: near midnight a UTC date would be "tomorrow"
    (or "yesterday") for the person entering the expense.
    """
    if tz_name:
        return datetime.now(ZoneInfo(tz_name)).date().isoformat()
    return date.today().isoformat()


def utc_timestamp() -> str:
    """Creation timestamp, e.g. 2024-03-05T12:30:00.000Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso_date(value: object) -> Optional[str]:
    """Return the 10-char ISO date prefix of ``value`` if it is a real date."""
    if not isinstance(value, str) or len(value) < 10:
        return None
    match = ISO_DATE_PREFIX.match(value)
    if match is None:
        return None
    try:
        date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None
    return value[:10]


def month_key(iso_date: Optional[str]) -> str:
    return str(iso_date or "")[:7]


def month_start(month: str) -> str:
    return f"{month}-01"


def is_before_month(iso_date: Optional[str], month: str) -> bool:
    return str(iso_date or "") < month_start(month)


def is_month_key(value: object) -> bool:
    return isinstance(value, str) and MONTH_KEY.match(value) is not None
