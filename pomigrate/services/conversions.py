"""Value conversions between Project Online and Smartsheet representations."""

import bisect
import re
from datetime import datetime, timezone
from typing import Any, Optional, Union

from dateutil import parser as date_parser

from ..models.target import Contact

DEFAULT_HOURS_PER_DAY = 8.0

PRIORITY_LABELS = [
    "Lowest",
    "Very Low",
    "Lower",
    "Medium",
    "Higher",
    "Very High",
    "Highest",
]
# Inclusive lower bound of each label above
PRIORITY_BOUNDS = [0, 143, 286, 429, 572, 858, 929]
PRIORITY_MIN = 0
PRIORITY_MAX = 1000

TASK_STATUS_NOT_STARTED = "Not Started"
TASK_STATUS_IN_PROGRESS = "In Progress"
TASK_STATUS_COMPLETE = "Complete"
TASK_STATUSES = [TASK_STATUS_NOT_STARTED, TASK_STATUS_IN_PROGRESS, TASK_STATUS_COMPLETE]

PROJECT_STATUSES = ["Active", "Planning", "Completed", "On Hold", "Cancelled"]

# Project Online writes this for "no date"
_EMPTY_DATE_YEAR = 1

_ISO_DURATION = re.compile(
    r"^P(?:(?P<weeks>\d+(?:\.\d+)?)W)?(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?"
    r"(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$",
    re.IGNORECASE,
)
_SIMPLE_DURATION = re.compile(
    r"^(?P<amount>-?\d+(?:\.\d+)?)\s*(?P<unit>w|d|h|m|wk|wks|day|days|hr|hrs|min|mins)?$",
    re.IGNORECASE,
)


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp into a timezone-aware UTC datetime.

    Args:
        value: ISO string, datetime or None

    Returns:
        datetime in UTC, or None for empty values and the empty-date sentinel

    Raises:
        ValueError: If the value cannot be parsed
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = date_parser.parse(str(value))
    if parsed.year == _EMPTY_DATE_YEAR:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_date_string(value: Optional[datetime]) -> Optional[str]:
    """Render a timestamp as a YYYY-MM-DD calendar date in UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d")


def parse_duration_hours(
    value: Any,
    hours_per_day: float = DEFAULT_HOURS_PER_DAY,
) -> Optional[float]:
    """
    Parse a duration into hours.

    Accepts ISO 8601 durations (P5D, PT40H, P1DT4H, PT480M) and the simple
    forms Project Online uses in exports (5d, 32h, 480m). Plain numbers are
    taken as hours.

    Args:
        value: Duration value
        hours_per_day: Working hours in one day

    Returns:
        Hours, or None when the value is empty

    Raises:
        ValueError: If the value is not a recognised duration
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    match = _ISO_DURATION.match(text)
    if match and text.upper() not in ("P", "PT"):
        parts = {k: float(v) if v else 0.0 for k, v in match.groupdict().items()}
        return (
            parts["weeks"] * 5 * hours_per_day
            + parts["days"] * hours_per_day
            + parts["hours"]
            + parts["minutes"] / 60
            + parts["seconds"] / 3600
        )

    match = _SIMPLE_DURATION.match(text)
    if match:
        amount = float(match.group("amount"))
        unit = (match.group("unit") or "h").lower()
        if unit.startswith("w"):
            return amount * 5 * hours_per_day
        if unit.startswith("d"):
            return amount * hours_per_day
        if unit.startswith("m"):
            return amount / 60
        return amount

    raise ValueError(f"Not a duration: {value!r}")


def _format_number(value: float) -> str:
    rounded = round(value, 2)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:g}"


def hours_to_days(hours: Optional[float], hours_per_day: float = DEFAULT_HOURS_PER_DAY) -> Optional[float]:
    """Convert hours to working days, rounded to two decimals."""
    if hours is None:
        return None
    return round(hours / hours_per_day, 2)


def hours_to_day_string(hours: Optional[float], hours_per_day: float = DEFAULT_HOURS_PER_DAY) -> Optional[str]:
    """Render hours as a day count, e.g. 40 -> "5d", 4 -> "0.5d"."""
    days = hours_to_days(hours, hours_per_day)
    if days is None:
        return None
    return f"{_format_number(days)}d"


def hours_to_effort_string(hours: Optional[float]) -> Optional[str]:
    """Render hours as a raw effort string, e.g. 40 -> "40h"."""
    if hours is None:
        return None
    return f"{_format_number(hours)}h"


def ratio_to_percent(ratio: Optional[float]) -> Optional[str]:
    """Render a ratio as a percentage string, e.g. 1.0 -> "100%"."""
    if ratio is None:
        return None
    return f"{int(round(ratio * 100))}%"


def percent_string(percent: Optional[float]) -> Optional[str]:
    """Render a 0-100 percentage, e.g. 50 -> "50%"."""
    if percent is None:
        return None
    return f"{_format_number(percent)}%"


def map_priority(value: Union[int, float]) -> str:
    """
    Map a 0-1000 priority onto the seven priority labels.

    Each band's lower bound is inclusive. Values outside 0-1000 clamp to
    Lowest or Highest.

    Args:
        value: Numeric priority

    Returns:
        Priority label
    """
    clamped = min(max(value, PRIORITY_MIN), PRIORITY_MAX)
    index = bisect.bisect_right(PRIORITY_BOUNDS, clamped) - 1
    return PRIORITY_LABELS[index]


def derive_task_status(percent_complete: Optional[float]) -> str:
    """Derive a task status from its percent complete."""
    if not percent_complete or percent_complete <= 0:
        return TASK_STATUS_NOT_STARTED
    if percent_complete >= 100:
        return TASK_STATUS_COMPLETE
    return TASK_STATUS_IN_PROGRESS


def make_contact(name: Optional[str], email: Optional[str]) -> Optional[Contact]:
    """Build a contact from a name and email. Name only when email is absent."""
    name = (name or "").strip() or None
    email = (email or "").strip() or None
    if not name and not email:
        return None
    return Contact(name=name, email=email)


def to_checkbox(value: Any) -> bool:
    """Coerce a source flag into a checkbox value."""
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)
