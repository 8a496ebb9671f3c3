"""
Currency and date normalization for report values.

Reporting API values arrive as strings or numbers in several formats
("$1,234.56", "03/05/2026", "2026-03-05T00:00:00Z"). Everything here is
total: bad input yields a safe default (0 / "") instead of raising.
"""
import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

import pandas as pd

from latefees.config import get_settings

_YMD_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_MDY = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_LEADING_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def parse_currency_or_number(value: Any) -> float:
    """Parse "$1,234.56" / "1234.56" / 1234.56 to float. Returns 0.0 when unparseable."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0

    text = str(value).replace(",", "").replace("$", "").strip()
    try:
        number = float(text)
    except ValueError:
        match = _LEADING_NUMBER.match(text)
        if not match:
            return 0.0
        number = float(match.group(0))
    return number if math.isfinite(number) else 0.0


def to_ymd(value: Any) -> str:
    """
    Convert a date-ish value to YYYY-MM-DD.

    Accepts YYYY-MM-DD (with anything after it), M/D/YYYY, or any other
    string pandas can parse as a date (timezone-aware values are converted
    to UTC first). Returns "" when nothing matches; callers fall back to today.
    """
    if value is None or value == "":
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = str(value).strip()
    match = _YMD_PREFIX.match(text)
    if match:
        return f"{match.group(1)}-{match.group(2)}-{match.group(3)}"

    match = _MDY.match(text)
    if match:
        month, day, year = match.groups()
        return f"{year}-{int(month):02d}-{int(day):02d}"

    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return ""
    if parsed is None or pd.isna(parsed):
        return ""
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert("UTC")
    return parsed.strftime("%Y-%m-%d")


def to_mmddyyyy(value: Any) -> str:
    """Display formatter: any accepted date value as MM/DD/YYYY, or ""."""
    ymd = to_ymd(value)
    if not ymd:
        return ""
    year, month, day = ymd.split("-")
    return f"{month}/{day}/{year}"


def today_ymd(today: Optional[date] = None) -> str:
    return (today or date.today()).isoformat()


def iso_days_ago(days: int, now: Optional[datetime] = None) -> str:
    """UTC timestamp N days before now, e.g. 2026-01-01T12:00:00.000Z."""
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc) - timedelta(days=days)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def first_of_month_from_ymd(ymd: str, today: Optional[date] = None) -> str:
    """MM/01/YYYY for the month of a YYYY-MM-DD string; current month if malformed."""
    try:
        year = int(ymd[0:4])
        month = int(ymd[5:7])
        if 1 <= month <= 12:
            return f"{month:02d}/01/{year}"
    except (TypeError, ValueError):
        pass
    now = today or date.today()
    return f"{now.month:02d}/01/{now.year}"


def late_fee_description(ymd: str, prefix: Optional[str] = None) -> str:
    """
    Charge description pinned to the first of the charge month:
    "IL Custom Late Fee - 03/01/2026".
    """
    if not prefix:
        prefix = get_settings().late_fee_description_prefix
    return f"{prefix} - {first_of_month_from_ymd(ymd)}"


def format_description(template: str, ymd: str) -> str:
    """Fill {date} with the given charge date as MM/DD/YYYY (manual submissions)."""
    return template.replace("{date}", to_mmddyyyy(ymd))


def last_comma_first_to_first_last(name: Optional[str]) -> str:
    """'Doe, Jane' -> 'Jane Doe'. Names without a comma are returned as-is."""
    if not name:
        return ""
    parts = [p.strip() for p in str(name).split(",")]
    if len(parts) >= 2:
        return f"{parts[1]} {parts[0]}".strip()
    return str(name)
