from dataclasses import dataclass
from datetime import date, datetime, timedelta

import pytz


DATE_FMT = "%d.%m.%Y"


@dataclass(frozen=True)
class ParsedDate:
    valid: bool
    value: date | None = None
    formatted: str = ""


INVALID = ParsedDate(valid=False)


def format_date(d: date) -> str:
    return d.strftime(DATE_FMT)


def parse_stored_date(s: str) -> date:
    return datetime.strptime(s.strip(), DATE_FMT).date()


def today_in(tz_name: str) -> date:
    return datetime.now(pytz.timezone(tz_name)).date()


def recent_days(today: date) -> tuple[date, date]:
    """Day before yesterday and yesterday, in that order."""
    return today - timedelta(days=2), today - timedelta(days=1)


def parse_flexible_date(text: str, today: date) -> ParsedDate:
    """
    Parse "d", "d.m", "d.m.yy" or "d.m.yyyy" (commas are accepted as dots).
    Missing month/year are taken from `today`.
    """
    parts = (text or "").strip().replace(",", ".").split(".")
    if not 1 <= len(parts) <= 3 or not all(p.isascii() and p.isdigit() for p in parts):
        return INVALID

    day = int(parts[0])
    month = int(parts[1]) if len(parts) >= 2 else today.month
    year = today.year
    if len(parts) == 3:
        raw_year = parts[2]
        if len(raw_year) == 2:
            year = 2000 + int(raw_year)
        elif len(raw_year) == 4:
            year = int(raw_year)
            if not 2000 <= year <= 2100:
                return INVALID
        else:
            return INVALID

    try:
        d = date(year, month, day)
    except (ValueError, OverflowError):
        return INVALID
    if (d.day, d.month, d.year) != (day, month, year):
        return INVALID
    return ParsedDate(valid=True, value=d, formatted=format_date(d))
