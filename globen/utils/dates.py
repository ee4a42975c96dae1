import re
from datetime import date, datetime, time as dt_time, timezone
from zoneinfo import ZoneInfo

from globen import config

LOCAL_TZ = ZoneInfo(config.TIMEZONE)

SWEDISH_MONTHS = {
    "januari": 1, "februari": 2, "mars": 3, "april": 4,
    "maj": 5, "juni": 6, "juli": 7, "augusti": 8,
    "september": 9, "oktober": 10, "november": 11, "december": 12,
}

SWEDISH_WEEKDAYS = ["måndag", "tisdag", "onsdag", "torsdag", "fredag", "lördag", "söndag"]

DATE_PATTERN = re.compile(r"(\d{1,2})\s+([a-zåäö]+)\s+(\d{4})", re.IGNORECASE)
TIME_PATTERN = re.compile(r"(\d{1,2})[.:](\d{2})")

UNCONFIRMED_TIME = "00:00"


def parse_swedish_date(date_str):
    """
    Parse "fredag 13 november 2026" or "13 november 2026" into a date.
    Returns None when no known month name is found or the day is out of range.
    """
    if not date_str:
        return None

    for match in DATE_PATTERN.finditer(date_str.lower()):
        month = SWEDISH_MONTHS.get(match.group(2))
        if month is None:
            continue
        try:
            return date(int(match.group(3)), month, int(match.group(1)))
        except ValueError:
            continue
    return None


def normalize_time(time_str):
    """
    Normalize "19:00", "9.30", "20:00:00" to HH:MM.
    Returns None for anything that is not a valid clock time.
    """
    if not time_str:
        return None

    match = TIME_PATTERN.search(time_str.strip())
    if not match:
        return None

    hours = int(match.group(1))
    minutes = int(match.group(2))
    if hours > 23 or minutes > 59:
        return None

    return f"{hours:02d}:{minutes:02d}"


def is_time_confirmed(time_str):
    """00:00 is what the venues publish before a start time is announced."""
    return bool(time_str) and time_str != UNCONFIRMED_TIME


def to_event_date_iso(day, time_str=None):
    """Combine a local calendar day and HH:MM into a UTC ISO-8601 instant."""
    if day is None:
        return None

    hours, minutes = 0, 0
    if time_str:
        hours, minutes = (int(part) for part in time_str.split(":"))

    local = datetime.combine(day, dt_time(hours, minutes), tzinfo=LOCAL_TZ)
    return local.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_iso(value):
    """Parse an ISO instant (with Z or offset) into an aware datetime, or None."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def local_day(value):
    """Calendar day in Stockholm for an ISO instant string or aware datetime."""
    parsed = parse_iso(value) if isinstance(value, str) else value
    if parsed is None:
        return None
    return parsed.astimezone(LOCAL_TZ).date()


def today_local(now=None):
    now = now or datetime.now(timezone.utc)
    return local_day(now)


def utc_now_iso():
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def format_swedish_date(day):
    """fredag 9 januari 2026"""
    month_name = next(name for name, number in SWEDISH_MONTHS.items() if number == day.month)
    return f"{SWEDISH_WEEKDAYS[day.weekday()]} {day.day} {month_name} {day.year}"

