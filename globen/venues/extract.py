"""
Date/time extraction from venue event pages.

The arena sites list every performance as an <li>:

    <li><div class="date"><strong>Fredag 9 januari 2026</strong></div>
        <div class="item"><span class="time">15:00</span></div>
        <div class="item"><span class="time">19:00</span></div></li>

Each <li> is scanned on its own (nested lists belong to the inner item) and
only its .date element counts, so dated notices in other list items are ignored.
Pages without such a list fall back to the first bold date on the page.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

from bs4 import BeautifulSoup

from globen.utils.dates import normalize_time, parse_swedish_date

FALLBACK_DATE_PATTERN = re.compile(
    r"<strong>([^<]*\d{1,2}\s+[a-zåäö]+\s+\d{4})[^<]*</strong>",
    re.IGNORECASE,
)
FALLBACK_TIME_PATTERN = re.compile(r"(?:showstart|kl\.?)\s*(\d{1,2}[.:]\d{2})", re.IGNORECASE)
OPPONENT_SEPARATOR = r"\s*[-–—]\s*"


@dataclass
class Performance:
    date: Optional[date] = None
    time: Optional[str] = None
    opponent: Optional[str] = None


def _owned(element, li):
    return element.find_parent("li") is li


def _fragment_text(li):
    """Text of this <li> only, one line per string node."""
    parts = []
    for string in li.find_all(string=True):
        if string.find_parent("li") is not li:
            continue
        text = string.strip()
        if text:
            parts.append(text)
    return "\n".join(parts)


def _fragment_date(li):
    for marker in li.select(".date"):
        if not _owned(marker, li):
            continue
        event_date = parse_swedish_date(marker.get_text(" ", strip=True))
        if event_date:
            return event_date
    return None


def _fragment_times(li):
    times = []
    for marker in li.select(".time"):
        if not _owned(marker, li):
            continue
        time = normalize_time(marker.get_text(" ", strip=True))
        if time:
            times.append(time)
    return times


def find_opponent(text, prefixes):
    """
    "Djurgården – Leksand" -> "Leksand" when "Djurgården" is a known home-team prefix.
    Longer prefixes are tried first so "Djurgårdens IF" wins over "DIF".
    """
    if not text or not prefixes:
        return None

    for prefix in sorted(prefixes, key=len, reverse=True):
        pattern = rf"(?<!\w){re.escape(prefix)}{OPPONENT_SEPARATOR}([^\n]+)"
        match = re.search(pattern, text, re.IGNORECASE)
        if match:
            opponent = match.group(1).strip(" -–—")
            if opponent:
                return opponent
    return None


def _fallback_performance(html):
    for match in FALLBACK_DATE_PATTERN.finditer(html):
        date_text = re.sub(r"</?(strong|span)>", "", match.group(1), flags=re.IGNORECASE)
        event_date = parse_swedish_date(date_text)
        if not event_date:
            continue

        time_match = FALLBACK_TIME_PATTERN.search(html)
        time = normalize_time(time_match.group(1)) if time_match else None
        return Performance(date=event_date, time=time)
    return None


def extract_performances(html, venue=None):
    """
    Return every Performance found on an event page.

    Each dated <li> yields one Performance per time marker, or a single
    time-less Performance when it has none. 00:00 is kept as-is; callers
    decide that it means "time not announced yet".
    """
    if not html:
        return []

    prefixes = getattr(venue, "opponent_prefixes", ()) or ()
    soup = BeautifulSoup(html, "html.parser")
    performances = []

    for li in soup.find_all("li"):
        text = _fragment_text(li)
        event_date = _fragment_date(li)
        if not event_date:
            continue

        opponent = find_opponent(text, prefixes)
        times = _fragment_times(li)

        if times:
            for time in times:
                performances.append(Performance(date=event_date, time=time, opponent=opponent))
        else:
            performances.append(Performance(date=event_date, time=None, opponent=opponent))

    if not performances:
        fallback = _fallback_performance(html)
        if fallback:
            performances.append(fallback)

    return performances
