import re
from urllib.parse import urlencode

from globen import config
from globen.errors import FetchTimeoutError, NetworkError, ParseError
from globen.http import fetch_with_retry
from globen.utils.dates import local_day, normalize_time, to_event_date_iso


def normalize_name(name):
    """Lowercase and drop punctuation so "DIF – Leksand" and "Dif - Leksand" compare equal."""
    return re.sub(r"[^\w]+", " ", (name or "").lower()).strip()


def names_match(a, b):
    a, b = normalize_name(a), normalize_name(b)
    if not a or not b:
        return False
    return a == b or a in b or b in a


async def scrape_tm_venue(client, venue, settings, log=print):
    """
    Fetch a venue's upcoming events from the Ticketmaster Discovery API.
    Returns [{"name", "date", "time"}]; failures are logged and yield [].
    """
    if not settings.ticketmaster_key or not venue.ticketmaster_venue_ids:
        return []

    params = {
        "apikey": settings.ticketmaster_key,
        "venueId": ",".join(venue.ticketmaster_venue_ids),
        "countryCode": "SE",
        "sort": "date,asc",
        "size": 100,
    }
    url = f"{config.TM_BASE_URL}/events.json?{urlencode(params)}"

    try:
        result = await fetch_with_retry(
            client,
            url,
            settings.fetch_timeout_ms,
            retries=0,
            expect_json=True,
            log=log,
        )
    except (FetchTimeoutError, NetworkError, ParseError) as e:
        log(f"    {venue.name} (TM): ERROR - {type(e).__name__}", "WARNING")
        return []

    if not result.ok or not isinstance(result.body, dict):
        log(f"    {venue.name} (TM): HTTP {result.status}", "WARNING")
        return []

    events = []
    for tm_event in result.body.get("_embedded", {}).get("events", []):
        start = tm_event.get("dates", {}).get("start", {})
        if not start.get("localDate"):
            continue
        events.append({
            "name": tm_event.get("name", ""),
            "date": start["localDate"],
            "time": normalize_time(start.get("localTime")),
        })
    return events


def enrich_events_with_tm(events, tm_events):
    """
    Fill in start times the venue page has not announced yet.
    Only records with an unconfirmed time are touched; a Ticketmaster event
    matches on name and Stockholm calendar day. Returns the enriched count.
    """
    enriched = 0
    for event in events:
        if event.get("timeConfirmed"):
            continue
        day = local_day(event.get("eventDate"))
        if day is None:
            continue

        for tm_event in tm_events:
            if tm_event["date"] != day.isoformat() or not tm_event.get("time"):
                continue
            if tm_event["time"] == "00:00":
                continue
            if not names_match(event.get("title"), tm_event.get("name")):
                continue
            event["eventTime"] = tm_event["time"]
            event["eventDate"] = to_event_date_iso(day, tm_event["time"])
            event["timeConfirmed"] = True
            enriched += 1
            break
    return enriched


async def enrich_with_ticketmaster(client, events_by_venue, settings, log=print):
    """Run Ticketmaster enrichment per venue when TICKETMASTER_KEY is set."""
    if not settings.ticketmaster_key:
        return 0

    total = 0
    for venue, events in events_by_venue:
        tm_events = await scrape_tm_venue(client, venue, settings, log=log)
        if tm_events:
            total += enrich_events_with_tm(events, tm_events)
    if total:
        log(f"  Enriched {total} events with Ticketmaster start times")
    return total
