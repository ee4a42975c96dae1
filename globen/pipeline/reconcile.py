import unicodedata
from datetime import datetime, timedelta, timezone

from globen import config
from globen.utils.dates import local_day, parse_iso
from globen.utils.events import display_title

SWEDISH_TRAILING_LETTERS = "åäö"


def dedup_key(event):
    """lowercase(title)-YYYY-MM-DD, or lowercase(title)-no-date."""
    day = local_day(event.get("eventDate"))
    return f"{(event.get('title') or '').lower()}-{day.isoformat() if day else 'no-date'}"


def completeness_score(event, preferred_venue_id=None):
    """
    Rank duplicate listings of the same show.
    Opponent beats confirmed time beats the preferred (home) venue.
    """
    score = 0
    if event.get("opponent"):
        score += 10
    if event.get("eventTime") and event.get("timeConfirmed"):
        score += 5
    if preferred_venue_id and event.get("venueId") == preferred_venue_id:
        score += 1
    return score


def dedupe_events(events, preferred_venue_id=None):
    """
    Collapse the same show listed by several venues.
    Records sharing a dedup key but coming from different venues keep only
    the highest completeness score; the first one seen wins a tie. Records
    from one venue never collapse, their ids already tell performances apart.
    Returns (kept_events, removed_count).
    """
    kept = []
    by_key = {}

    for event in events:
        key = dedup_key(event)
        group = by_key.setdefault(key, [])
        rival = next((e for e in group if e["venueId"] != event["venueId"]), None)

        if rival is None:
            group.append(event)
            kept.append(event)
            continue

        if completeness_score(event, preferred_venue_id) > completeness_score(rival, preferred_venue_id):
            # Replace every record of the losing venue under this key.
            losers = [e for e in group if e["venueId"] == rival["venueId"]]
            for loser in losers:
                group.remove(loser)
                kept.remove(loser)
            group.append(event)
            kept.append(event)

    return kept, len(events) - len(kept)


def retain_recent_events(current, previous, now=None, retention_days=2):
    """
    Carry forward previous events that already happened within the retention
    window and are missing from the current scrape, so "yesterday" still
    shows shows the venue site has taken down.
    Returns (events, retained_count).
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=retention_days)
    current_keys = {dedup_key(e) for e in current}
    current_ids = {e.get("id") for e in current}

    retained = []
    for event in previous:
        event_dt = parse_iso(event.get("eventDate"))
        if event_dt is None or not (cutoff <= event_dt < now):
            continue
        if dedup_key(event) in current_keys or event.get("id") in current_ids:
            continue
        retained.append(event)
        current_keys.add(dedup_key(event))

    return current + retained, len(retained)


def swedish_sort_key(text):
    """Collation key placing å, ä, ö after z and ignoring other accents."""
    key = []
    for char in (text or "").casefold():
        if char in SWEDISH_TRAILING_LETTERS:
            key.append(ord("z") + 1 + SWEDISH_TRAILING_LETTERS.index(char))
            continue
        base = unicodedata.normalize("NFKD", char)[0]
        key.append(ord(base))
    return key


def sort_events(events):
    """Dated events chronologically, then dateless ones alphabetically (Swedish order)."""
    dated = [e for e in events if parse_iso(e.get("eventDate"))]
    dateless = [e for e in events if not parse_iso(e.get("eventDate"))]
    dated.sort(key=lambda e: (parse_iso(e["eventDate"]), swedish_sort_key(e.get("title"))))
    dateless.sort(key=lambda e: swedish_sort_key(e.get("title")))
    return dated + dateless


def _diff_key(event):
    # Calendar day, not the instant, so a newly announced start time reads as an update.
    day = local_day(event.get("eventDate"))
    return f"{event.get('id')}|{day.isoformat() if day else 'no-date'}"


def _change_entry(change_type, event, details=None):
    return {
        "type": change_type,
        "id": event.get("id"),
        "title": display_title(event),
        "arena": event.get("venueName"),
        "date": event.get("eventDate"),
        "details": details,
    }


def _describe_update(old, new):
    parts = []
    if old.get("eventTime") != new.get("eventTime"):
        parts.append(f"tid {old.get('eventTime') or '–'} → {new.get('eventTime') or '–'}")
    if old.get("title") != new.get("title"):
        parts.append(f"titel \"{old.get('title')}\" → \"{new.get('title')}\"")
    if old.get("opponent") != new.get("opponent"):
        parts.append(f"motståndare {old.get('opponent') or '–'} → {new.get('opponent') or '–'}")
    return ", ".join(parts)


def diff_events(current, previous, now=None, retention_days=2, sample_limit=config.CHANGE_SAMPLE_LIMIT):
    """
    Compare two snapshots on id + calendar day.
    Counts are exact; details keep at most sample_limit entries per change type.
    Previous events older than the retention window aged out and are not
    reported as removed. removedEvents only holds records whose id is gone
    from the current run; a show moved to another day keeps its UID live.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=retention_days)
    previous_by_key = {_diff_key(e): e for e in previous}
    current_keys = set()
    current_ids = {e.get("id") for e in current}

    added, updated, removed = [], [], []
    for event in current:
        key = _diff_key(event)
        current_keys.add(key)
        old = previous_by_key.get(key)
        if old is None:
            added.append(_change_entry("added", event))
        elif any(old.get(f) != event.get(f) for f in ("eventTime", "title", "opponent")):
            updated.append(_change_entry("updated", event, _describe_update(old, event)))

    removed_events = []
    for key, event in previous_by_key.items():
        if key in current_keys:
            continue
        event_dt = parse_iso(event.get("eventDate"))
        if event_dt is not None and event_dt < cutoff:
            continue
        if event.get("id") not in current_ids:
            removed_events.append(event)
        removed.append(_change_entry("removed", event))

    return {
        "added": len(added),
        "updated": len(updated),
        "removed": len(removed),
        "details": {
            "added": added[:sample_limit],
            "updated": updated[:sample_limit],
            "removed": removed[:sample_limit],
        },
        "removedEvents": removed_events,
    }


def reconcile(current, previous, now=None, preferred_venue_id=None, retention_days=2):
    """
    dedupe -> retain -> sort -> diff.
    Returns (events, changes, stats).
    """
    now = now or datetime.now(timezone.utc)
    deduped, duplicates = dedupe_events(current, preferred_venue_id)
    merged, retained = retain_recent_events(deduped, previous, now, retention_days)
    ordered = sort_events(merged)
    changes = diff_events(ordered, previous, now, retention_days)
    stats = {"duplicatesRemoved": duplicates, "retained": retained}
    return ordered, changes, stats
