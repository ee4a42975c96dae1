"""
Run recording: events.json, status.json and the bounded history.json.

record_failure() is the last thing a crashed run does, so it must never
raise, whatever state the run left behind.
"""

import traceback
from datetime import datetime, timezone

from globen import config
from globen.pipeline.io import load_history, write_json

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2

STATUS_BY_EXIT_CODE = {
    EXIT_SUCCESS: "success",
    EXIT_PARTIAL: "warning",
    EXIT_FATAL: "error",
}


def _iso(dt):
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def exit_code_for(critical_errors, detail_failures):
    if critical_errors:
        return EXIT_FATAL
    if detail_failures:
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def build_snapshot(events, now):
    return {
        "lastUpdated": _iso(now),
        "eventCount": len(events),
        "events": events,
    }


def sample_changes(changes, limit=config.CHANGE_SAMPLE_LIMIT):
    """Interleave added/updated/removed samples so one type cannot crowd out the others."""
    details = changes.get("details", {})
    queues = [list(details.get(kind, [])) for kind in ("added", "updated", "removed")]
    sampled = []
    while len(sampled) < limit and any(queues):
        for queue in queues:
            if queue and len(sampled) < limit:
                sampled.append(queue.pop(0))
    return sampled


def build_status(
    events,
    changes,
    venue_metrics,
    errors,
    started_at,
    duration_ms,
    exit_code,
    scraping=None,
):
    """RunStatus for status.json."""
    venues = {}
    for m in venue_metrics:
        venues[m.venue_id or m.name] = {
            "name": m.name,
            "success": m.errors == 0,
            "eventCount": m.event_count,
            "listingCount": m.listing_count,
            "failedScrapes": m.failed,
            "error": m.error_messages[0] if m.errors and m.error_messages else None,
            "durationMs": round(m.duration_ms),
        }

    with_date = sum(1 for e in events if e.get("eventDate"))
    scraping = dict(scraping or {})
    scraping.update({"withDate": with_date, "withoutDate": len(events) - with_date})

    return {
        "status": STATUS_BY_EXIT_CODE[exit_code],
        "lastRun": _iso(started_at),
        "duration": round(duration_ms),
        "eventCount": len(events),
        "arenaCount": len({e.get("venueId") for e in events if e.get("venueId")}),
        "venues": venues,
        "scraping": scraping,
        "changes": {
            "added": changes.get("added", 0),
            "updated": changes.get("updated", 0),
            "removed": changes.get("removed", 0),
        },
        "changesDetails": sample_changes(changes),
        "errors": list(errors),
        "exitCode": exit_code,
    }


def history_entry(status):
    return {
        "timestamp": status["lastRun"],
        "status": status["status"],
        "duration": status.get("duration"),
        "eventCount": status.get("eventCount", 0),
        "changes": status.get("changes", {"added": 0, "updated": 0, "removed": 0}),
        "errorCount": len(status.get("errors", [])),
        "exitCode": status.get("exitCode"),
    }


def append_history(history, status, limit=config.HISTORY_LIMIT):
    """Append newest last and drop the oldest entries beyond limit."""
    entries = [h for h in history if isinstance(h, dict)] + [history_entry(status)]
    return entries[-limit:]


def save_run(output_dir, snapshot, status, history):
    write_json(output_dir / config.EVENTS_FILE, snapshot)
    write_json(output_dir / config.STATUS_FILE, status)
    write_json(output_dir / config.HISTORY_FILE, history)


def record_failure(output_dir, error, started_at, log=print):
    """
    Best-effort error status + history entry after a run-aborting failure.
    Never raises. Returns True when both files were written.
    """
    try:
        now = datetime.now(timezone.utc)
        status = {
            "status": "error",
            "lastRun": _iso(started_at),
            "finishedAt": _iso(now),
            "duration": round((now - started_at).total_seconds() * 1000),
            "eventCount": 0,
            "arenaCount": 0,
            "changes": {"added": 0, "updated": 0, "removed": 0},
            "changesDetails": [],
            "errors": [{
                "title": type(error).__name__,
                "message": str(error) or repr(error),
            }],
            "errorTrace": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
            "exitCode": EXIT_FATAL,
        }
        write_json(output_dir / config.STATUS_FILE, status)
        history = append_history(load_history(output_dir, log), status)
        write_json(output_dir / config.HISTORY_FILE, history)
        return True
    except Exception as e:
        log(f"Could not record failure status: {e}", "ERROR")
        return False
