import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from globen.errors import CriticalVenueError, ParseError, RunTimeoutError, ScraperError
from globen.http import create_client
from globen.limiter import ConcurrencyLimiter
from globen.pipeline.feeds import write_feeds
from globen.pipeline.io import load_history, load_previous_snapshot
from globen.pipeline.metrics import VenueMetrics, total_scrape_stats
from globen.pipeline.reconcile import reconcile
from globen.pipeline.status import (
    EXIT_FATAL,
    append_history,
    build_snapshot,
    build_status,
    exit_code_for,
    record_failure,
    save_run,
)
from globen.pipeline.validate import validate_event
from globen.tm import enrich_with_ticketmaster
from globen.venues.listing import fetch_listing
from globen.venues.mapper import map_venue


@dataclass
class RunResult:
    exit_code: int
    events: list = field(default_factory=list)
    status: dict = field(default_factory=dict)


def log_venue_summary(venue_metrics, log=print):
    log("")
    log("=" * 60)
    log("VENUE SUMMARY")
    log("=" * 60)
    log(f"{'Venue':<20} {'Events':>7} {'Failed':>7} {'Errors':>7} {'Time':>10}")
    log("-" * 60)
    for m in venue_metrics:
        log(f"{m.name:<20} {m.event_count:>7} {m.failed:>7} {m.errors:>7} {m.duration_ms:>8.0f}ms")
    log("-" * 60)
    total_events = sum(m.event_count for m in venue_metrics)
    total_failed = sum(m.failed for m in venue_metrics)
    total_errors = sum(m.errors for m in venue_metrics)
    total_time = sum(m.duration_ms for m in venue_metrics)
    log(f"{'TOTAL':<20} {total_events:>7} {total_failed:>7} {total_errors:>7} {total_time:>8.0f}ms")
    log("=" * 60)


async def scrape_venues(client, pipeline, settings, errors, log=print, sleep=asyncio.sleep):
    """
    Fetch and map every venue, one venue at a time.
    A venue whose listing fails contributes nothing; the others still run.
    Returns (events_by_venue, venue_metrics, critical_count).
    """
    limiter = ConcurrencyLimiter(settings.max_parallel_scrapes)
    events_by_venue = []
    venue_metrics = []
    critical = 0

    for venue in pipeline.venues:
        log(f"Scraping {venue.name}...")
        metrics = VenueMetrics(name=venue.name, venue_id=venue.id)
        start_time = time.monotonic()
        records = []

        try:
            raw_entries = await fetch_listing(client, venue, settings, log=log, sleep=sleep)
            log(f"  Found {len(raw_entries)} events from API")
            records, metrics = await map_venue(
                client, venue, raw_entries, pipeline, settings, errors,
                metrics=metrics, limiter=limiter, log=log, sleep=sleep,
            )
        except (CriticalVenueError, ParseError) as e:
            critical += 1
            metrics.errors += 1
            metrics.error_messages.insert(0, str(e))
            errors.append({"title": f"{venue.name}: listing", "message": str(e)})
            log(f"  ERROR: Failed to scrape {venue.name}: {e}", "ERROR")

        metrics.duration_ms = (time.monotonic() - start_time) * 1000
        venue_metrics.append(metrics)
        events_by_venue.append((venue, records))

    return events_by_venue, venue_metrics, critical


async def run_pipeline(pipeline, settings, client=None, now=None, log=print, sleep=asyncio.sleep):
    """
    One full run: scrape, reconcile against the previous snapshot, write every output.
    Returns a RunResult whose exit_code is 0 (ok), 1 (a venue failed) or 2 (detail scrapes failed).
    """
    now = now or datetime.now(timezone.utc)
    start_time = time.monotonic()
    output_dir = settings.output_dir

    previous = load_previous_snapshot(output_dir, log)
    history = load_history(output_dir, log)
    log(f"  Loaded {len(previous)} events from previous snapshot")

    errors = []
    own_client = client is None
    client = client or create_client()
    try:
        events_by_venue, venue_metrics, critical = await scrape_venues(
            client, pipeline, settings, errors, log=log, sleep=sleep,
        )
        await enrich_with_ticketmaster(client, events_by_venue, settings, log=log)
    finally:
        if own_client:
            await client.aclose()

    all_events = [e for _, records in events_by_venue for e in records]
    valid_events = [e for e in all_events if validate_event(e)]
    if len(valid_events) < len(all_events):
        log(f"  Filtered out {len(all_events) - len(valid_events)} invalid events", "WARNING")

    log("\nReconciling events...")
    events, changes, stats = reconcile(
        valid_events,
        previous,
        now=now,
        preferred_venue_id=pipeline.preferred_venue_id,
        retention_days=settings.retention_days,
    )
    log(f"  {stats['duplicatesRemoved']} duplicates removed, {stats['retained']} recent events retained")
    log(f"  Changes: +{changes['added']} ~{changes['updated']} -{changes['removed']}")

    log_venue_summary(venue_metrics, log)

    detail_failures = sum(m.failed for m in venue_metrics)
    exit_code = exit_code_for(critical, detail_failures)

    scraping = total_scrape_stats(venue_metrics)
    scraping.update(stats)
    status = build_status(
        events,
        changes,
        venue_metrics,
        errors,
        started_at=now,
        duration_ms=(time.monotonic() - start_time) * 1000,
        exit_code=exit_code,
        scraping=scraping,
    )

    log("\nWriting feeds...")
    write_feeds(output_dir, events, now=now, cancelled=changes["removedEvents"], log=log)
    save_run(output_dir, build_snapshot(events, now), status, append_history(history, status))
    log(f"Events saved to {output_dir}")

    failed_venues = [m.name for m in venue_metrics if m.errors]
    if failed_venues:
        log(f"WARNING: Failed to scrape: {', '.join(failed_venues)}", "ERROR")
    log(f"Total events: {len(events)} (exit code {exit_code})")

    return RunResult(exit_code=exit_code, events=events, status=status)


async def run_with_watchdog(pipeline, settings, log=print, **kwargs):
    """
    Race the run against RUN_TIMEOUT_MS. A timeout or any escaping exception
    is fatal: a best-effort error status is written and 1 is returned.
    """
    started_at = datetime.now(timezone.utc)
    timeout = settings.run_timeout_ms / 1000

    try:
        result = await asyncio.wait_for(
            run_pipeline(pipeline, settings, log=log, **kwargs),
            timeout=timeout,
        )
        return result.exit_code
    except Exception as e:
        error = e
        if isinstance(e, asyncio.TimeoutError) and not isinstance(e, ScraperError):
            error = RunTimeoutError(f"Run exceeded {settings.run_timeout_ms}ms and was abandoned")
        log(f"FATAL: {type(error).__name__}: {error}", "ERROR")
        record_failure(settings.output_dir, error, started_at, log=log)
        return EXIT_FATAL
