import asyncio

from globen.errors import FetchTimeoutError, NetworkError, ValidationError
from globen.http import fetch_with_retry
from globen.limiter import ConcurrencyLimiter
from globen.pipeline.metrics import VenueMetrics
from globen.utils.categories import resolve_category
from globen.utils.dates import is_time_confirmed, to_event_date_iso
from globen.utils.events import clean_title, is_addon_title, make_event_id
from globen.utils.urls import ensure_event_url
from globen.venues.extract import extract_performances


def build_record(venue, raw, title, category, performance=None, index=None, total=1):
    category_id, category_name, category_icon = category
    event_date = performance.date if performance else None
    event_time = performance.time if performance and event_date else None
    multi = total > 1

    return {
        "id": make_event_id(venue.id, raw.get("id"), index, total),
        "title": title,
        "venueId": venue.id,
        "venueName": venue.name,
        "venueColor": venue.color,
        "link": raw.get("link"),
        "categoryId": category_id,
        "categoryName": category_name,
        "categoryIcon": category_icon,
        "slug": raw.get("slug"),
        "eventDate": to_event_date_iso(event_date, event_time),
        "eventTime": event_time,
        "timeConfirmed": is_time_confirmed(event_time),
        "opponent": performance.opponent if performance else None,
        "performanceNumber": index if multi else None,
        "totalPerformances": total if multi else None,
    }


def filter_listing(raw_entries, pipeline, metrics):
    """Drop add-on packages and untitled rows. Returns [(raw, title), ...]."""
    entries = []
    for raw in raw_entries:
        if not isinstance(raw, dict):
            metrics.filtered += 1
            continue
        title = clean_title((raw.get("title") or {}).get("rendered"))
        if not title or is_addon_title(title, pipeline.addon_titles, pipeline.addon_keywords):
            metrics.filtered += 1
            continue
        entries.append((raw, title))
    return entries


async def map_venue(
    client,
    venue,
    raw_entries,
    pipeline,
    settings,
    errors,
    metrics=None,
    limiter=None,
    log=print,
    sleep=asyncio.sleep,
):
    """
    Turn one venue's listing into EventRecords, scraping each detail page for dates.

    Per-event failures (blocked URL, timeouts after retries, bad status) leave
    the entry dateless and are appended to `errors`; they never propagate.
    Returns (records, metrics).
    """
    metrics = metrics or VenueMetrics(name=venue.name, venue_id=venue.id)
    limiter = limiter or ConcurrencyLimiter(settings.max_parallel_scrapes)
    metrics.listing_count = len(raw_entries)

    entries = filter_listing(raw_entries, pipeline, metrics)

    def record_error(title, message):
        metrics.failed += 1
        metrics.error_messages.append(message)
        errors.append({"title": f"{venue.name}: {title}", "message": message})

    async def scrape(entry):
        raw, title = entry
        link = raw.get("link")
        try:
            ensure_event_url(link, pipeline.allowed_domains, log=log)
        except ValidationError:
            metrics.skipped += 1
            return []

        if settings.request_delay_ms:
            await sleep(settings.request_delay_ms / 1000)

        metrics.detail_pages += 1
        try:
            result = await fetch_with_retry(
                client,
                link,
                settings.fetch_timeout_ms,
                retries=settings.detail_retries,
                base_delay=settings.retry_base_delay_ms / 1000,
                sleep=sleep,
                log=log,
            )
        except (FetchTimeoutError, NetworkError) as e:
            record_error(title, str(e))
            return []

        if not result.ok:
            record_error(title, f"HTTP {result.status} for {link}")
            return []

        if not isinstance(result.body, str):
            record_error(title, f"Expected HTML from {link}")
            return []

        metrics.scraped += 1
        return extract_performances(result.body, venue)

    results, task_errors = await limiter.map(scrape, entries)

    # Failed tasks leave None in their slot, in the same order as task_errors.
    failures = iter(task_errors)
    for (raw, title), outcome in zip(entries, results):
        if outcome is None:
            error = next(failures)
            record_error(title, f"{type(error).__name__}: {error}")

    records = []
    for (raw, title), performances in zip(entries, results):
        category = resolve_category(
            raw,
            pipeline.categories,
            default_category_id=pipeline.default_category_id,
            sport_category_id=pipeline.sport_category_id,
        )
        performances = performances or []

        if not performances:
            records.append(build_record(venue, raw, title, category))
            continue

        total = len(performances)
        for index, performance in enumerate(performances, start=1):
            records.append(build_record(venue, raw, title, category, performance, index, total))

    metrics.event_count = len(records)
    with_date = sum(1 for r in records if r["eventDate"])
    log(f"  {venue.name}: {len(records)} performances from {len(entries)} listings ({with_date} dated)")
    return records, metrics
