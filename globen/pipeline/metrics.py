from dataclasses import dataclass, field


@dataclass
class VenueMetrics:
    """Track scraping metrics for each venue."""
    name: str
    venue_id: str = ""
    event_count: int = 0
    listing_count: int = 0
    filtered: int = 0
    detail_pages: int = 0
    scraped: int = 0
    skipped: int = 0
    failed: int = 0
    errors: int = 0
    error_messages: list = field(default_factory=list)
    duration_ms: float = 0.0


def total_scrape_stats(metrics):
    """Sum per-venue detail scrape counters for status.json."""
    totals = {"detailPages": 0, "scraped": 0, "skipped": 0, "failed": 0, "filtered": 0}
    for m in metrics:
        totals["detailPages"] += m.detail_pages
        totals["scraped"] += m.scraped
        totals["skipped"] += m.skipped
        totals["failed"] += m.failed
        totals["filtered"] += m.filtered
    return totals
