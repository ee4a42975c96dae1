import asyncio
import json
from datetime import datetime, timezone

import httpx

from globen.config import Settings
from globen.pipeline.feeds import feed_filenames
from globen.registry import build_pipeline_config
from globen.run import run_pipeline, run_with_watchdog

NOW = datetime(2026, 1, 25, 12, 0, tzinfo=timezone.utc)

DETAIL_AVICII = """
<ul><li><div class="date"><strong>Söndag 1 februari 2026</strong></div>
<span class="time">19:00</span></li></ul>
"""
DETAIL_HOVET = """
<ul><li><div class="date"><strong>Söndag 1 februari 2026</strong></div>
<div>Djurgården &#8211; Rögle</div>
<span class="time">19:00</span></li></ul>
"""


def quiet(*_):
    pass


async def no_sleep(seconds):
    pass


def make_pipeline():
    pipeline = build_pipeline_config()
    return build_pipeline_config(venues=[pipeline.venue("avicii-arena"), pipeline.venue("hovet")])


def make_settings(tmp_path, **overrides):
    return Settings(output_dir=tmp_path, request_delay_ms=0, retry_base_delay_ms=0, **overrides)


def entry(id, host, slug="hockey-night", title="Hockey Night"):
    return {
        "id": id,
        "title": {"rendered": title},
        "link": f"https://{host}/event/{slug}",
        "slug": slug,
        "events_category": [29],
    }


def site(listings, pages):
    """MockTransport handler serving listing JSON and detail HTML by host + path."""
    def handler(request):
        host, path = request.url.host, request.url.path
        if path.startswith("/wp-json/"):
            listing = listings.get(host)
            if isinstance(listing, int):
                return httpx.Response(listing, text="error")
            return httpx.Response(200, json=listing or [])
        page = pages.get(f"{host}{path}")
        if page is None:
            return httpx.Response(404, text="Not found")
        return httpx.Response(200, text=page, headers={"content-type": "text/html"})
    return handler


def run(tmp_path, handler, now=NOW, **overrides):
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await run_pipeline(
                make_pipeline(), make_settings(tmp_path, **overrides),
                client=client, now=now, log=quiet, sleep=no_sleep,
            )
    return asyncio.run(scenario())


HOCKEY_LISTINGS = {
    "aviciiarena.se": [entry(1, "aviciiarena.se")],
    "hovetarena.se": [entry(2, "hovetarena.se")],
}
HOCKEY_PAGES = {
    "aviciiarena.se/event/hockey-night": DETAIL_AVICII,
    "hovetarena.se/event/hockey-night": DETAIL_HOVET,
}


def test_hockey_night_keeps_the_more_complete_listing(tmp_path):
    result = run(tmp_path, site(HOCKEY_LISTINGS, HOCKEY_PAGES))

    assert result.exit_code == 0
    assert [e["id"] for e in result.events] == ["hovet-2"]
    event = result.events[0]
    assert event["opponent"] == "Rögle"
    assert event["eventDate"] == "2026-02-01T18:00:00Z"
    assert event["eventTime"] == "19:00"

    snapshot = json.loads((tmp_path / "events.json").read_text(encoding="utf-8"))
    assert snapshot["eventCount"] == 1
    assert snapshot["events"][0]["id"] == "hovet-2"

    status = json.loads((tmp_path / "status.json").read_text(encoding="utf-8"))
    assert status["status"] == "success"
    assert status["exitCode"] == 0
    assert status["scraping"]["duplicatesRemoved"] == 1
    assert status["changes"] == {"added": 1, "updated": 0, "removed": 0}
    assert set(status["venues"]) == {"avicii-arena", "hovet"}

    history = json.loads((tmp_path / "history.json").read_text(encoding="utf-8"))
    assert len(history) == 1


def test_all_feed_files_are_written(tmp_path):
    run(tmp_path, site(HOCKEY_LISTINGS, HOCKEY_PAGES))

    for period in ("today", "tomorrow", "week", "upcoming"):
        for name in feed_filenames(period).values():
            assert (tmp_path / name).exists(), name

    upcoming = (tmp_path / "rss-upcoming.xml").read_text(encoding="utf-8")
    assert "Hockey Night vs Rögle - Hovet" in upcoming
    assert "UID:hovet-2" in (tmp_path / "calendar-upcoming.ics").read_text(encoding="utf-8")


def test_second_run_diffs_against_previous_snapshot(tmp_path):
    run(tmp_path, site(HOCKEY_LISTINGS, HOCKEY_PAGES))

    listings = {"aviciiarena.se": HOCKEY_LISTINGS["aviciiarena.se"], "hovetarena.se": []}
    result = run(tmp_path, site(listings, HOCKEY_PAGES))

    assert [e["id"] for e in result.events] == ["avicii-arena-1"]
    assert result.status["changes"] == {"added": 1, "updated": 0, "removed": 1}

    ics = (tmp_path / "calendar-upcoming.ics").read_text(encoding="utf-8")
    assert "UID:hovet-2" in ics
    assert "STATUS:CANCELLED" in ics

    history = json.loads((tmp_path / "history.json").read_text(encoding="utf-8"))
    assert len(history) == 2


def test_failed_detail_page_is_partial(tmp_path):
    listings = dict(HOCKEY_LISTINGS)
    listings["hovetarena.se"] = [entry(2, "hovetarena.se"), entry(3, "hovetarena.se", slug="gone", title="Gone")]

    result = run(tmp_path, site(listings, HOCKEY_PAGES))

    assert result.exit_code == 2
    assert result.status["status"] == "warning"
    assert result.status["errors"][0]["title"] == "Hovet: Gone"
    gone = next(e for e in result.events if e["id"] == "hovet-3")
    assert gone["eventDate"] is None


def test_failed_listing_is_fatal_but_other_venues_proceed(tmp_path):
    listings = dict(HOCKEY_LISTINGS)
    listings["aviciiarena.se"] = 503

    result = run(tmp_path, site(listings, HOCKEY_PAGES))

    assert result.exit_code == 1
    assert [e["id"] for e in result.events] == ["hovet-2"]
    status = json.loads((tmp_path / "status.json").read_text(encoding="utf-8"))
    assert status["status"] == "error"
    assert status["venues"]["avicii-arena"]["success"] is False
    assert "HTTP 503" in status["venues"]["avicii-arena"]["error"]


def test_watchdog_aborts_slow_run(tmp_path):
    async def stalled(request):
        await asyncio.sleep(5)
        return httpx.Response(200, json=[])

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(stalled)) as client:
            return await run_with_watchdog(
                make_pipeline(), make_settings(tmp_path, run_timeout_ms=100),
                log=quiet, client=client, now=NOW, sleep=no_sleep,
            )

    exit_code = asyncio.run(scenario())

    assert exit_code == 1
    status = json.loads((tmp_path / "status.json").read_text(encoding="utf-8"))
    assert status["status"] == "error"
    assert status["errors"][0]["title"] == "RunTimeoutError"
    assert "100ms" in status["errors"][0]["message"]
    assert not (tmp_path / "events.json").exists()


def test_crash_is_recorded(tmp_path):
    def broken(request):
        raise RuntimeError("unexpected")

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(broken)) as client:
            return await run_with_watchdog(
                make_pipeline(), make_settings(tmp_path),
                log=quiet, client=client, now=NOW, sleep=no_sleep,
            )

    assert asyncio.run(scenario()) == 1
    status = json.loads((tmp_path / "status.json").read_text(encoding="utf-8"))
    assert status["errors"] == [{"title": "RuntimeError", "message": "unexpected"}]
