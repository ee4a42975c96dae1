import json
from datetime import datetime, timezone

import pytest

from globen.pipeline.feeds import (
    feed_filenames,
    filter_events_by_period,
    render_ical,
    render_json_feed,
    render_rss,
    write_feeds,
)
from globen.pipeline.reconcile import reconcile

# 11:00 in Stockholm
NOW = datetime(2026, 1, 9, 10, 0, tzinfo=timezone.utc)


def make_event(id, event_date, event_time="19:00", confirmed=True, **extra):
    event = {
        "id": id,
        "title": "Konsert",
        "venueId": "hovet",
        "venueName": "Hovet",
        "venueColor": "#f59e0b",
        "link": f"https://hovetarena.se/event/{id}",
        "categoryId": 27,
        "categoryName": "Musik/Show",
        "categoryIcon": "music",
        "eventDate": event_date,
        "eventTime": event_time,
        "timeConfirmed": confirmed,
        "opponent": None,
        "performanceNumber": None,
        "totalPerformances": None,
    }
    event.update(extra)
    return event


LEKSAND = make_event(
    "hovet-123-1",
    "2026-01-09T14:00:00Z",
    event_time="15:00",
    title="DIF Hockey",
    categoryId=29,
    categoryName="Sport",
    categoryIcon="sport",
    opponent="Leksand",
    performanceNumber=1,
    totalPerformances=2,
)
TOMORROW = make_event("hovet-200", "2026-01-09T23:00:00Z", event_time="00:00", confirmed=False)
THIS_WEEK = make_event("annexet-300", "2026-01-14T18:00:00Z", venueId="annexet", venueName="Annexet")
MARCH = make_event("3arena-400", "2026-03-01T18:00:00Z", venueId="3arena", venueName="3Arena")
DATELESS = make_event("hovet-500", None, event_time=None, confirmed=False)

EVENTS = [LEKSAND, TOMORROW, THIS_WEEK, MARCH, DATELESS]


def ids(events):
    return [e["id"] for e in events]


class TestFilterByPeriod:
    def test_periods(self):
        assert ids(filter_events_by_period(EVENTS, "today", NOW)) == ["hovet-123-1"]
        assert ids(filter_events_by_period(EVENTS, "tomorrow", NOW)) == ["hovet-200"]
        assert ids(filter_events_by_period(EVENTS, "week", NOW)) == ["hovet-123-1", "hovet-200", "annexet-300"]
        assert ids(filter_events_by_period(EVENTS, "upcoming", NOW)) == ids(EVENTS)

    def test_past_events_are_not_upcoming(self):
        yesterday = make_event("old", "2026-01-08T18:00:00Z")
        assert filter_events_by_period([yesterday], "upcoming", NOW) == []

    def test_limit(self):
        assert ids(filter_events_by_period(EVENTS, "upcoming", NOW, limit=2)) == ["hovet-123-1", "hovet-200"]

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            filter_events_by_period(EVENTS, "yesterday", NOW)


def test_feed_filenames():
    assert feed_filenames("week") == {
        "rss": "rss-week.xml",
        "ical": "calendar-week.ics",
        "json": "feed-week.json",
    }


class TestRss:
    def test_item(self):
        rss = render_rss(EVENTS, "today", NOW)

        assert rss.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert "<title>På G - Idag</title>" in rss
        assert "<![CDATA[DIF Hockey vs Leksand (1/2) - Hovet]]>" in rss
        assert '<guid isPermaLink="false">hovet-123-1</guid>' in rss
        assert "<pubDate>Fri, 09 Jan 2026 14:00:00 GMT</pubDate>" in rss
        assert "fredag 9 januari 2026 kl. 15:00 på Hovet" in rss
        assert "<category>Sport</category>" in rss
        assert "hovet-200" not in rss

    def test_unconfirmed_time_is_marked(self):
        rss = render_rss(EVENTS, "tomorrow", NOW)
        assert "lördag 10 januari 2026 (tid ej bekräftad)" in rss
        assert "kl. 00:00" not in rss

    def test_escapes_markup(self):
        event = make_event("hovet-9", "2026-01-09T18:00:00Z", title="Rock ]]> Roll", link="https://hovetarena.se/?a=1&b=2")
        rss = render_rss([event], "today", NOW)
        assert "https://hovetarena.se/?a=1&amp;b=2" in rss
        assert "]]]]><![CDATA[>" in rss


class TestIcal:
    def test_timed_event(self):
        ics = render_ical(EVENTS, "today", NOW)

        assert ics.startswith("BEGIN:VCALENDAR")
        assert "UID:hovet-123-1" in ics
        assert "DTSTART:20260109T140000Z" in ics
        assert "DTEND:20260109T160000Z" in ics
        assert "SUMMARY:DIF Hockey vs Leksand (1/2)" in ics
        assert "STATUS:CONFIRMED" in ics

    def test_unconfirmed_time_is_all_day(self):
        ics = render_ical(EVENTS, "tomorrow", NOW)

        assert "DTSTART;VALUE=DATE:20260110" in ics
        assert "DTEND;VALUE=DATE:20260111" in ics

    def test_dateless_events_are_left_out(self):
        ics = render_ical(EVENTS, "upcoming", NOW)
        assert "UID:hovet-500" not in ics
        assert ics.count("BEGIN:VEVENT") == 4

    def test_cancelled_events(self):
        ics = render_ical([], "upcoming", NOW, cancelled=[MARCH])

        assert "UID:3arena-400" in ics
        assert "STATUS:CANCELLED" in ics
        assert "SEQUENCE:1" in ics

    def test_rescheduled_event_is_not_cancelled(self):
        before = make_event("hovet-7", "2026-01-20T18:00:00Z")
        after = make_event("hovet-7", "2026-01-25T18:00:00Z")

        events, changes, _ = reconcile([after], [before], NOW)
        ics = render_ical(events, "upcoming", NOW, cancelled=changes["removedEvents"])

        assert ics.count("UID:hovet-7") == 1
        assert "STATUS:CANCELLED" not in ics
        assert "DTSTART:20260125T180000Z" in ics

    def test_live_ids_win_over_stale_cancellations(self):
        stale = make_event("hovet-7", "2026-01-20T18:00:00Z")
        live = make_event("hovet-7", "2026-01-25T18:00:00Z")

        ics = render_ical([live], "upcoming", NOW, cancelled=[stale])

        assert ics.count("BEGIN:VEVENT") == 1
        assert "STATUS:CONFIRMED" in ics


class TestJsonFeed:
    def test_structure(self):
        feed = json.loads(render_json_feed(EVENTS, "upcoming", NOW))

        assert feed["version"] == "https://jsonfeed.org/version/1.1"
        assert feed["title"] == "På G - Kommande"
        assert feed["feed_url"].endswith("/feed-upcoming.json")
        assert ids(feed["items"]) == ids(EVENTS)

        first = feed["items"][0]
        assert first["title"] == "DIF Hockey vs Leksand (1/2) - Hovet"
        assert first["date_published"] == "2026-01-09T14:00:00Z"
        assert first["tags"] == ["Sport"]
        assert first["_meta"]["opponent"] == "Leksand"
        assert first["_meta"]["eventTime"] == "15:00"
        assert first["_meta"]["totalPerformances"] == 2

    def test_dateless_item_has_no_publish_date(self):
        feed = json.loads(render_json_feed(EVENTS, "upcoming", NOW))
        assert "date_published" not in feed["items"][-1]
        assert "Datum ej angivet" in feed["items"][-1]["content_text"]


def test_write_feeds(tmp_path):
    written = write_feeds(tmp_path, EVENTS, now=NOW, log=lambda *_: None)

    assert len(written) == 12
    for period in ("today", "tomorrow", "week", "upcoming"):
        for name in feed_filenames(period).values():
            assert (tmp_path / name).exists()
    assert written["rss-today.xml"] == 1
    assert written["feed-upcoming.json"] == 5
    assert list(tmp_path.glob("*.tmp")) == []
