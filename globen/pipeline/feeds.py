import json
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from xml.sax.saxutils import escape

from icalendar import Calendar, Event

from globen import config
from globen.pipeline.io import write_text
from globen.utils.dates import format_swedish_date, local_day, parse_iso, today_local
from globen.utils.events import display_title

FEEDS = {
    "today": {"title": "På G - Idag", "description": "Evenemang i Globenområdet idag"},
    "tomorrow": {"title": "På G - Imorgon", "description": "Evenemang i Globenområdet imorgon"},
    "week": {"title": "På G - Denna vecka", "description": "Evenemang i Globenområdet denna vecka"},
    "upcoming": {"title": "På G - Kommande", "description": "Kommande evenemang i Globenområdet"},
}


def feed_filenames(period):
    return {
        "rss": f"rss-{period}.xml",
        "ical": f"calendar-{period}.ics",
        "json": f"feed-{period}.json",
    }


def filter_events_by_period(events, period, now=None, limit=config.FEED_ITEM_LIMIT):
    """
    Select events for a feed period using Stockholm calendar days.
    today/tomorrow match one day, week is [today, today+7), upcoming is
    today onwards plus dateless events. At most `limit` events, in input order.
    """
    if period not in FEEDS:
        raise ValueError(f"Unknown feed period: {period}")

    today = today_local(now)
    tomorrow = today + timedelta(days=1)
    week_end = today + timedelta(days=7)

    selected = []
    for event in events:
        day = local_day(event.get("eventDate"))
        if day is None:
            keep = period == "upcoming"
        elif period == "today":
            keep = day == today
        elif period == "tomorrow":
            keep = day == tomorrow
        elif period == "week":
            keep = today <= day < week_end
        else:
            keep = day >= today

        if keep:
            selected.append(event)
            if limit and len(selected) >= limit:
                break
    return selected


def _cdata(text):
    return "<![CDATA[" + (text or "").replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _describe(event):
    day = local_day(event.get("eventDate"))
    date_str = format_swedish_date(day) if day else "Datum ej angivet"
    if event.get("eventTime") and event.get("timeConfirmed"):
        date_str += f" kl. {event['eventTime']}"
    elif day:
        date_str += " (tid ej bekräftad)"
    return f"{date_str} på {event.get('venueName')}. Kategori: {event.get('categoryName')}"


def render_rss(events, period, now=None):
    """RSS 2.0 for one period."""
    now = now or datetime.now(timezone.utc)
    meta = FEEDS[period]
    build_date = format_datetime(now.astimezone(timezone.utc), usegmt=True)
    feed_url = f"{config.FEED_BASE_PATH}/{feed_filenames(period)['rss']}"

    items = []
    for event in filter_events_by_period(events, period, now):
        event_dt = parse_iso(event.get("eventDate"))
        pub_date = format_datetime(event_dt, usegmt=True) if event_dt else build_date
        items.append(f"""
    <item>
      <title>{_cdata(f"{display_title(event)} - {event.get('venueName')}")}</title>
      <link>{escape(event.get('link') or config.SITE_URL)}</link>
      <guid isPermaLink="false">{escape(event['id'])}</guid>
      <pubDate>{pub_date}</pubDate>
      <description>{_cdata(_describe(event))}</description>
      <category>{escape(event.get('categoryName') or '')}</category>
    </item>""")

    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">
  <channel>
    <title>{escape(meta['title'])}</title>
    <link>{config.SITE_URL}</link>
    <description>{escape(meta['description'])}</description>
    <language>sv</language>
    <lastBuildDate>{build_date}</lastBuildDate>
    <atom:link href="{escape(feed_url)}" rel="self" type="application/rss+xml"/>{''.join(items)}
  </channel>
</rss>
"""


def _add_schedule(vevent, event):
    """Timed events get a 2 hour slot; unconfirmed times become all-day entries."""
    event_dt = parse_iso(event.get("eventDate"))
    if event.get("eventTime") and event.get("timeConfirmed"):
        start = event_dt.astimezone(timezone.utc)
        vevent.add("dtstart", start)
        vevent.add("dtend", start + timedelta(hours=config.EVENT_DURATION_HOURS))
    else:
        day = local_day(event_dt)
        vevent.add("dtstart", day)
        vevent.add("dtend", day + timedelta(days=1))


def _build_vevent(event, now, cancelled=False):
    vevent = Event()
    vevent.add("uid", event["id"])
    vevent.add("dtstamp", now.astimezone(timezone.utc))
    vevent.add("summary", display_title(event))
    _add_schedule(vevent, event)
    vevent.add("location", f"{event.get('venueName')}, Stockholm")
    vevent.add("description", _describe(event))
    if event.get("link"):
        vevent.add("url", event["link"])
    if event.get("categoryName"):
        vevent.add("categories", [event["categoryName"]])
    if cancelled:
        vevent.add("status", "CANCELLED")
        vevent.add("sequence", 1)
    else:
        vevent.add("status", "CONFIRMED")
    return vevent


def render_ical(events, period, now=None, cancelled=()):
    """
    VCALENDAR for one period. Dateless events are left out. Removed events
    are published again with STATUS:CANCELLED under the same UID so
    subscribed calendars drop them.
    """
    now = now or datetime.now(timezone.utc)
    meta = FEEDS[period]

    cal = Calendar()
    cal.add("prodid", "-//Globen Events//På G//SV")
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")
    cal.add("x-wr-calname", meta["title"])
    cal.add("x-wr-caldesc", meta["description"])
    cal.add("x-wr-timezone", config.TIMEZONE)

    for event in filter_events_by_period(events, period, now):
        if event.get("eventDate"):
            cal.add_component(_build_vevent(event, now))

    live_ids = {event["id"] for event in events}
    for event in filter_events_by_period(cancelled, period, now):
        if event.get("eventDate") and event["id"] not in live_ids:
            cal.add_component(_build_vevent(event, now, cancelled=True))

    return cal.to_ical().decode("utf-8")


def render_json_feed(events, period, now=None):
    """JSON Feed 1.1 with a _meta extension for fields the base format lacks."""
    now = now or datetime.now(timezone.utc)
    meta = FEEDS[period]
    names = feed_filenames(period)

    items = []
    for event in filter_events_by_period(events, period, now):
        item = {
            "id": event["id"],
            "url": event.get("link"),
            "title": f"{display_title(event)} - {event.get('venueName')}",
            "content_text": _describe(event),
            "tags": [event["categoryName"]] if event.get("categoryName") else [],
            "_meta": {
                "venueId": event.get("venueId"),
                "venueName": event.get("venueName"),
                "venueColor": event.get("venueColor"),
                "categoryId": event.get("categoryId"),
                "categoryName": event.get("categoryName"),
                "categoryIcon": event.get("categoryIcon"),
                "eventDate": event.get("eventDate"),
                "eventTime": event.get("eventTime"),
                "timeConfirmed": event.get("timeConfirmed", False),
                "opponent": event.get("opponent"),
                "performanceNumber": event.get("performanceNumber"),
                "totalPerformances": event.get("totalPerformances"),
            },
        }
        if event.get("eventDate"):
            item["date_published"] = event["eventDate"]
        items.append(item)

    feed = {
        "version": "https://jsonfeed.org/version/1.1",
        "title": meta["title"],
        "description": meta["description"],
        "home_page_url": config.SITE_URL,
        "feed_url": f"{config.SITE_URL}{config.FEED_BASE_PATH}/{names['json']}",
        "language": "sv",
        "items": items,
    }
    return json.dumps(feed, indent=2, ensure_ascii=False)


def write_feeds(output_dir, events, now=None, cancelled=(), log=print):
    """Write rss/calendar/feed files for every period. Returns {filename: item_count}."""
    now = now or datetime.now(timezone.utc)
    written = {}
    for period in config.PERIODS:
        names = feed_filenames(period)
        write_text(output_dir / names["rss"], render_rss(events, period, now))
        write_text(output_dir / names["ical"], render_ical(events, period, now, cancelled))
        write_text(output_dir / names["json"], render_json_feed(events, period, now))
        count = len(filter_events_by_period(events, period, now))
        for name in names.values():
            written[name] = count
        log(f"  {period}: {count} events")
    return written
