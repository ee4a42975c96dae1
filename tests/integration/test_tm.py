import asyncio

import httpx

from globen.config import Settings
from globen.registry import build_pipeline_config
from globen.tm import enrich_events_with_tm, enrich_with_ticketmaster, names_match, scrape_tm_venue

PIPELINE = build_pipeline_config()
HOVET = PIPELINE.venue("hovet")
THREE_ARENA = PIPELINE.venue("3arena")
SETTINGS = Settings(ticketmaster_key="secret-key")

TM_BODY = {
    "_embedded": {
        "events": [
            {"name": "Kent - Live 2026", "dates": {"start": {"localDate": "2026-01-17", "localTime": "19:00:00"}}},
            {"name": "Datumlös", "dates": {"start": {}}},
            {"name": "Sen kväll", "dates": {"start": {"localDate": "2026-01-18"}}},
        ]
    }
}


def quiet(*_):
    pass


def unconfirmed(title, event_date="2026-01-16T23:00:00Z"):
    return {
        "id": f"hovet-{title}",
        "title": title,
        "eventDate": event_date,
        "eventTime": "00:00",
        "timeConfirmed": False,
    }


def run_with(handler, coro_factory):
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await coro_factory(client)
    return asyncio.run(scenario())


def test_names_match():
    assert names_match("Kent", "Kent - Live 2026") is True
    assert names_match("DIF – Leksand", "dif - leksand") is True
    assert names_match("Kent", "Ebba Grön") is False
    assert names_match("", "Kent") is False


def test_scrape_tm_venue():
    seen = []

    def handler(request):
        seen.append(request.url)
        return httpx.Response(200, json=TM_BODY)

    events = run_with(handler, lambda c: scrape_tm_venue(c, HOVET, SETTINGS, log=quiet))

    assert events == [
        {"name": "Kent - Live 2026", "date": "2026-01-17", "time": "19:00"},
        {"name": "Sen kväll", "date": "2026-01-18", "time": None},
    ]
    assert seen[0].path == "/discovery/v2/events.json"
    assert seen[0].params["apikey"] == "secret-key"
    assert seen[0].params["venueId"] == ",".join(HOVET.ticketmaster_venue_ids)


def test_venue_without_ticketmaster_ids_is_skipped():
    def handler(request):
        raise AssertionError("no request expected")

    assert run_with(handler, lambda c: scrape_tm_venue(c, THREE_ARENA, SETTINGS, log=quiet)) == []


def test_errors_do_not_leak_the_api_key():
    messages = []

    def handler(request):
        raise httpx.ConnectError(f"failed for {request.url}", request=request)

    events = run_with(handler, lambda c: scrape_tm_venue(c, HOVET, SETTINGS, log=lambda m, *_: messages.append(m)))

    assert events == []
    assert len(messages) == 1
    assert "NetworkError" in messages[0]
    assert "secret-key" not in messages[0]


def test_enrich_fills_unconfirmed_time():
    events = [
        unconfirmed("Kent"),
        unconfirmed("Kent", event_date="2026-01-19T23:00:00Z"),
        {**unconfirmed("Kent"), "id": "confirmed", "eventTime": "20:00", "timeConfirmed": True},
    ]
    tm_events = [{"name": "Kent - Live 2026", "date": "2026-01-17", "time": "19:00"}]

    assert enrich_events_with_tm(events, tm_events) == 1

    assert events[0]["eventTime"] == "19:00"
    assert events[0]["eventDate"] == "2026-01-17T18:00:00Z"
    assert events[0]["timeConfirmed"] is True
    assert events[1]["timeConfirmed"] is False
    assert events[2]["eventTime"] == "20:00"


def test_enrich_ignores_midnight_and_missing_times():
    events = [unconfirmed("Kent")]
    tm_events = [
        {"name": "Kent", "date": "2026-01-17", "time": "00:00"},
        {"name": "Kent", "date": "2026-01-17", "time": None},
    ]
    assert enrich_events_with_tm(events, tm_events) == 0
    assert events[0]["eventTime"] == "00:00"


def test_enrich_with_ticketmaster_needs_a_key():
    def handler(request):
        raise AssertionError("no request expected")

    events_by_venue = [(HOVET, [unconfirmed("Kent")])]
    total = run_with(handler, lambda c: enrich_with_ticketmaster(c, events_by_venue, Settings(), log=quiet))
    assert total == 0


def test_enrich_with_ticketmaster():
    def handler(request):
        return httpx.Response(200, json=TM_BODY)

    events = [unconfirmed("Kent")]
    total = run_with(handler, lambda c: enrich_with_ticketmaster(c, [(HOVET, events)], SETTINGS, log=quiet))

    assert total == 1
    assert events[0]["eventTime"] == "19:00"
