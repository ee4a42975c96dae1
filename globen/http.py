import asyncio
import json
from dataclasses import dataclass
from typing import Any

import httpx

from globen import config
from globen.errors import FetchTimeoutError, NetworkError, ParseError

DEFAULT_HEADERS = {
    "User-Agent": config.USER_AGENT,
    "Accept": "application/json, text/html;q=0.9, */*;q=0.8",
    "Accept-Language": "sv-SE,sv;q=0.9,en;q=0.8",
}

RETRYABLE_ERRORS = (FetchTimeoutError, NetworkError)


@dataclass
class FetchResult:
    ok: bool
    status: int
    body: Any
    url: str = ""


def create_client(**kwargs):
    """Shared async client for one run. Timeouts are enforced per call in fetch()."""
    kwargs.setdefault("headers", DEFAULT_HEADERS)
    kwargs.setdefault("follow_redirects", True)
    kwargs.setdefault("timeout", None)
    return httpx.AsyncClient(**kwargs)


def _is_json_response(response):
    return "json" in response.headers.get("content-type", "").lower()


async def fetch(client, url, timeout_ms, expect_json=False):
    """
    GET url and read the full body within timeout_ms.

    A single deadline covers connect, headers and body; whichever of
    response, transport error or deadline comes first decides the outcome
    and the losing request is cancelled, which closes its connection.

    Raises FetchTimeoutError, NetworkError, or ParseError (JSON bodies only).
    """
    try:
        response = await asyncio.wait_for(client.get(url), timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        raise FetchTimeoutError(url, timeout_ms) from None
    except httpx.TimeoutException as e:
        raise FetchTimeoutError(url, timeout_ms) from e
    except httpx.HTTPError as e:
        raise NetworkError(f"{type(e).__name__} for {url}: {e}") from e

    status = response.status_code
    ok = status == 200

    if ok and (expect_json or _is_json_response(response)):
        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"Invalid JSON from {url}: {e}") from e
    else:
        body = response.text

    return FetchResult(ok=ok, status=status, body=body, url=url)


async def fetch_with_retry(
    client,
    url,
    timeout_ms,
    retries=2,
    base_delay=0.5,
    expect_json=False,
    sleep=asyncio.sleep,
    log=print,
):
    """
    fetch() with exponential backoff on timeouts and connection errors.
    Attempt 0 runs immediately, attempt n waits base_delay * 2**(n-1) seconds.
    ParseError and non-200 responses are returned/raised without retrying.
    """
    for attempt in range(retries + 1):
        if attempt > 0:
            wait = base_delay * (2 ** (attempt - 1))
            await sleep(wait)
        try:
            return await fetch(client, url, timeout_ms, expect_json=expect_json)
        except RETRYABLE_ERRORS as e:
            if attempt >= retries:
                raise
            log(f"    Retry {attempt + 1}/{retries} for {url} after {type(e).__name__}...")
