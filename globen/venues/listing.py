from globen.errors import CriticalVenueError, FetchTimeoutError, NetworkError, ParseError
from globen.http import fetch_with_retry


async def fetch_listing(client, venue, settings, log=print, sleep=None):
    """
    Fetch a venue's WordPress event listing.
    Unreachable or non-200 endpoints raise CriticalVenueError; malformed JSON raises ParseError.
    """
    kwargs = {"sleep": sleep} if sleep else {}
    try:
        result = await fetch_with_retry(
            client,
            venue.api_url,
            settings.fetch_timeout_ms,
            retries=settings.listing_retries,
            base_delay=settings.retry_base_delay_ms / 1000,
            expect_json=True,
            log=log,
            **kwargs,
        )
    except (FetchTimeoutError, NetworkError) as e:
        raise CriticalVenueError(venue.id, f"listing unreachable: {e}") from e

    if not result.ok:
        raise CriticalVenueError(venue.id, f"listing returned HTTP {result.status}")

    if not isinstance(result.body, list):
        raise ParseError(f"{venue.id}: expected a JSON array, got {type(result.body).__name__}")

    return result.body
