import re
from urllib.parse import urlsplit

from globen.errors import ValidationError

PRIVATE_HOST_PATTERNS = [
    r"^localhost$",
    r"^127\.0\.0\.1$",
    r"^10\.",
    r"^192\.168\.",
    r"^172\.(1[6-9]|2[0-9]|3[0-1])\.",
]


def is_private_host(hostname):
    """Lexical check for localhost and RFC 1918 ranges. Does not resolve DNS."""
    return any(re.match(pattern, hostname) for pattern in PRIVATE_HOST_PATTERNS)


def host_allowed(hostname, allowed_domains):
    return any(hostname == domain or hostname.endswith("." + domain) for domain in allowed_domains)


def validate_event_url(url, allowed_domains, log=print):
    """
    Pre-flight SSRF guard for detail-page URLs.
    Requires https, an allowlisted host (or subdomain) and a non-private hostname.
    Purely lexical: a hostname that later resolves to a private address is not caught.
    """
    if not url or not isinstance(url, str):
        return False

    try:
        parts = urlsplit(url.strip())
        hostname = (parts.hostname or "").lower()
    except ValueError as e:
        log(f"  SSRF: invalid URL {url!r}: {e}")
        return False

    if parts.scheme != "https":
        log(f"  SSRF: rejected {url} (scheme {parts.scheme or 'missing'!r}, https required)")
        return False

    if not hostname:
        log(f"  SSRF: rejected {url} (no hostname)")
        return False

    if is_private_host(hostname):
        log(f"  SSRF: blocked internal host {hostname} for {url}")
        return False

    if not host_allowed(hostname, allowed_domains):
        log(f"  SSRF: rejected {url} ({hostname} not in allowlist)")
        return False

    return True


def ensure_event_url(url, allowed_domains, log=print):
    """validate_event_url() that raises ValidationError instead of returning False."""
    if not validate_event_url(url, allowed_domains, log=log):
        raise ValidationError(f"Blocked detail URL: {url!r}")
    return url
