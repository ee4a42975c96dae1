import re

from bs4 import BeautifulSoup


def clean_title(rendered):
    """Strip markup and decode entities (&#8211;, &amp;, ...) from title.rendered."""
    if not rendered:
        return ""
    text = BeautifulSoup(rendered, "html.parser").get_text()
    return re.sub(r"\s+", " ", text).strip()


def is_addon_title(title, addon_titles, addon_keywords):
    """
    Premium packages and lounge upsells are listed as events of their own.
    Exact add-on names match case-insensitively, keywords match anywhere.
    """
    title_lower = title.lower().strip()
    if title_lower in addon_titles:
        return True
    return any(keyword in title_lower for keyword in addon_keywords)


def make_event_id(venue_id, source_id, index=None, total=1):
    """Stable id: venue + source id, suffixed with the 1-based performance for multi-show listings."""
    base = f"{venue_id}-{source_id}"
    if total > 1 and index is not None:
        return f"{base}-{index}"
    return base


def display_title(event):
    """Title with opponent and performance index, e.g. "DIF vs Leksand (1/2)"."""
    title = event.get("title", "")
    if event.get("opponent"):
        title = f"{title} vs {event['opponent']}"
    if (event.get("totalPerformances") or 0) > 1:
        title = f"{title} ({event['performanceNumber']}/{event['totalPerformances']})"
    return title
