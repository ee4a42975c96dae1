from globen.utils.dates import parse_iso

REQUIRED_FIELDS = ["id", "title", "venueId", "link"]


def validate_event(event):
    """Check that a record has its required fields and a parseable eventDate (or none)."""
    for field in REQUIRED_FIELDS:
        if not event.get(field):
            return False
    if event.get("eventDate") and parse_iso(event["eventDate"]) is None:
        return False
    return True
