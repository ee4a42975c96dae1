SPORT_SLUG_PATTERNS = ["hockey"]


def detect_sport_from_slug(slug):
    """Listings filed under an unknown category but with a hockey slug are games."""
    slug_lower = (slug or "").lower()
    return any(pattern in slug_lower for pattern in SPORT_SLUG_PATTERNS)


def resolve_category(raw_event, categories, default_category_id=26, sport_category_id=29):
    """
    Map a WordPress events_category id to (id, name, icon).
    Unmapped ids fall back to Sport for hockey slugs, else the generic Event bucket.
    """
    category_ids = raw_event.get("events_category") or []
    category_id = category_ids[0] if category_ids else default_category_id

    if category_id in categories:
        category = categories[category_id]
        return category_id, category["name"], category["icon"]

    if detect_sport_from_slug(raw_event.get("slug")):
        sport = categories.get(sport_category_id, {"name": "Sport", "icon": "sport"})
        return category_id, sport["name"], sport["icon"]

    fallback = categories.get(default_category_id, {"name": "Event", "icon": "calendar"})
    return category_id, fallback["name"], fallback["icon"]
