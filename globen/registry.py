from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(frozen=True)
class VenueSource:
    """One arena whose WordPress listing we aggregate."""
    id: str
    name: str
    api_url: str
    website: str
    color: str
    allowed_hosts: tuple = ()
    ticketmaster_venue_ids: tuple = ()
    opponent_prefixes: tuple = ()


@dataclass(frozen=True)
class PipelineConfig:
    venues: tuple
    categories: MappingProxyType
    preferred_venue_id: str = "hovet"
    addon_titles: tuple = ("premium", "the 1989")
    addon_keywords: tuple = ("clubhouse", "premium lounge")
    default_category_id: int = 26
    sport_category_id: int = 29
    allowed_domains: tuple = field(default=())

    def __post_init__(self):
        if not self.allowed_domains:
            domains = []
            for venue in self.venues:
                for host in venue.allowed_hosts:
                    if host not in domains:
                        domains.append(host)
            object.__setattr__(self, "allowed_domains", tuple(domains))

    def venue(self, venue_id):
        for venue in self.venues:
            if venue.id == venue_id:
                return venue
        return None


VENUES = (
    VenueSource(
        id="avicii-arena",
        name="Avicii Arena",
        api_url="https://aviciiarena.se/wp-json/wp/v2/events?per_page=100",
        website="https://aviciiarena.se",
        color="#3b82f6",
        allowed_hosts=("aviciiarena.se",),
        ticketmaster_venue_ids=("Z7r9jZaA6X", "KovZ917Adl7"),
    ),
    VenueSource(
        id="3arena",
        name="3Arena",
        api_url="https://3arena.se/wp-json/wp/v2/events?per_page=100",
        website="https://3arena.se",
        color="#10b981",
        allowed_hosts=("3arena.se",),
        opponent_prefixes=("Hammarby", "Hammarby IF"),
    ),
    VenueSource(
        id="hovet",
        name="Hovet",
        api_url="https://hovetarena.se/wp-json/wp/v2/events?per_page=100",
        website="https://hovetarena.se",
        color="#f59e0b",
        allowed_hosts=("hovetarena.se",),
        ticketmaster_venue_ids=("Z698xZq2Za7wK", "Z598xZq2ZevA1", "Z598xZq2Zevk7", "ZFr9jZ1kFk"),
        opponent_prefixes=("Djurgården", "Djurgårdens IF", "DIF"),
    ),
    VenueSource(
        id="annexet",
        name="Annexet",
        api_url="https://annexet.se/wp-json/wp/v2/events?per_page=100",
        website="https://annexet.se",
        color="#ef4444",
        allowed_hosts=("annexet.se",),
        ticketmaster_venue_ids=("Za98xZq2Za1",),
    ),
)

CATEGORIES = MappingProxyType({
    27: {"name": "Musik/Show", "icon": "music"},
    29: {"name": "Sport", "icon": "sport"},
    30: {"name": "Humor/Samtal", "icon": "mic"},
    35: {"name": "Annat", "icon": "calendar"},
    26: {"name": "Event", "icon": "calendar"},
})


def build_pipeline_config(venues=VENUES, categories=CATEGORIES, **overrides):
    """Assemble the immutable venue/category configuration for a run."""
    return PipelineConfig(
        venues=tuple(venues),
        categories=MappingProxyType(dict(categories)),
        **overrides,
    )
