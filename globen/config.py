import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_OUTPUT_DIR = REPO_ROOT / "public"

EVENTS_FILE = "events.json"
STATUS_FILE = "status.json"
HISTORY_FILE = "history.json"
LOG_FILE = "scrape-log.txt"

TIMEZONE = "Europe/Stockholm"
USER_AGENT = "GlobenEvents/1.0"

HISTORY_LIMIT = 50
CHANGE_SAMPLE_LIMIT = 10
FEED_ITEM_LIMIT = 100
LOG_RETENTION_DAYS = 14
EVENT_DURATION_HOURS = 2

PERIODS = ["today", "tomorrow", "week", "upcoming"]

SITE_URL = "https://pag.example.com"
FEED_BASE_PATH = "/pag"

TM_BASE_URL = "https://app.ticketmaster.com/discovery/v2"

R2_ACCOUNT_ID = os.environ.get("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.environ.get("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.environ.get("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.environ.get("R2_BUCKET_NAME", "globen-events-data")


def _env_int(name, default):
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """Runtime knobs for one scrape run."""
    output_dir: Path = DEFAULT_OUTPUT_DIR
    fetch_timeout_ms: int = 10_000
    run_timeout_ms: int = 300_000
    max_parallel_scrapes: int = 5
    retention_days: int = 2
    detail_retries: int = 2
    listing_retries: int = 2
    retry_base_delay_ms: int = 500
    request_delay_ms: int = 200
    ticketmaster_key: str = ""


def load_settings():
    """Build Settings from the environment (and .env)."""
    return Settings(
        output_dir=Path(os.environ.get("OUTPUT_DIR") or DEFAULT_OUTPUT_DIR),
        fetch_timeout_ms=_env_int("FETCH_TIMEOUT_MS", 10_000),
        run_timeout_ms=_env_int("RUN_TIMEOUT_MS", 300_000),
        max_parallel_scrapes=max(1, _env_int("MAX_PARALLEL_SCRAPES", 5)),
        retention_days=_env_int("RETENTION_DAYS", 2),
        detail_retries=_env_int("DETAIL_RETRIES", 2),
        listing_retries=_env_int("LISTING_RETRIES", 2),
        retry_base_delay_ms=_env_int("RETRY_BASE_DELAY_MS", 500),
        request_delay_ms=_env_int("REQUEST_DELAY_MS", 200),
        ticketmaster_key=os.environ.get("TICKETMASTER_KEY", ""),
    )
