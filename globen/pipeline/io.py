import json
import os
import re
import tempfile
from datetime import datetime, timedelta, timezone

from globen import config


class RunLogger:
    """
    Print to the console and keep timestamped lines for the run log file.
    Call it like print: log("message") or log("message", "ERROR").
    """

    def __init__(self, echo=True):
        self.lines = []
        self.echo = echo

    def __call__(self, message, level="INFO"):
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        if self.echo:
            print(message)
        self.lines.append(f"[{timestamp}] [{level}] {message}")


def trim_log_by_time(log_path, retention_days=config.LOG_RETENTION_DAYS, now=None):
    """
    Remove log entries older than retention_days.
    Returns list of lines to keep.
    """
    if not log_path.exists():
        return []

    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=retention_days)
    cutoff_str = cutoff.strftime("%Y-%m-%d %H:%M:%S")

    kept_lines = []
    current_entry_recent = False

    with open(log_path, "r", encoding="utf-8") as f:
        for line in f:
            match = re.match(r"\[(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})\]", line)
            if match:
                current_entry_recent = match.group(1) >= cutoff_str

            if current_entry_recent:
                kept_lines.append(line)

    return kept_lines


def save_log(log_path, logger, now=None):
    """Append this run's lines to the log file after trimming old entries."""
    existing = trim_log_by_time(log_path, now=now)
    content = existing + ["\n--- New Run ---\n"] + [line + "\n" for line in logger.lines]
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with open(log_path, "w", encoding="utf-8") as f:
        f.writelines(content)


def write_text(path, text):
    """Write via a temp file + rename so readers never see a half-written file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def write_json(path, data):
    write_text(path, json.dumps(data, indent=2, ensure_ascii=False))


def _read_json(path, log=print):
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        log(f"  Warning: Could not read {path.name}: {e}")
        return None


def load_previous_snapshot(output_dir, log=print):
    """
    Load the previous run's events.json.
    Missing or unreadable files mean starting from an empty state.
    Returns list of events.
    """
    data = _read_json(output_dir / config.EVENTS_FILE, log)
    if isinstance(data, dict) and isinstance(data.get("events"), list):
        return data["events"]
    if isinstance(data, list):
        return data
    return []


def load_history(output_dir, log=print):
    data = _read_json(output_dir / config.HISTORY_FILE, log)
    return data if isinstance(data, list) else []
