#!/usr/bin/env python3
"""
Scrape events from the Globen-area arenas and write the site's data files.
Currently supports:
- Avicii Arena (aviciiarena.se)
- 3Arena (3arena.se)
- Hovet (hovetarena.se)
- Annexet (annexet.se)

Run from cron a few times a day: python scrape.py
Exit codes: 0 = success, 1 = fatal (venue listing down, timeout, crash), 2 = some detail pages failed.
"""

import asyncio
import sys

from globen import config
from globen.pipeline.feeds import feed_filenames
from globen.pipeline.io import RunLogger, save_log
from globen.pipeline.r2 import download_from_r2, r2_configured, upload_to_r2
from globen.registry import build_pipeline_config
from globen.run import run_with_watchdog
from globen.utils.dates import utc_now_iso


def output_files(output_dir):
    files = [output_dir / name for name in (config.EVENTS_FILE, config.STATUS_FILE, config.HISTORY_FILE, config.LOG_FILE)]
    for period in config.PERIODS:
        files += [output_dir / name for name in feed_filenames(period).values()]
    return files


def main():
    settings = config.load_settings()
    pipeline = build_pipeline_config()
    log = RunLogger()

    log("=" * 60)
    log(f"Starting scrape run at {utc_now_iso()}")
    log("=" * 60)

    if r2_configured():
        for name in (config.EVENTS_FILE, config.HISTORY_FILE, config.LOG_FILE):
            download_from_r2(name, settings.output_dir / name, log=log)

    exit_code = asyncio.run(run_with_watchdog(pipeline, settings, log=log))

    try:
        save_log(settings.output_dir / config.LOG_FILE, log)
    except OSError as e:
        print(f"Warning: Could not save log: {e}")

    if r2_configured():
        upload_to_r2(output_files(settings.output_dir), log=log)

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
