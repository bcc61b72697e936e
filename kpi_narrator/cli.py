"""
KPI Narrator CLI
"""

import argparse
import logging
import sys
from typing import List, Optional

from kpi_narrator.__version__ import __version__
from kpi_narrator.config.loader import load_config
from kpi_narrator.core.periods import period_range
from kpi_narrator.errors import NarratorError
from kpi_narrator.utils.logger import set_level

logger = logging.getLogger(__name__)


def _parse_backfill(value: str) -> List[str]:
    start, sep, end = value.partition(":")
    if not sep:
        return [start]
    return period_range(start, end)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description=f"KPI Narrator v{__version__}"
    )

    parser.add_argument("--config", required=False, help="Path to config YAML")
    parser.add_argument("--period", help="Analysis period (YYYY-MM); default is the latest complete one")
    parser.add_argument("--backfill", help="Period range START:END (YYYY-MM:YYYY-MM)")
    parser.add_argument("--watch", help="Watch folder for new fact exports")
    parser.add_argument("--schedule", action="store_true", help="Run on the configured cron schedule")
    parser.add_argument("--dry-run", action="store_true", help="Print the prompt, do not call the model")

    parser.add_argument("--version", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")

    args = parser.parse_args(argv)

    # ---- VERSION ----
    if args.version:
        print(f"KPI Narrator v{__version__}")
        return 0

    # ---- LOGGING ----
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    set_level("DEBUG" if args.verbose else "INFO")

    # ---- CONFIG VALIDATION ----
    if not args.config:
        parser.error("--config is required")

    config = load_config(args.config)

    # Heavy imports only once we know what to run
    from kpi_narrator.automation.batch_runner import (
        preview_prompt,
        run_backfill,
        run_narrative,
    )

    try:
        # ---- DRY RUN ----
        if args.dry_run:
            print(preview_prompt(config, analysis_period=args.period).text)
            return 0

        # ---- WATCH ----
        if args.watch:
            from kpi_narrator.automation.file_watcher import start_watcher
            start_watcher(args.watch, args.config)
            return 0

        # ---- SCHEDULE ----
        if args.schedule:
            from kpi_narrator.automation.scheduler import start_scheduler
            start_scheduler(
                config.get("automation", {}).get("schedule"),
                args.config,
            )
            return 0

        # ---- BACKFILL ----
        if args.backfill:
            summary = run_backfill(_parse_backfill(args.backfill), config=config)
            print(f"\nSucceeded: {', '.join(summary['succeeded']) or '-'}")
            for period, reason in sorted(summary["failed"].items()):
                print(f"Failed {period}: {reason}")
            print(f"Run folder: {summary['run_dir']}")
            return 1 if summary["failed"] else 0

        # ---- SINGLE PERIOD ----
        result = run_narrative(config=config, analysis_period=args.period)

    except NarratorError as e:
        logger.error("%s", e)
        return 1

    print(f"\nNarrative stored for {result['analysis_period']} "
          f"({result['attempts']} attempt(s))")
    print(f"Run folder: {result['run_dir']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
