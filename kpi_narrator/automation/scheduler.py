from typing import Optional
from apscheduler.schedulers.blocking import BlockingScheduler

from kpi_narrator.automation.batch_runner import run_narrative
from kpi_narrator.errors import NarratorError
from kpi_narrator.utils.logger import get_logger

log = get_logger("scheduler")


def scheduled_narrative(config_path: Optional[str]) -> None:
    """Cron job body: one narrative for the latest complete period."""
    try:
        result = run_narrative(config_path=config_path)
    except NarratorError as e:
        # already recorded in run history; keep the scheduler alive
        log.error("Scheduled narrative failed: %s", e)
        return
    log.info(
        "Scheduled narrative stored for %s (%d attempt(s))",
        result["analysis_period"],
        result["attempts"],
    )


def start_scheduler(
    schedule_config: dict,
    config_path: Optional[str] = None,
) -> None:
    """
    Start monthly narrative generation using APScheduler.

    schedule_config example (2nd of each month, 06:00):
    {
        "day": 2,
        "hour": 6,
        "minute": 0
    }
    """

    if not isinstance(schedule_config, dict):
        raise ValueError("schedule_config must be a dictionary")

    scheduler = BlockingScheduler()

    log.info("Starting scheduler with config: %s", schedule_config)

    scheduler.add_job(
        scheduled_narrative,
        trigger="cron",
        id="kpi-narrative-job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        kwargs={"config_path": config_path},
        **schedule_config
    )

    log.info("Scheduler started. Press CTRL+C to stop.")

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        scheduler.shutdown(wait=False)
        log.info("Scheduler stopped.")
