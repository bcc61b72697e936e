import copy
import time
from pathlib import Path
from typing import Optional

from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from kpi_narrator.automation.batch_runner import run_narrative
from kpi_narrator.config.loader import load_config
from kpi_narrator.errors import NarratorError
from kpi_narrator.sources.fact_store import SUPPORTED_EXT
from kpi_narrator.utils.logger import get_logger

log = get_logger("file-watcher")

COOLDOWN_SECONDS = 10
SETTLE_SECONDS = 2


class FactExportHandler(FileSystemEventHandler):
    """
    Regenerates the latest narrative whenever the ETL job drops a
    fresh fact-table export into the watched folder.
    """

    def __init__(self, config: dict, generator=None, settle: float = SETTLE_SECONDS) -> None:
        self.config = config
        self.generator = generator
        self.settle = settle
        self._cooldown = {}

    def on_created(self, event) -> None:
        if event.is_directory:
            return

        path = Path(event.src_path)

        if path.suffix.lower() not in SUPPORTED_EXT:
            return

        now = time.time()
        last_seen = self._cooldown.get(path.name)

        if last_seen and (now - last_seen) < COOLDOWN_SECONDS:
            return

        self._cooldown[path.name] = now

        log.info("New fact export detected: %s", path.name)

        # Allow the writer to finish the file
        time.sleep(self.settle)

        self.process(path)

    def process(self, path: Path) -> Optional[dict]:
        local_config = copy.deepcopy(self.config)
        local_config["source"]["type"] = "file"
        local_config["source"]["path"] = str(path)

        try:
            return run_narrative(config=local_config, generator=self.generator)
        except NarratorError as e:
            log.error(
                "Narrative failed for export %s | Reason: %s",
                path.name,
                str(e)
            )
            return None


def start_watcher(
    watch_dir: str,
    config_path: Optional[str] = None,
) -> None:
    watch_dir = Path(watch_dir)

    if not watch_dir.exists():
        raise FileNotFoundError(f"Watch directory not found: {watch_dir}")

    config = load_config(config_path)

    event_handler = FactExportHandler(config=config)

    observer = Observer()
    observer.schedule(event_handler, str(watch_dir), recursive=False)

    log.info("Watching folder: %s", watch_dir)
    log.info("Press CTRL+C to stop")

    observer.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        observer.stop()
        log.info("File watcher stopped")

    observer.join()
