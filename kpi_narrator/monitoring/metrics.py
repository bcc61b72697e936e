import os
import threading
import time
from typing import Dict

import psutil


class MetricsCollector:
    """
    Counts narrative outcomes for one batch run and samples the
    process footprint when asked for a summary.
    """

    def __init__(self):
        self.start_time = time.time()
        self._lock = threading.Lock()
        self._outcomes: Dict[str, int] = {}
        self._attempts = 0

    def record(self, status: str, attempts: int = 0) -> None:
        with self._lock:
            self._outcomes[status] = self._outcomes.get(status, 0) + 1
            self._attempts += attempts

    def collect(self) -> Dict:
        process = psutil.Process(os.getpid())
        with self._lock:
            outcomes = dict(self._outcomes)
            attempts = self._attempts

        return {
            "duration_sec": round(time.time() - self.start_time, 2),
            "memory_mb": round(process.memory_info().rss / 1024 / 1024, 2),
            "periods": sum(outcomes.values()),
            "outcomes": outcomes,
            "external_calls": attempts,
        }
