import threading
from concurrent.futures import Future
from typing import Callable, Dict, Tuple, TypeVar

from kpi_narrator.utils.logger import get_logger

log = get_logger("period-leases")

T = TypeVar("T")


class PeriodLeaseRegistry:
    """
    Advisory lease per analysis period.

    The first caller for a period becomes the owner and runs the work.
    Callers arriving while the owner is still running wait on the same
    future and get its result (or its exception). The lease is released
    when the work finishes, so a later rerun for the period starts fresh.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._in_flight: Dict[str, Future] = {}

    def acquire(self, period: str) -> Tuple[Future, bool]:
        with self._lock:
            future = self._in_flight.get(period)
            if future is not None:
                return future, False
            future = Future()
            self._in_flight[period] = future
            return future, True

    def release(self, period: str, future: Future) -> None:
        with self._lock:
            if self._in_flight.get(period) is future:
                del self._in_flight[period]

    def is_held(self, period: str) -> bool:
        with self._lock:
            return period in self._in_flight

    def run_exclusive(self, period: str, work: Callable[[], T]) -> T:
        future, owner = self.acquire(period)

        if not owner:
            log.info("Request for %s already in flight, waiting", period)
            return future.result()

        try:
            result = work()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self.release(period, future)
