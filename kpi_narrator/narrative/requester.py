import inspect
import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from concurrent.futures import wait
from typing import Callable, Dict, List, Optional

from kpi_narrator.automation.leases import PeriodLeaseRegistry
from kpi_narrator.automation.retry import RetryPolicy
from kpi_narrator.core.periods import validate_period_key
from kpi_narrator.core.records import (
    Attempt,
    ModelParams,
    NarrativeResult,
    PromptDocument,
    RequestState,
    TERMINAL_STATES,
)
from kpi_narrator.errors import (
    IncompleteNarrativeError,
    NarratorError,
    RequestCancelledError,
    RequestError,
    TransientRequestError,
)
from kpi_narrator.utils.logger import get_logger

log = get_logger("narrative-requester")

TERMINAL_PUNCTUATION = (".", "!", "?", '"', "'", ")", "…", "”", "’")

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")

_ALLOWED = {
    RequestState.PENDING: (RequestState.IN_FLIGHT, RequestState.FAILED),
    RequestState.IN_FLIGHT: (
        RequestState.SUCCEEDED,
        RequestState.RETRYING,
        RequestState.FAILED,
    ),
    RequestState.RETRYING: (RequestState.IN_FLIGHT, RequestState.FAILED),
}


def validate_narrative(text: Optional[str], max_chars: int) -> Optional[str]:
    """Return why a generated narrative is unusable, or None if it is fine."""
    stripped = (text or "").strip()

    if not stripped:
        return "empty response"

    if len(stripped) > max_chars:
        return f"response is {len(stripped)} chars, limit is {max_chars}"

    paragraphs = [p for p in _PARAGRAPH_BREAK.split(stripped) if p.strip()]
    if len(paragraphs) > 1 and not stripped.endswith(TERMINAL_PUNCTUATION):
        return "multi-paragraph response ends mid-sentence (truncated)"

    return None


def _accepts_deterministic(generate) -> bool:
    try:
        params = inspect.signature(generate).parameters.values()
    except (TypeError, ValueError):
        return False
    return any(
        p.name == "deterministic" or p.kind is inspect.Parameter.VAR_KEYWORD
        for p in params
    )


class _RequestTracker:
    """State machine and attempt log for one request."""

    def __init__(self, period: str):
        self.period = period
        self.state = RequestState.PENDING
        self.states: List[RequestState] = [RequestState.PENDING]
        self.attempts: List[Attempt] = []

    def move(self, state: RequestState) -> None:
        if state not in _ALLOWED.get(self.state, ()):
            raise RuntimeError(
                f"Illegal request transition {self.state} -> {state}"
            )
        log.debug("%s: %s -> %s", self.period, self.state.value, state.value)
        self.state = state
        self.states.append(state)

    def record(self, outcome: str, error: Optional[BaseException] = None):
        self.attempts.append(
            Attempt(
                number=len(self.attempts) + 1,
                outcome=outcome,
                error=f"{type(error).__name__}: {error}" if error else None,
            )
        )


class NarrativeRequester:
    """
    Sends one prompt to a text generator and returns a validated narrative.

    `generator` is anything with
    `generate(prompt, temperature, max_output_tokens)` returning text.
    `deterministic` is passed as well when the generator accepts it;
    `LLMClient` is the production one.

    Rules:
    - one in-flight request per analysis period (others wait and reuse)
    - TransientRequestError retried with exponential backoff
      up to `retry_policy.max_attempts`
    - any other error fails the request at once
    - an invalid response gets exactly one more attempt,
      then IncompleteNarrativeError
    - every call runs under `timeout` seconds; a timeout is transient
    - nothing is persisted here
    """

    def __init__(
        self,
        generator,
        model_params: Optional[ModelParams] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: Optional[float] = 60.0,
        max_narrative_chars: int = 8000,
        leases: Optional[PeriodLeaseRegistry] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.generator = generator
        self._pass_deterministic = _accepts_deterministic(
            getattr(generator, "generate", None)
        )
        self.model_params = model_params or ModelParams()
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.max_narrative_chars = max_narrative_chars
        self.leases = leases or PeriodLeaseRegistry()
        self._sleep = sleep
        self._history_lock = threading.Lock()
        self._state_history: Dict[str, List[RequestState]] = {}

    # -------------------------------------------------
    # PUBLIC
    # -------------------------------------------------

    def request(
        self,
        prompt: PromptDocument,
        cancel: Optional[threading.Event] = None,
    ) -> NarrativeResult:
        period = validate_period_key(prompt.analysis_period)
        return self.leases.run_exclusive(
            period, lambda: self._run(prompt, cancel)
        )

    def state_history(self, period: str) -> List[RequestState]:
        """States visited by the most recent request for `period`."""
        with self._history_lock:
            return list(self._state_history.get(period, []))

    # -------------------------------------------------
    # REQUEST LOOP
    # -------------------------------------------------

    def _run(
        self,
        prompt: PromptDocument,
        cancel: Optional[threading.Event],
    ) -> NarrativeResult:
        period = prompt.analysis_period
        tracker = _RequestTracker(period)
        with self._history_lock:
            self._state_history[period] = tracker.states

        policy = self.retry_policy
        transient_failures = 0
        soft_retry_used = False

        while True:
            if cancel is not None and cancel.is_set():
                self._fail(tracker, RequestCancelledError("Request cancelled"))

            tracker.move(RequestState.IN_FLIGHT)
            attempt = len(tracker.attempts) + 1
            log.info("Requesting narrative for %s (attempt %d)", period, attempt)

            try:
                text = self._call(prompt.text, cancel)

            except TransientRequestError as exc:
                transient_failures += 1
                tracker.record("transient_error", exc)
                log.error(
                    "Transient error on attempt %d for %s: %s",
                    attempt,
                    period,
                    exc,
                )
                if transient_failures >= policy.max_attempts:
                    log.critical(
                        "Retry budget exhausted for %s after %d attempts",
                        period,
                        attempt,
                    )
                    self._fail(tracker, exc)

                tracker.move(RequestState.RETRYING)
                self._backoff(policy.delay_for(transient_failures), cancel, tracker)
                continue

            except RequestError as exc:
                tracker.record("fatal_error", exc)
                log.error("Fatal error for %s: %s", period, exc)
                self._fail(tracker, exc)

            except NarratorError as exc:
                tracker.record("fatal_error", exc)
                log.error("Generator unusable for %s: %s", period, exc)
                err = RequestError(f"{type(exc).__name__}: {exc}")
                err.__cause__ = exc
                self._fail(tracker, err)

            except Exception as exc:
                tracker.record("fatal_error", exc)
                log.exception("Unexpected generator failure for %s", period)
                err = RequestError(f"{type(exc).__name__}: {exc}")
                err.__cause__ = exc
                self._fail(tracker, err)

            problem = validate_narrative(text, self.max_narrative_chars)
            if problem:
                exc = IncompleteNarrativeError(problem)
                tracker.record("invalid_response", exc)
                log.warning("Invalid narrative for %s: %s", period, problem)
                if soft_retry_used:
                    self._fail(tracker, exc)
                soft_retry_used = True
                tracker.move(RequestState.RETRYING)
                continue

            tracker.record("succeeded")
            tracker.move(RequestState.SUCCEEDED)
            log.info(
                "Narrative for %s generated in %d attempt(s)",
                period,
                len(tracker.attempts),
            )
            return NarrativeResult(
                analysis_period=period,
                text=text.strip(),
                model_params=self.model_params,
                attempts=len(tracker.attempts),
                state=RequestState.SUCCEEDED,
                attempt_log=list(tracker.attempts),
            )

    def _call(self, prompt_text: str, cancel: Optional[threading.Event]) -> str:
        params = self.model_params
        kwargs = {
            "temperature": params.temperature,
            "max_output_tokens": params.max_output_tokens,
        }
        if self._pass_deterministic:
            kwargs["deterministic"] = params.deterministic

        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(self.generator.generate, prompt_text, **kwargs)

            if cancel is None:
                try:
                    return future.result(timeout=self.timeout)
                except FutureTimeout:
                    raise TransientRequestError(
                        f"Text generation timed out after {self.timeout}s"
                    ) from None

            deadline = (
                None if self.timeout is None
                else time.monotonic() + self.timeout
            )
            while True:
                done, _ = wait([future], timeout=0.1)
                if done:
                    return future.result()
                if cancel.is_set():
                    future.cancel()
                    raise RequestCancelledError("Request cancelled in flight")
                if deadline is not None and time.monotonic() >= deadline:
                    raise TransientRequestError(
                        f"Text generation timed out after {self.timeout}s"
                    )
        finally:
            # an abandoned call keeps its thread until the SDK returns;
            # its result is discarded
            executor.shutdown(wait=False)

    def _backoff(
        self,
        delay: float,
        cancel: Optional[threading.Event],
        tracker: _RequestTracker,
    ) -> None:
        log.info("Retrying %s in %.1fs", tracker.period, delay)
        if cancel is None:
            self._sleep(delay)
        elif cancel.wait(delay):
            self._fail(tracker, RequestCancelledError("Request cancelled"))

    def _fail(self, tracker: _RequestTracker, exc: BaseException) -> None:
        if tracker.state not in TERMINAL_STATES:
            tracker.move(RequestState.FAILED)
        if isinstance(exc, RequestError):
            exc.with_context(tracker.period, len(tracker.attempts))
        raise exc
