from typing import Optional


class NarratorError(Exception):
    """Base class for every error raised by kpi_narrator."""


# -------------------------------------------------
# LOCAL VALIDATION (fail fast, never retried)
# -------------------------------------------------
class ValidationError(NarratorError):
    pass


class EmptyHistoryError(ValidationError):
    def __init__(self, message: str = "KPI history is empty"):
        super().__init__(message)


class DuplicatePeriodError(ValidationError):
    def __init__(self, period_key: str):
        self.period_key = period_key
        super().__init__(f"Duplicate period_key in history: {period_key}")


class InvalidPeriodKeyError(ValidationError):
    def __init__(self, period_key):
        self.period_key = period_key
        super().__init__(
            f"Invalid period_key {period_key!r}, expected YYYY-MM"
        )


class InconsistentKpiSetError(ValidationError):
    def __init__(self, period_key: str, expected, actual):
        self.period_key = period_key
        self.expected = sorted(expected)
        self.actual = sorted(actual)
        super().__init__(
            f"KPI set of {period_key} {self.actual} "
            f"does not match {self.expected}"
        )


class UnresolvedPlaceholderError(ValidationError):
    def __init__(self, placeholders):
        self.placeholders = sorted(set(placeholders))
        super().__init__(
            "Unresolved template placeholders: "
            + ", ".join(self.placeholders)
        )


class PromptTooLargeError(ValidationError):
    def __init__(self, size: int, limit: int, unit: str = "chars"):
        self.size = size
        self.limit = limit
        self.unit = unit
        super().__init__(
            f"Prompt is {size} {unit}, budget is {limit} {unit}"
        )


class ConfigurationError(ValidationError):
    pass


class IncompletePeriodError(ValidationError):
    def __init__(self, period_key: str, latest_complete: str):
        self.period_key = period_key
        self.latest_complete = latest_complete
        super().__init__(
            f"Period {period_key} is still in progress, "
            f"latest complete period is {latest_complete}"
        )


# -------------------------------------------------
# EXTERNAL REQUEST
# -------------------------------------------------
class RequestError(NarratorError):
    """
    Failure of the outbound text-generation call.

    Once the requester gives up on a period it attaches the
    period and attempt count so the error alone is enough for
    an operator to diagnose the run.
    """

    analysis_period: Optional[str] = None
    attempts: Optional[int] = None

    def with_context(self, analysis_period: str, attempts: int):
        self.analysis_period = analysis_period
        self.attempts = attempts
        return self

    def __str__(self):
        message = super().__str__()
        if self.analysis_period is None:
            return message
        return (
            f"[{self.analysis_period}, {self.attempts} attempt(s)] {message}"
        )


class TransientRequestError(RequestError):
    """Timeout, rate limit or server-side failure. Safe to retry."""


class AuthOrQuotaError(RequestError):
    """Authentication, permission, bad request or exhausted quota."""


class IncompleteNarrativeError(RequestError):
    pass


class RequestCancelledError(RequestError):
    pass


# -------------------------------------------------
# LLM CLIENT SETUP
# -------------------------------------------------
class LLMDisabledError(NarratorError):
    pass


class LLMConfigurationError(NarratorError):
    pass
