import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional

import pandas as pd
from dateutil.relativedelta import relativedelta

from kpi_narrator.core.records import PeriodRecord, records_from_frame
from kpi_narrator.errors import (
    ConfigurationError,
    IncompletePeriodError,
    InvalidPeriodKeyError,
)

PERIOD_KEY_FORMAT = "%Y-%m"
PERIOD_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

BOUNDARY_MODES = ("calendar_month", "trailing_window")


# -------------------------------------------------
# PERIOD KEYS
# -------------------------------------------------
def validate_period_key(key) -> str:
    if not isinstance(key, str) or not PERIOD_KEY_RE.match(key):
        raise InvalidPeriodKeyError(key)
    return key


def period_start(key: str) -> date:
    validate_period_key(key)
    return datetime.strptime(key, PERIOD_KEY_FORMAT).date()


def shift_period(key: str, months: int) -> str:
    return (period_start(key) + relativedelta(months=months)).strftime(
        PERIOD_KEY_FORMAT
    )


def period_range(start: str, end: str) -> List[str]:
    """Inclusive list of period keys from `start` to `end`, oldest first."""
    if period_start(start) > period_start(end):
        raise ConfigurationError(f"Period range {start}:{end} is reversed")

    keys = []
    current = start
    while current <= end:
        keys.append(current)
        current = shift_period(current, 1)
    return keys


def normalize_period_column(values: pd.Series) -> pd.Series:
    """
    Bring a fact-store period column to YYYY-MM strings.

    Accepts keys that are already YYYY-MM, date strings and datetimes
    (month-start dates are what a date spine usually emits).
    """
    as_text = values.astype(str)
    if as_text.str.match(PERIOD_KEY_RE.pattern).all():
        return as_text

    try:
        parsed = pd.to_datetime(values, errors="raise")
    except (ValueError, TypeError) as e:
        bad = next(
            (v for v in as_text if not PERIOD_KEY_RE.match(v)), None
        )
        raise InvalidPeriodKeyError(bad) from e

    return parsed.dt.strftime(PERIOD_KEY_FORMAT)


# -------------------------------------------------
# EXCLUSION BOUNDARY
# -------------------------------------------------
@dataclass(frozen=True)
class PeriodBoundary:
    """
    Decides which periods count as complete.

    calendar_month:
        the latest complete period is the month of `as_of`
        minus `lag_months`; everything later is in progress.
    trailing_window:
        same cutoff, then only the `window_months` most recent
        complete periods are kept.
    """
    mode: str = "calendar_month"
    lag_months: int = 1
    window_months: Optional[int] = None

    def __post_init__(self):
        if self.mode not in BOUNDARY_MODES:
            raise ConfigurationError(
                f"Unknown period boundary mode: {self.mode}"
            )
        if self.lag_months < 0:
            raise ConfigurationError("lag_months must be >= 0")
        if self.mode == "trailing_window":
            if not self.window_months or self.window_months < 1:
                raise ConfigurationError(
                    "trailing_window mode requires window_months >= 1"
                )

    def latest_complete(self, as_of: Optional[date] = None) -> str:
        as_of = as_of or datetime.now(timezone.utc).date()
        month_start = as_of.replace(day=1)
        return (month_start - relativedelta(months=self.lag_months)).strftime(
            PERIOD_KEY_FORMAT
        )


# -------------------------------------------------
# HISTORY SELECTION
# -------------------------------------------------
def select_history(
    df: pd.DataFrame,
    boundary: Optional[PeriodBoundary] = None,
    as_of: Optional[date] = None,
    analysis_period: Optional[str] = None,
    period_column: str = "period_key",
) -> List[PeriodRecord]:
    """
    Turn fact-store rows into the ordered history for one narrative.

    Rules:
    - periods after the analysis period are dropped
    - the analysis period defaults to the latest complete period
    - an explicit analysis period may not be later than that
    - result is sorted by period_key, newest first
    - duplicates are NOT removed here (the serializer rejects them)
    """
    boundary = boundary or PeriodBoundary()

    if period_column not in df.columns:
        raise ConfigurationError(
            f"Fact store has no period column '{period_column}'"
        )

    latest = boundary.latest_complete(as_of)
    if analysis_period is None:
        cutoff = latest
    else:
        cutoff = validate_period_key(analysis_period)
        if cutoff > latest:
            raise IncompletePeriodError(cutoff, latest)

    frame = df.copy()
    frame[period_column] = normalize_period_column(frame[period_column])
    frame = frame[frame[period_column] <= cutoff]
    frame = frame.sort_values(period_column, ascending=False, kind="mergesort")

    if boundary.mode == "trailing_window":
        frame = frame.head(boundary.window_months)

    return records_from_frame(frame, period_column)
