from datetime import date

import pandas as pd
import pytest

from kpi_narrator.core.periods import (
    PeriodBoundary,
    period_range,
    select_history,
    shift_period,
)
from kpi_narrator.errors import (
    ConfigurationError,
    IncompletePeriodError,
    InvalidPeriodKeyError,
)


def test_calendar_month_drops_current_month(monthly_kpis):
    records = select_history(monthly_kpis, as_of=date(2024, 6, 17))

    assert [r.period_key for r in records] == ["2024-05", "2024-04", "2024-03"]


def test_lag_months_moves_cutoff_back(monthly_kpis):
    boundary = PeriodBoundary(lag_months=2)

    records = select_history(monthly_kpis, boundary, as_of=date(2024, 6, 1))

    assert records[0].period_key == "2024-04"


def test_trailing_window_keeps_most_recent_complete_periods(monthly_kpis):
    boundary = PeriodBoundary(mode="trailing_window", window_months=2)

    records = select_history(monthly_kpis, boundary, as_of=date(2024, 6, 30))

    assert [r.period_key for r in records] == ["2024-05", "2024-04"]


def test_explicit_analysis_period_for_backfill(monthly_kpis):
    records = select_history(monthly_kpis, analysis_period="2024-04")

    assert [r.period_key for r in records] == ["2024-04", "2024-03"]


def test_explicit_analysis_period_cannot_be_in_progress(monthly_kpis):
    with pytest.raises(IncompletePeriodError) as exc:
        select_history(monthly_kpis, analysis_period="2024-06", as_of=date(2024, 6, 10))

    assert exc.value.latest_complete == "2024-05"

    records = select_history(
        monthly_kpis, analysis_period="2024-05", as_of=date(2024, 6, 10)
    )
    assert records[0].period_key == "2024-05"


def test_date_spine_column_is_normalised():
    df = pd.DataFrame({
        "date_spine_dim_date_month": pd.to_datetime(["2024-01-01", "2024-02-01"]),
        "revenue": [1, 2],
    })

    records = select_history(
        df,
        as_of=date(2024, 3, 5),
        period_column="date_spine_dim_date_month",
    )

    assert [r.period_key for r in records] == ["2024-02", "2024-01"]
    assert dict(records[0].kpis) == {"revenue": 2}


def test_unparseable_period_column():
    df = pd.DataFrame({"period_key": ["not-a-month"], "revenue": [1]})

    with pytest.raises(InvalidPeriodKeyError):
        select_history(df, as_of=date(2024, 3, 5))


def test_missing_period_column():
    df = pd.DataFrame({"month": ["2024-01"], "revenue": [1]})

    with pytest.raises(ConfigurationError):
        select_history(df)


def test_trailing_window_requires_window():
    with pytest.raises(ConfigurationError):
        PeriodBoundary(mode="trailing_window")


def test_period_helpers_cross_year_boundary():
    assert shift_period("2024-01", -1) == "2023-12"
    assert period_range("2023-11", "2024-02") == [
        "2023-11", "2023-12", "2024-01", "2024-02",
    ]
