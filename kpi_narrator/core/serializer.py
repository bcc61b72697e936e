import json
import math
from numbers import Integral, Real
from typing import Any, Iterable, List

import numpy as np
import pandas as pd

from kpi_narrator.core.periods import validate_period_key
from kpi_narrator.core.records import PeriodRecord, records_from_frame
from kpi_narrator.errors import (
    DuplicatePeriodError,
    EmptyHistoryError,
    InconsistentKpiSetError,
)

PERIOD_FIELD = "period_key"


def _native(value: Any) -> Any:
    """
    Map a KPI value to a JSON-safe native type.

    Numbers stay numbers (numpy scalars included),
    missing values become null, anything else is text.
    """
    if value is None:
        return None

    if isinstance(value, (bool, np.bool_)):
        return bool(value)

    if isinstance(value, Integral):
        return int(value)

    if isinstance(value, Real):
        value = float(value)
        return None if math.isnan(value) or math.isinf(value) else value

    if isinstance(value, str):
        return value

    if np.ndim(value) == 0 and pd.isna(value):
        return None

    return str(value)


class HistorySerializer:
    """
    Serializes a KPI history into one deterministic JSON array.

    Rules:
    - newest period first
    - `period_key` first in every object, KPI fields in the
      column order of the newest record
    - numbers are never quoted
    - same input -> byte-identical output
    """

    separators = (",", ":")

    @classmethod
    def serialize(cls, records: Iterable[PeriodRecord]) -> str:
        ordered = cls.order(records)

        field_order = list(ordered[0].kpis)
        payload = []
        for record in ordered:
            item = {PERIOD_FIELD: record.period_key}
            for name in field_order:
                item[name] = _native(record.kpis[name])
            payload.append(item)

        return json.dumps(
            payload,
            separators=cls.separators,
            ensure_ascii=False,
            allow_nan=False,
        )

    @staticmethod
    def order(records: Iterable[PeriodRecord]) -> List[PeriodRecord]:
        records = list(records)
        if not records:
            raise EmptyHistoryError()

        seen = set()
        for record in records:
            validate_period_key(record.period_key)
            if record.period_key in seen:
                raise DuplicatePeriodError(record.period_key)
            seen.add(record.period_key)

        ordered = sorted(records, key=lambda r: r.period_key, reverse=True)

        expected = ordered[0].kpi_names
        if PERIOD_FIELD in expected:
            raise InconsistentKpiSetError(
                ordered[0].period_key, expected - {PERIOD_FIELD}, expected
            )
        for record in ordered[1:]:
            if record.kpi_names != expected:
                raise InconsistentKpiSetError(
                    record.period_key, expected, record.kpi_names
                )

        return ordered

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        period_column: str = PERIOD_FIELD,
    ) -> List[PeriodRecord]:
        return records_from_frame(df, period_column)
