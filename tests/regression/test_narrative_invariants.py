import json
import threading

import pandas as pd
import pytest

from kpi_narrator.core.periods import select_history
from kpi_narrator.core.serializer import HistorySerializer
from kpi_narrator.narrative.requester import NarrativeRequester
from kpi_narrator.core.records import PromptDocument
from tests.conftest import ScriptedGenerator


# -------------------------------------------------
# Fixtures
# -------------------------------------------------

@pytest.fixture
def two_years():
    periods = pd.period_range("2022-01", "2023-12", freq="M").astype(str)
    return pd.DataFrame({
        "period_key": list(reversed(periods)),
        "revenue": [1000 + i * 10 for i in range(len(periods))],
        "orders": [50 + i for i in range(len(periods))],
    })


# -------------------------------------------------
# Regression Tests — MUST NEVER BREAK
# -------------------------------------------------

def test_history_json_is_sorted_and_complete(two_years):
    records = select_history(two_years, analysis_period="2023-12")

    parsed = json.loads(HistorySerializer.serialize(records))

    keys = [p["period_key"] for p in parsed]
    assert keys == sorted(keys, reverse=True)
    assert len(parsed) == 24
    assert all(isinstance(p["revenue"], int) for p in parsed)


def test_serialization_is_stable_across_frame_order(two_years):
    a = HistorySerializer.serialize(select_history(two_years, analysis_period="2023-12"))
    b = HistorySerializer.serialize(
        select_history(two_years.sample(frac=1, random_state=7), analysis_period="2023-12")
    )

    assert a == b


def test_many_concurrent_callers_one_billable_call():
    generator = ScriptedGenerator(delay=0.3)
    requester = NarrativeRequester(generator, sleep=lambda _: None)
    prompt = PromptDocument("2023-12", "prompt", "[]")

    threads = [threading.Thread(target=requester.request, args=(prompt,)) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(generator.calls) == 1
