import sqlite3

import pytest

from kpi_narrator.core.records import ModelParams, NarrativeResult
from kpi_narrator.database.narrative_store import NarrativeStore
from kpi_narrator.database.run_history import RunHistoryDB
from kpi_narrator.errors import ConfigurationError
from kpi_narrator.sources.fact_store import (
    FileFactStore,
    SqliteFactStore,
    build_fact_store,
)


def _result(period, text):
    return NarrativeResult(
        analysis_period=period,
        text=text,
        model_params=ModelParams(temperature=0.3, max_output_tokens=100),
        attempts=2,
    )


def test_store_round_trips_result(tmp_path):
    store = NarrativeStore(tmp_path / "n.db")
    original = _result("2024-05", "All good.")

    store.upsert(original)
    loaded = store.get("2024-05")

    assert loaded.text == "All good."
    assert loaded.generated_at == original.generated_at
    assert loaded.model_params == original.model_params
    assert loaded.attempts == 2


def test_store_lists_newest_first(tmp_path):
    store = NarrativeStore(tmp_path / "n.db")
    for period in ("2024-03", "2024-05", "2024-04"):
        store.upsert(_result(period, "ok."))

    assert store.list_periods() == ["2024-05", "2024-04", "2024-03"]


def test_store_refuses_empty_text(tmp_path):
    store = NarrativeStore(tmp_path / "n.db")

    with pytest.raises(ValueError):
        store.upsert(_result("2024-05", ""))


def test_run_history_keeps_every_attempt(tmp_path):
    db = RunHistoryDB(tmp_path / "h.db")
    db.log_run("2024-05", "failed", attempts=3, last_error="TransientRequestError: timed out")
    db.log_run("2024-05", "succeeded", attempts=1)

    runs = db.runs_for("2024-05")

    assert [r["status"] for r in runs] == ["failed", "succeeded"]
    assert runs[0]["last_error"].startswith("TransientRequestError")


def test_csv_fact_store(tmp_path, monthly_kpis):
    path = tmp_path / "facts.csv"
    monthly_kpis.to_csv(path, index=False)

    df = FileFactStore(path).load()

    assert list(df.columns) == ["period_key", "revenue", "margin_pct", "top_region"]
    assert len(df) == 4


def test_sqlite_fact_store(tmp_path, monthly_kpis):
    db_path = tmp_path / "warehouse.db"
    with sqlite3.connect(db_path) as conn:
        monthly_kpis.to_sql("kpi_monthly", conn, index=False)

    store = build_fact_store({"type": "sqlite", "path": str(db_path), "table": "kpi_monthly"})
    df = store.load()

    assert isinstance(store, SqliteFactStore)
    assert sorted(df["period_key"]) == ["2024-03", "2024-04", "2024-05", "2024-06"]


def test_missing_fact_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        FileFactStore(tmp_path / "missing.csv").load()


def test_legacy_xls_export_is_not_supported(tmp_path):
    with pytest.raises(ConfigurationError):
        FileFactStore(tmp_path / "facts.xls")


def test_unknown_source_type():
    with pytest.raises(ConfigurationError):
        build_fact_store({"type": "bigquery", "path": "x"})
