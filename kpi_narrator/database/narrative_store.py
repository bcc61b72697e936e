import sqlite3
import json
from pathlib import Path
from typing import List, Optional

from kpi_narrator.core.records import ModelParams, NarrativeResult


class NarrativeStore:
    """
    Narrative sink keyed by analysis period.

    Writes are upserts: rerunning a period replaces its narrative.
    Only successful results are ever written.
    """

    def __init__(self, db_path="runs/narratives.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS narratives (
                    analysis_period TEXT PRIMARY KEY,
                    narrative_text TEXT NOT NULL,
                    generated_at TEXT NOT NULL,
                    model_params TEXT NOT NULL,
                    attempts INTEGER NOT NULL
                )
            """)

    def upsert(self, result: NarrativeResult) -> None:
        if not result.text:
            raise ValueError("Refusing to persist an empty narrative")

        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO narratives VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(analysis_period) DO UPDATE SET
                    narrative_text = excluded.narrative_text,
                    generated_at = excluded.generated_at,
                    model_params = excluded.model_params,
                    attempts = excluded.attempts
                """,
                (
                    result.analysis_period,
                    result.text,
                    result.generated_at,
                    json.dumps(result.model_params.to_dict(), sort_keys=True),
                    result.attempts,
                )
            )

    def get(self, analysis_period: str) -> Optional[NarrativeResult]:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT analysis_period, narrative_text, generated_at, "
                "model_params, attempts FROM narratives "
                "WHERE analysis_period = ?",
                (analysis_period,),
            ).fetchone()

        if row is None:
            return None

        period, text, generated_at, params, attempts = row
        return NarrativeResult(
            analysis_period=period,
            text=text,
            generated_at=generated_at,
            model_params=ModelParams(**json.loads(params)),
            attempts=attempts,
        )

    def list_periods(self) -> List[str]:
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT analysis_period FROM narratives "
                "ORDER BY analysis_period DESC"
            ).fetchall()
        return [r[0] for r in rows]
