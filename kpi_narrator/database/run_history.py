import sqlite3
import json
from pathlib import Path
from datetime import datetime, timezone
from typing import Dict, List, Optional


class RunHistoryDB:
    """One row per narrative request, successful or not."""

    def __init__(self, db_path="runs/run_history.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS runs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT,
                    analysis_period TEXT,
                    status TEXT,
                    attempts INTEGER,
                    last_error TEXT,
                    metadata TEXT
                )
            """)

    def log_run(
        self,
        analysis_period: str,
        status: str,
        attempts: int = 0,
        last_error: Optional[str] = None,
        metadata: Optional[Dict] = None,
    ):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "INSERT INTO runs VALUES (NULL, ?, ?, ?, ?, ?, ?)",
                (
                    datetime.now(timezone.utc).isoformat(),
                    analysis_period,
                    status,
                    attempts,
                    last_error,
                    json.dumps(metadata or {}, default=str)
                )
            )

    def runs_for(self, analysis_period: str) -> List[Dict]:
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT * FROM runs WHERE analysis_period = ? ORDER BY id",
                (analysis_period,),
            ).fetchall()
        return [dict(r) for r in rows]
