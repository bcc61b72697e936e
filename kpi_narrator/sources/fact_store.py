import sqlite3
from pathlib import Path
from typing import Optional

import pandas as pd

from kpi_narrator.automation.retry import retry
from kpi_narrator.errors import ConfigurationError
from kpi_narrator.utils.logger import get_logger

log = get_logger("fact-store")

SUPPORTED_EXT = (".csv", ".xlsx")


# =====================================================
# FILE EXPORTS (CSV / EXCEL)
# =====================================================

class FileFactStore:
    """
    KPI fact table exported by the ETL job as a CSV or Excel file.
    One row per period, a period column plus one column per KPI.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        if self.path.suffix.lower() not in SUPPORTED_EXT:
            raise ConfigurationError(
                f"Unsupported fact store file type: {self.path.suffix}"
            )

    def load(self) -> pd.DataFrame:
        if not self.path.exists():
            raise FileNotFoundError(f"Fact store file not found: {self.path}")

        df = self._read()
        log.info("Loaded %d period rows from %s", len(df), self.path.name)
        return df

    @retry(times=3, delay=2, exceptions=(PermissionError, BlockingIOError))
    def _read(self) -> pd.DataFrame:
        if self.path.suffix.lower() == ".csv":
            return pd.read_csv(self.path)
        return pd.read_excel(self.path)


# =====================================================
# SQLITE TABLE / QUERY
# =====================================================

class SqliteFactStore:
    """KPI fact table living in a SQLite database."""

    def __init__(
        self,
        db_path: str,
        table: Optional[str] = None,
        query: Optional[str] = None,
    ):
        if not table and not query:
            raise ConfigurationError(
                "SqliteFactStore needs either a table or a query"
            )
        self.db_path = Path(db_path)
        self.table = table
        self.query = query

    @retry(times=3, delay=2, exceptions=(sqlite3.OperationalError,))
    def load(self) -> pd.DataFrame:
        if not self.db_path.exists():
            raise FileNotFoundError(f"Fact store database not found: {self.db_path}")

        sql = self.query or f'SELECT * FROM "{self.table}"'
        with sqlite3.connect(self.db_path) as conn:
            df = pd.read_sql_query(sql, conn)

        log.info("Loaded %d period rows from %s", len(df), self.db_path.name)
        return df


def build_fact_store(source_cfg: dict):
    kind = source_cfg.get("type", "file")

    if kind == "file":
        if not source_cfg.get("path"):
            raise ConfigurationError("source.path is required")
        return FileFactStore(source_cfg["path"])

    if kind == "sqlite":
        if not source_cfg.get("path"):
            raise ConfigurationError("source.path is required")
        return SqliteFactStore(
            source_cfg["path"],
            table=source_cfg.get("table"),
            query=source_cfg.get("query"),
        )

    raise ConfigurationError(f"Unknown fact store type: {kind}")
