from .fact_store import FileFactStore, SqliteFactStore, build_fact_store

__all__ = ["FileFactStore", "SqliteFactStore", "build_fact_store"]
