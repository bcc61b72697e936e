from .narrative_store import NarrativeStore
from .run_history import RunHistoryDB

__all__ = ["NarrativeStore", "RunHistoryDB"]
