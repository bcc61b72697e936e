"""
KPI Narrator

Turns a monthly KPI history into an LLM-written dashboard narrative:
deterministic JSON history, bounded prompt, one guarded text-generation
call, upsert into a narrative store.
"""

from .__version__ import __version__

# Keep package init lightweight: automation (APScheduler, watchdog)
# is imported explicitly by the CLI.

from .core import (
    PeriodRecord,
    ModelParams,
    PromptDocument,
    NarrativeResult,
    RequestState,
    HistorySerializer,
    PeriodBoundary,
    select_history,
)
from .narrative import (
    PromptBuilder,
    PromptConfig,
    NarrativeRequester,
    LLMClient,
)
from .database import NarrativeStore, RunHistoryDB

__all__ = [
    "__version__",
    "PeriodRecord",
    "ModelParams",
    "PromptDocument",
    "NarrativeResult",
    "RequestState",
    "HistorySerializer",
    "PeriodBoundary",
    "select_history",
    "PromptBuilder",
    "PromptConfig",
    "NarrativeRequester",
    "LLMClient",
    "NarrativeStore",
    "RunHistoryDB",
]
