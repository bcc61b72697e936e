from .records import (
    PeriodRecord,
    ModelParams,
    PromptDocument,
    NarrativeResult,
    RequestState,
)
from .serializer import HistorySerializer
from .periods import PeriodBoundary, select_history

__all__ = [
    "PeriodRecord",
    "ModelParams",
    "PromptDocument",
    "NarrativeResult",
    "RequestState",
    "HistorySerializer",
    "PeriodBoundary",
    "select_history",
]
