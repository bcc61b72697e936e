from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional


class RequestState(str, Enum):
    PENDING = "PENDING"
    IN_FLIGHT = "IN_FLIGHT"
    RETRYING = "RETRYING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


TERMINAL_STATES = (RequestState.SUCCEEDED, RequestState.FAILED)


@dataclass(frozen=True)
class PeriodRecord:
    """
    One row of KPI facts for a reporting period.

    `kpis` maps KPI name to a number or string. The mapping is
    wrapped read-only so a record cannot change after it is built.
    """
    period_key: str
    kpis: Mapping[str, Any]

    def __post_init__(self):
        object.__setattr__(self, "kpis", MappingProxyType(dict(self.kpis)))

    @property
    def kpi_names(self) -> frozenset:
        return frozenset(self.kpis)


@dataclass(frozen=True)
class ModelParams:
    temperature: float = 0.2
    max_output_tokens: int = 1024
    deterministic: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PromptDocument:
    analysis_period: str
    text: str
    history_json: str

    def __len__(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class Attempt:
    number: int
    outcome: str
    error: Optional[str] = None


@dataclass(frozen=True)
class NarrativeResult:
    analysis_period: str
    text: str
    model_params: ModelParams
    attempts: int = 1
    state: RequestState = RequestState.SUCCEEDED
    generated_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    attempt_log: List[Attempt] = field(default_factory=list, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis_period": self.analysis_period,
            "text": self.text,
            "generated_at": self.generated_at,
            "model_params": self.model_params.to_dict(),
            "attempts": self.attempts,
        }


def records_from_frame(df, period_column: str = "period_key") -> List[PeriodRecord]:
    """Build one PeriodRecord per DataFrame row, keeping column order."""
    kpi_columns = [c for c in df.columns if c != period_column]
    return [
        PeriodRecord(
            period_key=row[period_column],
            kpis={c: row[c] for c in kpi_columns},
        )
        for row in df.to_dict(orient="records")
    ]
