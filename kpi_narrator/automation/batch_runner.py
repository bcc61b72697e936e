import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from kpi_narrator.automation.run_metadata import create_run_metadata
from kpi_narrator.config.loader import load_config
from kpi_narrator.config.settings import (
    build_model_params,
    build_period_boundary,
    build_prompt_config,
    build_retry_policy,
)
from kpi_narrator.core.periods import PeriodBoundary, select_history
from kpi_narrator.core.records import NarrativeResult, PromptDocument
from kpi_narrator.core.serializer import HistorySerializer
from kpi_narrator.database.narrative_store import NarrativeStore
from kpi_narrator.database.run_history import RunHistoryDB
from kpi_narrator.errors import EmptyHistoryError, NarratorError, RequestError
from kpi_narrator.monitoring.metrics import MetricsCollector
from kpi_narrator.narrative.llm import LLMClient
from kpi_narrator.narrative.prompt import PromptBuilder
from kpi_narrator.narrative.requester import NarrativeRequester
from kpi_narrator.sources.fact_store import build_fact_store
from kpi_narrator.utils.logger import get_logger

log = get_logger("batch-runner")


# =====================================================
# PROMPT ASSEMBLY
# =====================================================

def compose_prompt(
    df: pd.DataFrame,
    boundary: PeriodBoundary,
    builder: PromptBuilder,
    analysis_period: Optional[str] = None,
    as_of: Optional[date] = None,
    period_column: str = "period_key",
) -> PromptDocument:
    records = select_history(
        df,
        boundary=boundary,
        as_of=as_of,
        analysis_period=analysis_period,
        period_column=period_column,
    )
    history_json = HistorySerializer.serialize(records)

    newest = max(r.period_key for r in records)
    if analysis_period is not None and newest != analysis_period:
        raise EmptyHistoryError(
            f"No KPI row for analysis period {analysis_period}"
        )

    return builder.build(history_json, analysis_period=newest)


def preview_prompt(
    config: Dict[str, Any],
    analysis_period: Optional[str] = None,
    as_of: Optional[date] = None,
) -> PromptDocument:
    """Prompt for one period without opening the sink or the model client."""
    source_cfg = config.get("source", {})
    return compose_prompt(
        build_fact_store(source_cfg).load(),
        build_period_boundary(config),
        PromptBuilder(build_prompt_config(config)),
        analysis_period=analysis_period,
        as_of=as_of,
        period_column=source_cfg.get("period_column", "period_key"),
    )


# =====================================================
# SINGLE PERIOD PIPELINE
# =====================================================

class NarrativePipeline:
    """
    Fact store -> history -> prompt -> text generation -> sink.

    Each period runs on its own records and prompt. The only state
    shared between periods is the read-only fact frame, the lease
    registry inside the requester and the sink.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        requester: NarrativeRequester,
        store: NarrativeStore,
        history_db: RunHistoryDB,
        fact_store=None,
    ):
        self.config = config
        self.requester = requester
        self.store = store
        self.history_db = history_db
        self.fact_store = fact_store
        self.boundary = build_period_boundary(config)
        self.builder = PromptBuilder(build_prompt_config(config))
        self.period_column = config["source"].get("period_column", "period_key")

    @classmethod
    def from_config(cls, config: Dict[str, Any], generator=None) -> "NarrativePipeline":
        requester_cfg = config.get("requester", {})
        llm_cfg = dict(config.get("llm", {}))
        llm_cfg.setdefault("timeout", requester_cfg.get("timeout", 60))

        requester = NarrativeRequester(
            generator or LLMClient(llm_cfg),
            model_params=build_model_params(config),
            retry_policy=build_retry_policy(config),
            timeout=requester_cfg.get("timeout", 60),
            max_narrative_chars=int(requester_cfg.get("max_narrative_chars", 8000)),
        )

        sink_cfg = config.get("sink", {})
        return cls(
            config,
            requester=requester,
            store=NarrativeStore(sink_cfg.get("path", "runs/narratives.db")),
            history_db=RunHistoryDB(
                sink_cfg.get("history_path", "runs/run_history.db")
            ),
            fact_store=build_fact_store(config.get("source", {})),
        )

    # -------------------------------------------------
    # STEPS
    # -------------------------------------------------

    def load_facts(self) -> pd.DataFrame:
        if self.fact_store is None:
            raise NarratorError("No fact store configured")
        return self.fact_store.load()

    def build_prompt(
        self,
        df: pd.DataFrame,
        analysis_period: Optional[str] = None,
        as_of: Optional[date] = None,
    ) -> PromptDocument:
        return compose_prompt(
            df,
            self.boundary,
            self.builder,
            analysis_period=analysis_period,
            as_of=as_of,
            period_column=self.period_column,
        )

    def run(
        self,
        df: pd.DataFrame,
        analysis_period: Optional[str] = None,
        as_of: Optional[date] = None,
        cancel: Optional[threading.Event] = None,
    ) -> NarrativeResult:
        label = analysis_period or "latest"

        try:
            prompt = self.build_prompt(df, analysis_period, as_of)
            label = prompt.analysis_period
            result = self.requester.request(prompt, cancel=cancel)

        except RequestError as e:
            log.error("Narrative failed for %s: %s", label, e)
            self.history_db.log_run(
                label,
                "failed",
                attempts=e.attempts or 0,
                last_error=f"{type(e).__name__}: {e}",
            )
            raise

        except NarratorError as e:
            # local validation: nothing was sent
            log.error("Narrative rejected before request for %s: %s", label, e)
            self.history_db.log_run(
                label,
                "rejected",
                attempts=0,
                last_error=f"{type(e).__name__}: {e}",
            )
            raise

        self.store.upsert(result)
        self.history_db.log_run(
            result.analysis_period,
            "succeeded",
            attempts=result.attempts,
            metadata={"attempt_log": [a.__dict__ for a in result.attempt_log]},
        )
        log.info("Narrative stored for %s", result.analysis_period)
        return result

    def backfill(
        self,
        df: pd.DataFrame,
        periods: Iterable[str],
        max_workers: int = 1,
        cancel: Optional[threading.Event] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> Dict[str, Any]:
        """
        Generate narratives for several periods.

        Failures are recorded and the remaining periods still run.
        """
        periods = list(periods)
        succeeded: Dict[str, NarrativeResult] = {}
        failed: Dict[str, str] = {}

        def _one(period: str):
            try:
                result = self.run(df, analysis_period=period, cancel=cancel)
            except NarratorError as e:
                failed[period] = f"{type(e).__name__}: {e}"
                if metrics:
                    metrics.record("failed", getattr(e, "attempts", None) or 0)
                return
            succeeded[period] = result
            if metrics:
                metrics.record("succeeded", result.attempts)

        log.info("Backfilling %d period(s) with %d worker(s)", len(periods), max_workers)

        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
            list(pool.map(_one, periods))

        return {"succeeded": succeeded, "failed": failed}


# =====================================================
# ENTRY POINTS (CLI / SCHEDULER / WATCHER)
# =====================================================

def _run_dir(config: Dict[str, Any]) -> Path:
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S")
    run_dir = Path(config.get("output_dir", "runs")) / timestamp
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def run_narrative(
    config_path: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None,
    analysis_period: Optional[str] = None,
    generator=None,
    as_of: Optional[date] = None,
) -> Dict[str, Any]:
    """Generate and store the narrative for one period (latest complete by default)."""
    config = config or load_config(config_path)
    pipeline = NarrativePipeline.from_config(config, generator=generator)
    metrics = MetricsCollector()
    run_dir = _run_dir(config)

    df = pipeline.load_facts()
    try:
        result = pipeline.run(df, analysis_period=analysis_period, as_of=as_of)
    except NarratorError as e:
        metrics.record("failed", getattr(e, "attempts", None) or 0)
        create_run_metadata(
            [analysis_period or "latest"],
            config,
            run_dir,
            status="failed",
            errors={analysis_period or "latest": str(e)},
            metrics=metrics.collect(),
        )
        raise

    metrics.record("succeeded", result.attempts)
    create_run_metadata(
        [result.analysis_period], config, run_dir, metrics=metrics.collect()
    )
    return {
        "analysis_period": result.analysis_period,
        "attempts": result.attempts,
        "run_dir": str(run_dir),
    }


def run_backfill(
    periods: List[str],
    config_path: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None,
    generator=None,
) -> Dict[str, Any]:
    config = config or load_config(config_path)
    pipeline = NarrativePipeline.from_config(config, generator=generator)
    metrics = MetricsCollector()
    run_dir = _run_dir(config)

    df = pipeline.load_facts()
    outcome = pipeline.backfill(
        df,
        periods,
        max_workers=int(config.get("automation", {}).get("max_workers", 1)),
        metrics=metrics,
    )

    status = "completed" if not outcome["failed"] else "completed_with_errors"
    create_run_metadata(
        periods,
        config,
        run_dir,
        status=status,
        errors=outcome["failed"],
        metrics=metrics.collect(),
    )

    log.info(
        "Backfill finished: %d succeeded, %d failed (%s)",
        len(outcome["succeeded"]),
        len(outcome["failed"]),
        run_dir,
    )
    return {
        "succeeded": sorted(outcome["succeeded"]),
        "failed": outcome["failed"],
        "run_dir": str(run_dir),
    }
