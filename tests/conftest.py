import threading
import time

import pandas as pd
import pytest

from kpi_narrator.errors import TransientRequestError

GOOD_NARRATIVE = (
    "Revenue rose to 100 in May, up from 90 in April.\n\n"
    "Margins held steady, so the quarter is tracking ahead of plan."
)


class ScriptedGenerator:
    """
    Text generator double. Each call pops the next scripted item:
    an exception instance is raised, anything else is returned.
    """

    def __init__(self, *script, delay: float = 0.0):
        self.script = list(script)
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    def generate(self, prompt, temperature, max_output_tokens, deterministic=True):
        with self._lock:
            self.calls.append(
                {
                    "prompt": prompt,
                    "temperature": temperature,
                    "max_output_tokens": max_output_tokens,
                    "deterministic": deterministic,
                }
            )
            item = self.script.pop(0) if self.script else GOOD_NARRATIVE

        if self.delay:
            time.sleep(self.delay)

        if isinstance(item, BaseException):
            raise item
        return item


class CancelOnCall(ScriptedGenerator):
    """Sets `cancel` as soon as a call starts, then plays the script."""

    def __init__(self, cancel, *script, delay: float = 0.0):
        super().__init__(*script, delay=delay)
        self.cancel = cancel

    def generate(self, prompt, temperature, max_output_tokens, deterministic=True):
        self.cancel.set()
        return super().generate(prompt, temperature, max_output_tokens, deterministic)


def timeouts_then_success(n: int) -> ScriptedGenerator:
    return ScriptedGenerator(
        *[TransientRequestError("timed out") for _ in range(n)],
        GOOD_NARRATIVE,
    )


@pytest.fixture
def monthly_kpis():
    """
    Deterministic monthly KPI facts, deliberately unsorted,
    including the in-progress month 2024-06.
    """
    return pd.DataFrame({
        "period_key": ["2024-03", "2024-05", "2024-06", "2024-04"],
        "revenue": [80, 100, 12, 90],
        "margin_pct": [0.31, 0.34, 0.2, 0.33],
        "top_region": ["EU", "US", "US", "EU"],
    })


@pytest.fixture
def base_config(tmp_path, monthly_kpis):
    csv_path = tmp_path / "kpi_monthly.csv"
    monthly_kpis.to_csv(csv_path, index=False)

    return {
        "source": {"type": "file", "path": str(csv_path), "period_column": "period_key"},
        "periods": {"mode": "calendar_month", "lag_months": 1, "window_months": None},
        "prompt": {
            "template": "Summarise KPIs for {company_name} ({analysis_period}).",
            "company_name": "Acme",
            "company_description": "",
            "strict": True,
            "max_prompt_chars": 5000,
        },
        "model": {"temperature": 0.1, "max_output_tokens": 256, "deterministic": True},
        "llm": {"enabled": False},
        "retry": {"max_attempts": 3, "base_delay": 0, "multiplier": 2, "max_delay": 0},
        "requester": {"timeout": 5, "max_narrative_chars": 4000},
        "sink": {
            "path": str(tmp_path / "narratives.db"),
            "history_path": str(tmp_path / "run_history.db"),
        },
        "automation": {"max_workers": 2},
        "output_dir": str(tmp_path / "runs"),
    }
