DEFAULT_CONFIG = {
    # -----------------------------
    # FACT STORE (REQUIRED path)
    # -----------------------------
    "source": {
        "type": "file",            # file | sqlite
        "path": None,
        "table": None,
        "query": None,
        "period_column": "period_key",
    },

    # -----------------------------
    # PERIOD EXCLUSION BOUNDARY
    # -----------------------------
    "periods": {
        "mode": "calendar_month",  # calendar_month | trailing_window
        "lag_months": 1,           # 1 = drop only the current month
        "window_months": None,
    },

    # -----------------------------
    # PROMPT
    # -----------------------------
    "prompt": {
        "template": None,          # None -> built-in template
        "template_path": None,
        "company_name": "",
        "company_description": "",
        "separator": "\n\n",
        "strict": False,
        "max_prompt_chars": 30000,
        "max_prompt_tokens": None,
        "chars_per_token": 4,
    },

    # -----------------------------
    # SAMPLING (fixed per request)
    # -----------------------------
    "model": {
        "temperature": 0.2,
        "max_output_tokens": 1024,
        "deterministic": True,
    },

    # -----------------------------
    # LLM PROVIDER
    # -----------------------------
    "llm": {
        "enabled": True,
        "provider": "openai",      # openai | gemini
        "model": "gpt-4o-mini",
        "timeout": 60,
    },

    # -----------------------------
    # RETRY / VALIDATION
    # -----------------------------
    "retry": {
        "max_attempts": 3,
        "base_delay": 1.0,
        "multiplier": 2.0,
        "max_delay": 30.0,
        "jitter": 0.0,
    },

    "requester": {
        "timeout": 60,
        "max_narrative_chars": 8000,
    },

    # -----------------------------
    # NARRATIVE SINK
    # -----------------------------
    "sink": {
        "path": "runs/narratives.db",
        "history_path": "runs/run_history.db",
    },

    # -----------------------------
    # AUTOMATION
    # -----------------------------
    "automation": {
        "schedule": {"day": 2, "hour": 6, "minute": 0},
        "max_workers": 1,
    },

    "output_dir": "runs",
}
