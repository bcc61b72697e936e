from kpi_narrator.automation.retry import RetryPolicy
from kpi_narrator.core.periods import PeriodBoundary
from kpi_narrator.core.records import ModelParams
from kpi_narrator.narrative.prompt import DEFAULT_TEMPLATE, PromptConfig


# -------------------------------------------------
# TYPED VIEWS OVER THE MERGED CONFIG DICT
# -------------------------------------------------
def build_prompt_config(config: dict) -> PromptConfig:
    cfg = config.get("prompt", {})
    max_tokens = cfg.get("max_prompt_tokens")
    return PromptConfig(
        template=cfg.get("template") or DEFAULT_TEMPLATE,
        company_name=cfg.get("company_name", ""),
        company_description=cfg.get("company_description", ""),
        separator=cfg.get("separator", "\n\n"),
        strict=bool(cfg.get("strict", False)),
        max_prompt_chars=int(cfg.get("max_prompt_chars", 30000)),
        max_prompt_tokens=int(max_tokens) if max_tokens else None,
        chars_per_token=float(cfg.get("chars_per_token", 4)),
    )


def build_model_params(config: dict) -> ModelParams:
    cfg = config.get("model", {})
    return ModelParams(
        temperature=float(cfg.get("temperature", 0.2)),
        max_output_tokens=int(cfg.get("max_output_tokens", 1024)),
        deterministic=bool(cfg.get("deterministic", True)),
    )


def build_retry_policy(config: dict) -> RetryPolicy:
    cfg = config.get("retry", {})
    return RetryPolicy(
        max_attempts=int(cfg.get("max_attempts", 3)),
        base_delay=float(cfg.get("base_delay", 1.0)),
        multiplier=float(cfg.get("multiplier", 2.0)),
        max_delay=float(cfg.get("max_delay", 30.0)),
        jitter=float(cfg.get("jitter", 0.0)),
    )


def build_period_boundary(config: dict) -> PeriodBoundary:
    cfg = config.get("periods", {})
    window = cfg.get("window_months")
    return PeriodBoundary(
        mode=cfg.get("mode", "calendar_month"),
        lag_months=int(cfg.get("lag_months", 1)),
        window_months=int(window) if window else None,
    )
