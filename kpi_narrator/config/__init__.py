from .loader import load_config
from .defaults import DEFAULT_CONFIG
from .settings import (
    build_prompt_config,
    build_model_params,
    build_retry_policy,
    build_period_boundary,
)

__all__ = [
    "load_config",
    "DEFAULT_CONFIG",
    "build_prompt_config",
    "build_model_params",
    "build_retry_policy",
    "build_period_boundary",
]
