import pytest

from kpi_narrator.config import (
    build_model_params,
    build_period_boundary,
    build_prompt_config,
    build_retry_policy,
    load_config,
)
from kpi_narrator.narrative.prompt import DEFAULT_TEMPLATE


def test_defaults_without_file():
    config = load_config(None)

    assert config["periods"]["mode"] == "calendar_month"
    assert build_prompt_config(config).template == DEFAULT_TEMPLATE
    assert build_retry_policy(config).max_attempts == 3
    assert build_model_params(config).deterministic is True


def test_user_values_merge_over_defaults(tmp_path):
    path = tmp_path / "narrator.yaml"
    path.write_text(
        "periods:\n"
        "  mode: trailing_window\n"
        "  window_months: 12\n"
        "model:\n"
        "  temperature: 0.0\n"
    )

    config = load_config(str(path))

    boundary = build_period_boundary(config)
    assert boundary.mode == "trailing_window"
    assert boundary.window_months == 12
    assert boundary.lag_months == 1
    assert build_model_params(config).temperature == 0.0
    assert build_model_params(config).max_output_tokens == 1024


def test_template_path_is_relative_to_config(tmp_path):
    (tmp_path / "prompt.txt").write_text("Narrate {company_name}.")
    path = tmp_path / "narrator.yaml"
    path.write_text("prompt:\n  template_path: prompt.txt\n  company_name: Acme\n")

    config = load_config(str(path))

    assert build_prompt_config(config).template == "Narrate {company_name}."


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_non_mapping_config(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ValueError):
        load_config(str(path))
