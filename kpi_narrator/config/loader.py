import yaml
import copy
from pathlib import Path

from .defaults import DEFAULT_CONFIG


def load_config(path: str | None) -> dict:
    """
    Load and merge user config with framework defaults.

    Rules:
    - defaults ALWAYS win if the user omits a field
    - sections are merged one level deep
    - a template_path is read into prompt.template
    """

    # -------------------------------------------------
    # 1. Load user config (if provided)
    # -------------------------------------------------
    user_config = {}

    if path:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}

        if not isinstance(user_config, dict):
            raise ValueError("Config file must contain a YAML dictionary")

    # -------------------------------------------------
    # 2. Merge with defaults
    # -------------------------------------------------
    config = copy.deepcopy(DEFAULT_CONFIG)

    for key, value in user_config.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value

    # -------------------------------------------------
    # 3. Resolve external template file
    # -------------------------------------------------
    template_path = config["prompt"].get("template_path")
    if template_path and not config["prompt"].get("template"):
        template_file = Path(template_path)
        if not template_file.is_absolute() and path:
            template_file = Path(path).parent / template_file
        config["prompt"]["template"] = template_file.read_text(encoding="utf-8")

    config.setdefault("output_dir", "runs")

    return config
