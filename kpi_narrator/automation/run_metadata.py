import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional


def create_run_metadata(
    periods: List[str],
    config: Dict,
    output_dir: Path,
    status: str = "completed",
    errors: Optional[Dict[str, str]] = None,
    metrics: Optional[Dict] = None,
):
    """
    Create a run.json metadata file describing a narrative batch run.
    """

    metadata = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status,
        "periods": periods,
        "errors": errors or {},
        "metrics": metrics or {},
        "source": config.get("source", {}).get("path"),
        "model": config.get("model", {}),
        "config_summary": sorted(config.keys()),
    }

    output_dir.mkdir(parents=True, exist_ok=True)
    metadata_path = output_dir / "run.json"

    with open(metadata_path, "w", encoding="utf-8") as f:
        json.dump(metadata, f, indent=2, default=str)

    return metadata_path
