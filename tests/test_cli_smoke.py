import subprocess
import sys


def run_cli(args):
    return subprocess.run(
        [sys.executable, "-m", "kpi_narrator.cli"] + args,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )


def test_cli_help():
    result = run_cli(["--help"])
    assert result.returncode == 0


def test_cli_version():
    result = run_cli(["--version"])
    assert result.returncode == 0
    assert "KPI Narrator" in result.stdout


def test_cli_requires_config():
    result = run_cli([])
    assert result.returncode != 0


def test_cli_dry_run_prints_prompt(tmp_path, monthly_kpis):
    csv_path = tmp_path / "facts.csv"
    monthly_kpis.to_csv(csv_path, index=False)
    config = tmp_path / "narrator.yaml"
    config.write_text(
        f"source:\n  path: {csv_path}\n"
        "prompt:\n  template: 'Narrate {analysis_period}.'\n"
        f"sink:\n  path: {tmp_path / 'n.db'}\n  history_path: {tmp_path / 'h.db'}\n"
    )

    result = run_cli(["--config", str(config), "--dry-run", "--period", "2024-04"])

    assert result.returncode == 0
    assert result.stdout.startswith("Narrate 2024-04.")
    assert '"period_key":"2024-03"' in result.stdout
    assert not (tmp_path / "n.db").exists()
    assert not (tmp_path / "h.db").exists()


def test_cli_dry_run_rejects_in_progress_period(tmp_path, monthly_kpis):
    csv_path = tmp_path / "facts.csv"
    monthly_kpis.to_csv(csv_path, index=False)
    config = tmp_path / "narrator.yaml"
    config.write_text(f"source:\n  path: {csv_path}\n")

    result = run_cli(["--config", str(config), "--dry-run", "--period", "2999-01"])

    assert result.returncode == 1
    assert "still in progress" in result.stderr
