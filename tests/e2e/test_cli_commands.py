from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from tailorguard.cli.app import app

runner = CliRunner()


def _write_application(tmp_path: Path, application) -> Path:
    path = tmp_path / "application.json"
    path.write_text(json.dumps(application.to_contract()), encoding="utf-8")
    return path


def test_ats_command_parses_requirements(tmp_path: Path) -> None:
    jd = tmp_path / "jd.txt"
    jd.write_text("Requirements:\n- Python and SQL\n- 5+ years Kafka", encoding="utf-8")
    facts = tmp_path / "facts.json"
    facts.write_text(json.dumps({"skills": ["Python", "SQL"]}), encoding="utf-8")

    result = runner.invoke(app, ["ats", "--jd", str(jd), "--facts", str(facts)])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["requirements"]["hardRequirements"] == ["Python and SQL", "5+ years Kafka"]
    assert payload["coverage"]["hardRequirementsMissing"] == ["5+ years Kafka"]


def test_privacy_preview_command(tmp_path: Path, application) -> None:
    result = runner.invoke(app, ["privacy-preview", "--input", str(_write_application(tmp_path, application))])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert "[PII_EMAIL_1]" in payload["placeholders"]
    assert "jane.doe@example.com" not in payload["redactedPreview"]


def test_analyze_command_writes_output(tmp_path: Path, application) -> None:
    output = tmp_path / "out" / "result.json"

    result = runner.invoke(
        app,
        ["analyze", "--input", str(_write_application(tmp_path, application)), "--output", str(output)],
    )

    assert result.exit_code == 0
    written = json.loads(output.read_text(encoding="utf-8"))
    assert written["analysisTrace"]["tier"] == "SIMPLE"


def test_analyze_command_rejects_real_mode_without_key(tmp_path: Path, application) -> None:
    result = runner.invoke(
        app,
        ["analyze", "--input", str(_write_application(tmp_path, application)), "--mode", "real"],
    )

    assert result.exit_code == 1


def test_evals_run_command(tmp_path: Path) -> None:
    output = tmp_path / "report.json"

    result = runner.invoke(app, ["evals", "run", "--output", str(output)])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"totalRuns": 9, "passedRuns": 9, "failedRuns": 0}
    assert output.exists()
