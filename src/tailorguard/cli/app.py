from __future__ import annotations

import json
from pathlib import Path

import typer
import uvicorn
from pydantic import ValidationError

from tailorguard.api.app import create_app
from tailorguard.config import get_settings
from tailorguard.core.ats import compute_ats_coverage, parse_jd_requirements
from tailorguard.core.orchestrator import AnalysisOrchestrator
from tailorguard.core.privacy import prepare_application
from tailorguard.errors import TailorGuardError
from tailorguard.evals.runner import run_evals
from tailorguard.logging_config import configure_logging
from tailorguard.types import ApplicationInput, ResumeFacts

app = typer.Typer(help="TailorGuard CLI")
evals_app = typer.Typer(help="Offline evaluation harness")

app.add_typer(evals_app, name="evals")


def _load_json(file: Path) -> object:
    try:
        return json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{file} is not valid JSON: {exc}") from exc


def _load_application(file: Path) -> ApplicationInput:
    try:
        return ApplicationInput.model_validate(_load_json(file))
    except ValidationError as exc:
        raise typer.BadParameter(f"{file} is not a valid application input: {exc}") from exc


def _fail(exc: Exception) -> None:
    typer.echo(f"error: {exc}", err=True)
    raise typer.Exit(code=1) from exc


@app.command("analyze")
def analyze_cmd(
    input: Path = typer.Option(..., "--input", exists=True, readable=True),
    mode: str | None = typer.Option(None, "--mode", help="mock or real"),
    api_key: str | None = typer.Option(None, "--api-key"),
    output: Path | None = typer.Option(None, "--output"),
) -> None:
    """Run the three-stage pipeline for one application."""
    configure_logging()
    data = _load_application(input)
    try:
        orchestrator = AnalysisOrchestrator(get_settings(), model_mode=mode, api_key=api_key)
        result = orchestrator.analyze(data)
    except TailorGuardError as exc:
        _fail(exc)
        return

    rendered = json.dumps(result.to_contract(), indent=2, ensure_ascii=False)
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(rendered + "\n", encoding="utf-8")
        typer.echo(json.dumps({"ok": True, "output": str(output)}, indent=2))
        return
    typer.echo(rendered)


@app.command("privacy-preview")
def privacy_preview_cmd(input: Path = typer.Option(..., "--input", exists=True, readable=True)) -> None:
    """Show what would be sent to the model with privacy mode applied."""
    configure_logging()
    data = _load_application(input)
    prepared = prepare_application(data.model_copy(update={"privacy_mode": True}))
    typer.echo(
        json.dumps(
            {
                "redactedPreview": prepared.redacted_preview,
                "redactionCount": len(prepared.redaction_entries),
                "placeholders": [entry.placeholder for entry in prepared.redaction_entries],
            },
            indent=2,
            ensure_ascii=False,
        )
    )


@app.command("ats")
def ats_cmd(
    jd: Path = typer.Option(..., "--jd", exists=True, readable=True),
    facts: Path | None = typer.Option(None, "--facts", exists=True, readable=True),
) -> None:
    """Parse job description requirements and, given resume facts, score coverage."""
    configure_logging()
    job_description = jd.read_text(encoding="utf-8")
    payload: dict[str, object] = {"requirements": parse_jd_requirements(job_description).to_contract()}
    if facts is not None:
        try:
            resume_facts = ResumeFacts.model_validate(_load_json(facts))
        except ValidationError as exc:
            raise typer.BadParameter(f"{facts} is not valid resume facts: {exc}") from exc
        payload["coverage"] = compute_ats_coverage(job_description, resume_facts).to_contract()
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@evals_app.command("run")
def evals_run(
    real: bool = typer.Option(False, "--real", help="Call the real model instead of the mock generator"),
    output: Path | None = typer.Option(None, "--output"),
) -> None:
    configure_logging()
    try:
        report = run_evals(real=real, output=output)
    except TailorGuardError as exc:
        _fail(exc)
        return

    typer.echo(json.dumps(report.summary.to_contract(), indent=2))
    if report.summary.failed_runs:
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    configure_logging(log_level)
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(
        app_instance,
        host=host or settings.app_host,
        port=port or settings.app_port,
        log_level=(log_level or settings.log_level).lower(),
    )
