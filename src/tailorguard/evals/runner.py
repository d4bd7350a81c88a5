from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from tailorguard.config import Settings, get_settings
from tailorguard.core.orchestrator import AnalysisOrchestrator
from tailorguard.errors import ConfigurationError
from tailorguard.evals.assertions import EvalAssertionInput, EvalAssertionResult, run_assertions
from tailorguard.evals.report import EvalReport, EvalRunResult, build_eval_report, write_eval_report
from tailorguard.llm.providers import Generator, build_generator
from tailorguard.types import AnalysisMode, ApplicationInput, MetricsVault, StageName, StageRequestTrace

logger = logging.getLogger(__name__)

TIERS: tuple[AnalysisMode, ...] = ("fast", "balanced", "deep")


@dataclass(slots=True, frozen=True)
class FixtureConfig:
    id: str
    directory: str
    company_info: str
    portfolio_links: str
    additional_context: str
    privacy_mode: bool
    metrics_vault: MetricsVault


FIXTURES: tuple[FixtureConfig, ...] = (
    FixtureConfig(
        id="A_missing-hard-requirement",
        directory="a-missing-hard-requirement",
        company_info="Berlin, Germany. Platform ML team.",
        portfolio_links="https://github.com/example/mlops",
        additional_context="Prioritize must-have requirement coverage.",
        privacy_mode=False,
        metrics_vault=MetricsVault(project_impact="Improved X"),
    ),
    FixtureConfig(
        id="B_metrics-vault-empty",
        directory="b-metrics-vault-empty",
        company_info="Remote USA SaaS team.",
        portfolio_links="https://github.com/example/fullstack",
        additional_context="No approved metrics provided.",
        privacy_mode=False,
        metrics_vault=MetricsVault(),
    ),
    FixtureConfig(
        id="C_privacy-redaction",
        directory="c-privacy-redaction",
        company_info="Munich, Germany AI product group.",
        portfolio_links="https://github.com/example/applied-ai",
        additional_context="Preserve privacy with strict redaction.",
        privacy_mode=True,
        metrics_vault=MetricsVault(),
    ),
)


@dataclass(slots=True)
class StagePromptCollector:
    prompts: dict[StageName, list[str]] = field(
        default_factory=lambda: {"extractFacts": [], "scoreMatch": [], "rewriteDocs": []}
    )

    def __call__(self, trace: StageRequestTrace) -> None:
        self.prompts[trace.stage_name].append(trace.prompt)


def read_fixture_file(fixture_dir: Path, directory: str, file_name: str) -> str:
    path = fixture_dir / directory / file_name
    return path.read_text(encoding="utf-8").strip() if path.exists() else ""


def fixture_input(fixture: FixtureConfig, tier: AnalysisMode, fixture_dir: Path) -> ApplicationInput:
    return ApplicationInput(
        job_description=read_fixture_file(fixture_dir, fixture.directory, "jd.txt"),
        resume_content=read_fixture_file(fixture_dir, fixture.directory, "resume.txt"),
        cover_letter_content=read_fixture_file(fixture_dir, fixture.directory, "cover.txt"),
        company_info=fixture.company_info,
        portfolio_links=fixture.portfolio_links,
        additional_context=fixture.additional_context,
        analysis_mode=tier,
        privacy_mode=fixture.privacy_mode,
        metrics_vault=fixture.metrics_vault,
    )


def evaluate_single_run(
    fixture: FixtureConfig,
    tier: AnalysisMode,
    *,
    generator: Generator,
    settings: Settings,
) -> EvalRunResult:
    data = fixture_input(fixture, tier, settings.eval_fixture_dir)
    collector = StagePromptCollector()
    orchestrator = AnalysisOrchestrator(settings, generator=generator, on_stage_request=collector)
    started = time.perf_counter()

    try:
        result = orchestrator.analyze(data)
    except Exception as exc:
        logger.warning("Eval run %s :: %s failed: %s", fixture.id, tier, exc)
        return EvalRunResult(
            fixture_id=fixture.id,
            tier=tier,
            duration_ms=round((time.perf_counter() - started) * 1000),
            passed=False,
            assertion_results=[EvalAssertionResult(name="pipeline execution", passed=False, details=str(exc))],
            error=str(exc),
        )

    assertions = run_assertions(
        EvalAssertionInput(
            fixture_id=fixture.id,
            tier=tier,
            input=data,
            result=result,
            outbound_stage_prompts=collector.prompts,
        )
    )
    return EvalRunResult(
        fixture_id=fixture.id,
        tier=tier,
        duration_ms=round((time.perf_counter() - started) * 1000),
        passed=all(assertion.passed for assertion in assertions),
        assertion_results=assertions,
    )


def run_evals(
    real: bool = False,
    output: Path | None = None,
    *,
    settings: Settings | None = None,
    generator: Generator | None = None,
) -> EvalReport:
    settings = settings or get_settings()
    if real and not settings.gemini_api_key.strip():
        raise ConfigurationError("Real eval mode is enabled but GEMINI_API_KEY is not set")
    generator = generator or build_generator(settings, model_mode="real" if real else "mock")

    runs: list[EvalRunResult] = []
    for fixture in FIXTURES:
        for tier in TIERS:
            run = evaluate_single_run(fixture, tier, generator=generator, settings=settings)
            runs.append(run)
            logger.info("[%s] %s :: %s (%d ms)", "PASS" if run.passed else "FAIL", run.fixture_id, tier, run.duration_ms)
            for assertion in run.assertion_results:
                if not assertion.passed:
                    logger.info("  - %s: %s", assertion.name, assertion.details or "failed")

    report = build_eval_report(runs)
    path = write_eval_report(report, output or settings.eval_report_path)
    logger.info(
        "Eval summary: %d/%d passed. Report written to %s",
        report.summary.passed_runs,
        report.summary.total_runs,
        path,
    )
    return report
