from __future__ import annotations

import json

import pytest

from tailorguard.config import get_settings
from tailorguard.core.orchestrator import AnalysisOrchestrator, PipelineState
from tailorguard.errors import ConfigurationError, GuardrailViolationError, StageOutputError
from tailorguard.llm.mock import MockGenerator
from tailorguard.types import StageRequestTrace

CLEAN_DRAFT = json.dumps(
    {
        "optimizedResume": "Jane Doe\n- improved X across data pipelines.",
        "optimizedCoverLetter": "Dear Hiring Team,\nI bring improved X outcomes.",
        "rewriteNotes": "Clean draft.",
    }
)


def _draft(resume: str) -> str:
    return json.dumps(
        {
            "optimizedResume": resume,
            "optimizedCoverLetter": "Dear Hiring Team,\nI bring improved X outcomes.",
            "rewriteNotes": "Scripted draft.",
        }
    )


class ScriptedRewriteGenerator:
    """Answers stages 1 and 2 from the mock and replays scripted rewrite drafts."""

    def __init__(self, drafts: list[str]):
        self.drafts = list(drafts)
        self.delegate = MockGenerator()
        self.rewrite_prompts: list[str] = []

    def generate(self, request) -> str:
        if "stage 3: document rewrite" in request.system_instruction.lower():
            self.rewrite_prompts.append(request.prompt)
            return self.drafts.pop(0)
        return self.delegate.generate(request)


class StatusError(RuntimeError):
    def __init__(self, status_code: int):
        super().__init__(f"upstream returned {status_code}")
        self.status_code = status_code


class FlakyGenerator:
    def __init__(self, failures: int):
        self.failures = failures
        self.delegate = MockGenerator()
        self.calls = 0

    def generate(self, request) -> str:
        self.calls += 1
        if self.failures:
            self.failures -= 1
            raise StatusError(503)
        return self.delegate.generate(request)


def test_mock_pipeline_reaches_done(application) -> None:
    orchestrator = AnalysisOrchestrator(generator=MockGenerator())

    result = orchestrator.analyze(application)

    assert orchestrator.state is PipelineState.DONE
    assert PipelineState.VALIDATING_REWRITE in orchestrator.history
    assert PipelineState.CORRECTING_REWRITE not in orchestrator.history
    assert result.analysis_trace.retries == 0
    assert result.analysis_trace.tier == "SIMPLE"
    assert result.analysis_trace.model_name == get_settings().model_simple
    assert result.evidence_snippet_word_limit == 20
    assert result.optimized_resume and "improved X" in result.optimized_resume
    assert any("kubernetes" in item.lower() for item in result.hard_requirements_missing)


def test_privacy_mode_sends_placeholders_only(private_application) -> None:
    traces: list[StageRequestTrace] = []
    orchestrator = AnalysisOrchestrator(generator=MockGenerator(), on_stage_request=traces.append)

    orchestrator.analyze(private_application)

    assert [trace.stage_name for trace in traces] == ["extractFacts", "scoreMatch", "rewriteDocs"]
    first_prompt = traces[0].prompt
    assert "[PII_EMAIL_1]" in first_prompt
    assert "jane.doe@example.com" not in first_prompt
    assert all("jane.doe@example.com" not in trace.prompt for trace in traces)


def test_unauthorized_number_triggers_single_correction(application) -> None:
    generator = ScriptedRewriteGenerator([_draft("Jane Doe\n- Cut latency by 42 percent."), CLEAN_DRAFT])
    orchestrator = AnalysisOrchestrator(generator=generator)

    result = orchestrator.analyze(application)

    assert result.analysis_trace.retries == 1
    assert PipelineState.CORRECTING_REWRITE in orchestrator.history
    assert PipelineState.VALIDATING_CORRECTION in orchestrator.history
    assert len(generator.rewrite_prompts) == 2
    assert "CORRECTION_REQUIRED" not in generator.rewrite_prompts[0]
    assert "CORRECTION_REQUIRED" in generator.rewrite_prompts[1]
    assert '["42"]' in generator.rewrite_prompts[1]
    assert "42" not in (result.optimized_resume or "")


def test_vault_numbers_are_accepted(application) -> None:
    data = application.model_copy(update={"metrics_vault": application.metrics_vault.model_copy(update={"uptime": "99.9%"})})
    generator = ScriptedRewriteGenerator([_draft("Jane Doe\n- Kept uptime at 99.9%.")])

    result = AnalysisOrchestrator(generator=generator).analyze(data)

    assert result.analysis_trace.retries == 0
    assert "99.9%" in (result.optimized_resume or "")


def test_second_violation_fails_the_pipeline(application) -> None:
    generator = ScriptedRewriteGenerator([_draft("Grew revenue 42%."), _draft("Grew revenue 17%.")])
    orchestrator = AnalysisOrchestrator(generator=generator)

    with pytest.raises(GuardrailViolationError) as excinfo:
        orchestrator.analyze(application)

    assert excinfo.value.stage == "rewriteDocs"
    assert excinfo.value.unauthorized_numbers == ["17"]
    assert orchestrator.state is PipelineState.FAILED
    assert orchestrator.history[-2] is PipelineState.VALIDATING_CORRECTION


def test_placeholders_are_reinserted_after_validation(private_application) -> None:
    generator = ScriptedRewriteGenerator([_draft("Jane Doe\nContact: [PII_EMAIL_1]\n- improved X.")])

    result = AnalysisOrchestrator(generator=generator).analyze(private_application)

    assert "jane.doe@example.com" in (result.optimized_resume or "")
    assert "[PII_EMAIL_1]" not in (result.optimized_resume or "")
    assert result.analysis_trace.retries == 0


def test_unknown_placeholder_requires_correction(private_application) -> None:
    generator = ScriptedRewriteGenerator([_draft("Jane Doe\nContact: [PII_EMAIL_9]"), CLEAN_DRAFT])

    result = AnalysisOrchestrator(generator=generator).analyze(private_application)

    assert result.analysis_trace.retries == 1
    assert "Unknown PII placeholders detected (1)." in generator.rewrite_prompts[1]


def test_transient_failure_is_retried_and_counted(application) -> None:
    delays: list[float] = []
    generator = FlakyGenerator(failures=1)
    orchestrator = AnalysisOrchestrator(generator=generator, sleep=delays.append)

    result = orchestrator.analyze(application)

    assert result.analysis_trace.retries == 1
    assert delays == [0.4]
    assert generator.calls == 4


def test_unparseable_stage_output_fails_fast(application) -> None:
    class BrokenGenerator:
        def generate(self, request) -> str:
            return "not json"

    orchestrator = AnalysisOrchestrator(generator=BrokenGenerator())

    with pytest.raises(StageOutputError) as excinfo:
        orchestrator.analyze(application)

    assert excinfo.value.stage == "extractFacts"
    assert orchestrator.state is PipelineState.FAILED


def test_real_mode_requires_api_key(application) -> None:
    with pytest.raises(ConfigurationError):
        AnalysisOrchestrator(model_mode="real")


def _private_without_pii(application):
    return application.model_copy(
        update={
            "resume_content": "Jane Doe\nData Engineer, Northwind Analytics (2019 - 2023)\n"
            "- Built Python and SQL pipelines for production reporting.",
            "privacy_mode": True,
        }
    )


def test_privacy_mode_rejects_invented_pii_without_redactions(application) -> None:
    invented = _draft("Jane Doe\nContact: invented.person@example.com [PII_EMAIL_1]")
    generator = ScriptedRewriteGenerator([invented, CLEAN_DRAFT])

    result = AnalysisOrchestrator(generator=generator).analyze(_private_without_pii(application))

    assert result.analysis_trace.retries == 1
    assert "invented.person@example.com" not in (result.optimized_resume or "")
    assert "Unauthorized PII detected (EMAIL:1)." in generator.rewrite_prompts[1]
    assert "Unknown PII placeholders detected (1)." in generator.rewrite_prompts[1]


def test_privacy_mode_fails_when_invented_pii_persists(application) -> None:
    invented = _draft("Jane Doe\nContact: invented.person@example.com")
    orchestrator = AnalysisOrchestrator(generator=ScriptedRewriteGenerator([invented, invented]))

    with pytest.raises(GuardrailViolationError) as excinfo:
        orchestrator.analyze(_private_without_pii(application))

    assert [(issue.type, issue.count) for issue in excinfo.value.pii_issues] == [("EMAIL", 1)]
    assert orchestrator.state is PipelineState.FAILED


def test_invented_pii_is_allowed_outside_privacy_mode(application) -> None:
    generator = ScriptedRewriteGenerator([_draft("Jane Doe\nContact: jane@example.org")])

    result = AnalysisOrchestrator(generator=generator).analyze(application)

    assert result.analysis_trace.retries == 0
