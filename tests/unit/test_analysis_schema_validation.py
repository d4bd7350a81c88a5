from __future__ import annotations

import pytest

from tailorguard.core.result_schema import (
    ensure_valid_analysis_result,
    format_error_location,
    validate_analysis_result,
)
from tailorguard.errors import ResultValidationError
from tailorguard.types import (
    AnalysisResult,
    AnalysisTrace,
    Improvement,
    ImprovementEvidence,
    KeywordCoverage,
    RetrievalTraceEntry,
    ScoreBreakdown,
)


def _result(**overrides) -> AnalysisResult:
    values = {
        "score_breakdown": ScoreBreakdown(baseline=60.0, enhanced=75.0, explanation="Keyword coverage."),
        "job_fit_score": 75.0,
        "overall_feedback": "Solid match.",
        "improvements": [
            Improvement(
                point="Mention Kubernetes.",
                category="critical",
                impact="Covers a must-have.",
                evidence=ImprovementEvidence(
                    resume_quotes=["Built Python pipelines"],
                    jd_quotes=["Must have Kubernetes"],
                    missing_keywords=["kubernetes"],
                ),
            )
        ],
        "optimized_resume": "Jane Doe",
        "optimized_cover_letter": None,
        "language_detected": "English",
        "portfolio_advice": None,
        "recruiter_notes": None,
        "evidence_snippet_word_limit": 20,
        "keyword_coverage": KeywordCoverage(matched=["python"], missing=["kubernetes"], partial=[]),
        "hard_requirements_missing": ["Must have Kubernetes"],
        "analysis_trace": AnalysisTrace(
            input_hash="a" * 64,
            retrieval_chunk_ids=["jobDescription:0:0-20"],
            retrieval_trace=[RetrievalTraceEntry(chunk_id="jobDescription:0:0-20", reason="Prioritized.")],
            model_name="gemini-2.5-flash",
            tier="SIMPLE",
            timestamp="2026-01-01T00:00:00.000Z",
            retries=0,
        ),
    }
    values.update(overrides)
    return AnalysisResult(**values)


def test_valid_result_passes() -> None:
    validation = validate_analysis_result(_result())

    assert validation.valid
    assert validation.errors == []


def test_wrong_type_reports_field_path() -> None:
    payload = _result().to_contract()
    payload["analysisTrace"]["retries"] = "one"

    validation = validate_analysis_result(payload)

    assert not validation.valid
    assert any(error.startswith("analysisTrace.retries:") for error in validation.errors)


def test_missing_field_and_bad_enum_are_reported() -> None:
    payload = _result().to_contract()
    del payload["keywordCoverage"]
    payload["improvements"][0]["category"] = "urgent"

    errors = validate_analysis_result(payload).errors

    assert any(error.startswith("keywordCoverage:") for error in errors)
    assert any(error.startswith("improvements[0].category:") for error in errors)


def test_long_evidence_snippet_is_rejected() -> None:
    evidence = ImprovementEvidence(resume_quotes=[" ".join(["word"] * 21)], jd_quotes=[], missing_keywords=[])
    improvement = Improvement(point=None, category="optional", impact=None, evidence=evidence)

    validation = validate_analysis_result(_result(improvements=[improvement]))

    assert validation.errors == ["improvements[0].evidence.resumeQuotes[0]: evidence snippet exceeds 20 words"]


def test_trace_ids_must_be_listed() -> None:
    result = _result()
    result.analysis_trace.retrieval_chunk_ids = []

    validation = validate_analysis_result(result)

    assert not validation.valid
    assert "is not listed in retrievalChunkIds" in validation.errors[0]


def test_unserializable_value_is_invalid() -> None:
    validation = validate_analysis_result({"improvements": {1, 2}})

    assert validation.errors[0].startswith("result: not JSON serializable")


def test_ensure_valid_raises_with_errors() -> None:
    with pytest.raises(ResultValidationError) as excinfo:
        ensure_valid_analysis_result({})

    assert excinfo.value.errors


def test_format_error_location() -> None:
    assert format_error_location(("improvements", 2, "evidence", "jdQuotes", 0)) == "improvements[2].evidence.jdQuotes[0]"
    assert format_error_location(()) == "result"


def test_unknown_tier_is_rejected() -> None:
    payload = _result().to_contract()
    payload["analysisTrace"]["tier"] = "HUGE"

    validation = validate_analysis_result(payload)

    assert not validation.valid
    assert any(error.startswith("analysisTrace.tier:") for error in validation.errors)
