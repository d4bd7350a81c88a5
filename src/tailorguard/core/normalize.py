from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any

from tailorguard.types import (
    CoverLetterFacts,
    ExtractedExperience,
    ExtractFactsResult,
    GapCategory,
    Improvement,
    ImprovementEvidence,
    JdFacts,
    Language,
    ResumeFacts,
    RewriteDocsResult,
    ScoreMatchResult,
    SourceText,
    StageName,
)

MAX_EVIDENCE_WORDS = 20
_FENCED_BLOCK = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


@dataclass(slots=True, frozen=True)
class ParsedPayload:
    value: dict[str, Any]


@dataclass(slots=True, frozen=True)
class ParseFailure:
    stage: StageName
    reason: str


@dataclass(slots=True, frozen=True)
class SchemaFailure:
    stage: StageName
    reason: str


StageParseResult = ParsedPayload | ParseFailure | SchemaFailure


def parse_stage_payload(stage: StageName, text: str | None) -> StageParseResult:
    candidate = (text or "").strip()
    if not candidate:
        return ParseFailure(stage, "empty response from model")

    fenced = _FENCED_BLOCK.match(candidate)
    if fenced:
        candidate = fenced.group(1)

    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        return ParseFailure(stage, "invalid JSON response")

    if not isinstance(value, dict):
        return SchemaFailure(stage, f"expected a JSON object, got {type(value).__name__}")
    return ParsedPayload(value)


def as_record(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def as_nullable_string(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def as_string_list(value: Any) -> list[str]:
    return [item for item in (as_nullable_string(entry) for entry in as_list(value)) if item is not None]


def as_nullable_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value if math.isfinite(value) else None


def clamp_words(value: str, max_words: int = MAX_EVIDENCE_WORDS) -> str:
    return " ".join(value.split()[:max_words])


def as_snippet_list(value: Any, max_words: int = MAX_EVIDENCE_WORDS) -> list[str]:
    return [clamp_words(item, max_words) for item in as_string_list(value)]


def normalize_language(value: Any) -> Language | None:
    return value if value in ("English", "German") else None


def normalize_gap_category(value: Any) -> GapCategory:
    return "optional" if value == "optional" else "critical"


def normalize_evidence(value: Any, max_words: int = MAX_EVIDENCE_WORDS) -> ImprovementEvidence:
    evidence = as_record(value)
    return ImprovementEvidence(
        resume_quotes=as_snippet_list(evidence.get("resumeQuotes"), max_words),
        jd_quotes=as_snippet_list(evidence.get("jdQuotes"), max_words),
        missing_keywords=as_snippet_list(evidence.get("missingKeywords"), max_words),
    )


def normalize_extract_facts(raw: dict[str, Any]) -> ExtractFactsResult:
    jd = as_record(raw.get("jdFacts"))
    resume = as_record(raw.get("resumeFacts"))
    cover = as_record(raw.get("coverLetterFacts"))

    experience = []
    for item in as_list(resume.get("experience")):
        entry = as_record(item)
        experience.append(
            ExtractedExperience(
                employer=as_nullable_string(entry.get("employer")),
                role=as_nullable_string(entry.get("role")),
                start_date=as_nullable_string(entry.get("startDate")),
                end_date=as_nullable_string(entry.get("endDate")),
                achievements=as_string_list(entry.get("achievements")),
            )
        )

    return ExtractFactsResult(
        language_detected=normalize_language(raw.get("languageDetected")),
        jd_facts=JdFacts(
            role_title=as_nullable_string(jd.get("roleTitle")),
            company_name=as_nullable_string(jd.get("companyName")),
            must_have_skills=as_string_list(jd.get("mustHaveSkills")),
            nice_to_have_skills=as_string_list(jd.get("niceToHaveSkills")),
            responsibilities=as_string_list(jd.get("responsibilities")),
            required_experience_years=as_nullable_number(jd.get("requiredExperienceYears")),
            keywords=as_string_list(jd.get("keywords")),
        ),
        resume_facts=ResumeFacts(
            candidate_name=as_nullable_string(resume.get("candidateName")),
            skills=as_string_list(resume.get("skills")),
            experience=experience,
            achievements=as_string_list(resume.get("achievements")),
            education=as_string_list(resume.get("education")),
            certifications=as_string_list(resume.get("certifications")),
        ),
        cover_letter_facts=CoverLetterFacts(
            key_claims=as_string_list(cover.get("keyClaims")),
            motivations=as_string_list(cover.get("motivations")),
        ),
        explicit_user_achievements=as_string_list(raw.get("explicitUserAchievements")),
        missing_data=as_string_list(raw.get("missingData")),
    )


def normalize_score_match(raw: dict[str, Any], max_words: int = MAX_EVIDENCE_WORDS) -> ScoreMatchResult:
    gaps = []
    for item in as_list(raw.get("gapAnalysis")):
        gap = as_record(item)
        gaps.append(
            Improvement(
                point=as_nullable_string(gap.get("point")),
                category=normalize_gap_category(gap.get("category")),
                impact=as_nullable_string(gap.get("impact")),
                evidence=normalize_evidence(gap.get("evidence"), max_words),
            )
        )

    return ScoreMatchResult(
        baseline_score=as_nullable_number(raw.get("baselineScore")),
        enhanced_score=as_nullable_number(raw.get("enhancedScore")),
        job_fit_score=as_nullable_number(raw.get("jobFitScore")),
        explanation=as_nullable_string(raw.get("explanation")),
        overall_feedback=as_nullable_string(raw.get("overallFeedback")),
        gap_analysis=gaps,
        portfolio_advice=as_nullable_string(raw.get("portfolioAdvice")),
        recruiter_notes=as_nullable_string(raw.get("recruiterNotes")),
        confidence_notes=as_string_list(raw.get("confidenceNotes")),
    )


def normalize_rewrite_docs(raw: dict[str, Any]) -> RewriteDocsResult:
    return RewriteDocsResult(
        optimized_resume=as_nullable_string(raw.get("optimizedResume")),
        optimized_cover_letter=as_nullable_string(raw.get("optimizedCoverLetter")),
        rewrite_notes=as_nullable_string(raw.get("rewriteNotes")),
    )


def _normalize_for_match(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip().lower()


def exists_in_source(snippet: str, source: str) -> bool:
    if not snippet or not source:
        return False
    return _normalize_for_match(snippet) in _normalize_for_match(source)


def enforce_evidence_from_source(scoring: ScoreMatchResult, source: SourceText) -> ScoreMatchResult:
    resume_corpus = f"{source.resume_content}\n{source.cover_letter_content}"
    job_description = source.job_description
    gaps = []
    for gap in scoring.gap_analysis:
        evidence = gap.evidence
        gaps.append(
            gap.model_copy(
                update={
                    "evidence": ImprovementEvidence(
                        resume_quotes=[quote for quote in evidence.resume_quotes if exists_in_source(quote, resume_corpus)],
                        jd_quotes=[quote for quote in evidence.jd_quotes if exists_in_source(quote, job_description)],
                        missing_keywords=[
                            keyword for keyword in evidence.missing_keywords if exists_in_source(keyword, job_description)
                        ],
                    )
                }
            )
        )
    return scoring.model_copy(update={"gap_analysis": gaps})


def parse_explicit_user_achievements(additional_context: str) -> list[str]:
    parts = (part.strip() for part in re.split(r"\r?\n|;", additional_context or ""))
    return [part for part in parts if part]
