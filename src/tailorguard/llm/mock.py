from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any

from tailorguard.core.ats import compute_ats_coverage, parse_jd_requirements
from tailorguard.core.normalize import (
    as_nullable_string,
    as_record,
    as_string_list,
    clamp_words,
    normalize_extract_facts,
    parse_explicit_user_achievements,
)
from tailorguard.types import (
    CoverLetterFacts,
    ExtractedExperience,
    ExtractFactsResult,
    Improvement,
    ImprovementEvidence,
    JdFacts,
    ResumeFacts,
    RewriteDocsResult,
    ScoreMatchResult,
    SourceText,
)

if TYPE_CHECKING:
    from tailorguard.llm.providers import GenerationRequest

logger = logging.getLogger(__name__)

EXPERIENCE_LINE = re.compile(r"^(.+?),\s*(.+?)\s*\(([^)]*)\)")
BULLET_LINE = re.compile(r"^[-*•]")
BULLET_PREFIX = re.compile(r"^[-*•]\s*")
EDUCATION_LINE = re.compile(r"\b(?:university|college|b\.|m\.|phd|diploma)\b", re.IGNORECASE)
CERTIFICATION_LINE = re.compile(r"\b(?:cert|certificate|certification)\b", re.IGNORECASE)
GERMAN_MARKERS = re.compile(r"[äöüß]|\bund\b|\bmit\b|\berfahrung\b|\bkenntnisse\b", re.IGNORECASE)
YEARS_PATTERN = re.compile(r"(\d+)\s*\+?\s*(?:years|year|yrs|yr)\b", re.IGNORECASE)
NUMERIC_RUN = re.compile(r"\d+(?:[.,]\d+)*")
SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


def _lines(value: str) -> list[str]:
    return [line.strip() for line in re.split(r"\r?\n", value) if line.strip()]


def _sentences(value: str) -> list[str]:
    return [part.strip() for part in SENTENCE_BREAK.split(value) if part.strip()]


def _without_numbers(value: str) -> str:
    return re.sub(r"\s+", " ", NUMERIC_RUN.sub("", value)).strip()


def json_after_marker(prompt: str, marker: str) -> Any | None:
    index = prompt.find(marker)
    if index < 0:
        return None

    starts = [position for position in (prompt.find("{", index), prompt.find("[", index)) if position >= 0]
    if not starts:
        return None
    try:
        value, _ = json.JSONDecoder().raw_decode(prompt, min(starts))
    except json.JSONDecodeError:
        return None
    return value


def mock_extract_facts(payload: dict[str, Any]) -> ExtractFactsResult:
    job_description = str(payload.get("jobDescription") or "")
    resume_content = str(payload.get("resumeContent") or "")
    cover_letter = str(payload.get("coverLetterContent") or "")
    company_info = str(payload.get("companyInfo") or "")
    additional = str(payload.get("additionalUserContext") or payload.get("additionalContext") or "")

    parsed = parse_jd_requirements(job_description)
    resume_lines = _lines(resume_content)
    cover_sentences = _sentences(cover_letter)

    experience: list[ExtractedExperience] = []
    for line in resume_lines:
        match = EXPERIENCE_LINE.match(line)
        if match:
            role, employer, date_range = match.groups()
            start, _, end = date_range.partition("-")
            experience.append(
                ExtractedExperience(
                    employer=as_nullable_string(employer),
                    role=as_nullable_string(role),
                    start_date=as_nullable_string(start),
                    end_date=as_nullable_string(end),
                )
            )
        elif BULLET_LINE.match(line) and experience:
            experience[-1].achievements.append(BULLET_PREFIX.sub("", line))

    achievements = [BULLET_PREFIX.sub("", line) for line in resume_lines if BULLET_LINE.match(line)]
    lowered_resume = resume_content.lower()
    must_have = [
        item.strip()
        for requirement in parsed.hard_requirements
        for item in re.split(r"[,/]", requirement)
        if item.strip()
    ][:10]
    first_jd_line = next(iter(_lines(job_description)), "")
    years = YEARS_PATTERN.search(job_description)

    missing_data = []
    if not cover_letter.strip():
        missing_data.append("coverLetterContent")
    if not experience:
        missing_data.append("resumeExperience")

    return ExtractFactsResult(
        language_detected="German" if GERMAN_MARKERS.search(f"{resume_content}\n{cover_letter}") else "English",
        jd_facts=JdFacts(
            role_title=as_nullable_string(re.sub(r"^job title[:\-]?\s*", "", first_jd_line, flags=re.IGNORECASE)),
            company_name=as_nullable_string(next(iter(_lines(company_info)), "")),
            must_have_skills=must_have,
            nice_to_have_skills=parsed.soft_requirements[:8],
            responsibilities=parsed.hard_requirements[:6],
            required_experience_years=float(years.group(1)) if years else None,
            keywords=parsed.tools_tech_keywords,
        ),
        resume_facts=ResumeFacts(
            candidate_name=as_nullable_string(next(iter(resume_lines), "")),
            skills=[keyword for keyword in parsed.tools_tech_keywords if keyword.lower() in lowered_resume],
            experience=experience,
            achievements=achievements or _sentences(resume_content)[:4],
            education=[line for line in resume_lines if EDUCATION_LINE.search(line)],
            certifications=[line for line in resume_lines if CERTIFICATION_LINE.search(line)],
        ),
        cover_letter_facts=CoverLetterFacts(key_claims=cover_sentences[:4], motivations=cover_sentences[4:8]),
        explicit_user_achievements=parse_explicit_user_achievements(additional),
        missing_data=missing_data,
    )


def _first_sentence_with(source: str, term: str) -> str | None:
    target = term.lower()
    return next((sentence for sentence in _sentences(source) if target in sentence.lower()), None)


def mock_score_match(extracted: ExtractFactsResult, source: SourceText) -> ScoreMatchResult:
    coverage = compute_ats_coverage(source.job_description, extracted.resume_facts)
    keywords = coverage.keyword_coverage
    total = len(keywords.matched) + len(keywords.partial) + len(keywords.missing)

    baseline = None
    enhanced = None
    if total:
        baseline = float(min(100, max(0, round((len(keywords.matched) + 0.5 * len(keywords.partial)) / total * 100))))
        bonus = min(20, len(coverage.hard_requirements_missing) * 4 + len(keywords.missing) * 2)
        enhanced = float(min(100, baseline + bonus))

    default_resume_quote = next(
        iter(extracted.resume_facts.achievements or _sentences(source.resume_content)), ""
    )

    gaps = [
        Improvement(
            point=f"Address hard requirement gap: {clamp_words(requirement, 12)}.",
            category="critical",
            impact="Improves must-have qualification coverage.",
            evidence=ImprovementEvidence(
                resume_quotes=[clamp_words(default_resume_quote)] if default_resume_quote else [],
                jd_quotes=[clamp_words(requirement)],
                missing_keywords=[clamp_words(keyword, 5) for keyword in keywords.missing[:3]],
            ),
        )
        for requirement in coverage.hard_requirements_missing[:4]
    ]
    for keyword in keywords.missing[:3]:
        resume_hit = _first_sentence_with(source.resume_content, keyword) or default_resume_quote
        jd_hit = _first_sentence_with(source.job_description, keyword) or keyword
        gaps.append(
            Improvement(
                point=f"Incorporate explicit keyword alignment for {keyword}.",
                category="optional",
                impact="Raises ATS keyword match confidence.",
                evidence=ImprovementEvidence(
                    resume_quotes=[clamp_words(resume_hit)] if resume_hit else [],
                    jd_quotes=[clamp_words(jd_hit)],
                    missing_keywords=[clamp_words(keyword, 5)],
                ),
            )
        )

    return ScoreMatchResult(
        baseline_score=baseline,
        enhanced_score=enhanced,
        job_fit_score=enhanced,
        explanation=(
            "Insufficient deterministic evidence for score computation."
            if baseline is None
            else f"Coverage computed from {total} tracked keywords and hard requirements."
        ),
        overall_feedback=(
            "Core requirements remain missing; prioritize must-have alignment."
            if coverage.hard_requirements_missing
            else "Core requirements appear aligned."
        ),
        gap_analysis=gaps[:6],
        portfolio_advice="Show a portfolio example that mirrors the top missing requirement.",
        recruiter_notes="Deterministic mock scoring used for local evaluation.",
        confidence_notes=["Mock mode output generated without external model calls."],
    )


def mock_rewrite_docs(extracted: ExtractFactsResult, explicit_achievements: list[str]) -> RewriteDocsResult:
    resume = extracted.resume_facts
    candidate = _without_numbers(resume.candidate_name or "Candidate")

    experience_lines = [
        f"- {_without_numbers(item.role or 'Role')} at {_without_numbers(item.employer or 'Employer')}: "
        "improved X through collaboration and delivery."
        for item in resume.experience[:4]
    ]
    achievement_lines = [f"- {line}" for line in map(_without_numbers, explicit_achievements[:4]) if line]
    fallback_lines = [f"- {line}" for line in map(_without_numbers, resume.achievements[:3]) if line]
    skills = ", ".join(filter(None, map(_without_numbers, resume.skills))) or "Not specified"

    resume_text = "\n".join(
        [
            candidate,
            f"Skills: {skills}",
            "Experience Highlights:",
            *(experience_lines or ["- improved X in relevant initiatives."]),
            "Selected Achievements:",
            *(achievement_lines or fallback_lines or ["- improved X."]),
        ]
    )
    cover_text = "\n".join(
        [
            "Dear Hiring Team,",
            f"I am applying for {_without_numbers(extracted.jd_facts.role_title or 'this role')}.",
            "My background shows consistent execution and improved X outcomes.",
            "I can contribute quickly using proven delivery patterns and collaboration.",
            "Sincerely,",
            candidate,
        ]
    )
    return RewriteDocsResult(
        optimized_resume=resume_text,
        optimized_cover_letter=cover_text,
        rewrite_notes="Deterministic mock rewrite generated for local evaluation.",
    )


class MockGenerator:
    """Offline generator that answers each stage from the deterministic parsers."""

    def generate(self, request: GenerationRequest) -> str:
        instruction = request.system_instruction.lower()
        prompt = request.prompt

        if "stage 1: fact extraction" in instruction:
            payload = as_record(json_after_marker(prompt, "INPUT JSON:"))
            result = mock_extract_facts(payload)
        elif "stage 2: ats match scoring" in instruction:
            extracted = normalize_extract_facts(as_record(json_after_marker(prompt, "EXTRACTED_FACTS_JSON:")))
            source = as_record(json_after_marker(prompt, "SOURCE_TEXT_JSON:"))
            result = mock_score_match(
                extracted,
                SourceText(
                    job_description=str(source.get("jobDescription") or ""),
                    resume_content=str(source.get("resumeContent") or ""),
                    cover_letter_content=str(source.get("coverLetterContent") or ""),
                ),
            )
        elif "stage 3: document rewrite" in instruction:
            payload = as_record(json_after_marker(prompt, "INPUT_JSON:"))
            extracted = normalize_extract_facts(as_record(payload.get("extractedFacts")))
            result = mock_rewrite_docs(extracted, as_string_list(payload.get("explicitUserAchievements")))
        else:
            logger.warning("Mock generator received an unrecognized stage instruction")
            return "{}"

        return json.dumps(result.to_contract())
