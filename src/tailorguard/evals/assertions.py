from __future__ import annotations

import re
from dataclasses import dataclass, field

from pydantic import Field

from tailorguard.core.ats import parse_jd_requirements
from tailorguard.core.metrics_guard import extract_normalized_number_tokens
from tailorguard.core.privacy import (
    EMAIL_PATTERN,
    PHONE_CANDIDATE_PATTERN,
    PLACEHOLDER_PATTERN,
    STREET_ADDRESS_PATTERN,
    YEAR_RANGE_PATTERN,
)
from tailorguard.core.result_schema import validate_analysis_result
from tailorguard.types import AnalysisMode, AnalysisResult, ApplicationInput, ContractModel, StageName

SNIPPET_WORD_LIMIT = 20
HARD_REQUIREMENT_COVERAGE = 0.6

DATE_PATTERN = re.compile(
    r"\b(?:19|20)\d{2}\b|\b(?:19|20)\d{2}\s*-\s*(?:19|20)\d{2}\b|\b\d{1,2}[/.-]\d{1,2}[/.-](?:19|20)?\d{2}\b"
)
COMPANY_AT_PATTERN = re.compile(r"\bat\s+([A-Z][A-Za-z0-9&.-]*(?:\s+[A-Z][A-Za-z0-9&.-]*){0,3})")
COMPANY_SUFFIX_PATTERN = re.compile(
    r"\b([A-Z][A-Za-z0-9&.-]*(?:\s+[A-Z][A-Za-z0-9&.-]*){0,3}\s"
    r"(?:Inc|LLC|Ltd|GmbH|Corp|Corporation|Company|Technologies|Labs|Systems))\b"
)
REQUIREMENT_TOKEN = re.compile(r"[a-z0-9+#.]{3,}")
REQUIREMENT_STOPWORDS = frozenset(
    {
        "must", "required", "requirement", "have", "with", "and", "the", "for", "you", "will", "need",
        "years", "year", "experience", "minimum",
    }
)

SCHEMA_ASSERTION = "schema validation for AnalysisResult"
SNIPPET_ASSERTION = "every improvement has evidence snippets <= 20 words"
NUMBERS_ASSERTION = "if metricsVault is empty, output has no numeric claims unless present in inputs"
PROVENANCE_ASSERTION = "companies/dates in output must be present in resume input"
HARD_REQUIREMENT_ASSERTION = "missing hard requirements must be populated when JD demands them"
PRIVACY_ASSERTION = "privacy mode redacts email/phone/address before model call"
RETRIEVAL_ASSERTION = "retrievalTrace includes chunk ids and reasons"


class EvalAssertionResult(ContractModel):
    name: str
    passed: bool = Field(alias="pass")
    details: str | None = None


@dataclass(slots=True)
class EvalAssertionInput:
    fixture_id: str
    tier: AnalysisMode
    input: ApplicationInput
    result: AnalysisResult
    outbound_stage_prompts: dict[StageName, list[str]] = field(default_factory=dict)


def _normalize(value: str) -> str:
    return re.sub(r"\s+", " ", value.lower()).strip()


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def _word_count(value: str) -> int:
    return len(value.split())


def is_likely_phone_number(value: str) -> bool:
    trimmed = value.strip()
    digits = re.sub(r"\D", "", trimmed)
    if not 8 <= len(digits) <= 15:
        return False
    return not YEAR_RANGE_PATTERN.match(trimmed)


def collect_companies(text: str) -> list[str]:
    found = [match.group(1).strip() for match in COMPANY_AT_PATTERN.finditer(text)]
    found.extend(match.group(1).strip() for match in COMPANY_SUFFIX_PATTERN.finditer(text))
    return _unique([company for company in found if company])


def collect_pii_values(data: ApplicationInput) -> list[str]:
    source = f"{data.resume_content}\n{data.cover_letter_content}"
    emails = EMAIL_PATTERN.findall(source)
    phones = [value for value in PHONE_CANDIDATE_PATTERN.findall(source) if is_likely_phone_number(value)]
    addresses = [match.group(0) for match in STREET_ADDRESS_PATTERN.finditer(source)]
    return _unique([value.strip() for value in (*emails, *phones, *addresses)])


def detect_likely_missing_hard_requirement(job_description: str, resume_content: str) -> bool:
    resume = _normalize(resume_content)
    for requirement in parse_jd_requirements(job_description).hard_requirements:
        tokens = [token for token in REQUIREMENT_TOKEN.findall(requirement.lower()) if token not in REQUIREMENT_STOPWORDS]
        if not tokens:
            continue
        matched = sum(1 for token in tokens if token in resume)
        if matched / len(tokens) < HARD_REQUIREMENT_COVERAGE:
            return True
    return False


def check_schema(result: AnalysisResult) -> EvalAssertionResult:
    validation = validate_analysis_result(result)
    return EvalAssertionResult(
        name=SCHEMA_ASSERTION,
        passed=validation.valid,
        details=None if validation.valid else " | ".join(validation.errors),
    )


def check_snippet_lengths(result: AnalysisResult) -> EvalAssertionResult:
    too_long = []
    for index, improvement in enumerate(result.improvements):
        evidence = improvement.evidence
        snippets = [*evidence.resume_quotes, *evidence.jd_quotes, *evidence.missing_keywords]
        for position, snippet in enumerate(snippets):
            if _word_count(snippet) > SNIPPET_WORD_LIMIT:
                too_long.append(f"improvements[{index}] snippet[{position}] exceeds {SNIPPET_WORD_LIMIT} words")
    return EvalAssertionResult(name=SNIPPET_ASSERTION, passed=not too_long, details="; ".join(too_long) or None)


def check_numeric_claims(data: ApplicationInput, output_text: str) -> EvalAssertionResult:
    if not data.metrics_vault.is_empty():
        return EvalAssertionResult(name=NUMBERS_ASSERTION, passed=True)

    input_numbers = set(
        extract_normalized_number_tokens(
            "\n".join(
                [
                    data.resume_content,
                    data.cover_letter_content,
                    data.job_description,
                    data.company_info,
                    data.additional_context,
                ]
            )
        )
    )
    unauthorized = [token for token in extract_normalized_number_tokens(output_text) if token not in input_numbers]
    return EvalAssertionResult(
        name=NUMBERS_ASSERTION,
        passed=not unauthorized,
        details=f"Unauthorized numbers: {', '.join(unauthorized)}" if unauthorized else None,
    )


def check_provenance(data: ApplicationInput, output_text: str) -> EvalAssertionResult:
    resume = _normalize(data.resume_content)
    unknown_companies = [company for company in collect_companies(output_text) if _normalize(company) not in resume]
    dates = _unique([match.group(0) for match in DATE_PATTERN.finditer(output_text)])
    unknown_dates = [date for date in dates if _normalize(date) not in resume]

    details = []
    if unknown_companies:
        details.append(f"Unknown companies: {', '.join(unknown_companies)}")
    if unknown_dates:
        details.append(f"Unknown dates: {', '.join(unknown_dates)}")
    return EvalAssertionResult(
        name=PROVENANCE_ASSERTION,
        passed=not details,
        details=" | ".join(details) or None,
    )


def check_hard_requirements(data: ApplicationInput, result: AnalysisResult) -> EvalAssertionResult:
    demands = bool(parse_jd_requirements(data.job_description).hard_requirements)
    likely_missing = detect_likely_missing_hard_requirement(data.job_description, data.resume_content)
    populated = not demands or not likely_missing or bool(result.hard_requirements_missing)
    return EvalAssertionResult(
        name=HARD_REQUIREMENT_ASSERTION,
        passed=populated,
        details=None if populated else "Expected hardRequirementsMissing to be non-empty.",
    )


def check_privacy(data: ApplicationInput, prompts: dict[StageName, list[str]]) -> EvalAssertionResult:
    if not data.privacy_mode:
        return EvalAssertionResult(name=PRIVACY_ASSERTION, passed=True)

    outbound = next(iter(prompts.get("extractFacts", [])), "")
    leaked = [value for value in collect_pii_values(data) if value in outbound]
    has_placeholders = bool(PLACEHOLDER_PATTERN.search(outbound))

    details = None
    if leaked:
        details = f"Found raw PII in outbound payload: {', '.join(leaked)}"
    elif not has_placeholders:
        details = "No redaction placeholders found in outbound payload."
    return EvalAssertionResult(name=PRIVACY_ASSERTION, passed=not leaked and has_placeholders, details=details)


def check_retrieval_trace(result: AnalysisResult) -> EvalAssertionResult:
    trace = result.analysis_trace.retrieval_trace
    known = set(result.analysis_trace.retrieval_chunk_ids)
    passed = bool(trace) and all(entry.chunk_id and entry.reason and entry.chunk_id in known for entry in trace)
    return EvalAssertionResult(
        name=RETRIEVAL_ASSERTION,
        passed=passed,
        details=None if passed else "analysisTrace.retrievalTrace is missing entries or reasons.",
    )


def run_assertions(payload: EvalAssertionInput) -> list[EvalAssertionResult]:
    result = payload.result
    output_text = f"{result.optimized_resume or ''}\n{result.optimized_cover_letter or ''}"
    return [
        check_schema(result),
        check_snippet_lengths(result),
        check_numeric_claims(payload.input, output_text),
        check_provenance(payload.input, output_text),
        check_hard_requirements(payload.input, result),
        check_privacy(payload.input, payload.outbound_stage_prompts),
        check_retrieval_trace(result),
    ]
