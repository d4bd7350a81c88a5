from __future__ import annotations

from tailorguard.types import (
    ContractModel,
    KeywordCoverage,
    ParsedJdRequirements,
    PiiRedactionEntry,
    ResumeFacts,
)


class PrivacyPreviewResponse(ContractModel):
    redacted_preview: str
    redaction_count: int
    placeholders: list[str]


class AtsParseRequest(ContractModel):
    job_description: str
    resume_facts: ResumeFacts | None = None


class AtsParseResponse(ContractModel):
    requirements: ParsedJdRequirements
    keyword_coverage: KeywordCoverage | None = None
    hard_requirements_missing: list[str] | None = None


class ErrorResponse(ContractModel):
    error: str
    detail: str
    stage: str | None = None


def placeholders_of(entries: list[PiiRedactionEntry]) -> list[str]:
    return [entry.placeholder for entry in entries]
