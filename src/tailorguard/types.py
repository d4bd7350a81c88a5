from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

AnalysisMode = Literal["fast", "balanced", "deep"]
AnalysisTier = Literal["SIMPLE", "MEDIUM", "COMPLEX"]
StageName = Literal["extractFacts", "scoreMatch", "rewriteDocs"]
ModelMode = Literal["real", "mock"]
PiiType = Literal["EMAIL", "PHONE", "STREET_ADDRESS", "BIRTH_DATE", "PERSONAL_ID"]
RetrievalSource = Literal[
    "jobDescription",
    "resumeContent",
    "coverLetterContent",
    "companyInfo",
    "additionalContext",
]
Language = Literal["English", "German"]
GapCategory = Literal["critical", "optional"]

METRIC_FIELDS = (
    "project_impact",
    "latency_reduction",
    "cost_savings",
    "users_served",
    "uptime",
    "other_metrics",
)


class ContractModel(BaseModel):
    """Base for every shape that crosses the JSON boundary (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())

    def to_contract(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class MetricsVault(ContractModel):
    model_config = ConfigDict(frozen=True)

    project_impact: str | None = None
    latency_reduction: str | None = None
    cost_savings: str | None = None
    users_served: str | None = None
    uptime: str | None = None
    other_metrics: str | None = None

    def filled_values(self) -> list[str]:
        values = [getattr(self, name) for name in METRIC_FIELDS]
        return [value for value in values if isinstance(value, str) and value]

    def is_empty(self) -> bool:
        return not any(value.strip() for value in self.filled_values())


class ApplicationInput(ContractModel):
    model_config = ConfigDict(frozen=True)

    job_description: str = ""
    company_info: str = ""
    resume_content: str = ""
    cover_letter_content: str = ""
    portfolio_links: str = ""
    additional_context: str = ""
    analysis_mode: AnalysisMode = "balanced"
    privacy_mode: bool = False
    metrics_vault: MetricsVault = Field(default_factory=MetricsVault)


class PiiRedactionEntry(ContractModel):
    placeholder: str
    original: str
    type: PiiType


class PiiValidationIssue(ContractModel):
    type: PiiType
    count: int


class PrivacyPreparationResult(ContractModel):
    sanitized_input: ApplicationInput
    redaction_entries: list[PiiRedactionEntry] = Field(default_factory=list)
    redacted_preview: str = ""


class RetrievalChunk(ContractModel):
    id: str
    source: RetrievalSource
    text: str
    start: int
    end: int
    token_estimate: int


class RetrievalTraceEntry(ContractModel):
    chunk_id: str
    reason: str


class ParsedJdRequirements(ContractModel):
    hard_requirements: list[str] = Field(default_factory=list)
    soft_requirements: list[str] = Field(default_factory=list)
    tools_tech_keywords: list[str] = Field(default_factory=list)


class KeywordCoverage(ContractModel):
    matched: list[str]
    missing: list[str]
    partial: list[str]


class AtsCoverageResult(ContractModel):
    keyword_coverage: KeywordCoverage
    hard_requirements_missing: list[str] = Field(default_factory=list)


class ExtractedExperience(ContractModel):
    employer: str | None = None
    role: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    achievements: list[str] = Field(default_factory=list)


class JdFacts(ContractModel):
    role_title: str | None = None
    company_name: str | None = None
    must_have_skills: list[str] = Field(default_factory=list)
    nice_to_have_skills: list[str] = Field(default_factory=list)
    responsibilities: list[str] = Field(default_factory=list)
    required_experience_years: float | None = None
    keywords: list[str] = Field(default_factory=list)


class ResumeFacts(ContractModel):
    candidate_name: str | None = None
    skills: list[str] = Field(default_factory=list)
    experience: list[ExtractedExperience] = Field(default_factory=list)
    achievements: list[str] = Field(default_factory=list)
    education: list[str] = Field(default_factory=list)
    certifications: list[str] = Field(default_factory=list)


class CoverLetterFacts(ContractModel):
    key_claims: list[str] = Field(default_factory=list)
    motivations: list[str] = Field(default_factory=list)


class ExtractFactsResult(ContractModel):
    language_detected: Language | None = None
    jd_facts: JdFacts = Field(default_factory=JdFacts)
    resume_facts: ResumeFacts = Field(default_factory=ResumeFacts)
    cover_letter_facts: CoverLetterFacts = Field(default_factory=CoverLetterFacts)
    explicit_user_achievements: list[str] = Field(default_factory=list)
    missing_data: list[str] = Field(default_factory=list)


class ImprovementEvidence(ContractModel):
    resume_quotes: list[str]
    jd_quotes: list[str]
    missing_keywords: list[str]


class Improvement(ContractModel):
    point: str | None
    category: GapCategory
    impact: str | None
    evidence: ImprovementEvidence


class ScoreMatchResult(ContractModel):
    baseline_score: float | None = None
    enhanced_score: float | None = None
    job_fit_score: float | None = None
    explanation: str | None = None
    overall_feedback: str | None = None
    gap_analysis: list[Improvement] = Field(default_factory=list)
    portfolio_advice: str | None = None
    recruiter_notes: str | None = None
    confidence_notes: list[str] = Field(default_factory=list)


class RewriteDocsResult(ContractModel):
    optimized_resume: str | None = None
    optimized_cover_letter: str | None = None
    rewrite_notes: str | None = None


class ScoreBreakdown(ContractModel):
    baseline: float | None
    enhanced: float | None
    explanation: str | None


class AnalysisTrace(ContractModel):
    input_hash: str
    retrieval_chunk_ids: list[str]
    retrieval_trace: list[RetrievalTraceEntry]
    model_name: str
    tier: AnalysisTier
    timestamp: str
    retries: int


class AnalysisResult(ContractModel):
    score_breakdown: ScoreBreakdown
    job_fit_score: float | None
    overall_feedback: str | None
    improvements: list[Improvement]
    optimized_resume: str | None
    optimized_cover_letter: str | None
    language_detected: Language | None
    portfolio_advice: str | None
    recruiter_notes: str | None
    evidence_snippet_word_limit: int
    keyword_coverage: KeywordCoverage
    hard_requirements_missing: list[str]
    analysis_trace: AnalysisTrace


class StageRequestTrace(ContractModel):
    stage_name: StageName
    model: str
    tier: AnalysisTier
    prompt: str
    system_instruction: str


class SourceText(ContractModel):
    job_description: str = ""
    resume_content: str = ""
    cover_letter_content: str = ""

    @classmethod
    def from_input(cls, data: ApplicationInput) -> SourceText:
        return cls(
            job_description=data.job_description,
            resume_content=data.resume_content,
            cover_letter_content=data.cover_letter_content,
        )
