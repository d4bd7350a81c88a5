from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from typing import Any, TypeVar

from tailorguard.core.metrics_guard import find_unauthorized_numbers_for_rewrite, get_allowed_metric_numbers
from tailorguard.core.normalize import (
    MAX_EVIDENCE_WORDS,
    ParseFailure,
    SchemaFailure,
    enforce_evidence_from_source,
    normalize_extract_facts,
    normalize_rewrite_docs,
    normalize_score_match,
    parse_stage_payload,
)
from tailorguard.core.policies import CorrectionPolicy, RetryPolicy
from tailorguard.core.privacy import (
    find_unauthorized_pii,
    find_unresolved_pii_placeholders,
    reinsert_redacted_pii,
)
from tailorguard.core.tiers import TierConfig
from tailorguard.errors import GuardrailViolationError, StageOutputError
from tailorguard.llm import prompts
from tailorguard.llm.providers import GenerationRequest, Generator
from tailorguard.llm.response_schemas import extract_facts_schema, rewrite_docs_schema, score_match_schema
from tailorguard.types import (
    ApplicationInput,
    ExtractFactsResult,
    MetricsVault,
    PiiRedactionEntry,
    PiiValidationIssue,
    RewriteDocsResult,
    ScoreMatchResult,
    SourceText,
    StageName,
    StageRequestTrace,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

StageRequestHook = Callable[[StageRequestTrace], None]


def _to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


@dataclass(slots=True)
class StageRunner:
    generator: Generator
    tier_config: TierConfig
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    on_stage_request: StageRequestHook | None = None
    on_retry: Callable[[], None] | None = None
    evidence_word_limit: int = MAX_EVIDENCE_WORDS

    def run(
        self,
        stage: StageName,
        *,
        system_instruction: str,
        prompt: str,
        schema: dict[str, Any],
        normalize: Callable[[dict[str, Any]], T],
    ) -> T:
        logger.info(
            "Stage request stage=%s model=%s tier=%s prompt_chars=%d",
            stage,
            self.tier_config.model,
            self.tier_config.tier,
            len(prompt),
        )
        if self.on_stage_request is not None:
            self.on_stage_request(
                StageRequestTrace(
                    stage_name=stage,
                    model=self.tier_config.model,
                    tier=self.tier_config.tier,
                    prompt=prompt,
                    system_instruction=system_instruction,
                )
            )

        request = GenerationRequest(
            model=self.tier_config.model,
            prompt=prompt,
            system_instruction=system_instruction,
            response_schema=schema,
            max_output_tokens=self.tier_config.stage_max_output_tokens[stage],
            schema_name=stage,
        )
        text = self.retry_policy.call(stage, lambda: self.generator.generate(request), on_retry=self.on_retry)

        parsed = parse_stage_payload(stage, text)
        if isinstance(parsed, (ParseFailure, SchemaFailure)):
            logger.error("Stage %s returned unusable output: %s", stage, parsed.reason)
            raise StageOutputError(stage, parsed.reason)
        return normalize(parsed.value)

    def system_instruction(self, template: str, stage: StageName) -> str:
        return template.format(
            tier=self.tier_config.tier,
            guidance=self.tier_config.stage_guidance[stage],
            evidence_word_limit=self.evidence_word_limit,
        )


def run_extract_facts(runner: StageRunner, data: ApplicationInput) -> ExtractFactsResult:
    payload = {
        "jobDescription": data.job_description,
        "companyInfo": data.company_info,
        "resumeContent": data.resume_content,
        "coverLetterContent": data.cover_letter_content,
        "portfolioLinks": data.portfolio_links,
        "additionalUserContext": data.additional_context,
        "metricsVault": data.metrics_vault.to_contract(),
        "privacyMode": data.privacy_mode,
    }
    return runner.run(
        "extractFacts",
        system_instruction=runner.system_instruction(prompts.EXTRACT_FACTS_SYSTEM, "extractFacts"),
        prompt=prompts.EXTRACT_FACTS_PROMPT.format(input_json=_to_json(payload)),
        schema=extract_facts_schema(),
        normalize=normalize_extract_facts,
    )


def run_score_match(runner: StageRunner, extracted: ExtractFactsResult, source: SourceText) -> ScoreMatchResult:
    scored = runner.run(
        "scoreMatch",
        system_instruction=runner.system_instruction(prompts.SCORE_MATCH_SYSTEM, "scoreMatch"),
        prompt=prompts.SCORE_MATCH_PROMPT.format(
            extracted_json=_to_json(extracted.to_contract()),
            source_json=_to_json(source.to_contract()),
        ),
        schema=score_match_schema(),
        normalize=partial(normalize_score_match, max_words=runner.evidence_word_limit),
    )
    return enforce_evidence_from_source(scored, source)


@dataclass(slots=True)
class RewriteValidation:
    draft: RewriteDocsResult
    unauthorized_numbers: list[str] = field(default_factory=list)
    pii_issues: list[PiiValidationIssue] = field(default_factory=list)
    unresolved_placeholders: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not (self.unauthorized_numbers or self.pii_issues or self.unresolved_placeholders)

    def violation(self, stage: str) -> GuardrailViolationError:
        return GuardrailViolationError(
            stage,
            unauthorized_numbers=self.unauthorized_numbers,
            pii_issues=self.pii_issues,
            unresolved_placeholders=self.unresolved_placeholders,
        )

    def pii_summary(self) -> str:
        parts = []
        if self.pii_issues:
            summary = ", ".join(f"{issue.type}:{issue.count}" for issue in self.pii_issues)
            parts.append(f"Unauthorized PII detected ({summary}).")
        if self.unresolved_placeholders:
            parts.append(f"Unknown PII placeholders detected ({len(self.unresolved_placeholders)}).")
        return " ".join(parts)


def reinsert_rewrite_pii(draft: RewriteDocsResult, entries: list[PiiRedactionEntry]) -> RewriteDocsResult:
    return draft.model_copy(
        update={
            "optimized_resume": reinsert_redacted_pii(draft.optimized_resume, entries),
            "optimized_cover_letter": reinsert_redacted_pii(draft.optimized_cover_letter, entries),
        }
    )


def validate_rewrite_draft(
    draft: RewriteDocsResult,
    metrics_vault: MetricsVault,
    entries: list[PiiRedactionEntry],
    privacy_mode: bool = False,
) -> RewriteValidation:
    validation = RewriteValidation(
        draft=draft, unauthorized_numbers=find_unauthorized_numbers_for_rewrite(draft, metrics_vault)
    )
    # an input without detected PII still forbids invented PII and placeholders
    if privacy_mode or entries:
        restored = reinsert_rewrite_pii(draft, entries)
        combined = f"{restored.optimized_resume or ''}\n{restored.optimized_cover_letter or ''}"
        validation.draft = restored
        validation.pii_issues = find_unauthorized_pii(combined, entries)
        validation.unresolved_placeholders = find_unresolved_pii_placeholders(combined, entries)

    if not validation.valid:
        logger.warning(
            "Rewrite draft guardrail report: numbers=%d pii=%s placeholders=%d",
            len(validation.unauthorized_numbers),
            [f"{issue.type}:{issue.count}" for issue in validation.pii_issues],
            len(validation.unresolved_placeholders),
        )
    return validation


def run_rewrite_docs(
    runner: StageRunner,
    extracted: ExtractFactsResult,
    scoring: ScoreMatchResult,
    explicit_achievements: list[str],
    metrics_vault: MetricsVault,
    redaction_entries: list[PiiRedactionEntry],
    *,
    privacy_mode: bool = False,
    on_correction: Callable[[], None] | None = None,
    on_validate: Callable[[bool], None] | None = None,
) -> RewriteDocsResult:
    allowed_numbers = sorted(get_allowed_metric_numbers(metrics_vault))
    placeholders = [entry.placeholder for entry in redaction_entries]
    system_instruction = runner.system_instruction(prompts.REWRITE_DOCS_SYSTEM, "rewriteDocs")
    vault_summary = metrics_vault.model_dump(by_alias=True)
    base_prompt = prompts.REWRITE_DOCS_PROMPT.format(
        input_json=_to_json(
            {
                "extractedFacts": extracted.to_contract(),
                "scoreMatch": scoring.to_contract(),
                "explicitUserAchievements": explicit_achievements,
                "metricsVault": vault_summary,
            }
        ),
        metrics_vault_json=_to_json(vault_summary),
        allowed_numbers_json=_to_json(allowed_numbers),
        placeholders_json=_to_json(placeholders),
    )

    def generate(prompt: str) -> RewriteDocsResult:
        return runner.run(
            "rewriteDocs",
            system_instruction=system_instruction,
            prompt=prompt,
            schema=rewrite_docs_schema(),
            normalize=normalize_rewrite_docs,
        )

    def correct(report: RewriteValidation) -> RewriteDocsResult:
        return generate(
            prompts.REWRITE_CORRECTION_PROMPT.format(
                base_prompt=base_prompt,
                unauthorized_numbers_json=_to_json(report.unauthorized_numbers),
                pii_summary=report.pii_summary(),
                allowed_numbers_json=_to_json(allowed_numbers),
                placeholders_json=_to_json(placeholders),
            )
        )

    policy: CorrectionPolicy[RewriteDocsResult, RewriteValidation] = CorrectionPolicy(
        stage="rewriteDocs", on_correction=on_correction, on_validate=on_validate
    )
    accepted = policy.run(
        lambda: generate(base_prompt),
        lambda draft: validate_rewrite_draft(draft, metrics_vault, redaction_entries, privacy_mode),
        correct,
    )
    return accepted.draft
