from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from tailorguard.config import Settings, get_settings
from tailorguard.core.ats import compute_ats_coverage
from tailorguard.core.hashing import compute_input_hash
from tailorguard.core.normalize import parse_explicit_user_achievements
from tailorguard.core.policies import RetryPolicy
from tailorguard.core.privacy import prepare_application
from tailorguard.core.result_schema import ensure_valid_analysis_result
from tailorguard.core.retrieval import select_retrieval_trace
from tailorguard.core.stages import (
    StageRequestHook,
    StageRunner,
    run_extract_facts,
    run_rewrite_docs,
    run_score_match,
)
from tailorguard.core.tiers import TierConfig, TierPolicy, select_tier
from tailorguard.llm.providers import Generator, build_generator
from tailorguard.types import (
    AnalysisMode,
    AnalysisResult,
    AnalysisTrace,
    ApplicationInput,
    ExtractFactsResult,
    MetricsVault,
    ModelMode,
    PiiRedactionEntry,
    RewriteDocsResult,
    ScoreBreakdown,
    ScoreMatchResult,
    SourceText,
)

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    PREPARING_INPUT = "preparing_input"
    EXTRACTING_FACTS = "extracting_facts"
    SCORING_MATCH = "scoring_match"
    REWRITING_DOCS = "rewriting_docs"
    VALIDATING_REWRITE = "validating_rewrite"
    CORRECTING_REWRITE = "correcting_rewrite"
    VALIDATING_CORRECTION = "validating_correction"
    ASSEMBLING_RESULT = "assembling_result"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class AnalysisOptions:
    model_mode: ModelMode | None = None
    api_key: str | None = None
    on_stage_request: StageRequestHook | None = None
    generator: Generator | None = None


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class AnalysisOrchestrator:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        generator: Generator | None = None,
        model_mode: ModelMode | None = None,
        api_key: str | None = None,
        on_stage_request: StageRequestHook | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or get_settings()
        self.generator = generator or build_generator(self.settings, model_mode=model_mode, api_key=api_key)
        self.on_stage_request = on_stage_request
        self.tier_policy = TierPolicy(self.settings)
        self.retry_policy = RetryPolicy(
            max_attempts=self.settings.retry_max_attempts,
            base_backoff_ms=self.settings.retry_base_backoff_ms,
            sleep=sleep,
        )
        self.state = PipelineState.IDLE
        self.history: list[PipelineState] = [PipelineState.IDLE]
        self.retries = 0

    def analyze(self, data: ApplicationInput) -> AnalysisResult:
        self.retries = 0
        self.history = [PipelineState.IDLE]
        self.state = PipelineState.IDLE

        try:
            self._transition(PipelineState.PREPARING_INPUT)
            prepared = prepare_application(data)
            sanitized = prepared.sanitized_input
            tier_config = self.tier_policy.config_for(select_tier(sanitized))
            explicit_achievements = parse_explicit_user_achievements(sanitized.additional_context)
            timestamp = utc_timestamp()
            input_hash = compute_input_hash(sanitized)
            logger.info(
                "Prepared input hash=%s tier=%s model=%s privacy=%s redactions=%d",
                input_hash[:12],
                tier_config.tier,
                tier_config.model,
                sanitized.privacy_mode,
                len(prepared.redaction_entries),
            )
            runner = self._runner(tier_config)

            self._transition(PipelineState.EXTRACTING_FACTS)
            extracted = run_extract_facts(runner, sanitized)

            self._transition(PipelineState.SCORING_MATCH)
            scored = run_score_match(runner, extracted, SourceText.from_input(sanitized))

            self._transition(PipelineState.REWRITING_DOCS)
            rewritten = run_rewrite_docs(
                runner,
                extracted,
                scored,
                explicit_achievements or extracted.explicit_user_achievements,
                sanitized.metrics_vault,
                prepared.redaction_entries,
                privacy_mode=sanitized.privacy_mode,
                on_correction=self._on_correction,
                on_validate=self._on_validate,
            )

            self._transition(PipelineState.ASSEMBLING_RESULT)
            result = self._assemble(
                sanitized=sanitized,
                extracted=extracted,
                scored=scored,
                rewritten=rewritten,
                tier_config=tier_config,
                input_hash=input_hash,
                timestamp=timestamp,
            )
            ensure_valid_analysis_result(result)
            self._transition(PipelineState.DONE)
            logger.info(
                "Analysis complete tier=%s retries=%d improvements=%d hard_missing=%d",
                tier_config.tier,
                self.retries,
                len(result.improvements),
                len(result.hard_requirements_missing),
            )
            return result
        except Exception:
            logger.exception("Analysis failed in state=%s", self.state.value)
            self._transition(PipelineState.FAILED)
            raise

    def _runner(self, tier_config: TierConfig) -> StageRunner:
        return StageRunner(
            generator=self.generator,
            tier_config=tier_config,
            retry_policy=self.retry_policy,
            on_stage_request=self.on_stage_request,
            on_retry=self._count_retry,
            evidence_word_limit=self.settings.evidence_word_limit,
        )

    def _transition(self, state: PipelineState) -> None:
        logger.info("Pipeline state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _count_retry(self) -> None:
        self.retries += 1

    def _on_correction(self) -> None:
        self._count_retry()
        self._transition(PipelineState.CORRECTING_REWRITE)

    def _on_validate(self, is_correction: bool) -> None:
        self._transition(
            PipelineState.VALIDATING_CORRECTION if is_correction else PipelineState.VALIDATING_REWRITE
        )

    def _assemble(
        self,
        *,
        sanitized: ApplicationInput,
        extracted: ExtractFactsResult,
        scored: ScoreMatchResult,
        rewritten: RewriteDocsResult,
        tier_config: TierConfig,
        input_hash: str,
        timestamp: str,
    ) -> AnalysisResult:
        notes = [note for note in (scored.recruiter_notes, rewritten.rewrite_notes) if note and note.strip()]
        coverage = compute_ats_coverage(sanitized.job_description, extracted.resume_facts)
        trace = select_retrieval_trace(
            sanitized,
            self.settings.retrieval_limit,
            max_chars=self.settings.retrieval_chunk_max_chars,
            overlap=self.settings.retrieval_chunk_overlap,
        )

        return AnalysisResult(
            score_breakdown=ScoreBreakdown(
                baseline=scored.baseline_score,
                enhanced=scored.enhanced_score,
                explanation=scored.explanation,
            ),
            job_fit_score=scored.job_fit_score,
            overall_feedback=scored.overall_feedback,
            improvements=[gap.model_copy() for gap in scored.gap_analysis],
            optimized_resume=rewritten.optimized_resume,
            optimized_cover_letter=rewritten.optimized_cover_letter,
            language_detected=extracted.language_detected,
            portfolio_advice=scored.portfolio_advice,
            recruiter_notes="\n\n".join(notes) or None,
            evidence_snippet_word_limit=self.settings.evidence_word_limit,
            keyword_coverage=coverage.keyword_coverage,
            hard_requirements_missing=coverage.hard_requirements_missing,
            analysis_trace=AnalysisTrace(
                input_hash=input_hash,
                retrieval_chunk_ids=[entry.chunk_id for entry in trace],
                retrieval_trace=trace,
                model_name=tier_config.model,
                tier=tier_config.tier,
                timestamp=timestamp,
                retries=self.retries,
            ),
        )


def _standalone_runner(options: AnalysisOptions | None, tier_config: TierConfig, settings: Settings) -> StageRunner:
    options = options or AnalysisOptions()
    generator = options.generator or build_generator(settings, model_mode=options.model_mode, api_key=options.api_key)
    return StageRunner(
        generator=generator,
        tier_config=tier_config,
        retry_policy=RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_backoff_ms=settings.retry_base_backoff_ms,
        ),
        on_stage_request=options.on_stage_request,
        evidence_word_limit=settings.evidence_word_limit,
    )


def analyze(data: ApplicationInput, options: AnalysisOptions | None = None) -> AnalysisResult:
    options = options or AnalysisOptions()
    orchestrator = AnalysisOrchestrator(
        generator=options.generator,
        model_mode=options.model_mode,
        api_key=options.api_key,
        on_stage_request=options.on_stage_request,
    )
    return orchestrator.analyze(data)


def extract_facts(data: ApplicationInput, options: AnalysisOptions | None = None) -> ExtractFactsResult:
    settings = get_settings()
    sanitized = prepare_application(data).sanitized_input
    tier_config = TierPolicy(settings).config_for(select_tier(sanitized))
    return run_extract_facts(_standalone_runner(options, tier_config, settings), sanitized)


def score_match(
    extracted: ExtractFactsResult,
    source_text: SourceText | None = None,
    analysis_mode: AnalysisMode = "balanced",
    options: AnalysisOptions | None = None,
) -> ScoreMatchResult:
    settings = get_settings()
    tier_config = TierPolicy(settings).config_for_mode(analysis_mode)
    runner = _standalone_runner(options, tier_config, settings)
    return run_score_match(runner, extracted, source_text or SourceText())


def rewrite_docs(
    extracted: ExtractFactsResult,
    scoring: ScoreMatchResult,
    explicit_achievements: list[str],
    metrics_vault: MetricsVault,
    redaction_entries: list[PiiRedactionEntry] | None = None,
    analysis_mode: AnalysisMode = "balanced",
    options: AnalysisOptions | None = None,
    privacy_mode: bool = False,
) -> RewriteDocsResult:
    settings = get_settings()
    tier_config = TierPolicy(settings).config_for_mode(analysis_mode)
    runner = _standalone_runner(options, tier_config, settings)
    return run_rewrite_docs(
        runner,
        extracted,
        scoring,
        explicit_achievements,
        metrics_vault,
        redaction_entries or [],
        privacy_mode=privacy_mode,
    )
