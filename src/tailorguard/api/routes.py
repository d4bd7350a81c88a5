from __future__ import annotations

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool

from tailorguard.api.schemas import AtsParseRequest, AtsParseResponse, PrivacyPreviewResponse, placeholders_of
from tailorguard.core.ats import compute_ats_coverage, parse_jd_requirements
from tailorguard.core.orchestrator import AnalysisOrchestrator
from tailorguard.core.privacy import prepare_application
from tailorguard.types import AnalysisResult, ApplicationInput

router = APIRouter(prefix="/api", tags=["api"])


@router.post("/analyze", response_model=AnalysisResult, response_model_by_alias=True)
async def analyze(payload: ApplicationInput) -> AnalysisResult:
    orchestrator = AnalysisOrchestrator()
    return await run_in_threadpool(orchestrator.analyze, payload)


@router.post("/privacy/preview", response_model=PrivacyPreviewResponse, response_model_by_alias=True)
def privacy_preview(payload: ApplicationInput) -> PrivacyPreviewResponse:
    prepared = prepare_application(payload.model_copy(update={"privacy_mode": True}))
    return PrivacyPreviewResponse(
        redacted_preview=prepared.redacted_preview,
        redaction_count=len(prepared.redaction_entries),
        placeholders=placeholders_of(prepared.redaction_entries),
    )


@router.post("/ats/parse", response_model=AtsParseResponse, response_model_by_alias=True)
def ats_parse(payload: AtsParseRequest) -> AtsParseResponse:
    response = AtsParseResponse(requirements=parse_jd_requirements(payload.job_description))
    if payload.resume_facts is not None:
        coverage = compute_ats_coverage(payload.job_description, payload.resume_facts)
        response.keyword_coverage = coverage.keyword_coverage
        response.hard_requirements_missing = coverage.hard_requirements_missing
    return response
