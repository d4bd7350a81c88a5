from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

from tailorguard.config import Settings, get_settings
from tailorguard.types import AnalysisMode, AnalysisTier, ApplicationInput, StageName

SIMPLE_DOC_CHAR_LIMIT = 3000
FAST_SIMPLE_DOC_CHAR_LIMIT = 4500
FAST_SIMPLE_TOKEN_LIMIT = 3200
COMPLEX_DOC_CHAR_LIMIT = 9000
COMPLEX_TOTAL_CHAR_LIMIT = 18000
COMPLEX_TOKEN_LIMIT = 4500
APPROX_CHARS_PER_TOKEN = 4

DEEP_ANALYSIS_PATTERN = re.compile(r"\bdeep\s+analysis\b|\bdeep\b", re.IGNORECASE)

_STAGE_MAX_OUTPUT_TOKENS: dict[AnalysisTier, dict[StageName, int]] = {
    "SIMPLE": {"extractFacts": 900, "scoreMatch": 1200, "rewriteDocs": 1600},
    "MEDIUM": {"extractFacts": 1400, "scoreMatch": 2000, "rewriteDocs": 2600},
    "COMPLEX": {"extractFacts": 2200, "scoreMatch": 3200, "rewriteDocs": 4200},
}

_STAGE_GUIDANCE: dict[AnalysisTier, dict[StageName, str]] = {
    "SIMPLE": {
        "extractFacts": "Compact extraction. Keep lists concise and prioritize strongest facts only.",
        "scoreMatch": "Compact scoring. Limit gapAnalysis to the highest-impact items only.",
        "rewriteDocs": "Compact rewrite. Keep wording concise and avoid adding extra sections.",
    },
    "MEDIUM": {
        "extractFacts": "Standard extraction depth for typical hiring workflows.",
        "scoreMatch": "Balanced scoring depth with actionable yet concise gap coverage.",
        "rewriteDocs": "Balanced rewrite detail with professional clarity and ATS alignment.",
    },
    "COMPLEX": {
        "extractFacts": "Deep extraction. Capture comprehensive role, skills, and evidence context.",
        "scoreMatch": "Deep scoring with richer gap decomposition and nuanced ATS rationale.",
        "rewriteDocs": "Deep rewrite with thorough optimization while preserving factual grounding.",
    },
}


@dataclass(slots=True, frozen=True)
class TierConfig:
    tier: AnalysisTier
    model: str
    stage_max_output_tokens: dict[StageName, int] = field(default_factory=dict)
    stage_guidance: dict[StageName, str] = field(default_factory=dict)


def estimate_tokens_from_chars(chars: int) -> int:
    return math.ceil(chars / APPROX_CHARS_PER_TOKEN)


def select_tier(data: ApplicationInput) -> AnalysisTier:
    jd_chars = len(data.job_description)
    resume_chars = len(data.resume_content)
    metrics_chars = len(" ".join(data.metrics_vault.filled_values()))
    total_chars = (
        jd_chars
        + resume_chars
        + len(data.cover_letter_content)
        + len(data.company_info)
        + len(data.additional_context)
        + metrics_chars
    )
    estimated_tokens = estimate_tokens_from_chars(total_chars)

    complex_by_length = (
        jd_chars > COMPLEX_DOC_CHAR_LIMIT
        or resume_chars > COMPLEX_DOC_CHAR_LIMIT
        or total_chars > COMPLEX_TOTAL_CHAR_LIMIT
        or estimated_tokens > COMPLEX_TOKEN_LIMIT
    )
    deep_requested = bool(
        DEEP_ANALYSIS_PATTERN.search(f"{data.additional_context}\n{data.company_info}\n{data.job_description}")
    )

    if data.analysis_mode == "deep" or deep_requested or complex_by_length:
        return "COMPLEX"

    if data.analysis_mode == "fast":
        fast_simple = (
            jd_chars < FAST_SIMPLE_DOC_CHAR_LIMIT
            and resume_chars < FAST_SIMPLE_DOC_CHAR_LIMIT
            and estimated_tokens < FAST_SIMPLE_TOKEN_LIMIT
        )
        return "SIMPLE" if fast_simple else "MEDIUM"

    if jd_chars < SIMPLE_DOC_CHAR_LIMIT and resume_chars < SIMPLE_DOC_CHAR_LIMIT:
        return "SIMPLE"
    return "MEDIUM"


def tier_from_mode(mode: AnalysisMode) -> AnalysisTier:
    if mode == "deep":
        return "COMPLEX"
    if mode == "fast":
        return "SIMPLE"
    if mode == "balanced":
        return "MEDIUM"
    raise ValueError(f"unsupported analysis mode '{mode}'")


@dataclass(slots=True)
class TierPolicy:
    settings: Settings = field(default_factory=get_settings)

    def model_for(self, tier: AnalysisTier) -> str:
        return {
            "SIMPLE": self.settings.model_simple,
            "MEDIUM": self.settings.model_medium,
            "COMPLEX": self.settings.model_complex,
        }[tier]

    def config_for(self, tier: AnalysisTier) -> TierConfig:
        if tier not in _STAGE_MAX_OUTPUT_TOKENS:
            raise ValueError(f"unsupported tier '{tier}'")
        return TierConfig(
            tier=tier,
            model=self.model_for(tier),
            stage_max_output_tokens=dict(_STAGE_MAX_OUTPUT_TOKENS[tier]),
            stage_guidance=dict(_STAGE_GUIDANCE[tier]),
        )

    def config_for_input(self, data: ApplicationInput) -> TierConfig:
        return self.config_for(select_tier(data))

    def config_for_mode(self, mode: AnalysisMode) -> TierConfig:
        return self.config_for(tier_from_mode(mode))
