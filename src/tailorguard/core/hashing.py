from __future__ import annotations

import hashlib
import json
import re
from typing import Any

from pydantic.alias_generators import to_camel

from tailorguard.types import METRIC_FIELDS, ApplicationInput

_WHITESPACE = re.compile(r"\s+")


def normalize_input_text(value: str | None) -> str:
    return _WHITESPACE.sub(" ", value or "").strip()


def canonical_input_payload(data: ApplicationInput) -> dict[str, Any]:
    vault = data.metrics_vault
    return {
        "jobDescription": normalize_input_text(data.job_description),
        "companyInfo": normalize_input_text(data.company_info),
        "resumeContent": normalize_input_text(data.resume_content),
        "coverLetterContent": normalize_input_text(data.cover_letter_content),
        "portfolioLinks": normalize_input_text(data.portfolio_links),
        "additionalContext": normalize_input_text(data.additional_context),
        "analysisMode": data.analysis_mode,
        "privacyMode": data.privacy_mode,
        "metricsVault": {to_camel(name): normalize_input_text(getattr(vault, name)) for name in METRIC_FIELDS},
    }


def compute_input_hash(data: ApplicationInput) -> str:
    payload = json.dumps(canonical_input_payload(data), separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
