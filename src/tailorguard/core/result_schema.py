from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from tailorguard.errors import ResultValidationError
from tailorguard.types import AnalysisResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


def format_error_location(loc: tuple[int | str, ...]) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or "result"


def _word_count(text: str) -> int:
    return len(text.split())


def _invariant_errors(result: AnalysisResult) -> list[str]:
    errors: list[str] = []
    limit = result.evidence_snippet_word_limit

    for index, improvement in enumerate(result.improvements):
        quotes = (
            ("resumeQuotes", improvement.evidence.resume_quotes),
            ("jdQuotes", improvement.evidence.jd_quotes),
        )
        for name, snippets in quotes:
            for position, snippet in enumerate(snippets):
                if _word_count(snippet) > limit:
                    errors.append(
                        f"improvements[{index}].evidence.{name}[{position}]: "
                        f"evidence snippet exceeds {limit} words"
                    )

    known_ids = set(result.analysis_trace.retrieval_chunk_ids)
    for index, entry in enumerate(result.analysis_trace.retrieval_trace):
        if entry.chunk_id not in known_ids:
            errors.append(
                f"analysisTrace.retrievalTrace[{index}].chunkId: "
                f"'{entry.chunk_id}' is not listed in retrievalChunkIds"
            )
    return errors


def validate_analysis_result(value: Any) -> ValidationResult:
    if isinstance(value, AnalysisResult):
        value = value.to_contract()

    try:
        payload = json.dumps(value)
    except (TypeError, ValueError) as exc:
        return ValidationResult(valid=False, errors=[f"result: not JSON serializable ({exc})"])

    try:
        result = AnalysisResult.model_validate_json(payload, strict=True)
    except ValidationError as exc:
        errors = [f"{format_error_location(error['loc'])}: {error['msg']}" for error in exc.errors()]
        return ValidationResult(valid=False, errors=errors)

    errors = _invariant_errors(result)
    return ValidationResult(valid=not errors, errors=errors)


def ensure_valid_analysis_result(value: Any) -> None:
    validation = validate_analysis_result(value)
    if not validation.valid:
        logger.error("AnalysisResult failed schema validation with %d error(s)", len(validation.errors))
        raise ResultValidationError(validation.errors)
