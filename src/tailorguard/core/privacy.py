from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from pydantic.alias_generators import to_camel

from tailorguard.types import (
    METRIC_FIELDS,
    ApplicationInput,
    PiiRedactionEntry,
    PiiType,
    PiiValidationIssue,
    PrivacyPreparationResult,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE)
PHONE_CANDIDATE_PATTERN = re.compile(r"(?:\+?\d[\d()\s.-]{7,}\d)")
STREET_ADDRESS_PATTERN = re.compile(
    r"\b\d{1,5}\s+[A-Za-z0-9.'-]+(?:\s+[A-Za-z0-9.'-]+){0,4}\s"
    r"(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Lane|Ln|Drive|Dr|Way|Court|Ct|Place|Pl|Parkway|Pkwy)\b\.?",
    re.IGNORECASE,
)
BIRTH_DATE_LABELED_PATTERN = re.compile(
    r"\b(?:date of birth|dob|born)\b(\s*[:\-]?\s*)"
    r"([A-Za-z]+\s+\d{1,2},\s*\d{4}|\d{1,2}[./-]\d{1,2}[./-]\d{2,4}|\d{4}[./-]\d{1,2}[./-]\d{1,2})",
    re.IGNORECASE,
)
PERSONAL_ID_LABELED_PATTERN = re.compile(
    r"\b(?:ssn|social security number|passport(?:\s*(?:no\.?|number))?|national id|id number|tax id|tin|aadhaar"
    r"|driver(?:'s)? license)\b(\s*[:#-]?\s*)([A-Za-z0-9-]{4,})",
    re.IGNORECASE,
)
PLACEHOLDER_PATTERN = re.compile(r"\[PII_[A-Z_]+_\d+\]")
YEAR_RANGE_PATTERN = re.compile(r"^\d{4}\s*[-/]\s*\d{4}$")

PREVIEW_SECTION_LIMIT = 1200
_MASK = "\x00"

_PREVIEW_SECTIONS: tuple[tuple[str, str], ...] = (
    ("Job Description", "job_description"),
    ("Company Context", "company_info"),
    ("Resume Content", "resume_content"),
    ("Cover Letter Content", "cover_letter_content"),
    ("Portfolio Links", "portfolio_links"),
    ("Additional Context", "additional_context"),
)
_REDACTED_FIELDS = tuple(attribute for _, attribute in _PREVIEW_SECTIONS)

_WHITESPACE = re.compile(r"\s+")


@dataclass(slots=True, frozen=True)
class DetectedPii:
    type: PiiType
    value: str
    start: int
    end: int


def _is_likely_phone(candidate: str) -> bool:
    digits = re.sub(r"\D", "", candidate)
    if not 8 <= len(digits) <= 15:
        return False
    return not YEAR_RANGE_PATTERN.match(candidate.strip())


def normalize_pii_value(pii_type: PiiType, value: str) -> str:
    if pii_type == "PHONE":
        return re.sub(r"\D", "", value)
    if pii_type == "PERSONAL_ID":
        return re.sub(r"[^A-Za-z0-9]", "", value).upper()
    return _WHITESPACE.sub(" ", value).strip().lower()


def _whole_matches(pattern: re.Pattern[str], text: str) -> Iterator[tuple[int, int]]:
    for match in pattern.finditer(text):
        yield match.start(), match.end()


def _labeled_matches(pattern: re.Pattern[str], text: str) -> Iterator[tuple[int, int]]:
    for match in pattern.finditer(text):
        yield match.start(2), match.end(2)


def _phone_matches(text: str) -> Iterator[tuple[int, int]]:
    for match in PHONE_CANDIDATE_PATTERN.finditer(text):
        if _is_likely_phone(match.group(0)):
            yield match.start(), match.end()


# Labeled detectors run before the generic phone/address scans and every hit is masked,
# so one span is never captured twice under different types.
_DETECTORS: tuple[tuple[PiiType, Callable[[str], Iterator[tuple[int, int]]]], ...] = (
    ("EMAIL", lambda text: _whole_matches(EMAIL_PATTERN, text)),
    ("BIRTH_DATE", lambda text: _labeled_matches(BIRTH_DATE_LABELED_PATTERN, text)),
    ("PERSONAL_ID", lambda text: _labeled_matches(PERSONAL_ID_LABELED_PATTERN, text)),
    ("PHONE", _phone_matches),
    ("STREET_ADDRESS", lambda text: _whole_matches(STREET_ADDRESS_PATTERN, text)),
)


def detect_pii(text: str | None) -> list[DetectedPii]:
    if not text:
        return []

    working = text
    found: list[DetectedPii] = []
    for pii_type, detector in _DETECTORS:
        spans = list(detector(working))
        for start, end in spans:
            found.append(DetectedPii(type=pii_type, value=text[start:end], start=start, end=end))
        for start, end in spans:
            working = working[:start] + _MASK * (end - start) + working[end:]
    return found


class PiiRedactor:
    """Per-run placeholder registry. One instance must never be shared across runs."""

    def __init__(self) -> None:
        self._placeholders: dict[tuple[PiiType, str], str] = {}
        self._counters: dict[PiiType, int] = {}
        self.entries: list[PiiRedactionEntry] = []

    def placeholder_for(self, pii_type: PiiType, original: str) -> str:
        key = (pii_type, normalize_pii_value(pii_type, original))
        existing = self._placeholders.get(key)
        if existing is not None:
            return existing

        count = self._counters.get(pii_type, 0) + 1
        self._counters[pii_type] = count
        placeholder = f"[PII_{pii_type}_{count}]"
        self._placeholders[key] = placeholder
        self.entries.append(PiiRedactionEntry(placeholder=placeholder, original=original, type=pii_type))
        return placeholder

    def redact(self, text: str) -> str:
        if not text:
            return text

        detections = detect_pii(text)
        # placeholders are numbered in detector order, spans are replaced in text order
        replacements = [(item, self.placeholder_for(item.type, item.value)) for item in detections]
        result = text
        for item, placeholder in sorted(replacements, key=lambda pair: pair[0].start, reverse=True):
            result = result[: item.start] + placeholder + result[item.end :]
        return result


def _truncate_section(value: str) -> str:
    value = value.strip()
    if not value:
        return "(empty)"
    if len(value) > PREVIEW_SECTION_LIMIT:
        return value[:PREVIEW_SECTION_LIMIT] + "\n...[truncated]"
    return value


def build_redacted_preview(data: ApplicationInput) -> str:
    sections = [f"## {label}\n{_truncate_section(getattr(data, attribute))}" for label, attribute in _PREVIEW_SECTIONS]

    vault_lines = []
    for name in METRIC_FIELDS:
        value = getattr(data.metrics_vault, name)
        if value and value.strip():
            vault_lines.append(f"{to_camel(name)}: {value.strip()}")
    sections.append(f"## Metrics Vault\n{_truncate_section(chr(10).join(vault_lines))}")
    return "\n\n".join(sections)


def prepare_application(data: ApplicationInput) -> PrivacyPreparationResult:
    if not data.privacy_mode:
        return PrivacyPreparationResult(
            sanitized_input=data,
            redaction_entries=[],
            redacted_preview=build_redacted_preview(data),
        )

    redactor = PiiRedactor()
    updates: dict[str, object] = {attribute: redactor.redact(getattr(data, attribute)) for attribute in _REDACTED_FIELDS}

    vault_updates = {}
    for name in METRIC_FIELDS:
        value = getattr(data.metrics_vault, name)
        if value and value.strip():
            vault_updates[name] = redactor.redact(value)
    updates["metrics_vault"] = data.metrics_vault.model_copy(update=vault_updates)

    sanitized = data.model_copy(update=updates)
    logger.info(
        "Privacy mode redacted %d PII value(s): %s",
        len(redactor.entries),
        ", ".join(sorted({entry.type for entry in redactor.entries})) or "none",
    )
    return PrivacyPreparationResult(
        sanitized_input=sanitized,
        redaction_entries=list(redactor.entries),
        redacted_preview=build_redacted_preview(sanitized),
    )


def reinsert_redacted_pii(text: str | None, entries: list[PiiRedactionEntry]) -> str | None:
    if text is None or not entries:
        return text
    restored = text
    for entry in entries:
        restored = restored.replace(entry.placeholder, entry.original)
    return restored


def find_unauthorized_pii(text: str | None, entries: list[PiiRedactionEntry]) -> list[PiiValidationIssue]:
    allowed = {(entry.type, normalize_pii_value(entry.type, entry.original)) for entry in entries}
    counts: dict[PiiType, int] = {}
    for item in detect_pii(text):
        if (item.type, normalize_pii_value(item.type, item.value)) in allowed:
            continue
        counts[item.type] = counts.get(item.type, 0) + 1
    return [PiiValidationIssue(type=pii_type, count=count) for pii_type, count in counts.items()]


def find_unresolved_pii_placeholders(text: str | None, entries: list[PiiRedactionEntry]) -> list[str]:
    if not text:
        return []
    known = {entry.placeholder for entry in entries}
    unresolved: list[str] = []
    for token in PLACEHOLDER_PATTERN.findall(text):
        if token not in known and token not in unresolved:
            unresolved.append(token)
    return unresolved
