from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tailorguard.types import PiiValidationIssue


class TailorGuardError(RuntimeError):
    """Base for every fatal pipeline condition surfaced to callers."""


class ConfigurationError(TailorGuardError):
    pass


class RetryExhaustedError(TailorGuardError):
    def __init__(self, operation: str, attempts: int, last_error: BaseException):
        super().__init__(f"{operation} failed after {attempts} attempts: {last_error}")
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


class StageOutputError(TailorGuardError):
    def __init__(self, stage: str, reason: str):
        super().__init__(f"{stage}: {reason}")
        self.stage = stage
        self.reason = reason


class GuardrailViolationError(TailorGuardError):
    def __init__(
        self,
        stage: str,
        *,
        unauthorized_numbers: list[str],
        pii_issues: list[PiiValidationIssue],
        unresolved_placeholders: list[str],
    ):
        details = []
        if unauthorized_numbers:
            details.append(f"unauthorized numbers {unauthorized_numbers}")
        if pii_issues:
            details.append("unauthorized PII " + ", ".join(f"{issue.type}:{issue.count}" for issue in pii_issues))
        if unresolved_placeholders:
            details.append(f"unknown placeholders {unresolved_placeholders}")
        super().__init__(f"{stage} failed validation after correction prompt ({'; '.join(details)})")
        self.stage = stage
        self.unauthorized_numbers = unauthorized_numbers
        self.pii_issues = pii_issues
        self.unresolved_placeholders = unresolved_placeholders


class ResultValidationError(TailorGuardError):
    def __init__(self, errors: list[str]):
        super().__init__(f"AnalysisResult schema validation failed: {' | '.join(errors)}")
        self.errors = errors
