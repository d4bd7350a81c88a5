from __future__ import annotations

from dataclasses import dataclass

import httpx
import pytest
from openai import APIConnectionError, APITimeoutError

from tailorguard.core.policies import CorrectionPolicy, RetryPolicy, is_transient_error
from tailorguard.errors import GuardrailViolationError, RetryExhaustedError


class StatusError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def test_transient_error_classification() -> None:
    assert is_transient_error(StatusError("slow down", status_code=429))
    assert is_transient_error(TimeoutError("Request timed out"))
    assert is_transient_error(RuntimeError("upstream returned 503"))
    assert not is_transient_error(StatusError("bad request", status_code=400))
    assert not is_transient_error(ValueError("schema mismatch"))


def test_network_failures_are_transient() -> None:
    request = httpx.Request("POST", "https://example.invalid/v1/chat/completions")

    assert is_transient_error(APIConnectionError(request=request))
    assert is_transient_error(APITimeoutError(request=request))
    assert is_transient_error(ConnectionResetError("peer closed the socket"))
    assert is_transient_error(RuntimeError("Connection refused by upstream"))


def test_retry_policy_backs_off_then_succeeds() -> None:
    sleeps: list[float] = []
    retries: list[int] = []
    calls = {"count": 0}

    def flaky() -> str:
        calls["count"] += 1
        if calls["count"] < 3:
            raise StatusError("unavailable", status_code=503)
        return "ok"

    policy = RetryPolicy(max_attempts=3, base_backoff_ms=400, sleep=sleeps.append)
    result = policy.call("extractFacts", flaky, on_retry=lambda: retries.append(1))

    assert result == "ok"
    assert calls["count"] == 3
    assert sleeps == pytest.approx([0.4, 0.8])
    assert len(retries) == 2


def test_retry_policy_does_not_retry_permanent_errors() -> None:
    sleeps: list[float] = []
    calls = {"count": 0}

    def broken() -> str:
        calls["count"] += 1
        raise StatusError("bad request", status_code=400)

    with pytest.raises(StatusError):
        RetryPolicy(sleep=sleeps.append).call("scoreMatch", broken)

    assert calls["count"] == 1
    assert sleeps == []


def test_retry_policy_wraps_exhausted_transient_errors() -> None:
    error = StatusError("rate limit", status_code=429)

    def always_limited() -> str:
        raise error

    with pytest.raises(RetryExhaustedError) as excinfo:
        RetryPolicy(max_attempts=2, sleep=lambda _: None).call("rewriteDocs", always_limited)

    assert excinfo.value.attempts == 2
    assert excinfo.value.operation == "rewriteDocs"
    assert excinfo.value.last_error is error
    assert excinfo.value.__cause__ is error


@dataclass
class FakeReport:
    draft: str
    valid: bool

    def violation(self, stage: str) -> GuardrailViolationError:
        return GuardrailViolationError(stage, unauthorized_numbers=["42"], pii_issues=[], unresolved_placeholders=[])


def _validate(draft: str) -> FakeReport:
    return FakeReport(draft=draft, valid="42" not in draft)


def test_correction_policy_accepts_clean_first_draft() -> None:
    corrections: list[int] = []
    policy = CorrectionPolicy(stage="rewriteDocs", on_correction=lambda: corrections.append(1))

    report = policy.run(lambda: "improved X", _validate, lambda _: pytest.fail("correction not expected"))

    assert report.draft == "improved X"
    assert corrections == []


def test_correction_policy_issues_exactly_one_correction() -> None:
    corrections: list[int] = []
    validations: list[bool] = []
    seen_reports: list[FakeReport] = []

    def correct(report: FakeReport) -> str:
        seen_reports.append(report)
        return "improved X"

    policy = CorrectionPolicy(
        stage="rewriteDocs",
        on_correction=lambda: corrections.append(1),
        on_validate=validations.append,
    )
    report = policy.run(lambda: "grew 42%", _validate, correct)

    assert report.draft == "improved X"
    assert corrections == [1]
    assert validations == [False, True]
    assert seen_reports[0].draft == "grew 42%"


def test_correction_policy_raises_when_correction_still_violates() -> None:
    policy = CorrectionPolicy(stage="rewriteDocs")

    with pytest.raises(GuardrailViolationError) as excinfo:
        policy.run(lambda: "grew 42%", _validate, lambda _: "still 42%")

    assert excinfo.value.unauthorized_numbers == ["42"]
    assert excinfo.value.stage == "rewriteDocs"
