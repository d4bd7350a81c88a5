from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar

from openai import APIConnectionError
from tenacity import RetryCallState, RetryError, Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from tailorguard.errors import GuardrailViolationError, RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R", bound="ValidationReport")

TRANSIENT_STATUS_CODES = frozenset({408, 409, 425, 429, 500, 502, 503, 504})
TRANSIENT_MESSAGE_MARKERS = (
    "timeout",
    "timed out",
    "rate limit",
    "too many requests",
    "temporar",
    "network",
    "connection",
    "econnreset",
    "503",
    "502",
    "500",
    "429",
)


def _status_of(exc: BaseException) -> int | None:
    for attribute in ("status_code", "status", "code"):
        value = getattr(exc, attribute, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def is_transient_error(exc: BaseException) -> bool:
    if isinstance(exc, (APIConnectionError, ConnectionError, TimeoutError)):
        return True
    status = _status_of(exc)
    if status is not None and status in TRANSIENT_STATUS_CODES:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in TRANSIENT_MESSAGE_MARKERS)


@dataclass(slots=True)
class RetryPolicy:
    """Retries transient generator failures with exponential backoff.

    Non-transient errors propagate on the first failure. When every attempt fails
    transiently the last error is wrapped in RetryExhaustedError.
    """

    max_attempts: int = 3
    base_backoff_ms: int = 400
    sleep: Callable[[float], None] = field(default=time.sleep)

    def call(
        self,
        operation: str,
        func: Callable[[], T],
        *,
        on_retry: Callable[[], None] | None = None,
    ) -> T:
        def before_sleep(state: RetryCallState) -> None:
            delay = state.next_action.sleep if state.next_action else 0.0
            error = state.outcome.exception() if state.outcome else None
            logger.warning(
                "%s attempt %d/%d failed transiently; retrying in %.2fs (%s)",
                operation,
                state.attempt_number,
                self.max_attempts,
                delay,
                error,
            )
            if on_retry is not None:
                on_retry()

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_backoff_ms / 1000, min=0),
            retry=retry_if_exception(is_transient_error),
            sleep=self.sleep,
            before_sleep=before_sleep,
        )
        try:
            return retrying(func)
        except RetryError as exc:
            last_error = exc.last_attempt.exception()
            logger.error("%s exhausted %d attempts", operation, self.max_attempts)
            raise RetryExhaustedError(operation, self.max_attempts, last_error) from last_error


class ValidationReport(Protocol):
    @property
    def valid(self) -> bool: ...

    def violation(self, stage: str) -> GuardrailViolationError: ...


@dataclass(slots=True)
class CorrectionPolicy(Generic[T, R]):
    """Validate a draft and allow exactly one corrective regeneration."""

    stage: str
    on_correction: Callable[[], None] | None = None
    on_validate: Callable[[bool], None] | None = None

    def run(
        self,
        first_attempt: Callable[[], T],
        validate: Callable[[T], R],
        correct: Callable[[R], T],
    ) -> R:
        first_draft = first_attempt()
        if self.on_validate is not None:
            self.on_validate(False)
        first_report = validate(first_draft)
        if first_report.valid:
            return first_report

        logger.warning("%s draft violated guardrails; issuing one correction prompt", self.stage)
        if self.on_correction is not None:
            self.on_correction()

        corrected_draft = correct(first_report)
        if self.on_validate is not None:
            self.on_validate(True)
        corrected_report = validate(corrected_draft)
        if not corrected_report.valid:
            error = corrected_report.violation(self.stage)
            logger.error("%s", error)
            raise error
        return corrected_report
