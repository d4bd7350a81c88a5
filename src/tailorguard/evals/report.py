from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from pydantic import Field

from tailorguard.evals.assertions import EvalAssertionResult
from tailorguard.types import ContractModel


class EvalRunResult(ContractModel):
    fixture_id: str
    tier: str
    duration_ms: int
    passed: bool = Field(alias="pass")
    assertion_results: list[EvalAssertionResult] = Field(default_factory=list)
    error: str | None = None


class EvalSummary(ContractModel):
    total_runs: int
    passed_runs: int
    failed_runs: int


class EvalReport(ContractModel):
    generated_at: str
    summary: EvalSummary
    runs: list[EvalRunResult] = Field(default_factory=list)

    def to_contract(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


def build_eval_report(runs: list[EvalRunResult]) -> EvalReport:
    passed = sum(1 for run in runs if run.passed)
    return EvalReport(
        generated_at=datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        summary=EvalSummary(total_runs=len(runs), passed_runs=passed, failed_runs=len(runs) - passed),
        runs=runs,
    )


def write_eval_report(report: EvalReport, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(report.to_contract(), indent=2) + "\n", encoding="utf-8")
    return output_path
