from __future__ import annotations

from pathlib import Path

import pytest

from tailorguard.config import get_settings
from tailorguard.types import ApplicationInput, MetricsVault

RESUME = """Jane Doe
Email: jane.doe@example.com | Phone: +1 (555) 123-4567 | Address: 42 Maple Street, Springfield
Data Engineer, Northwind Analytics (2019 - 2023)
- Built Python and SQL pipelines for production reporting.
- Maintained Airflow orchestration for nightly batch jobs.
Education: B.Sc. Computer Science, Example University"""

JOB_DESCRIPTION = """Job Title: Data Platform Engineer
Requirements:
- Python and SQL for production data pipelines
- Must have 3+ years of Kubernetes and MLOps experience.
Nice to have:
- Terraform or other infrastructure as code exposure is a plus"""

COVER_LETTER = """Dear Hiring Team,
I enjoy building dependable data pipelines that other engineers can trust."""


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("MODEL_MODE", "mock")
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.setenv("EVAL_REPORT_PATH", str(tmp_path / "report.json"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def application() -> ApplicationInput:
    return ApplicationInput(
        job_description=JOB_DESCRIPTION,
        company_info="Berlin, Germany. Platform team.",
        resume_content=RESUME,
        cover_letter_content=COVER_LETTER,
        portfolio_links="https://github.com/example/data",
        additional_context="Led the warehouse migration; Mentored junior engineers",
        analysis_mode="balanced",
        privacy_mode=False,
        metrics_vault=MetricsVault(),
    )


@pytest.fixture
def private_application(application: ApplicationInput) -> ApplicationInput:
    return application.model_copy(update={"privacy_mode": True})
