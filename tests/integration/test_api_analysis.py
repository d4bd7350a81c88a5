from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tailorguard.api.app import create_app
from tailorguard.config import get_settings


def _client() -> TestClient:
    return TestClient(create_app())


def test_health_reports_model_mode() -> None:
    response = _client().get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "modelMode": "mock"}


def test_analyze_returns_camel_case_result(application) -> None:
    response = _client().post("/api/analyze", json=application.to_contract())

    assert response.status_code == 200
    body = response.json()
    assert body["analysisTrace"]["tier"] == "SIMPLE"
    assert body["analysisTrace"]["retries"] == 0
    assert body["evidenceSnippetWordLimit"] == 20
    assert "keywordCoverage" in body


def test_privacy_preview_lists_placeholders(application) -> None:
    response = _client().post("/api/privacy/preview", json=application.to_contract())

    assert response.status_code == 200
    body = response.json()
    assert body["placeholders"][0] == "[PII_EMAIL_1]"
    assert body["redactionCount"] == len(body["placeholders"])
    assert "jane.doe@example.com" not in body["redactedPreview"]


def test_ats_parse_with_and_without_facts() -> None:
    job_description = "Requirements:\n- Python and SQL\n- 5+ years Kafka"
    client = _client()

    parsed = client.post("/api/ats/parse", json={"jobDescription": job_description})
    scored = client.post(
        "/api/ats/parse",
        json={"jobDescription": job_description, "resumeFacts": {"skills": ["Python", "SQL"]}},
    )

    assert parsed.status_code == 200
    assert parsed.json()["requirements"]["hardRequirements"] == ["Python and SQL", "5+ years Kafka"]
    assert parsed.json()["keywordCoverage"] is None
    assert scored.status_code == 200
    assert "python" in scored.json()["keywordCoverage"]["matched"]
    assert scored.json()["hardRequirementsMissing"] == ["5+ years Kafka"]


def test_real_mode_without_key_is_unavailable(application, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MODEL_MODE", "real")
    get_settings.cache_clear()

    response = _client().post("/api/analyze", json=application.to_contract())

    assert response.status_code == 503
    assert response.json()["error"] == "ConfigurationError"
