from __future__ import annotations

from tailorguard.core.ats import (
    ResumeCorpus,
    classify_keyword,
    compute_ats_coverage,
    detect_section_heading,
    extract_tech_keywords,
    parse_jd_requirements,
)
from tailorguard.types import ExtractedExperience, ResumeFacts

JD = """Required: Python, SQL, AWS
- 3+ years AWS
Nice to have:
- Docker experience preferred"""


def test_parses_hard_soft_and_keywords() -> None:
    parsed = parse_jd_requirements(JD)

    assert parsed.hard_requirements == ["Required: Python, SQL, AWS", "3+ years AWS"]
    assert parsed.soft_requirements == ["Docker experience preferred"]
    assert parsed.tools_tech_keywords == ["python", "sql", "docker", "aws"]


def test_section_headings() -> None:
    assert detect_section_heading("Requirements:") == "hard"
    assert detect_section_heading("Preferred Qualifications") == "soft"
    assert detect_section_heading("We ship software for hospitals and clinics across the region") is None


def test_plain_sentences_are_classified_without_headings() -> None:
    parsed = parse_jd_requirements("You will own billing. You must know Kafka. Airflow is a bonus.")

    assert "You must know Kafka." in parsed.hard_requirements
    assert "Airflow is a bonus." in parsed.soft_requirements
    assert "You will own billing." not in parsed.hard_requirements + parsed.soft_requirements


def test_acronyms_are_keywords() -> None:
    assert "GDPR" in extract_tech_keywords("Familiarity with GDPR audits")


def test_coverage_flags_unmet_years_requirement() -> None:
    facts = ResumeFacts(skills=["Python", "SQL"], achievements=["Built reporting pipelines"])

    coverage = compute_ats_coverage(JD, facts)

    assert coverage.keyword_coverage.matched == ["python", "sql"]
    assert coverage.keyword_coverage.missing == ["docker", "aws"]
    assert coverage.hard_requirements_missing == ["3+ years AWS"]


def test_coverage_accepts_requirement_met_by_matched_keyword() -> None:
    facts = ResumeFacts(
        skills=["Python", "SQL"],
        experience=[ExtractedExperience(employer="Northwind", role="Engineer", achievements=["Ran AWS workloads"])],
    )

    coverage = compute_ats_coverage(JD, facts)

    assert "aws" in coverage.keyword_coverage.matched
    assert coverage.hard_requirements_missing == []


def test_partial_keyword_match() -> None:
    corpus = ResumeCorpus.from_facts(ResumeFacts(skills=["PostgreSQL"]))

    assert classify_keyword("postgres", corpus) == "partial"
    assert classify_keyword("postgresql", corpus) == "matched"
    assert classify_keyword("kafka", corpus) == "missing"


def test_short_requirement_lines_are_not_mistaken_for_headings() -> None:
    jd = "Requirements:\n- Python\nMust have 3+ years AWS\nKubernetes a plus"

    parsed = parse_jd_requirements(jd)
    coverage = compute_ats_coverage(jd, ResumeFacts(skills=["Python"]))

    assert parsed.hard_requirements == ["Python", "Must have 3+ years AWS"]
    assert parsed.soft_requirements == ["Kubernetes a plus"]
    assert coverage.hard_requirements_missing == ["Must have 3+ years AWS"]


def test_heading_lines_need_a_colon_or_the_bare_phrase() -> None:
    assert detect_section_heading("Must have:") == "hard"
    assert detect_section_heading("Nice to have") == "soft"
    assert detect_section_heading("Preferred qualifications for this role:") == "soft"
    assert detect_section_heading("Must have 3+ years AWS") is None
    assert detect_section_heading("Must have 3+ years AWS:") is None
    assert detect_section_heading("Kubernetes a plus") is None
