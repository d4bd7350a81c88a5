from __future__ import annotations

from tailorguard.core.normalize import (
    ParsedPayload,
    ParseFailure,
    SchemaFailure,
    clamp_words,
    enforce_evidence_from_source,
    normalize_extract_facts,
    normalize_score_match,
    parse_explicit_user_achievements,
    parse_stage_payload,
)
from tailorguard.types import SourceText


def test_parse_stage_payload_variants() -> None:
    assert parse_stage_payload("extractFacts", "  ") == ParseFailure("extractFacts", "empty response from model")
    assert parse_stage_payload("extractFacts", "not json") == ParseFailure("extractFacts", "invalid JSON response")
    assert parse_stage_payload("scoreMatch", "[1, 2]") == SchemaFailure("scoreMatch", "expected a JSON object, got list")
    assert parse_stage_payload("rewriteDocs", '```json\n{"rewriteNotes": "ok"}\n```') == ParsedPayload(
        {"rewriteNotes": "ok"}
    )


def test_extract_normalization_tolerates_bad_shapes() -> None:
    facts = normalize_extract_facts(
        {
            "languageDetected": "French",
            "jdFacts": {"roleTitle": "  ", "mustHaveSkills": ["Python", 3, ""], "requiredExperienceYears": True},
            "resumeFacts": {"experience": [{"employer": "Northwind", "achievements": "not a list"}]},
            "coverLetterFacts": None,
        }
    )

    assert facts.language_detected is None
    assert facts.jd_facts.role_title is None
    assert facts.jd_facts.must_have_skills == ["Python"]
    assert facts.jd_facts.required_experience_years is None
    assert facts.resume_facts.experience[0].employer == "Northwind"
    assert facts.resume_facts.experience[0].achievements == []
    assert facts.cover_letter_facts.key_claims == []


def test_score_normalization_clamps_snippets_and_defaults_category() -> None:
    long_quote = " ".join(f"w{index}" for index in range(30))

    scored = normalize_score_match(
        {
            "baselineScore": 61,
            "enhancedScore": "high",
            "gapAnalysis": [{"point": "Add Kafka", "category": "urgent", "evidence": {"resumeQuotes": [long_quote]}}],
        }
    )

    assert scored.baseline_score == 61
    assert scored.enhanced_score is None
    assert scored.gap_analysis[0].category == "critical"
    assert len(scored.gap_analysis[0].evidence.resume_quotes[0].split()) == 20
    assert scored.gap_analysis[0].evidence.jd_quotes == []


def test_evidence_is_filtered_to_source_text() -> None:
    scored = normalize_score_match(
        {
            "gapAnalysis": [
                {
                    "point": "Add Kafka",
                    "category": "optional",
                    "evidence": {
                        "resumeQuotes": ["built   python pipelines", "invented quote"],
                        "jdQuotes": ["Kafka streaming", "made up requirement"],
                        "missingKeywords": ["Kafka", "Rust"],
                    },
                }
            ]
        }
    )
    source = SourceText(
        job_description="Experience with Kafka streaming is required.",
        resume_content="Built Python pipelines.",
        cover_letter_content="",
    )

    evidence = enforce_evidence_from_source(scored, source).gap_analysis[0].evidence

    assert evidence.resume_quotes == ["built python pipelines"]
    assert evidence.jd_quotes == ["Kafka streaming"]
    assert evidence.missing_keywords == ["Kafka"]


def test_clamp_words() -> None:
    assert clamp_words("one  two\nthree four", 3) == "one two three"


def test_explicit_achievements_split_on_lines_and_semicolons() -> None:
    assert parse_explicit_user_achievements("Led migration; Mentored two engineers\n\n Shipped v2 ") == [
        "Led migration",
        "Mentored two engineers",
        "Shipped v2",
    ]
    assert parse_explicit_user_achievements("") == []
