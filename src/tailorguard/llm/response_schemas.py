from __future__ import annotations

from typing import Any


def _string_list() -> dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}}


def _nullable(kind: str, **extra: Any) -> dict[str, Any]:
    return {"type": [kind, "null"], **extra}


def _object(properties: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": properties,
        "required": list(properties),
        "additionalProperties": False,
    }


def extract_facts_schema() -> dict[str, Any]:
    experience = _object(
        {
            "employer": _nullable("string"),
            "role": _nullable("string"),
            "startDate": _nullable("string"),
            "endDate": _nullable("string"),
            "achievements": _string_list(),
        }
    )
    return _object(
        {
            "languageDetected": {"type": ["string", "null"], "enum": ["English", "German", None]},
            "jdFacts": _object(
                {
                    "roleTitle": _nullable("string"),
                    "companyName": _nullable("string"),
                    "mustHaveSkills": _string_list(),
                    "niceToHaveSkills": _string_list(),
                    "responsibilities": _string_list(),
                    "requiredExperienceYears": _nullable("number"),
                    "keywords": _string_list(),
                }
            ),
            "resumeFacts": _object(
                {
                    "candidateName": _nullable("string"),
                    "skills": _string_list(),
                    "experience": {"type": "array", "items": experience},
                    "achievements": _string_list(),
                    "education": _string_list(),
                    "certifications": _string_list(),
                }
            ),
            "coverLetterFacts": _object({"keyClaims": _string_list(), "motivations": _string_list()}),
            "explicitUserAchievements": _string_list(),
            "missingData": _string_list(),
        }
    )


def score_match_schema() -> dict[str, Any]:
    gap = _object(
        {
            "point": _nullable("string"),
            "category": {"type": "string", "enum": ["critical", "optional"]},
            "impact": _nullable("string"),
            "evidence": _object(
                {
                    "resumeQuotes": _string_list(),
                    "jdQuotes": _string_list(),
                    "missingKeywords": _string_list(),
                }
            ),
        }
    )
    return _object(
        {
            "baselineScore": _nullable("number"),
            "enhancedScore": _nullable("number"),
            "jobFitScore": _nullable("number"),
            "explanation": _nullable("string"),
            "overallFeedback": _nullable("string"),
            "gapAnalysis": {"type": "array", "items": gap},
            "portfolioAdvice": _nullable("string"),
            "recruiterNotes": _nullable("string"),
            "confidenceNotes": _string_list(),
        }
    )


def rewrite_docs_schema() -> dict[str, Any]:
    return _object(
        {
            "optimizedResume": _nullable("string"),
            "optimizedCoverLetter": _nullable("string"),
            "rewriteNotes": _nullable("string"),
        }
    )
