from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

from tailorguard.types import AtsCoverageResult, KeywordCoverage, ParsedJdRequirements, ResumeFacts

HARD_SIGNAL = re.compile(
    r"\b(?:must|required|required qualifications|minimum qualifications|mandatory|essential|need to|you have"
    r"|at least)\b|\bmin\.|\b\d+\s*\+\s*years?\b",
    re.IGNORECASE,
)
SOFT_SIGNAL = re.compile(r"\b(?:preferred|nice to have|bonus|plus|desirable|ideally|good to have)\b", re.IGNORECASE)
HARD_HEADING = re.compile(
    r"\b(?:requirements|required qualifications|minimum qualifications|must[- ]?have|what you(?:'ll| will) need"
    r"|qualifications)\b",
    re.IGNORECASE,
)
SOFT_HEADING = re.compile(
    r"\b(?:preferred qualifications|nice to have|bonus points|plus|desirable|good to have)\b", re.IGNORECASE
)
YEARS_PATTERN = re.compile(r"(\d+)\s*\+?\s*(?:years|year|yrs|yr)\b", re.IGNORECASE)
ACRONYM_PATTERN = re.compile(r"\b[A-Z][A-Z0-9+#.-]{1,12}\b")
TOKEN_PATTERN = re.compile(r"[a-z0-9+#.]+")
BULLET_PREFIX = re.compile(r"^[\s\-*•]+")
SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")

STOPWORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "in", "is", "it", "of", "on", "or",
        "our", "that", "the", "their", "this", "to", "we", "with", "you", "your", "will", "ability",
        "experience", "knowledge", "strong", "excellent", "skills",
    }
)

KNOWN_TECH_KEYWORDS = (
    "python", "sql", "r", "scala", "java", "javascript", "typescript", "react", "node.js", "node", "pandas",
    "numpy", "scikit-learn", "sklearn", "tensorflow", "pytorch", "keras", "spark", "hadoop", "airflow", "dbt",
    "docker", "kubernetes", "aws", "gcp", "azure", "snowflake", "databricks", "postgresql", "postgres", "mysql",
    "mongodb", "redis", "kafka", "tableau", "power bi", "looker", "git", "linux", "bash", "terraform", "ansible",
    "ci/cd", "ml", "ai", "llm", "rag", "nlp", "computer vision", "langchain", "llamaindex", "rest api", "graphql",
    "c++", "c#", ".net",
)

SHORT_TECH_ALLOWLIST = frozenset({"ai", "ml", "nlp", "llm", "ci", "cd", "r"})

Section = Literal["hard", "soft", "neutral"]
KeywordStatus = Literal["matched", "partial", "missing"]

_WHITESPACE = re.compile(r"\s+")


def normalize_space(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


def normalize_for_match(value: str) -> str:
    return normalize_space(value).lower()


def strip_bullet_prefix(line: str) -> str:
    return BULLET_PREFIX.sub("", line).strip()


def dedupe_preserve_order(items: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        canonical = normalize_for_match(item)
        if not canonical or canonical in seen:
            continue
        seen.add(canonical)
        result.append(item)
    return result


def tokenize(value: str) -> list[str]:
    return TOKEN_PATTERN.findall(value.lower())


def significant_tokens(value: str) -> list[str]:
    return [
        token
        for token in tokenize(value)
        if token in SHORT_TECH_ALLOWLIST or (len(token) >= 3 and token not in STOPWORDS)
    ]


def is_whole_word_match(keyword: str, text: str) -> bool:
    pattern = re.compile(rf"(^|[^a-z0-9+#.]){re.escape(keyword.lower())}([^a-z0-9+#.]|$)", re.IGNORECASE)
    return bool(pattern.search(text))


def _heading_remainder(pattern: re.Pattern[str], clean: str) -> str | None:
    if not pattern.search(clean):
        return None
    return normalize_space(pattern.sub(" ", clean))


def detect_section_heading(line: str) -> Section | None:
    """Return the section a heading line opens, or None for lines that carry requirement content.

    Without a trailing ":" the line must be nothing but the heading phrase. With one, any
    extra words are accepted unless they state a hard requirement themselves.
    """
    stripped = line.rstrip()
    clean = normalize_for_match(re.sub(r"[:\-]+$", "", stripped))
    if not clean:
        return None

    for section, pattern in (("soft", SOFT_HEADING), ("hard", HARD_HEADING)):
        remainder = _heading_remainder(pattern, clean)
        if remainder is None:
            continue
        if remainder and (not stripped.endswith(":") or _is_hard_signal(remainder)):
            return None
        return section
    return None


def _is_hard_signal(text: str) -> bool:
    return bool(HARD_SIGNAL.search(text)) and not SOFT_SIGNAL.search(text)


def _split_clauses(line: str) -> list[str]:
    return [clause for clause in (normalize_space(part) for part in re.split(r"[;|]", line)) if clause]


def _job_description_lines(job_description: str) -> list[str]:
    lines = (strip_bullet_prefix(normalize_space(line)) for line in re.split(r"\r?\n", job_description))
    return [line for line in lines if line]


def parse_jd_requirements(job_description: str) -> ParsedJdRequirements:
    hard: list[str] = []
    soft: list[str] = []
    section: Section = "neutral"
    lines = _job_description_lines(job_description)

    for line in lines:
        heading = detect_section_heading(line)
        if heading:
            section = heading
            continue

        for clause in _split_clauses(line):
            if _is_hard_signal(clause) or (section == "hard" and not SOFT_SIGNAL.search(clause)):
                hard.append(clause)
            elif section == "soft" or SOFT_SIGNAL.search(clause):
                soft.append(clause)

    # sentence pass for job descriptions without bullet sections; heading lines hold no requirement text
    for line in lines:
        if detect_section_heading(line):
            continue
        for sentence in SENTENCE_BREAK.split(line):
            sentence = strip_bullet_prefix(sentence)
            if not sentence:
                continue
            if _is_hard_signal(sentence):
                hard.append(sentence)
            elif SOFT_SIGNAL.search(sentence):
                soft.append(sentence)

    return ParsedJdRequirements(
        hard_requirements=dedupe_preserve_order(hard),
        soft_requirements=dedupe_preserve_order(soft),
        tools_tech_keywords=extract_tech_keywords(job_description),
    )


def extract_tech_keywords(job_description: str) -> list[str]:
    normalized = normalize_for_match(job_description)
    found: list[str] = []

    for keyword in KNOWN_TECH_KEYWORDS:
        if " " in keyword:
            if keyword in normalized:
                found.append(keyword)
        elif is_whole_word_match(keyword, normalized):
            found.append(keyword)

    found.extend(ACRONYM_PATTERN.findall(job_description))
    return dedupe_preserve_order(found)


@dataclass(slots=True)
class ResumeCorpus:
    raw_text: str
    normalized_text: str
    token_set: set[str] = field(default_factory=set)

    @classmethod
    def from_facts(cls, facts: ResumeFacts) -> ResumeCorpus:
        parts: list[str] = [*facts.skills, *facts.achievements, *facts.education, *facts.certifications]
        for experience in facts.experience:
            if experience.employer:
                parts.append(experience.employer)
            if experience.role:
                parts.append(experience.role)
            parts.extend(experience.achievements)

        raw_text = normalize_space(" ".join(parts))
        normalized = raw_text.lower()
        return cls(raw_text=raw_text, normalized_text=normalized, token_set=set(tokenize(normalized)))


def _fuzzy_token_present(token: str, token_set: set[str]) -> bool:
    return any(candidate in token or token in candidate for candidate in token_set)


def keyword_token_overlap(keyword: str, token_set: set[str]) -> float:
    tokens = significant_tokens(keyword)
    if not tokens:
        return 0.0
    matched = sum(
        1
        for token in tokens
        if token in token_set or (len(token) >= 4 and _fuzzy_token_present(token, token_set))
    )
    return matched / len(tokens)


def classify_keyword(keyword: str, corpus: ResumeCorpus) -> KeywordStatus:
    normalized = normalize_for_match(keyword)
    if not normalized:
        return "missing"
    if len(normalized) <= 2 and normalized not in SHORT_TECH_ALLOWLIST:
        return "missing"

    if " " in normalized:
        if normalized in corpus.normalized_text:
            return "matched"
        if keyword_token_overlap(normalized, corpus.token_set) >= 0.5:
            return "partial"
        return "missing"

    if is_whole_word_match(normalized, corpus.normalized_text):
        return "matched"
    if len(normalized) >= 4 and _fuzzy_token_present(normalized, corpus.token_set):
        return "partial"
    return "missing"


def extract_max_years(value: str) -> int | None:
    years = [int(match.group(1)) for match in YEARS_PATTERN.finditer(value)]
    return max(years) if years else None


def hard_requirement_satisfied(requirement: str, corpus: ResumeCorpus, matched_keywords: set[str]) -> bool:
    normalized = normalize_for_match(requirement)

    if any(keyword in normalized for keyword in matched_keywords):
        return True

    tokens = significant_tokens(normalized)
    if tokens:
        present = sum(1 for token in tokens if token in corpus.token_set)
        if present / len(tokens) >= 0.6:
            return True

    required = YEARS_PATTERN.search(normalized)
    if required is None:
        return False
    resume_years = extract_max_years(corpus.raw_text)
    return resume_years is not None and resume_years >= int(required.group(1))


def compute_ats_coverage(job_description: str, resume_facts: ResumeFacts) -> AtsCoverageResult:
    parsed = parse_jd_requirements(job_description)
    corpus = ResumeCorpus.from_facts(resume_facts)

    buckets: dict[KeywordStatus, list[str]] = {"matched": [], "partial": [], "missing": []}
    for keyword in parsed.tools_tech_keywords:
        buckets[classify_keyword(keyword, corpus)].append(keyword)

    matched_keywords = {normalize_for_match(keyword) for keyword in buckets["matched"]}
    hard_missing = [
        requirement
        for requirement in parsed.hard_requirements
        if not hard_requirement_satisfied(requirement, corpus, matched_keywords)
    ]

    return AtsCoverageResult(
        keyword_coverage=KeywordCoverage(
            matched=dedupe_preserve_order(buckets["matched"]),
            missing=dedupe_preserve_order(buckets["missing"]),
            partial=dedupe_preserve_order(buckets["partial"]),
        ),
        hard_requirements_missing=dedupe_preserve_order(hard_missing),
    )
