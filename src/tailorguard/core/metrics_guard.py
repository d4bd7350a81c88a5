from __future__ import annotations

import math
import re

from tailorguard.types import MetricsVault, RewriteDocsResult

NUMBER_TOKEN = re.compile(r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?")
LIST_NUMBERING = re.compile(r"^\s*\d+\.\s+", re.MULTILINE)
PII_PLACEHOLDER = re.compile(r"\[PII_[A-Z_]+_\d+\]")


def normalize_number_token(token: str) -> str | None:
    try:
        value = float(token.replace(",", ""))
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    if value.is_integer():
        return str(int(value))
    return repr(value)


def extract_normalized_number_tokens(text: str | None) -> list[str]:
    if not text:
        return []

    scrubbed = LIST_NUMBERING.sub("", PII_PLACEHOLDER.sub(" ", text))
    seen: set[str] = set()
    tokens: list[str] = []
    for match in NUMBER_TOKEN.finditer(scrubbed):
        normalized = normalize_number_token(match.group(0))
        if normalized is None or normalized in seen:
            continue
        seen.add(normalized)
        tokens.append(normalized)
    return tokens


def get_allowed_metric_numbers(vault: MetricsVault) -> set[str]:
    return set(extract_normalized_number_tokens(" ".join(vault.filled_values())))


def find_unauthorized_numbers_in_text(text: str | None, vault: MetricsVault) -> list[str]:
    allowed = get_allowed_metric_numbers(vault)
    return [token for token in extract_normalized_number_tokens(text) if token not in allowed]


def find_unauthorized_numbers_for_rewrite(draft: RewriteDocsResult, vault: MetricsVault) -> list[str]:
    combined = f"{draft.optimized_resume or ''}\n{draft.optimized_cover_letter or ''}"
    return find_unauthorized_numbers_in_text(combined, vault)
