from __future__ import annotations

import math
import re

from tailorguard.types import ApplicationInput, RetrievalChunk, RetrievalSource, RetrievalTraceEntry

SOURCE_PRIORITY: dict[RetrievalSource, int] = {
    "jobDescription": 5,
    "resumeContent": 4,
    "coverLetterContent": 3,
    "companyInfo": 2,
    "additionalContext": 1,
}

_SOURCE_FIELDS: tuple[tuple[RetrievalSource, str], ...] = (
    ("jobDescription", "job_description"),
    ("resumeContent", "resume_content"),
    ("coverLetterContent", "cover_letter_content"),
    ("companyInfo", "company_info"),
    ("additionalContext", "additional_context"),
)

APPROX_CHARS_PER_TOKEN = 4
DEFAULT_MAX_CHARS = 900
DEFAULT_OVERLAP = 140
DEFAULT_LIMIT = 8
MIN_SPLIT_POINT = 220
LENGTH_BONUS_TOKENS = 200

_WHITESPACE = re.compile(r"\s+")


def normalize_chunk_text(value: str) -> str:
    return _WHITESPACE.sub(" ", value.replace("\r\n", "\n")).strip()


def estimate_tokens(text: str) -> int:
    return max(1, math.ceil(len(text) / APPROX_CHARS_PER_TOKEN))


def _find_split_point(text: str, start: int, end: int) -> int:
    window = text[start:end]

    sentence = max(window.rfind(". "), window.rfind("! "), window.rfind("? "))
    if sentence >= MIN_SPLIT_POINT:
        return start + sentence + 1

    newline = window.rfind("\n")
    if newline >= MIN_SPLIT_POINT:
        return start + newline + 1

    space = window.rfind(" ")
    if space >= MIN_SPLIT_POINT:
        return start + space

    return end


def chunk_text_for_retrieval(
    source: RetrievalSource,
    text: str,
    *,
    max_chars: int = DEFAULT_MAX_CHARS,
    overlap: int = DEFAULT_OVERLAP,
) -> list[RetrievalChunk]:
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")
    if overlap < 0:
        raise ValueError("overlap must not be negative")

    normalized = normalize_chunk_text(text)
    if not normalized:
        return []

    chunks: list[RetrievalChunk] = []
    length = len(normalized)
    start = 0
    index = 0

    while start < length:
        hard_end = min(start + max_chars, length)
        split = _find_split_point(normalized, start, hard_end) if hard_end < length else hard_end
        end = max(split, min(start + MIN_SPLIT_POINT, length))

        chunk_text = normalized[start:end].strip()
        if chunk_text:
            chunks.append(
                RetrievalChunk(
                    id=f"{source}:{index}:{start}-{end}",
                    source=source,
                    text=chunk_text,
                    start=start,
                    end=end,
                    token_estimate=estimate_tokens(chunk_text),
                )
            )
            index += 1

        if end >= length:
            break
        start = max(end - overlap, start + 1)

    return chunks


def build_retrieval_chunks(
    data: ApplicationInput,
    *,
    max_chars: int = DEFAULT_MAX_CHARS,
    overlap: int = DEFAULT_OVERLAP,
) -> list[RetrievalChunk]:
    chunks: list[RetrievalChunk] = []
    for source, attribute in _SOURCE_FIELDS:
        chunks.extend(
            chunk_text_for_retrieval(source, getattr(data, attribute), max_chars=max_chars, overlap=overlap)
        )
    return chunks


def score_chunk(chunk: RetrievalChunk) -> float:
    return SOURCE_PRIORITY[chunk.source] + min(chunk.token_estimate / LENGTH_BONUS_TOKENS, 1.0)


def selection_reason(chunk: RetrievalChunk) -> str:
    return (
        f"Prioritized {chunk.source} chunk "
        f"(sourcePriority={SOURCE_PRIORITY[chunk.source]}, tokenEstimate={chunk.token_estimate})."
    )


def select_retrieval_chunks(
    data: ApplicationInput,
    limit: int = DEFAULT_LIMIT,
    *,
    max_chars: int = DEFAULT_MAX_CHARS,
    overlap: int = DEFAULT_OVERLAP,
) -> list[RetrievalChunk]:
    if limit <= 0:
        return []
    chunks = build_retrieval_chunks(data, max_chars=max_chars, overlap=overlap)
    ranked = sorted(chunks, key=lambda chunk: (-score_chunk(chunk), chunk.id))
    return ranked[:limit]


def select_retrieval_chunk_ids(
    data: ApplicationInput,
    limit: int = DEFAULT_LIMIT,
    *,
    max_chars: int = DEFAULT_MAX_CHARS,
    overlap: int = DEFAULT_OVERLAP,
) -> list[str]:
    return [chunk.id for chunk in select_retrieval_chunks(data, limit, max_chars=max_chars, overlap=overlap)]


def select_retrieval_trace(
    data: ApplicationInput,
    limit: int = DEFAULT_LIMIT,
    *,
    max_chars: int = DEFAULT_MAX_CHARS,
    overlap: int = DEFAULT_OVERLAP,
) -> list[RetrievalTraceEntry]:
    return [
        RetrievalTraceEntry(chunk_id=chunk.id, reason=selection_reason(chunk))
        for chunk in select_retrieval_chunks(data, limit, max_chars=max_chars, overlap=overlap)
    ]
