from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from openai import OpenAI

from tailorguard.config import Settings, get_settings
from tailorguard.errors import ConfigurationError
from tailorguard.llm.mock import MockGenerator
from tailorguard.types import ModelMode

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GenerationRequest:
    model: str
    prompt: str
    system_instruction: str
    response_schema: dict[str, Any] = field(default_factory=dict)
    max_output_tokens: int = 1024
    schema_name: str = "stage_output"


class Generator(Protocol):
    def generate(self, request: GenerationRequest) -> str: ...


@dataclass(slots=True)
class ProviderConfig:
    name: str
    base_url: str
    api_key: str
    timeout_sec: int
    temperature: float


class OpenAICompatibleGenerator:
    """Structured JSON generation through an OpenAI-compatible chat endpoint."""

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.client = OpenAI(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=float(config.timeout_sec),
            max_retries=0,
        )

    def generate(self, request: GenerationRequest) -> str:
        logger.debug(
            "Calling provider=%s model=%s schema=%s max_tokens=%d",
            self.config.name,
            request.model,
            request.schema_name,
            request.max_output_tokens,
        )
        response = self.client.chat.completions.create(
            model=request.model,
            messages=[
                {"role": "system", "content": request.system_instruction},
                {"role": "user", "content": request.prompt},
            ],
            response_format={
                "type": "json_schema",
                "json_schema": {"name": request.schema_name, "schema": request.response_schema},
            },
            max_tokens=request.max_output_tokens,
            temperature=self.config.temperature,
        )
        return self._extract_chat_text(response)

    @staticmethod
    def _extract_chat_text(response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""

        message = getattr(choices[0], "message", None)
        if message is None:
            return ""

        content = getattr(message, "content", "")
        if isinstance(content, str):
            return content
        if content is None:
            return ""
        return str(content)


def build_generator(
    settings: Settings | None = None,
    *,
    model_mode: ModelMode | None = None,
    api_key: str | None = None,
) -> Generator:
    settings = settings or get_settings()
    mode = model_mode or settings.model_mode

    if mode == "mock":
        logger.info("Using deterministic mock generator")
        return MockGenerator()
    if mode != "real":
        raise ConfigurationError(f"unsupported model mode '{mode}'")

    key = (api_key or "").strip() or settings.gemini_api_key.strip()
    if not key:
        raise ConfigurationError("GEMINI_API_KEY is required when model mode is 'real'")

    return OpenAICompatibleGenerator(
        ProviderConfig(
            name="gemini",
            base_url=settings.gemini_base_url,
            api_key=key,
            timeout_sec=settings.gemini_timeout_sec,
            temperature=settings.gemini_temperature,
        )
    )
