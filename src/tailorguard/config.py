from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", protected_namespaces=()
    )

    app_name: str = "TailorGuard"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 8788
    log_level: str = "INFO"
    cors_origins: str = "http://127.0.0.1:8788"

    model_mode: str = "real"
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    gemini_timeout_sec: int = 120
    gemini_temperature: float = 0.2

    model_simple: str = "gemini-2.5-flash"
    model_medium: str = "gemini-2.5-pro"
    model_complex: str = "gemini-3-pro-preview"

    retry_max_attempts: int = 3
    retry_base_backoff_ms: int = 400

    retrieval_limit: int = 8
    retrieval_chunk_max_chars: int = 900
    retrieval_chunk_overlap: int = 140
    evidence_word_limit: int = 20

    eval_fixture_dir: Path = Path(__file__).resolve().parent / "evals" / "fixtures"
    eval_report_path: Path = Path("./evals/report.json")

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("model_mode")
    @classmethod
    def validate_model_mode(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"real", "mock"}:
            raise ValueError("model_mode must be 'real' or 'mock'")
        return normalized

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
