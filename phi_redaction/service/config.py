# phi_redaction/service/config.py

"""Application configuration using Pydantic Settings.

Manages environment variables, defaults, and validation rules.
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CORPUS_SOURCES = [
    "https://datasets-server.huggingface.co/rows?dataset=mteb/mtsamples&config=default&split=train&offset=0&length=100",
    "https://datasets-server.huggingface.co/rows?dataset=medical-notes-small&config=default&split=train&offset=0&length=50",
]


class Settings(BaseSettings):
    """Global application settings.

    Loads values from environment variables (prefix 'PHI_') or .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="PHI_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="Root logging level.")

    # Persistence
    storage_backend: str = Field(
        default="memory", description="Persistence backend: 'memory' or 'sqlite'."
    )
    storage_path: str = Field(
        default="phi_redaction.db", description="Database file for the sqlite backend."
    )

    # Pretraining
    corpus_sources: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CORPUS_SOURCES),
        description="Dataset-server URLs fetched for pretraining notes.",
    )
    fetch_timeout: float = Field(
        default=10.0, gt=0.0, description="Per-request timeout in seconds."
    )
    max_pretrain_notes: int = Field(
        default=1000, description="Upper bound on notes passed to the labeler."
    )
    synthetic_note_count: int = Field(
        default=1000, description="Synthetic notes generated when fetching yields nothing."
    )
    pretrain_on_startup: bool = Field(
        default=True, description="Pretrain on first start when no pretrained model exists."
    )
    shuffle_seed: Optional[int] = Field(
        default=None, description="Seed for training shuffles; unset for nondeterministic runs."
    )

    @field_validator("storage_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Ensure the backend is one we can construct."""
        v = v.strip().lower()
        if v not in ("memory", "sqlite"):
            raise ValueError(f"Unsupported storage backend '{v}'")
        return v

    @field_validator("max_pretrain_notes", "synthetic_note_count")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Count must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level '{v}'")
        return v


# Singleton settings instance
settings = Settings()
