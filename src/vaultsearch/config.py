"""Configuration management backed by pydantic-settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    db_host: str = "db"
    db_port: int = 5432
    db_user: str = "vault"
    db_password: str = "vault"
    db_name: str = "vaultdb"
    passages_table: str = "passages"

    # Models - Ollama
    ollama_base: str = "http://ollama:11434"
    text_llm_model: str = "qwen2.5:7b-instruct-q4_K_M"
    rewrite_temperature: float = 0.7
    rewrite_max_tokens: int = 256

    # Embedder (local)
    embedder_model: str = "BAAI/bge-small-en-v1.5"
    embedder_device: Literal["cpu", "mps", "cuda"] = "cpu"
    embedder_normalize: bool = True

    # Vault
    vault_path: Path = Field(default=Path("."))

    # Retrieval
    min_similarity_score: float = 0.4
    max_k: int = Field(default=10, ge=1)
    use_hyde: bool = True
    dedupe_key: Literal["content", "path_and_content"] = "content"
    retrieval_timeout: Optional[float] = Field(default=None, gt=0)
    retrieval_debug: bool = False

    # Application
    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        """Build PostgreSQL connection string."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"


# Global settings instance
settings = Settings()
