"""ConsultantOS configuration management using pydantic-settings."""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env from project root so ANTHROPIC_API_KEY / OPENAI_API_KEY are available
load_dotenv(Path(__file__).resolve().parent.parent / ".env")


class GeneralSettings(BaseSettings):
    db_url: str = Field(default="postgresql+asyncpg://localhost/consultantos")
    log_level: str = "INFO"


class AnthropicSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ANTHROPIC_")
    api_key: str = ""
    model: str = "claude-haiku-4-5-20251001"
    summary_model: str = "claude-sonnet-4-5-20250929"
    timeout_seconds: float = 60.0
    store_ai_conversations: bool = True


class EmbeddingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="OPENAI_")
    api_key: str = ""
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = 1536
    batch_size: int = 100
    timeout_seconds: float = 30.0


class IngestionSettings(BaseSettings):
    chunk_size: int = 1000
    chunk_overlap: int = 200
    summary_max_chars: int = 15000
    min_notes_length: int = 50


class WorkerSettings(BaseSettings):
    poll_interval_seconds: float = 5.0
    lease_seconds: int = 300
    max_jobs_per_cycle: int = 20
    source_max_attempts: int = 3
    insights_max_attempts: int = 3


class ApiSettings(BaseSettings):
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])


class Settings(BaseSettings):
    """Top-level settings assembled from subsections."""

    general: GeneralSettings = Field(default_factory=GeneralSettings)
    anthropic: AnthropicSettings = Field(default_factory=AnthropicSettings)
    embeddings: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings from TOML config file, falling back to defaults."""
        if config_path is None:
            config_path = Path.home() / ".config/consultantos/config.toml"

        if config_path.exists():
            import toml

            data = toml.load(config_path)
            return cls(
                general=GeneralSettings(**data.get("general", {})),
                anthropic=AnthropicSettings(**data.get("anthropic", {})),
                embeddings=EmbeddingSettings(**data.get("embeddings", {})),
                ingestion=IngestionSettings(**data.get("ingestion", {})),
                worker=WorkerSettings(**data.get("worker", {})),
                api=ApiSettings(**data.get("api", {})),
            )

        return cls()


# Module-level singleton
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
