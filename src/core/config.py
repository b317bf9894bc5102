from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str

    @property
    def async_database_url(self) -> str:
        """Return database URL with asyncpg driver for SQLAlchemy async."""
        url = self.database_url
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+asyncpg://", 1)
        return url

    # Redis (progress snapshots + task broker)
    redis_url: str = "redis://localhost:6379/0"
    progress_ttl_seconds: int = 3600

    # Supabase Storage
    supabase_url: str = ""
    supabase_service_key: str = ""
    storage_bucket: str = "documents"

    # LLM API Keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # Structured extraction
    extraction_model: str = "gpt-5.2"
    text_extraction_model: str = "gpt-4o"
    fallback_extraction_model: str = "claude-sonnet-4-5"
    extraction_timeout_seconds: float = 90.0
    upload_timeout_seconds: float = 30.0

    # Size limits
    max_pdf_bytes: int = 25 * 1024 * 1024
    max_csv_bytes: int = 10 * 1024 * 1024

    # Caller identity (X-User-Token signature key)
    auth_secret: str = ""

    # Langfuse
    langfuse_secret_key: str = ""
    langfuse_public_key: str = ""
    langfuse_host: str = "http://localhost:3000"

    # App
    app_env: str = "development"
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def storage_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)


settings = Settings()
