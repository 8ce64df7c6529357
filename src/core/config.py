from typing import Any, List

from pydantic import Field, PostgresDsn, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        case_sensitive=True, env_file=".env", extra="allow"
    )

    ENVIRONMENT_NAME: str = "Development"

    @property
    def is_production(self):
        return self.ENVIRONMENT_NAME == "Production"

    PROJECT_NAME: str = "contract-watch"

    # Alchemy credential used by every network endpoint template
    ALCHEMY_KEY: str | None = None
    # comma-separated list of networks the worker monitors
    NETWORKS: str = "sepolia"

    @property
    def network_list(self) -> List[str]:
        return [n.strip() for n in self.NETWORKS.split(",") if n.strip()]

    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "secret"
    POSTGRES_DB: str = "contractwatch"
    SQLALCHEMY_DATABASE_URI: str | None = Field(default=None, validate_default=True)

    REDIS_URL: str = "redis://localhost:6379/0"

    # Seq log
    SEQ_SERVER_URL: str | None = None
    SEQ_SERVER_API_KEY: str | None = None

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "~/logs"

    # reconnect policy for the block subscription
    MONITOR_BACKOFF_BASE_SECONDS: float = 1.0
    MONITOR_BACKOFF_MAX_SECONDS: float = 60.0
    MONITOR_BACKOFF_JITTER_SECONDS: float = 1.0

    DETECTOR_MAX_CONCURRENCY: int = 8
    BACKFILL_DEFAULT_BLOCKS: int = 5000

    # CORS_ORIGINS is a comma-separated list of origins allowed on the relay
    CORS_ORIGINS: str = "http://localhost:3001"
    API_PORT: int = 3000

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @field_validator("SQLALCHEMY_DATABASE_URI", mode="before")
    def assemble_db_connection(cls, v: str | None, info: ValidationInfo) -> Any:
        if isinstance(v, str) and v:
            return v
        return str(
            PostgresDsn.build(
                scheme="postgresql+psycopg",
                username=info.data.get("POSTGRES_USER"),
                password=info.data.get("POSTGRES_PASSWORD"),
                host=info.data.get("POSTGRES_SERVER"),
                port=info.data.get("POSTGRES_PORT"),
                path=f"{info.data.get('POSTGRES_DB') or ''}",
            )
        )

    @field_validator("DETECTOR_MAX_CONCURRENCY")
    def check_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("DETECTOR_MAX_CONCURRENCY must be at least 1")
        return v


settings = Settings()
