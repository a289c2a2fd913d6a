from __future__ import annotations

from functools import lru_cache
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = Field("Golden Keys Catalog API", validation_alias="APP_NAME")
    database_url: str = Field(
        "sqlite:///./golden_keys.db",
        validation_alias="DATABASE_URL",
        description="SQLAlchemy connection string used by the database gateway.",
    )
    golden_key_gateway: str = Field(
        default="json",
        validation_alias="GOLDEN_KEY_GATEWAY",
        description="Persistence backend for golden keys ('database', 'json' or 'http').",
        pattern=r"^(database|json|http)$",
    )
    golden_key_store_dir: str = Field(
        default="data",
        validation_alias="GOLDEN_KEY_STORE_DIR",
        description="Directory holding the pending/approved/rejected JSON files for the json gateway.",
    )
    golden_key_service_url: str = Field(
        default="http://localhost:3001",
        validation_alias="GOLDEN_KEY_SERVICE_URL",
        description="Base URL of the remote golden keys service used by the http gateway.",
    )
    golden_key_service_timeout_seconds: int = Field(
        default=15,
        validation_alias="GOLDEN_KEY_SERVICE_TIMEOUT_SECONDS",
        ge=1,
        le=300,
    )
    golden_key_data_types: Annotated[Optional[List[str]], NoDecode] = Field(
        default=None,
        validation_alias="GOLDEN_KEY_DATA_TYPES",
        description=(
            "Comma-separated list of allowed data type values. When unset the built-in"
            " vocabulary is used."
        ),
    )
    max_import_bytes: int = Field(
        default=5 * 1024 * 1024,
        validation_alias="MAX_IMPORT_BYTES",
        ge=1,
    )
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Python logging verbosity for application modules (e.g. INFO, DEBUG).",
    )
    frontend_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:8080",
            "http://127.0.0.1:8080",
        ],
        validation_alias="FRONTEND_ORIGINS",
        description="Comma-separated list of allowed CORS origins for the frontend UI.",
    )

    @field_validator("frontend_origins", mode="before")
    @classmethod
    def _split_origins(cls, raw_value):
        if isinstance(raw_value, str):
            return [origin.strip() for origin in raw_value.split(",") if origin.strip()]
        return raw_value

    @field_validator("golden_key_data_types", mode="before")
    @classmethod
    def _split_data_types(cls, raw_value):
        if isinstance(raw_value, str):
            values = [value.strip().lower() for value in raw_value.split(",") if value.strip()]
            return values or None
        return raw_value

    @field_validator("golden_key_gateway", mode="before")
    @classmethod
    def _normalize_gateway(cls, raw_value):
        if isinstance(raw_value, str):
            return raw_value.strip().lower() or "json"
        return raw_value


@lru_cache()
def get_settings() -> Settings:
    return Settings()
