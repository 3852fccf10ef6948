from __future__ import annotations

from typing import ClassVar, final

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [x.strip() for x in value.split(",") if x.strip()]


@final
class Settings(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )
    app_name: str = "Notifications"
    service_name: str = "notifications"
    service_version: str = "0.1.0"
    api_prefix: str = "/v2"

    # Environment (ENVIRONMENT): development | production
    environment: str = "development"

    database_url: str = "sqlite:///./dev.db"

    # Primary env: CORS_ALLOW_ORIGINS; also accept CORS_ORIGINS as alias.
    cors_allow_origins: str = Field(
        default="*",
        validation_alias=AliasChoices("CORS_ALLOW_ORIGINS", "CORS_ORIGINS"),
    )

    log_level: str = "INFO"

    # 列表默认值：limit=0 表示不限制；LISTING_MAX_LIMIT=0 表示不设上限
    listing_default_sort_order: str = "DESC"
    listing_max_limit: int = 1000

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":  # pyright: ignore[reportUnusedFunction]
        errors: list[str] = []

        if self.listing_default_sort_order.strip().upper() not in {"ASC", "DESC"}:
            errors.append("LISTING_DEFAULT_SORT_ORDER must be ASC or DESC")
        if self.listing_max_limit < 0:
            errors.append("LISTING_MAX_LIMIT must not be negative")

        if self.environment.strip().lower() == "production":
            if self.database_url.strip().lower().startswith("sqlite"):
                errors.append("DATABASE_URL must point at a server database in production")

            cors_v = self.cors_allow_origins.strip()
            if not cors_v or cors_v == "*":
                errors.append("CORS_ALLOW_ORIGINS must be explicit (not '*') in production")

        if errors:
            raise ValueError("Invalid settings: " + "; ".join(errors))
        return self

    def cors_origins_list(self) -> list[str]:
        v = self.cors_allow_origins.strip()
        if not v:
            return []
        if v == "*":
            return ["*"]
        return _split_csv(v)

    def security_warnings(self) -> list[str]:
        warnings: list[str] = []
        if self.cors_allow_origins.strip() == "*":
            warnings.append("CORS_ALLOW_ORIGINS='*' is permissive")
        if self.database_url.strip().lower().startswith("sqlite"):
            warnings.append("DATABASE_URL uses SQLite; use PostgreSQL for shared deployments")
        return warnings


settings = Settings()
