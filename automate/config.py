"""
Configuration and settings for the AutoMate backend.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from automate.errors import ConfigurationError

LOG_FORMAT = "%(name)s %(levelname)s %(asctime)s %(message)s"
LOG_DATE_FORMAT = "%m/%d/%Y %I:%M:%S %p"


class Settings(BaseSettings):
    """Environment-backed settings for the API and the notifier job."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    log_level: str = Field(default="INFO")

    # Relational store (any SQLAlchemy URL, Postgres expected)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible object storage
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    storage_bucket: str = Field(default="vehicle-docs")
    storage_access_key_id: Optional[str] = Field(default=None)
    storage_secret_access_key: Optional[str] = Field(default=None)
    storage_public_base_url: Optional[str] = Field(default=None)

    # Firebase service account, as a file path or inline JSON
    firebase_service_account_path: Optional[str] = Field(default=None)
    firebase_service_account_json: Optional[str] = Field(default=None)

    # Development toggles
    skip_auth: bool = Field(default=False)
    dev_uid: str = Field(default="dev-uid")
    use_in_memory_backends: bool = Field(default=False)

    @property
    def store_configured(self) -> bool:
        return bool(
            self.database_url
            and self.storage_endpoint
            and self.storage_access_key_id
            and self.storage_secret_access_key
        )

    def firebase_credential_source(self) -> str | dict | None:
        """Return the service account as a path or parsed dict, if configured."""
        if self.firebase_service_account_path:
            return self.firebase_service_account_path
        if self.firebase_service_account_json:
            try:
                return json.loads(self.firebase_service_account_json)
            except json.JSONDecodeError as exc:
                raise ConfigurationError(
                    f"FIREBASE_SERVICE_ACCOUNT_JSON is not valid JSON: {exc}"
                ) from exc
        return None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
