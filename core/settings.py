from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from PIL import Image
from pydantic import BaseModel, Field, field_validator

from core.exceptions import ConfigurationError

# Load .env file from project root
_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)

_DEFAULT_CONFIG = Path("config/default.yaml")


class LocalStorageSettings(BaseModel):
    path: Path = Path("data/storage")
    # Serve stored objects over HTTP from the API process
    serve: bool = True


class S3StorageSettings(BaseModel):
    bucket: str
    region: str = "us-east-1"
    endpoint_url: str | None = None
    access_key_env: str = "S3_ACCESS_KEY"
    secret_key_env: str = "S3_SECRET_KEY"
    connect_timeout: float = Field(8.0, gt=0.0)
    read_timeout: float = Field(30.0, gt=0.0)
    max_attempts: int = Field(3, ge=1, le=10)

    @property
    def access_key(self) -> str:
        value = os.getenv(self.access_key_env)
        if not value:
            raise ConfigurationError(
                f"Environment variable '{self.access_key_env}' is required for S3 storage",
                {"env": self.access_key_env},
            )
        return value

    @property
    def secret_key(self) -> str:
        value = os.getenv(self.secret_key_env)
        if not value:
            raise ConfigurationError(
                f"Environment variable '{self.secret_key_env}' is required for S3 storage",
                {"env": self.secret_key_env},
            )
        return value


class StorageSettings(BaseModel):
    provider: Literal["local", "s3", "memory"] = "local"
    local: LocalStorageSettings = Field(default_factory=LocalStorageSettings)
    s3: S3StorageSettings | None = None
    # Public base URL objects are reachable under, e.g. a CDN in front of the bucket
    storage_url: str | None = None

    @field_validator("provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class UploadSettings(BaseModel):
    file_size_limit_mb: int = Field(100, ge=1)
    field_name: str = "uploadFile"

    @property
    def file_size_limit(self) -> int:
        # Convert MB to bytes
        return self.file_size_limit_mb * 1000 * 1000


class ThumbnailSettings(BaseModel):
    size: int = Field(500, ge=1, le=4096)
    format: str = "PNG"
    concurrency: int = Field(1, ge=1, le=64)

    @field_validator("format", mode="before")
    @classmethod
    def _upper_format(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("format")
    @classmethod
    def _writable_format(cls, value: str) -> str:
        # Pillow format names such as PNG, JPEG, WEBP; "JPG" is an extension, not a format
        writable = set(Image.registered_extensions().values()) & set(Image.SAVE)
        if value not in writable:
            raise ValueError(f"Pillow cannot write thumbnails as {value!r}, expected one of {sorted(writable)}")
        return value


class QueueSettings(BaseModel):
    broker_url_env: str = "CELERY_BROKER_URL"
    result_backend_env: str | None = "CELERY_RESULT_BACKEND"

    @property
    def broker_url(self) -> str | None:
        return os.getenv(self.broker_url_env) or None

    @property
    def result_backend(self) -> str | None:
        if not self.result_backend_env:
            return None
        return os.getenv(self.result_backend_env)


class Settings(BaseModel):
    storage: StorageSettings = Field(default_factory=StorageSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    thumbnails: ThumbnailSettings = Field(default_factory=ThumbnailSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Load settings from YAML configuration file.

        Args:
            path: Optional path to configuration file. If not provided, uses
                BACKPACK_CONFIG environment variable or defaults to config/default.yaml.
                Only the implicit default may be absent, built-in defaults apply then.

        Returns:
            Settings instance with loaded configuration.

        Raises:
            FileNotFoundError: If an explicitly requested configuration file does not exist.
            ConfigurationError: If configuration is invalid.
        """
        explicit = path or os.getenv("BACKPACK_CONFIG")
        config_path = Path(explicit) if explicit else _DEFAULT_CONFIG
        if not config_path.exists():
            if explicit:
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return cls()
        with config_path.open("r", encoding="utf-8") as fp:
            payload = yaml.safe_load(fp) or {}
        try:
            return cls(**payload)
        except Exception as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}", {"path": str(config_path)}) from exc


@lru_cache(maxsize=1)
def get_settings(path: str | None = None) -> Settings:
    return Settings.load(Path(path) if path else None)


__all__ = [
    "Settings",
    "LocalStorageSettings",
    "S3StorageSettings",
    "StorageSettings",
    "UploadSettings",
    "ThumbnailSettings",
    "QueueSettings",
    "get_settings",
]
