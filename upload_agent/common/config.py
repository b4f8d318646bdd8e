from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

ENV_FILE = Path(".env")

DEFAULT_PRESIGN_EXPIRES_SECONDS = 3600
DEFAULT_IMAGE_MAX_DIMENSION = 2000
DEFAULT_IMAGE_QUALITY = 80
DEFAULT_UPLOAD_MAX_FILES = 20


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _as_optional_int(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    return int(value)


def _as_private_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return _as_bool(value, True)
    raise ValueError(f"default_private must be a boolean, got {value!r}")


@dataclass(frozen=True, slots=True)
class BucketConfig:
    """Credentials and defaults for one storage bucket."""

    bucket_name: str
    region: str
    access_key: str
    secret_key: str = field(repr=False)
    default_private: bool = True

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "BucketConfig":
        try:
            return cls(
                bucket_name=str(data["bucket_name"]),
                region=str(data["region"]),
                access_key=str(data["access_key"]),
                secret_key=str(data["secret_key"]),
                default_private=_as_private_flag(data.get("default_private", True)),
            )
        except KeyError as exc:
            missing = exc.args[0]
            raise ValueError(f"Bucket configuration is missing {missing!r}") from exc


def _as_bucket_configs(value: str | None) -> list[BucketConfig]:
    if not value or not value.strip():
        return []
    try:
        raw = json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValueError(f"UPLOAD_BUCKETS must be a JSON list: {exc}") from exc
    if not isinstance(raw, list):
        raise ValueError("UPLOAD_BUCKETS must be a JSON list of bucket objects")
    return [BucketConfig.from_mapping(item) for item in raw]


@dataclass
class Settings:
    UPLOAD_BUCKETS: list[BucketConfig] = field(default_factory=list)
    S3_ENDPOINT_URL: str | None = None
    S3_ADDRESSING_STYLE: str = "auto"
    UPLOAD_MAX_SIZE: int | None = None
    UPLOAD_ALLOWED_MIMES: list[str] = field(default_factory=list)
    UPLOAD_MAX_CONCURRENCY: int | None = None
    UPLOAD_MAX_FILES: int = DEFAULT_UPLOAD_MAX_FILES
    UPLOAD_MAX_TOTAL_SIZE: int | None = None
    PRESIGN_EXPIRES_SECONDS: int = DEFAULT_PRESIGN_EXPIRES_SECONDS
    IMAGE_MAX_DIMENSION: int = DEFAULT_IMAGE_MAX_DIMENSION
    IMAGE_QUALITY: int = DEFAULT_IMAGE_QUALITY
    ENABLE_METRICS: bool = True
    API_KEY_ENABLED: bool = False
    API_KEY: str | None = None
    CORS_ENABLED: bool = False
    CORS_ORIGINS: list[str] = field(default_factory=list)
    LOG_LEVEL: str = "INFO"

    def __post_init__(self) -> None:
        if self.PRESIGN_EXPIRES_SECONDS <= 0:
            raise ValueError("PRESIGN_EXPIRES_SECONDS must be positive.")
        if self.UPLOAD_MAX_FILES <= 0:
            raise ValueError("UPLOAD_MAX_FILES must be positive.")
        if self.IMAGE_MAX_DIMENSION <= 0:
            raise ValueError("IMAGE_MAX_DIMENSION must be positive.")
        if not 1 <= self.IMAGE_QUALITY <= 100:
            raise ValueError("IMAGE_QUALITY must be between 1 and 100.")

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            UPLOAD_BUCKETS=_as_bucket_configs(os.environ.get("UPLOAD_BUCKETS")),
            S3_ENDPOINT_URL=os.environ.get("S3_ENDPOINT_URL") or None,
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            UPLOAD_MAX_SIZE=_as_optional_int(os.environ.get("UPLOAD_MAX_SIZE")),
            UPLOAD_ALLOWED_MIMES=_as_list(os.environ.get("UPLOAD_ALLOWED_MIMES")),
            UPLOAD_MAX_CONCURRENCY=_as_optional_int(
                os.environ.get("UPLOAD_MAX_CONCURRENCY")
            ),
            UPLOAD_MAX_FILES=int(
                os.environ.get("UPLOAD_MAX_FILES", cls.UPLOAD_MAX_FILES)
            ),
            UPLOAD_MAX_TOTAL_SIZE=_as_optional_int(
                os.environ.get("UPLOAD_MAX_TOTAL_SIZE")
            ),
            PRESIGN_EXPIRES_SECONDS=int(
                os.environ.get("PRESIGN_EXPIRES_SECONDS", cls.PRESIGN_EXPIRES_SECONDS)
            ),
            IMAGE_MAX_DIMENSION=int(
                os.environ.get("IMAGE_MAX_DIMENSION", cls.IMAGE_MAX_DIMENSION)
            ),
            IMAGE_QUALITY=int(os.environ.get("IMAGE_QUALITY", cls.IMAGE_QUALITY)),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            API_KEY_ENABLED=_as_bool(
                os.environ.get("API_KEY_ENABLED"), cls.API_KEY_ENABLED
            ),
            API_KEY=os.environ.get("API_KEY"),
            CORS_ENABLED=_as_bool(os.environ.get("CORS_ENABLED"), cls.CORS_ENABLED),
            CORS_ORIGINS=_as_list(os.environ.get("CORS_ORIGINS")),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
