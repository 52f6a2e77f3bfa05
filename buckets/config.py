from __future__ import annotations

from functools import lru_cache
from typing import AbstractSet, Optional

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from buckets.services.store import StoreConfig


class Settings(BaseSettings):
    """App configuration (env-friendly, every variable is prefixed with ``BUCKETS_``).

    Tip: create a .env file and override settings there, e.g. ``BUCKETS_TTL=0``.
    """

    model_config = SettingsConfigDict(env_prefix="BUCKETS_", env_file=".env", env_file_encoding="utf-8")

    app_name: str = "Buckets"
    version: str = "0.1.0"

    # Prefix of the locations handed back on upload.
    base_url: AnyHttpUrl = "http://localhost:8080"

    charset: str = Field("abcdefghijklmnopqrstuvwxyz", min_length=1)
    slug_size: int = Field(4, ge=1)

    # Seconds; 0 means entries never expire. Default: 2 days.
    ttl: int = Field(172800, ge=0)
    max_buckets: int = Field(1000, ge=1)
    # Megabytes of 1,000,000 bytes.
    max_storage_size: float = Field(1000.0, gt=0)
    seed: Optional[int] = None

    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 8080

    @property
    def public_url(self) -> str:
        return str(self.base_url).rstrip("/")

    def store_config(self, reserved_keys: AbstractSet[str] = frozenset()) -> StoreConfig:
        # Nearest whole byte: 0.00001 MB is 10 bytes.
        return StoreConfig(
            charset=self.charset,
            slug_size=self.slug_size,
            ttl_s=float(self.ttl),
            max_buckets=self.max_buckets,
            max_storage_bytes=round(self.max_storage_size * 1_000_000),
            seed=self.seed,
            reserved_keys=frozenset(reserved_keys),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
