"""Configuration for the OpenAPI adapter."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    service_name: str = Field(default="openapi-adapter")

    adapter_transport: str = Field(default="streamable-http")
    adapter_host: str = Field(default="0.0.0.0")
    adapter_port: int = Field(default=8000)

    adapter_max_concurrency: int = Field(default=20)
    adapter_http_timeout_seconds: float = Field(default=30)
    adapter_http_verify_ssl: bool = Field(default=True)
    # percent-encode query values when compiling requests
    adapter_encode_query: bool = Field(default=True)

    adapter_spec_path: Optional[str] = Field(default=None)
    adapter_spec_directory: Optional[str] = Field(default=None)
    adapter_auto_load: bool = Field(default=True)
    adapter_openapi_cache_seconds: int = Field(default=3600)

    adapter_log_level: str = Field(default="INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
