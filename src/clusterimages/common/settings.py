"""Process-wide configuration for the image resolution task."""

from __future__ import annotations

from typing import Annotated, Optional

from pydantic import Field, HttpUrl, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def env_field(default, env_name: str):
    return Field(default, validation_alias=env_name)


class FindImageSettings(BaseSettings):
    """Defaults applied when a stage leaves a setting unspecified."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    default_resolve_missing_locations: bool = env_field(False, "CLUSTERIMAGES_DEFAULT_RESOLVE_MISSING_LOCATIONS")
    inventory_base_url: HttpUrl = env_field(HttpUrl("http://localhost:7002"), "CLUSTERIMAGES_INVENTORY_URL")
    inventory_token: Optional[SecretStr] = env_field(None, "CLUSTERIMAGES_INVENTORY_TOKEN")
    inventory_timeout_seconds: float = env_field(30.0, "CLUSTERIMAGES_INVENTORY_TIMEOUT")
    # Bakery naming tokens; a base image name ends in one of these.
    image_name_suffixes: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["-ebs", "-s3"],
        validation_alias="CLUSTERIMAGES_IMAGE_NAME_SUFFIXES",
    )
    log_level: str = env_field("INFO", "CLUSTERIMAGES_LOG_LEVEL")
    otel_exporter_endpoint: Optional[str] = env_field(None, "CLUSTERIMAGES_OTEL_EXPORTER_ENDPOINT")
    otel_exporter_headers: Optional[str] = env_field(None, "CLUSTERIMAGES_OTEL_EXPORTER_HEADERS")
    otel_sampler_ratio: float = env_field(0.1, "CLUSTERIMAGES_OTEL_SAMPLER_RATIO")

    @field_validator("image_name_suffixes", mode="before")
    @classmethod
    def _split_suffixes(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("image_name_suffixes")
    @classmethod
    def _require_suffixes(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one image name suffix is required")
        return value
