"""Typed configuration models for Agent0 SDK runtime settings."""

from __future__ import annotations

from pathlib import Path
from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from .defaults import (
    DEFAULT_ARWEAVE_GATEWAYS,
    DEFAULT_IPFS_GATEWAYS,
    DEFAULT_PINATA_API_URL,
    DEFAULT_TURBO_UPLOAD_URL,
)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "agent0" / "agent0.yaml"


class LoggingSettings(BaseModel):
    """Structured logging configuration shared by Agent0 components."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = True
    service: str = "agent0"
    environment: str = "dev"


class _BackendSettings(BaseModel):
    """Fields shared by every durable storage backend."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False
    gateways: tuple[str, ...] = ()
    gateway_timeout_seconds: float = Field(default=10.0, gt=0)
    upload_timeout_seconds: float = Field(default=80.0, gt=0)

    @field_validator("gateways", mode="after")
    @classmethod
    def _validate_gateways(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        """Reject blank or non-HTTP gateway base URLs."""
        normalized: list[str] = []
        for url in value:
            candidate = url.strip()
            if not candidate.startswith(("http://", "https://")):
                raise ValueError(f"gateway URL must be http(s): {url!r}")
            normalized.append(candidate)
        return tuple(normalized)


class IpfsSettings(_BackendSettings):
    """Content-addressed pinning backend settings."""

    provider: Literal["pinata", "node"] = "pinata"
    pinata_jwt: str | None = Field(default=None, repr=False)
    pinata_api_url: str = DEFAULT_PINATA_API_URL
    node_api_url: str = "http://127.0.0.1:5001"
    gateways: tuple[str, ...] = DEFAULT_IPFS_GATEWAYS


class ArweaveSettings(_BackendSettings):
    """Permanent-ledger backend settings."""

    private_key: str | None = Field(default=None, repr=False)
    upload_url: str = DEFAULT_TURBO_UPLOAD_URL
    gateways: tuple[str, ...] = DEFAULT_ARWEAVE_GATEWAYS
    upload_timeout_seconds: float = Field(default=100.0, gt=0)


class StorageSettings(BaseModel):
    """Durable storage layer configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    signer_private_key: str | None = Field(default=None, repr=False)
    ipfs: IpfsSettings = Field(default_factory=IpfsSettings)
    arweave: ArweaveSettings = Field(default_factory=ArweaveSettings)
    http_timeout_seconds: float = Field(default=10.0, gt=0)
    confirmation_timeout_seconds: float = Field(default=30.0, gt=0)

    @model_validator(mode="after")
    def _require_gateways_for_enabled_backends(self) -> "StorageSettings":
        """Enabled backends must keep at least one read gateway."""
        for name, backend in (("ipfs", self.ipfs), ("arweave", self.arweave)):
            if backend.enabled and len(backend.gateways) == 0:
                raise ValueError(f"storage.{name}.gateways must not be empty")
        return self

    def arweave_private_key(self) -> str | None:
        """Return the Arweave signing key, defaulting to the shared signer."""
        return self.arweave.private_key or self.signer_private_key


class Agent0Settings(BaseSettings):
    """Root runtime settings resolved from init/env/yaml/defaults sources."""

    model_config = SettingsConfigDict(
        env_prefix="AGENT0_",
        env_nested_delimiter="__",
        extra="ignore",
        nested_model_default_partial_update=True,
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    _config_path: ClassVar[Path] = DEFAULT_CONFIG_PATH

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Apply Agent0 precedence: init > env > yaml > model defaults."""
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(
                settings_cls,
                yaml_file=cls._config_path,
                yaml_file_encoding="utf-8",
            ),
        )
