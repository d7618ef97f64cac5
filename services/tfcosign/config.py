"""
Configuration management for terraform-module-cosign.

Defaults can be set in a YAML file and overridden by TFCOSIGN_* environment
variables. Command-line flags override both.
"""

import os
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_PATH = "~/.config/terraform-module-cosign/config.yaml"


def config_file_path() -> Path:
    """Location of the YAML config file (TFCOSIGN_CONFIG_FILE overrides)."""
    return Path(os.environ.get("TFCOSIGN_CONFIG_FILE", DEFAULT_CONFIG_PATH)).expanduser()


def yaml_config_settings_source() -> dict[str, Any]:
    """Load configuration from YAML file."""
    config_path = config_file_path()
    if config_path.exists():
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    return {}


class SigningEngineKind(StrEnum):
    """Supported signing engines."""

    COSIGN = "cosign"
    KEYFILE = "keyfile"


class CosignConfig(BaseModel):
    """cosign binary configuration."""

    binary: str = Field(default="cosign", description="Path or name of the cosign executable")
    signing_timeout_seconds: float = Field(
        default=180.0,
        description="Deadline for a single sign-blob / verify-blob invocation",
    )


class S3Config(BaseModel):
    """Object store client configuration."""

    default_region: str = Field(default="us-east-1", description="AWS region")
    endpoint_url: str = Field(
        default="",
        description="Endpoint URL for AWS-dialect references (LocalStack in dev/CI)",
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="TFCOSIGN_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=False, description="JSON logging instead of console output")

    signature_suffix: str = Field(default=".sig", description="Module archive signature suffix")
    engine: SigningEngineKind = Field(default=SigningEngineKind.COSIGN)
    fail_fast: bool = Field(
        default=True,
        description="Stop at the first failing module reference",
    )
    concurrency: int = Field(default=1, ge=1, description="Module references processed at once")
    workspace_root: str = Field(
        default="",
        description="Parent directory for staging workspaces. System temp dir if empty.",
    )
    object_store_timeout_seconds: float = Field(
        default=300.0,
        description="Deadline for a single object store GET/PUT",
    )

    cosign: CosignConfig = Field(default_factory=CosignConfig)
    s3: S3Config = Field(default_factory=S3Config)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings sources: env vars override YAML config."""
        return (
            init_settings,
            env_settings,
            yaml_config_settings_source,
            dotenv_settings,
            file_secret_settings,
        )


# Global settings instance
settings = Settings()
