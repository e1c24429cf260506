"""Configuration management for Asset Bridge using Pydantic.

This module provides the operator settings: where the target system lives,
how to log, and the limits applied to import runs. Integration records
themselves live in the target system (see :mod:`asset_bridge.models`).
"""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TargetConfig(BaseModel):
    """Connection settings for the target ITSM system."""

    url: str = Field(..., description="Target system base URL")
    api_key: str = Field(..., description="REST API key, also the config decryption secret")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    timeout: int = Field(default=60, ge=1, le=1200, description="Per-call timeout in seconds")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate and normalize URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate API key is not empty."""
        if not v or v.strip() == "":
            raise ValueError("API key cannot be empty")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="WARNING",
        description="Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    file_level: str = Field(default="DEBUG", description="File log level")
    format: str = Field(default="json", description="Log file format (json or console)")
    file: str | None = Field(default="logs/asset-bridge.log", description="Log file path")
    log_payloads: bool = Field(
        default=False,
        description=(
            "Enable request/response payload logging at DEBUG level. "
            "Secrets are redacted."
        ),
    )
    max_payload_size: int = Field(
        default=10000,
        ge=100,
        le=1000000,
        description="Maximum payload size (characters) to log before truncation",
    )
    buffer_size: int = Field(
        default=1000,
        ge=10,
        le=100000,
        description="Lines kept in the per-run log buffer sent with the final run log",
    )

    @field_validator("level", "file_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "console"]
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Log format must be one of: {', '.join(valid_formats)}")
        return v_lower


class RunnerConfig(BaseModel):
    """Limits and pacing for import runs."""

    default_page_size: int = Field(
        default=100, ge=1, le=10000, description="Page size when an integration sets none"
    )
    max_pages_per_type: int = Field(
        default=1000, ge=1, le=100000, description="Hard cap on pages fetched per record type"
    )
    integration_delay: float = Field(
        default=30.0, ge=0, description="Seconds to wait between integrations in a full run"
    )
    dry_run: bool = Field(default=False, description="Build documents without posting them")


class BridgeSettings(BaseSettings):
    """Main Asset Bridge configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ASSET_BRIDGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    target: TargetConfig = Field(..., description="Target system configuration")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    runner: RunnerConfig = Field(default_factory=RunnerConfig, description="Runner configuration")


def load_settings() -> BridgeSettings:
    """Load settings from ``ASSET_BRIDGE_*`` environment variables."""
    return BridgeSettings()


def load_config_from_yaml(config_path: str | Path) -> BridgeSettings:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        BridgeSettings: Loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        raise ValueError(f"Empty configuration file: {config_path}")

    config_data = _expand_env_vars(config_data)

    return BridgeSettings(**config_data)


def _expand_env_vars(data: dict) -> dict:
    """Recursively expand environment variables in config dict.

    Supports ${VAR_NAME} syntax for environment variable substitution.

    Args:
        data: Configuration dictionary

    Returns:
        dict: Dictionary with expanded environment variables
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        if data.startswith("${") and data.endswith("}"):
            var_name = data[2:-1]
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(
                    f"Environment variable '{var_name}' not found. "
                    f"Please set it in your environment or .env file."
                )
            return env_value
        return data
    else:
        return data
