"""Configuration types with environment variable support.

Tuning settings can be configured via environment variables with the
BLOCKPROXY_ prefix. Example: BLOCKPROXY_COPY_BUFFER_SIZE=65536 sets the
relay read size to 64KB.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from blockproxy.core.addr import normalize_target, resolve_dial_address, split_host_port


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML or TOML file.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has encoding errors, invalid syntax, or unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            return tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


def flatten_config(config: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in config.items():
        full_key = f"{prefix}_{key}" if prefix else key
        if isinstance(value, dict):
            result.update(flatten_config(value, full_key))
        else:
            result[full_key] = value
    return result


class ProxyConfig(BaseModel):
    """Process-wide proxy configuration.

    Built once before the listener starts and never modified afterwards.
    ``target_host_port`` always carries a non-empty host and port; a value
    given without a port gets port 443.
    """

    model_config = ConfigDict(frozen=True)

    listen_host: str = "0.0.0.0"
    listen_port: int = Field(
        default=8080,
        ge=0,
        le=65535,
        description="Port to listen on. 0 picks a free port.",
    )
    target_host_port: str = Field(
        description="The only host:port clients may CONNECT to.",
    )
    target_ip: str | None = Field(
        default=None,
        description="Address dialed instead of the requested host (optional).",
    )

    _dial_address: str | None = PrivateAttr(default=None)

    @field_validator("target_host_port")
    @classmethod
    def _normalize_target(cls, value: str) -> str:
        return normalize_target(value)

    @field_validator("target_ip")
    @classmethod
    def _empty_ip_is_unset(cls, value: str | None) -> str | None:
        if value is not None:
            value = value.strip()
        return value or None

    @model_validator(mode="after")
    def _resolve_dial_address(self) -> ProxyConfig:
        if self.target_ip is not None:
            self._dial_address = resolve_dial_address(self.target_ip, self.target_port)
        return self

    @property
    def target_host(self) -> str:
        return split_host_port(self.target_host_port)[0]

    @property
    def target_port(self) -> str:
        return split_host_port(self.target_host_port)[1]

    @property
    def dial_address(self) -> str | None:
        """Address dialed for every accepted tunnel, None to dial the request authority."""
        return self._dial_address


class ProxySettings(BaseSettings):
    """Runtime tuning configuration.

    All settings can be overridden via environment variables:
    - BLOCKPROXY_COPY_BUFFER_SIZE: Bytes read per relay iteration
    - BLOCKPROXY_MAX_HEADER_BYTES: Maximum size of a request head
    - BLOCKPROXY_LOG_LEVEL: Log level (debug, info, warning, error)
    """

    model_config = SettingsConfigDict(
        env_prefix="BLOCKPROXY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    copy_buffer_size: int = Field(
        default=32 * 1024,
        gt=0,
        description="Bytes read per relay iteration. Default 32KB.",
    )
    max_header_bytes: int = Field(
        default=1024 * 1024,
        gt=0,
        description="Maximum size of a request line plus headers (bytes). Default 1MB.",
    )
    log_level: str = Field(
        default="info",
        description="Log level: debug, info, warning or error.",
    )


_settings: ProxySettings | None = None


def get_settings() -> ProxySettings:
    """Get the global settings instance.

    The instance is created once and cached for the lifetime of the process.
    To reload settings (e.g., in tests), call clear_settings() first.
    """
    global _settings
    if _settings is None:
        _settings = ProxySettings()
    return _settings


def clear_settings() -> None:
    """Clear the cached settings.

    Call this to force reloading of environment variables on next get_settings() call.
    """
    global _settings
    _settings = None
