"""Configuration management for Portainer MCP server."""

import os
import re
from pathlib import Path
from typing import Any, Literal

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError

logger = structlog.get_logger("server")

DEFAULT_CONFIG_FILE = "config/portainer.yml"


class PortainerSettings(BaseModel):
    """Connection settings for the Portainer API."""

    model_config = ConfigDict(frozen=True)

    base_url: str
    api_key: SecretStr
    timeout: float = Field(default=30.0, gt=0, description="Total request timeout in seconds")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        v = v.strip()
        if not re.match(r"^https?://[^/\s]+", v):
            raise ValueError(f"base_url must be an http(s) URL, got '{v}'")
        return v.rstrip("/")

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("api_key cannot be empty")
        return v


class ServerConfig(BaseModel):
    """Server configuration."""

    model_config = ConfigDict(frozen=True)

    transport: Literal["stdio", "http"] = "stdio"
    host: str = "127.0.0.1"  # Use 0.0.0.0 for container deployment
    port: int = Field(default=8000, ge=1, le=65535)
    log_level: str = "INFO"


class PortainerMCPConfig(BaseModel):
    """Main configuration for Portainer MCP server."""

    model_config = ConfigDict(frozen=True)

    portainer: PortainerSettings
    server: ServerConfig = Field(default_factory=ServerConfig)
    config_file: str | None = None


class EnvironmentOverrides(BaseSettings):
    """Values read from the process environment and ``.env``."""

    portainer_base_url: str | None = Field(default=None, alias="PORTAINER_BASE_URL")
    portainer_api_key: str | None = Field(default=None, alias="PORTAINER_API_KEY")
    portainer_timeout: float | None = Field(default=None, alias="PORTAINER_TIMEOUT")
    transport: str | None = Field(default=None, alias="FASTMCP_TRANSPORT")
    host: str | None = Field(default=None, alias="FASTMCP_HOST")
    port: int | None = Field(default=None, alias="FASTMCP_PORT")
    log_level: str | None = Field(default=None, alias="LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    def as_config_dict(self) -> dict[str, Any]:
        """Nest the set values the way the YAML file lays them out."""
        portainer = {
            "base_url": self.portainer_base_url,
            "api_key": self.portainer_api_key,
            "timeout": self.portainer_timeout,
        }
        server = {
            "transport": self.transport,
            "host": self.host,
            "port": self.port,
            "log_level": self.log_level,
        }
        return {
            "portainer": {k: v for k, v in portainer.items() if v is not None},
            "server": {k: v for k, v in server.items() if v is not None},
        }


def load_config(
    config_path: str | None = None, overrides: dict[str, Any] | None = None
) -> PortainerMCPConfig:
    """Load configuration from multiple sources.

    Priority (lowest to highest): YAML file, environment / ``.env``, explicit overrides.

    Args:
        config_path: Optional path to YAML config file
        overrides: Nested mapping applied last (used for CLI flags)

    Returns:
        Loaded, immutable configuration

    Raises:
        ConfigurationError: If the file cannot be parsed or the result is invalid
    """
    path = Path(config_path or os.getenv("PORTAINER_MCP_CONFIG", DEFAULT_CONFIG_FILE))

    merged: dict[str, Any] = {"portainer": {}, "server": {}}
    if path.exists():
        _merge_config(merged, _load_yaml_config(path))
        merged["config_file"] = str(path)
    elif config_path:
        raise ConfigurationError(f"Config file not found: {path}")

    _merge_config(merged, EnvironmentOverrides().as_config_dict())
    if overrides:
        _merge_config(merged, overrides)

    try:
        config = PortainerMCPConfig(**merged)
    except ValidationError as e:
        problems = ", ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from e

    logger.debug(
        "Configuration loaded",
        config_file=config.config_file,
        base_url=config.portainer.base_url,
        transport=config.server.transport,
    )
    return config


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load YAML configuration file."""
    try:
        content = config_path.read_text(encoding="utf-8")

        # Securely expand only allowed environment variables
        content = _expand_yaml_config(content)

        loaded = yaml.safe_load(content)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {e}") from e

    # yaml.safe_load can return None, str, list, etc.
    if not isinstance(loaded, dict):
        return {}
    return {key: loaded[key] for key in ("portainer", "server") if isinstance(loaded.get(key), dict)}


def _expand_yaml_config(content: str) -> str:
    """Securely expand environment variables with allowlist."""

    allowed_env_vars = {
        "HOME",
        "USER",
        "PORTAINER_BASE_URL",
        "PORTAINER_API_KEY",
        "PORTAINER_TIMEOUT",
        "FASTMCP_TRANSPORT",
        "FASTMCP_HOST",
        "FASTMCP_PORT",
        "LOG_LEVEL",
    }

    def replace_var(match):
        var_name = match.group(1)
        if var_name in allowed_env_vars:
            return os.getenv(var_name, match.group(0))  # Keep original if not found
        logger.warning(
            "Environment variable not in allowlist, skipping expansion",
            variable=var_name,
        )
        return match.group(0)

    return re.sub(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}", replace_var, content)


def _merge_config(base: dict[str, Any], update: dict[str, Any]) -> None:
    """Merge configuration dictionaries with deep merging."""
    for key, value in update.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_config(base[key], value)
        else:
            base[key] = value
