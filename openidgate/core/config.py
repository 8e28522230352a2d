"""Application configuration management.

Loads configuration from config.yaml files and environment variables.
Environment variables take precedence over config file settings.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from openidgate.core.errors import ConfigError
from openidgate.core.nonce import compute_realm

logger = logging.getLogger(__name__)

# Default config locations
DEFAULT_CONFIG_DIR = Path.home() / ".openidgate"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

# Environment variable prefix
ENV_PREFIX = "OPENIDGATE_"


@dataclass
class OIDCSettings:
    """Token flow (OpenID Connect) settings."""

    issuer: str = ""
    client_id: str = ""
    clock_skew_seconds: int = 120

    @property
    def enabled(self) -> bool:
        return bool(self.issuer and self.client_id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OIDCSettings:
        return cls(
            issuer=data.get("issuer", ""),
            client_id=data.get("client_id", ""),
            clock_skew_seconds=data.get("clock_skew_seconds", 120),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "issuer": self.issuer,
            "client_id": self.client_id,
            "clock_skew_seconds": self.clock_skew_seconds,
        }


@dataclass
class OpenID20Settings:
    """Indirect flow (OpenID 2.0) settings."""

    endpoint: str = ""
    return_to: str = ""
    timeout: float = 10.0

    @property
    def enabled(self) -> bool:
        return bool(self.endpoint and self.return_to)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OpenID20Settings:
        return cls(
            endpoint=data.get("endpoint", ""),
            return_to=data.get("return_to", ""),
            timeout=float(data.get("timeout", 10.0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "return_to": self.return_to,
            "timeout": self.timeout,
        }


@dataclass
class ServerSettings:
    """Server configuration settings."""

    host: str = "127.0.0.1"
    port: int = 8443
    debug: bool = False
    cert_path: Path | None = None
    key_path: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServerSettings:
        return cls(
            host=data.get("host", "127.0.0.1"),
            port=data.get("port", 8443),
            debug=data.get("debug", False),
            cert_path=Path(data["cert_path"]) if data.get("cert_path") else None,
            key_path=Path(data["key_path"]) if data.get("key_path") else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "cert_path": str(self.cert_path) if self.cert_path else None,
            "key_path": str(self.key_path) if self.key_path else None,
        }


@dataclass
class AppConfig:
    """Main application configuration."""

    server: ServerSettings = field(default_factory=ServerSettings)
    oidc: OIDCSettings = field(default_factory=OIDCSettings)
    openid20: OpenID20Settings = field(default_factory=OpenID20Settings)
    log_level: str = "INFO"
    config_path: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], config_path: Path | None = None) -> AppConfig:
        """Create AppConfig from a dictionary."""
        return cls(
            server=ServerSettings.from_dict(data.get("server") or {}),
            oidc=OIDCSettings.from_dict(data.get("oidc") or {}),
            openid20=OpenID20Settings.from_dict(data.get("openid20") or {}),
            log_level=data.get("log_level", "INFO"),
            config_path=config_path,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "server": self.server.to_dict(),
            "oidc": self.oidc.to_dict(),
            "openid20": self.openid20.to_dict(),
            "log_level": self.log_level,
        }

    def validate(self) -> None:
        """Check that every configured URL is absolute.

        Raises:
            ConfigError: If a configured URL is malformed.
        """
        if self.oidc.issuer:
            compute_realm(self.oidc.issuer)
        if self.oidc.issuer and not self.oidc.client_id:
            raise ConfigError("oidc.client_id is required when oidc.issuer is set")
        if self.openid20.endpoint:
            compute_realm(self.openid20.endpoint)
        if self.openid20.return_to:
            compute_realm(self.openid20.return_to)

    def save(self, path: Path | None = None) -> None:
        """Save configuration to a YAML file."""
        save_path = path or self.config_path or DEFAULT_CONFIG_FILE
        save_path.parent.mkdir(parents=True, exist_ok=True)

        with open(save_path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False)


def _get_env_bool(key: str, default: bool) -> bool:
    """Get a boolean from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _get_env_int(key: str, default: int) -> int:
    """Get an integer from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load application configuration.

    Configuration is loaded in this order (later values override earlier):
    1. Default values
    2. config.yaml file (if exists)
    3. Environment variables

    Args:
        config_path: Path to config file. Uses default if not specified.

    Returns:
        AppConfig with merged settings.

    Raises:
        ConfigError: If the config file cannot be parsed.
    """
    config = AppConfig()

    file_path = config_path or DEFAULT_CONFIG_FILE
    if file_path.exists():
        try:
            with open(file_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid config file {file_path}: {e}", path=str(file_path)) from e
        config = AppConfig.from_dict(data, config_path=file_path)
        logger.debug(f"Loaded configuration from {file_path}")

    server = config.server
    if os.environ.get(f"{ENV_PREFIX}HOST"):
        server.host = os.environ[f"{ENV_PREFIX}HOST"]
    server.port = _get_env_int(f"{ENV_PREFIX}PORT", server.port)
    server.debug = _get_env_bool(f"{ENV_PREFIX}DEBUG", server.debug)
    if os.environ.get(f"{ENV_PREFIX}TLS_CERT"):
        server.cert_path = Path(os.environ[f"{ENV_PREFIX}TLS_CERT"])
    if os.environ.get(f"{ENV_PREFIX}TLS_KEY"):
        server.key_path = Path(os.environ[f"{ENV_PREFIX}TLS_KEY"])

    if os.environ.get(f"{ENV_PREFIX}OIDC_ISSUER"):
        config.oidc.issuer = os.environ[f"{ENV_PREFIX}OIDC_ISSUER"]
    if os.environ.get(f"{ENV_PREFIX}OIDC_CLIENT_ID"):
        config.oidc.client_id = os.environ[f"{ENV_PREFIX}OIDC_CLIENT_ID"]

    if os.environ.get(f"{ENV_PREFIX}OPENID20_ENDPOINT"):
        config.openid20.endpoint = os.environ[f"{ENV_PREFIX}OPENID20_ENDPOINT"]
    if os.environ.get(f"{ENV_PREFIX}OPENID20_RETURN_TO"):
        config.openid20.return_to = os.environ[f"{ENV_PREFIX}OPENID20_RETURN_TO"]

    if os.environ.get(f"{ENV_PREFIX}LOG_LEVEL"):
        config.log_level = os.environ[f"{ENV_PREFIX}LOG_LEVEL"]

    return config


def get_default_config_yaml() -> str:
    """Get the default config.yaml content as a string."""
    return """\
# openidgate configuration file
# Environment variables override these settings (prefix: OPENIDGATE_)

server:
  host: "127.0.0.1"
  port: 8443
  debug: false
  # HTTPS is required: auth cookies are Secure and __Host- prefixed
  # cert_path: ~/.openidgate/server.crt
  # key_path: ~/.openidgate/server.key

# OpenID Connect (ID token flow)
oidc:
  # issuer: "https://accounts.google.com"
  # client_id: "xxx.apps.googleusercontent.com"
  clock_skew_seconds: 120

# OpenID 2.0 (e.g. Steam)
openid20:
  # endpoint: "https://steamcommunity.com/openid/login"
  # return_to: "https://localhost:8443/openid/callback"
  timeout: 10.0

log_level: INFO
"""
