"""
Server Configuration Module

This module provides Pydantic-based configuration models for the static
file server. Configuration is built once at startup from a key-value mapping
(the process environment by default) and is immutable afterwards.

Configuration Sections:
    - SslConfig: TLS toggle and certificate/key paths
    - AuthConfig: Basic authentication toggle and credentials
    - ServerConfig: Root configuration container

Environment Variables:
    - SERVER_HOSTNAME: Canonical hostname (default: localhost)
    - SERVER_PORT: Listening port (default: 80)
    - SERVER_SSL_ENABLED: "true" to enable TLS (default: disabled)
    - SERVER_SSL_CERT / SERVER_SSL_KEY: TLS file paths (default: cert.pem / key.pem)
    - SERVER_BASIC_AUTH_ENABLED: "true" to enable basic auth (default: disabled)
    - SERVER_BASIC_AUTH_USERNAME / SERVER_BASIC_AUTH_PASSWORD: credentials
      (default: admin / empty)
    - SERVER_CACHE_DURATION_MS: Cache time-to-live in ms (default: 3600000)
    - SERVER_PUBLIC_PATH: Directory served at "/" (default: public)
    - SERVER_STATISTICS_ENABLED: "true" to mount the statistics middleware
    - SERVER_MANIFEST_PATH: JSON manifest holding the version (default: manifest.json)
    - SERVER_REDIRECT_PORT: Plaintext HTTPS-redirect port (default: 80)
    - SERVER_BIND_HOST: Bind address (default: 0.0.0.0)

Usage:
    from siteserver.core.config import load_config

    config = load_config()
    print(config.hostname, config.port)

    # Deterministic, no environment mutation
    config = load_config({"SERVER_PORT": "8080"})
"""

import os
import re
import logging
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError


logger = logging.getLogger(__name__)


DEFAULT_HOSTNAME = "localhost"
DEFAULT_HTTP_PORT = 80
DEFAULT_CACHE_DURATION_MS = 60 * 60 * 1000
DEFAULT_USERNAME = "admin"

DECIMAL_PATTERN = re.compile(r"[0-9]+")


class SslConfig(BaseModel):
    """
    TLS configuration.

    Attributes:
        enabled: Serve over HTTPS when True
        cert: Path to the PEM certificate
        key: Path to the PEM private key
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    cert: str = "cert.pem"
    key: str = "key.pem"


class AuthConfig(BaseModel):
    """
    Basic authentication configuration.

    Attributes:
        enabled: Challenge every request when True
        username: Accepted username
        password: Accepted password
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    username: str = DEFAULT_USERNAME
    password: str = ""


class ServerConfig(BaseModel):
    """
    Root server configuration.

    Attributes:
        hostname: Canonical hostname, other hosts are redirected to it
        port: Port for the main listener
        ssl: TLS settings
        auth: Basic auth settings
        cache_duration_ms: Time-to-live for static file caches and Cache-Control
        public_path: Directory served at "/"
        statistics_enabled: Mount the request statistics middleware
        manifest_path: JSON manifest the version is read from
        redirect_port: Port of the plaintext HTTPS-redirect listener
        host: Bind address for both listeners
    """

    model_config = ConfigDict(frozen=True)

    hostname: str = DEFAULT_HOSTNAME
    port: int = Field(
        default=DEFAULT_HTTP_PORT,
        ge=1,
        le=65535,
        description="Port for the main listener"
    )
    ssl: SslConfig = Field(default_factory=SslConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    cache_duration_ms: int = Field(
        default=DEFAULT_CACHE_DURATION_MS,
        ge=0,
        description="Cache TTL in milliseconds (default: 1 hour)"
    )
    public_path: str = "public"
    statistics_enabled: bool = False
    manifest_path: str = "manifest.json"
    redirect_port: int = Field(
        default=DEFAULT_HTTP_PORT,
        ge=1,
        le=65535,
        description="Port for the HTTP to HTTPS redirect listener"
    )
    host: str = "0.0.0.0"

    @property
    def cache_duration_sec(self) -> float:
        """Cache duration in seconds."""
        return self.cache_duration_ms / 1000


def _get_str(environ: Mapping[str, str], name: str, default: str) -> str:
    value = environ.get(name)
    return default if value is None else value


def _get_bool(environ: Mapping[str, str], name: str, default: bool = False) -> bool:
    # Only the literal text "true" enables a flag
    value = environ.get(name)
    return default if value is None else value == "true"


def _get_int(environ: Mapping[str, str], name: str, default: int) -> int:
    value = environ.get(name)
    if value is None:
        return default

    # int() alone would also take "8_0", " 80 " and non-ASCII digits
    if not DECIMAL_PATTERN.fullmatch(value):
        raise ConfigurationError(
            f"expected a decimal integer, got {value!r}",
            variable=name
        )

    return int(value, 10)


def load_config(environ: Optional[Mapping[str, str]] = None) -> ServerConfig:
    """
    Build the server configuration from a key-value mapping.

    Args:
        environ: Variables to read. If None, uses os.environ.

    Returns:
        Validated ServerConfig instance

    Raises:
        ConfigurationError: If a numeric value is malformed or out of range
    """
    if environ is None:
        environ = os.environ

    try:
        config = ServerConfig(
            hostname=_get_str(environ, "SERVER_HOSTNAME", DEFAULT_HOSTNAME),
            port=_get_int(environ, "SERVER_PORT", DEFAULT_HTTP_PORT),
            ssl=SslConfig(
                enabled=_get_bool(environ, "SERVER_SSL_ENABLED"),
                cert=_get_str(environ, "SERVER_SSL_CERT", "cert.pem"),
                key=_get_str(environ, "SERVER_SSL_KEY", "key.pem"),
            ),
            auth=AuthConfig(
                enabled=_get_bool(environ, "SERVER_BASIC_AUTH_ENABLED"),
                username=_get_str(
                    environ, "SERVER_BASIC_AUTH_USERNAME", DEFAULT_USERNAME),
                password=_get_str(environ, "SERVER_BASIC_AUTH_PASSWORD", ""),
            ),
            cache_duration_ms=_get_int(
                environ, "SERVER_CACHE_DURATION_MS", DEFAULT_CACHE_DURATION_MS),
            public_path=_get_str(environ, "SERVER_PUBLIC_PATH", "public"),
            statistics_enabled=_get_bool(environ, "SERVER_STATISTICS_ENABLED"),
            manifest_path=_get_str(
                environ, "SERVER_MANIFEST_PATH", "manifest.json"),
            redirect_port=_get_int(
                environ, "SERVER_REDIRECT_PORT", DEFAULT_HTTP_PORT),
            host=_get_str(environ, "SERVER_BIND_HOST", "0.0.0.0"),
        )
    except ValidationError as e:
        raise ConfigurationError(f"validation failed: {e}")

    return config


def load_dotenv_file(path: Optional[str] = None) -> bool:
    """
    Load a .env file into the process environment.

    Variables already present in the environment are kept.

    Args:
        path: Path to the .env file (default: .env in the working directory)

    Returns:
        True if a file was found and loaded, False otherwise
    """
    env_path = Path(path) if path else Path.cwd() / ".env"

    if not env_path.is_file():
        logger.debug(f"No .env file at '{env_path}'")
        return False

    load_dotenv(env_path, override=False)
    logger.info(f"Environment loaded from '{env_path}'")
    return True
