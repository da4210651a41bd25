"""Configuration management for webshell.

Loads settings from a YAML configuration file with environment variable
overrides (``WEBSHELL_`` prefix, ``__`` as the nested delimiter).
Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/webshell.yaml")


class RunnerConfig(BaseModel):
    disabled_primitives: list[str] = Field(
        default_factory=list,
        description="Dotted names of process primitives the host forbids (e.g. 'subprocess.run')",
    )
    time_limit: float | None = Field(default=300.0, gt=0)
    relax_memory_limit: bool = Field(default=True)
    encoding: str = Field(default="utf-8")
    errors: str = Field(default="replace")


class EndpointConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080, ge=1, le=65535)


class AuthConfig(BaseModel):
    tokens: dict[str, str] = Field(
        default_factory=dict, description="Bearer token -> caller identity"
    )
    runshell_callers: list[str] | None = Field(
        default=None,
        description="Callers holding the run-shell privilege; None grants it to every authenticated caller",
    )


class PreferencesConfig(BaseModel):
    backend: Literal["memory", "yaml"] = Field(default="memory")
    path: str = Field(default="webshell-preferences.yaml")


class AuditConfig(BaseModel):
    file: str | None = Field(default=None, description="Optional JSON-lines audit file")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the webshell service.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "WEBSHELL_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    endpoint: EndpointConfig = Field(default_factory=EndpointConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    preferences: PreferencesConfig = Field(default_factory=PreferencesConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Map the single-token shortcut onto the auth section.

    ``WEBSHELL_TOKEN`` + ``WEBSHELL_CALLER`` register one bearer token
    without writing a config file.
    """
    token = os.environ.get("WEBSHELL_TOKEN", "")
    caller = os.environ.get("WEBSHELL_CALLER", "admin")
    if not token:
        return
    auth = yaml_data.setdefault("auth", {})
    tokens = auth.setdefault("tokens", {})
    tokens.setdefault(token, caller)
