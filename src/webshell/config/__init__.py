"""Configuration management for webshell.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides for deployment-specific values
like bearer tokens.
"""

from webshell.config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]
