"""Configuration contract for the entity registry.

This module provides Pydantic-validated configuration models for the registry
(LOG_LEVEL, REDIS_URL, namespace layout, override policy, template locations).

Registry code MUST receive these models explicitly (constructor arguments).
Direct os.environ/os.getenv usage is only allowed in
load_registry_config_from_env().
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class NamespaceConfig(BaseModel):
    """Dotted namespace layout used to classify and identify types.

    Core entities live under ``{core_authority}.Entity.{Module}...{Name}``,
    plugin entities under
    ``{plugin_authority}.{Vendor}.{Plugin}.Entity.{Module}...{Name}``.
    """

    model_config = {"extra": "ignore", "frozen": True}

    core_authority: str = Field(
        default="App",
        description="First path segment of every core-owned type",
    )
    plugin_authority: str = Field(
        default="Plugins",
        description="First path segment of every plugin-owned type",
    )
    proxy_prefix: str = Field(
        default="Proxies.__CG__.",
        description="Prefix of dynamically generated lazy-loading wrapper types",
    )
    separator: str = Field(
        default=".",
        description="Namespace separator inside type names",
    )

    @field_validator("core_authority", "plugin_authority", "separator")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Namespace segments must not be empty")
        return v


class RegistryConfig(BaseModel):
    """Configuration for an EntityRegistry instance.

    RULE: All settings MUST come through this config object.
    Direct os.environ/os.getenv is FORBIDDEN outside
    load_registry_config_from_env().
    """

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level for the registry",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    # Cache backend
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL; None selects the in-memory backend",
    )
    cache_prefix: str = Field(
        default="entityregistry",
        description="Key prefix for every registry entry in the cache backend",
    )
    cache_ttl_seconds: Optional[int] = Field(
        default=None,
        description="TTL for cached registry entries (None = no expiry)",
    )

    # Discovery
    namespace: NamespaceConfig = Field(
        default_factory=NamespaceConfig,
        description="Namespace layout for core and plugin types",
    )
    source_roots: list[str] = Field(
        default_factory=lambda: ["src", "plugins"],
        description="Declaring-path fragments a candidate must live under",
    )

    # Override policy
    allow_plugin_override: bool = Field(
        default=True,
        description="Allow plugin entities to replace core entities with the same identifier",
    )

    # Form templates
    templates_dir: str = Field(
        default="templates",
        description="Core template directory searched for entity form overrides",
    )
    plugins_dir: str = Field(
        default="plugins",
        description="Directory holding one sub-directory per installed plugin",
    )
    default_form_template: str = Field(
        default="elements/_crud_form_tab_embedded.html",
        description="Form template used when no override exists",
    )

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must start with redis://, rediss://, or unix://")
        return v

    @field_validator("cache_ttl_seconds")
    @classmethod
    def validate_ttl(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("cache_ttl_seconds must be positive")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    model_config = {
        "use_enum_values": True,
        "extra": "forbid",  # Prevent accidental extra fields
    }


def load_registry_config_from_env() -> RegistryConfig:
    """Load registry configuration from environment variables.

    This is the ONLY place where os.getenv is allowed for registry settings.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    - REDIS_URL: Redis connection URL
    - ENTITY_REGISTRY_CACHE_PREFIX: Cache key prefix
    - ENTITY_REGISTRY_CACHE_TTL: TTL in seconds for cached entries
    - ENTITY_REGISTRY_SOURCE_ROOTS: Comma-separated declaring-path fragments
    - ENTITY_REGISTRY_ALLOW_OVERRIDE: Allow plugin overrides (true/false)
    - ENTITY_REGISTRY_TEMPLATES_DIR: Core template directory
    - ENTITY_REGISTRY_PLUGINS_DIR: Plugin directory
    - ENTITY_REGISTRY_CORE_AUTHORITY: Core namespace root
    - ENTITY_REGISTRY_PLUGIN_AUTHORITY: Plugin namespace root

    Returns:
        RegistryConfig instance with values from environment or defaults.
    """
    import os

    _TRUTHY = ("true", "1", "yes", "on")

    roots_raw = os.getenv("ENTITY_REGISTRY_SOURCE_ROOTS", "src,plugins")
    source_roots = [r.strip() for r in roots_raw.split(",") if r.strip()]

    ttl_raw = os.getenv("ENTITY_REGISTRY_CACHE_TTL", "")

    namespace = NamespaceConfig(
        core_authority=os.getenv("ENTITY_REGISTRY_CORE_AUTHORITY", "App"),
        plugin_authority=os.getenv("ENTITY_REGISTRY_PLUGIN_AUTHORITY", "Plugins"),
    )

    return RegistryConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=os.getenv("LOG_JSON", "false").lower() in _TRUTHY,
        redis_url=os.getenv("REDIS_URL"),
        cache_prefix=os.getenv("ENTITY_REGISTRY_CACHE_PREFIX", "entityregistry"),
        cache_ttl_seconds=int(ttl_raw) if ttl_raw else None,
        namespace=namespace,
        source_roots=source_roots,
        allow_plugin_override=os.getenv("ENTITY_REGISTRY_ALLOW_OVERRIDE", "true").lower() in _TRUTHY,
        templates_dir=os.getenv("ENTITY_REGISTRY_TEMPLATES_DIR", "templates"),
        plugins_dir=os.getenv("ENTITY_REGISTRY_PLUGINS_DIR", "plugins"),
    )


__all__ = [
    "LogLevel",
    "NamespaceConfig",
    "RegistryConfig",
    "load_registry_config_from_env",
]
