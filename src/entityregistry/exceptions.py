"""Unified exception hierarchy for the entity registry.

All registry failures inherit from EntityRegistryError. This module provides:
- Base exception hierarchy with stable error codes
- ErrorRegistry for mapping codes back to exception classes

Only UnknownIdentifierError (and its subclasses) is meant to reach callers of
the registry facade. The other categories are raised internally, caught per
candidate or per call, and downgraded to an empty / skipped result.

Usage:
    from entityregistry.exceptions import (
        EntityRegistryError,
        UnknownEntityIdentifierError,
    )

    try:
        registry.get_metadata("InventoryServer")
    except UnknownEntityIdentifierError as e:
        logger.warning("%s (%s)", e.message, e.code)
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "EntityRegistryError",
    "ConfigurationError",
    "UnknownIdentifierError",
    "UnknownEntityIdentifierError",
    "UnknownModuleIdentifierError",
    "MalformedTypePlacementError",
    "ModuleNotYetRegisteredError",
    "IdentifierCollisionError",
    "StructuralResolutionError",
    "CacheBackendError",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
]

# ---- Exception Hierarchy ----------------------------------------------------


class EntityRegistryError(Exception):
    """Base exception for the entity registry.

    Attributes:
        code: Stable error code string (e.g. "UNKNOWN_IDENTIFIER").
        message: Human-readable error description.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal registry error occurred"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(EntityRegistryError):
    """Invalid or missing configuration."""

    code: str = "CONFIGURATION_ERROR"


class UnknownIdentifierError(EntityRegistryError):
    """Requested identifier is absent from the manifest or per-identifier cache."""

    code: str = "UNKNOWN_IDENTIFIER"

    def __init__(self, identifier: str, message: str | None = None, **kwargs: Any) -> None:
        self.identifier = identifier
        super().__init__(message or f"Unknown identifier: {identifier}", identifier=identifier, **kwargs)


class UnknownEntityIdentifierError(UnknownIdentifierError):
    """No entity is registered under the identifier."""

    code: str = "UNKNOWN_ENTITY_IDENTIFIER"

    def __init__(self, identifier: str, **kwargs: Any) -> None:
        super().__init__(identifier, f"Unknown entity identifier: {identifier}", **kwargs)


class UnknownModuleIdentifierError(UnknownIdentifierError):
    """No module is registered under the identifier."""

    code: str = "UNKNOWN_MODULE_IDENTIFIER"

    def __init__(self, identifier: str, **kwargs: Any) -> None:
        super().__init__(identifier, f"Unknown module identifier: {identifier}", **kwargs)


class MalformedTypePlacementError(EntityRegistryError):
    """Candidate type's namespace does not match the expected shape."""

    code: str = "MALFORMED_TYPE_PLACEMENT"


class ModuleNotYetRegisteredError(EntityRegistryError):
    """Entity references a module that is not in the manifest yet."""

    code: str = "MODULE_NOT_REGISTERED"


class IdentifierCollisionError(EntityRegistryError):
    """Two different types derive the same identifier and neither may replace the other."""

    code: str = "IDENTIFIER_COLLISION"


class StructuralResolutionError(EntityRegistryError):
    """Type introspection failed (type cannot be loaded or inspected)."""

    code: str = "STRUCTURAL_RESOLUTION_ERROR"


class CacheBackendError(EntityRegistryError):
    """Read or write against the cache backend failed."""

    code: str = "CACHE_BACKEND_ERROR"


# ---- Error Registry for Code Mapping ----------------------------------------

_E = TypeVar("_E", bound=type[EntityRegistryError])


class ErrorRegistry:
    """Registry for mapping stable error codes to exception classes."""

    def __init__(self) -> None:
        self._errors: dict[str, type[EntityRegistryError]] = {}

    def register(self, code: str, error_cls: type[EntityRegistryError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[EntityRegistryError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[EntityRegistryError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("PLUGIN_REJECTED")
        class PluginRejectedError(EntityRegistryError):
            code = "PLUGIN_REJECTED"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


# Register base errors
error_registry.register("INTERNAL_ERROR", EntityRegistryError)
error_registry.register("CONFIGURATION_ERROR", ConfigurationError)
error_registry.register("UNKNOWN_IDENTIFIER", UnknownIdentifierError)
error_registry.register("UNKNOWN_ENTITY_IDENTIFIER", UnknownEntityIdentifierError)
error_registry.register("UNKNOWN_MODULE_IDENTIFIER", UnknownModuleIdentifierError)
error_registry.register("MALFORMED_TYPE_PLACEMENT", MalformedTypePlacementError)
error_registry.register("MODULE_NOT_REGISTERED", ModuleNotYetRegisteredError)
error_registry.register("IDENTIFIER_COLLISION", IdentifierCollisionError)
error_registry.register("STRUCTURAL_RESOLUTION_ERROR", StructuralResolutionError)
error_registry.register("CACHE_BACKEND_ERROR", CacheBackendError)
