"""Registry facade: read-mostly queries over the cached manifest.

The manifest is built lazily. The first read that finds no ``"manifest"`` key
in the cache backend runs the ManifestBuilder over the type universe; every
later read is served from the cache until ``clear()``.

Failure policy:
- Unknown identifiers raise ``UnknownIdentifierError`` (or a subclass).
- Cache backend failures degrade ``get_manifest`` / ``get_all_rights`` /
  ``clear`` to an empty or False result.
- Malformed, colliding or unloadable candidates are skipped during build;
  a build that fails outright leaves ``get_manifest`` returning an empty manifest.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional, Protocol, Union, runtime_checkable

from pydantic import ValidationError

from .builder import BuildReport, ManifestBuilder
from .cache import MANIFEST_KEY, RIGHTS_MANIFEST_KEY, CacheBackend, create_cache_backend
from .config import RegistryConfig
from .exceptions import (
    CacheBackendError,
    ConfigurationError,
    EntityRegistryError,
    MalformedTypePlacementError,
    UnknownEntityIdentifierError,
    UnknownIdentifierError,
    UnknownModuleIdentifierError,
)
from .identifiers import entity_identifier, module_identifier, normalize_type_name
from .introspection import FactsCache, TypeIntrospector
from .models import EntityRecord, Manifest, ModuleMetadata, RightsManifest, metadata_from_cache
from .universe import TypeUniverseSource

logger = logging.getLogger(__name__)

FIELDS_KEY_PREFIX = "fields:"

TypeRef = Union[str, type, Any]
ClearListener = Callable[["EntityRegistry"], None]


@runtime_checkable
class FieldProvider(Protocol):
    """Describes the persisted fields of an entity type (name -> field description)."""

    def fields_for(self, type_name: str) -> dict[str, Any]: ...


class EntityRegistry:
    """Entity and module registry backed by a cache backend.

    Args:
        introspector: Answers structural questions about dotted type names.
        universe: Supplies candidate types for the lazy build.
        cache: Cache backend; defaults to ``create_cache_backend(config)``.
        config: Registry configuration; defaults to ``RegistryConfig()``.
        field_provider: Optional source for ``get_fields()``.

    Example::

        registry = EntityRegistry(ClassIntrospector(index), StaticTypeUniverse(candidates))
        registry.get_entity_identifier("App.Entity.Inventory.Server")   # "InventoryServer"
        registry.get_entity_rights("InventoryServer")
        # frozenset({"view", "edit", "create", "delete", "purge"})
    """

    def __init__(
        self,
        introspector: TypeIntrospector,
        universe: TypeUniverseSource,
        cache: Optional[CacheBackend] = None,
        config: Optional[RegistryConfig] = None,
        field_provider: Optional[FieldProvider] = None,
    ) -> None:
        self.config = config or RegistryConfig()
        self.namespace = self.config.namespace
        self.introspector = introspector
        self.universe = universe
        self.cache = cache if cache is not None else create_cache_backend(self.config)
        self.facts = FactsCache(introspector)
        self.builder = ManifestBuilder(self.cache, self.facts, self.config)
        self.field_provider = field_provider
        self._clear_listeners: list[ClearListener] = []

    # ── Manifest ────────────────────────────────────────

    def build(self) -> BuildReport:
        """Build the manifest from the full type universe."""
        return self.builder.build(self.universe.all_candidate_types())

    def get_manifest(self) -> Manifest:
        """Cached manifest, building it on a cold cache. Never raises."""
        try:
            data = self.cache.get(MANIFEST_KEY)
            if data is None:
                logger.info("Entity manifest missing from cache, building")
                self.build()
                data = self.cache.get(MANIFEST_KEY)
            return Manifest.model_validate(data or {})
        except EntityRegistryError as e:
            logger.error("Entity manifest unavailable: %s (%s)", e.message, e.code)
        except ValidationError as e:
            logger.error("Cached entity manifest is invalid: %s", e)
        except Exception:
            logger.exception("Entity manifest build failed")
        return Manifest()

    def get_all_rights(self) -> dict[str, dict[str, Any]]:
        """Rights manifest: module -> ``{"rights": [...], "entities": {id: [...]}}``.

        Entities without rights of their own (redirected ones) are left out.
        Returns ``{}`` when the cache backend fails.
        """
        self.get_manifest()
        try:
            rights = RightsManifest.model_validate(self.cache.get(RIGHTS_MANIFEST_KEY) or {})
        except CacheBackendError as e:
            logger.error("Rights manifest unavailable: %s", e.message)
            return {}
        except ValidationError as e:
            logger.error("Cached rights manifest is invalid: %s", e)
            return {}

        result: dict[str, dict[str, Any]] = {}
        for module_id, module in rights.root.items():
            result[module_id] = {
                "rights": list(module.rights),
                "entities": {identifier: list(r) for identifier, r in module.entities.items() if r},
            }
        return result

    # ── Registration ────────────────────────────────────

    def register_entity(self, types: TypeRef | Iterable[TypeRef]) -> BuildReport:
        """Register entity types outside the discovered source roots."""
        self.get_manifest()
        return self.builder.register_entities(self._type_names(types))

    def register_module(self, types: TypeRef | Iterable[TypeRef]) -> BuildReport:
        """Register module types outside the discovered source roots."""
        self.get_manifest()
        return self.builder.register_modules(self._type_names(types))

    # ── Invalidation ────────────────────────────────────

    def add_clear_listener(self, listener: ClearListener) -> None:
        """Call ``listener(registry)`` right before the cache is cleared."""
        self._clear_listeners.append(listener)

    def remove_clear_listener(self, listener: ClearListener) -> None:
        if listener in self._clear_listeners:
            self._clear_listeners.remove(listener)

    def clear(self) -> bool:
        """Drop all cached registry state. Returns False if the backend failed."""
        for listener in list(self._clear_listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Registry clear listener %r failed", listener)

        self.facts.clear()
        try:
            cleared = bool(self.cache.clear())
        except CacheBackendError as e:
            logger.error("Registry cache clear failed: %s", e.message)
            return False
        logger.info("Entity registry cleared")
        return cleared

    # ── Identifier lookups ──────────────────────────────

    def get_entity_identifier(self, type_or_instance: TypeRef) -> str:
        """Derive the identifier of an entity type, class or instance.

        Raises:
            MalformedTypePlacementError: The type has no entity namespace shape.
        """
        return entity_identifier(self.type_name_of(type_or_instance), self.namespace)

    def get_module_identifier(self, type_name: TypeRef) -> str:
        return module_identifier(self.type_name_of(type_name), self.namespace)

    def get_entity_from_identifier(self, identifier: str) -> str:
        """Type name registered under an entity identifier."""
        type_name = self.get_manifest().entities.get(identifier)
        if type_name is None:
            raise UnknownEntityIdentifierError(identifier)
        return type_name

    def get_module_from_identifier(self, identifier: str) -> str:
        """Type name registered under a module identifier."""
        module = self.get_manifest().modules.get(identifier)
        if module is None:
            raise UnknownModuleIdentifierError(identifier)
        return module.type_name

    def get_runtime_entity_class(self, type_name: TypeRef) -> str:
        """Currently active type for ``type_name``, following plugin overrides.

        Unregistered or malformed types come back unchanged.
        """
        requested = type_name if isinstance(type_name, str) else self.type_name_of(type_name)
        try:
            identifier = self.get_entity_identifier(requested)
        except MalformedTypePlacementError:
            return requested
        return self.get_manifest().entities.get(identifier, requested)

    def is_module_registered(self, type_name: TypeRef) -> bool:
        return self.get_manifest().module_identifier_for(self.type_name_of(type_name)) is not None

    def is_entity_class_registered(self, type_name: TypeRef) -> bool:
        return self.type_name_of(type_name) in self.get_manifest().entities.values()

    def is_entity_identifier_registered(self, identifier: str) -> bool:
        return identifier in self.get_manifest().entities

    # ── Metadata ────────────────────────────────────────

    def get_metadata(self, identifier: str) -> EntityRecord | ModuleMetadata:
        """Per-identifier record.

        Raises:
            UnknownIdentifierError: No entry is cached under ``identifier``, even
                when the manifest lists it.
        """
        if identifier in (MANIFEST_KEY, RIGHTS_MANIFEST_KEY) or identifier.startswith(FIELDS_KEY_PREFIX):
            raise UnknownIdentifierError(identifier)

        self.get_manifest()
        try:
            data = self.cache.get(identifier)
        except CacheBackendError as e:
            raise UnknownIdentifierError(identifier, f"Metadata for '{identifier}' unavailable: {e.message}") from e
        if not data:
            raise UnknownIdentifierError(identifier)
        try:
            return metadata_from_cache(data)
        except ValidationError as e:
            raise UnknownIdentifierError(identifier, f"Cached metadata for '{identifier}' is invalid") from e

    def get_entity_metadata(self, identifier: str) -> EntityRecord:
        try:
            record = self.get_metadata(identifier)
        except UnknownIdentifierError as e:
            raise UnknownEntityIdentifierError(identifier) from e
        if not isinstance(record, EntityRecord):
            raise UnknownEntityIdentifierError(identifier)
        return record

    def get_module_metadata(self, identifier: str) -> ModuleMetadata:
        try:
            record = self.get_metadata(identifier)
        except UnknownIdentifierError as e:
            raise UnknownModuleIdentifierError(identifier) from e
        if not isinstance(record, ModuleMetadata):
            raise UnknownModuleIdentifierError(identifier)
        return record

    def get_entity_module(self, identifier: str) -> str:
        return self.get_entity_metadata(identifier).module

    def get_entity_owner(self, identifier: str) -> str:
        return self.get_entity_metadata(identifier).owner

    def get_module_owner(self, identifier: str) -> str:
        return self.get_module_metadata(identifier).owner

    def get_entity_rights(self, identifier: str) -> frozenset[str]:
        """Rights stored on the entity record; empty when redirected elsewhere."""
        return frozenset(self.get_entity_metadata(identifier).rights)

    def get_module_rights(self, identifier: str) -> frozenset[str]:
        """Union of the rights of every non-redirected entity in the module."""
        module = self.get_manifest().modules.get(identifier)
        if module is None:
            raise UnknownModuleIdentifierError(identifier)
        return frozenset(module.rights)

    def get_entity_traits(self, identifier: str) -> frozenset[str]:
        return frozenset(self.get_entity_metadata(identifier).capability_tags)

    def get_is_entity_relation(self, identifier: str) -> bool:
        return self.get_entity_metadata(identifier).is_relation

    def get_form_template(self, identifier: str) -> str:
        return self.get_entity_metadata(identifier).form_template

    def get_entity_settings_group(self, identifier: str) -> Optional[str]:
        return self.get_entity_metadata(identifier).settings_group

    def get_display_name(self, identifier: str) -> str:
        """Translation key of an entity or module display name."""
        return self.get_metadata(identifier).display_name_key

    def get_mapped_superclasses_for_entity(self, identifier: str) -> list[str]:
        return list(self.get_entity_metadata(identifier).mapped_superclasses)

    # ── Listings ────────────────────────────────────────

    def get_entities_by_owner(self, owner: str) -> list[str]:
        identifiers = []
        for identifier in self.get_manifest().entities:
            try:
                if self.get_entity_owner(identifier) == owner:
                    identifiers.append(identifier)
            except UnknownIdentifierError:
                logger.warning("Entity '%s' is in the manifest but has no cached record", identifier)
        return identifiers

    def get_modules_by_owner(self, owner: str) -> list[str]:
        return [m.identifier for m in self.get_manifest().modules.values() if m.owner == owner]

    def get_entities_by_module(self, identifier: str) -> list[str]:
        module = self.get_manifest().modules.get(identifier)
        if module is None:
            raise UnknownModuleIdentifierError(identifier)
        return list(module.entities)

    def get_child_entities_for_mapped_superclass(self, type_name: TypeRef) -> list[str]:
        """Identifiers of every entity listing ``type_name`` among its mapped superclasses."""
        superclass = self.type_name_of(type_name)
        children = []
        for identifier in self.get_manifest().entities:
            try:
                record = self.get_entity_metadata(identifier)
            except UnknownIdentifierError:
                logger.warning("Entity '%s' is in the manifest but has no cached record", identifier)
                continue
            if superclass in record.mapped_superclasses:
                children.append(identifier)
        return children

    # ── Fields ──────────────────────────────────────────

    def get_fields(self, identifier: str) -> dict[str, Any]:
        """Field descriptions of an entity, cached under ``fields:<type_name>``.

        Raises:
            UnknownEntityIdentifierError: ``identifier`` is not a registered entity.
            ConfigurationError: No FieldProvider was configured.
        """
        record = self.get_entity_metadata(identifier)
        if self.field_provider is None:
            raise ConfigurationError("EntityRegistry has no field_provider")

        key = FIELDS_KEY_PREFIX + record.type_name
        try:
            cached = self.cache.get(key)
        except CacheBackendError as e:
            logger.warning("Field cache read failed for %s: %s", identifier, e.message)
            cached = None
        if cached is not None:
            return cached

        fields = dict(self.field_provider.fields_for(record.type_name))
        try:
            self.cache.set(key, fields)
        except CacheBackendError as e:
            logger.warning("Field cache write failed for %s: %s", identifier, e.message)
        return fields

    # ── Helpers ─────────────────────────────────────────

    def type_name_of(self, type_or_instance: TypeRef) -> str:
        """Normalized dotted type name of a name, class or instance."""
        if isinstance(type_or_instance, str):
            name = type_or_instance
        else:
            name = self.introspector.type_name_of(type_or_instance)
        return normalize_type_name(name, self.namespace)

    def _type_names(self, types: TypeRef | Iterable[TypeRef]) -> list[str]:
        if isinstance(types, (str, type)) or not isinstance(types, Iterable):
            types = [types]
        return [self.type_name_of(t) for t in types]


__all__ = [
    "ClearListener",
    "EntityRegistry",
    "FieldProvider",
]
