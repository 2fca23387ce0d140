"""Identifier derivation for entity and module types.

Pure, deterministic helpers mapping dotted type names to the short identifiers
used throughout the registry. No I/O and no caching.

Examples::

    entity_identifier("App.Entity.Inventory.Server")                       # "InventoryServer"
    entity_identifier("Plugins.Acme.Jamf.Entity.Inventory.Ebook")          # "InventoryEbook"
    entity_identifier("Proxies.__CG__.App.Entity.Inventory.Server")        # "InventoryServer"
    module_identifier("App.Modules.Inventory")                             # "Inventory"

Segments between the module and the final name are sub-modules; they do not
take part in the identifier.
"""

from __future__ import annotations

from dataclasses import dataclass

from .config import NamespaceConfig
from .exceptions import MalformedTypePlacementError

DEFAULT_NAMESPACE = NamespaceConfig()

# Offsets of the module segment inside an entity type name
CORE_MODULE_OFFSET = 2  # App.Entity.MODULE.Name
PLUGIN_MODULE_OFFSET = 4  # Plugins.Vendor.Plugin.Entity.MODULE.Name

MIN_ENTITY_SEGMENTS = 4
MIN_MODULE_SEGMENTS = 3


@dataclass(frozen=True)
class EntityPlacement:
    """Where an entity type sits in the namespace."""

    owner: str
    module: str
    name: str
    is_plugin: bool

    @property
    def identifier(self) -> str:
        return self.module + self.name


def normalize_type_name(type_name: str, namespace: NamespaceConfig = DEFAULT_NAMESPACE) -> str:
    """Strip the lazy-loading proxy prefix so the author's declared type remains."""
    prefix = namespace.proxy_prefix
    while prefix and type_name.startswith(prefix):
        type_name = type_name[len(prefix) :]
    return type_name


def split_type_name(type_name: str, namespace: NamespaceConfig = DEFAULT_NAMESPACE) -> list[str]:
    """Normalize and split a type name into its namespace segments."""
    normalized = normalize_type_name(type_name, namespace)
    return [part for part in normalized.split(namespace.separator) if part]


def is_plugin_type(type_name: str, namespace: NamespaceConfig = DEFAULT_NAMESPACE) -> bool:
    parts = split_type_name(type_name, namespace)
    return bool(parts) and parts[0] == namespace.plugin_authority


def is_recognized_type(type_name: str, namespace: NamespaceConfig = DEFAULT_NAMESPACE) -> bool:
    """True if the type lives under the core or the plugin authority."""
    parts = split_type_name(type_name, namespace)
    return bool(parts) and parts[0] in (namespace.core_authority, namespace.plugin_authority)


def entity_identifier(type_name: str, namespace: NamespaceConfig = DEFAULT_NAMESPACE) -> str:
    """Derive the short identifier of an entity type: module segment + final segment.

    Raises:
        MalformedTypePlacementError: The name is too short to hold a module segment.
    """
    parts = split_type_name(type_name, namespace)
    offset = PLUGIN_MODULE_OFFSET if parts and parts[0] == namespace.plugin_authority else CORE_MODULE_OFFSET
    if len(parts) <= offset + 1:
        raise MalformedTypePlacementError(
            f"Type '{type_name}' has no module segment at position {offset}",
            type_name=type_name,
        )
    return parts[offset] + parts[-1]


def module_identifier(type_name: str, namespace: NamespaceConfig = DEFAULT_NAMESPACE) -> str:
    """Derive the short identifier of a module type: its final segment."""
    parts = split_type_name(type_name, namespace)
    if not parts:
        raise MalformedTypePlacementError(f"Empty module type name: '{type_name}'", type_name=type_name)
    return parts[-1]


def owner_of(type_name: str, namespace: NamespaceConfig = DEFAULT_NAMESPACE) -> str:
    """Owning authority of a type: the core root, or ``Vendor.Plugin`` for plugins."""
    parts = split_type_name(type_name, namespace)
    if parts and parts[0] == namespace.plugin_authority:
        if len(parts) < 3:
            raise MalformedTypePlacementError(
                f"Plugin type '{type_name}' does not name its vendor and plugin",
                type_name=type_name,
            )
        return f"{parts[1]}.{parts[2]}"
    if parts and parts[0] == namespace.core_authority:
        return parts[0]
    raise MalformedTypePlacementError(
        f"Type '{type_name}' is outside the core and plugin namespaces",
        type_name=type_name,
    )


def parse_entity_placement(type_name: str, namespace: NamespaceConfig = DEFAULT_NAMESPACE) -> EntityPlacement:
    """Validate the namespace shape of an entity type and split it.

    Core shape: ``App.Entity.Module[.Sub...].Name`` (at least 4 segments).
    Plugin shape: ``Plugins.Vendor.Plugin.Entity.Module[.Sub...].Name``.

    Raises:
        MalformedTypePlacementError: The shape does not match either layout.
    """
    parts = split_type_name(type_name, namespace)
    if len(parts) < MIN_ENTITY_SEGMENTS:
        raise MalformedTypePlacementError(
            f"Entity type '{type_name}' needs at least {MIN_ENTITY_SEGMENTS} segments",
            type_name=type_name,
        )

    owner = owner_of(type_name, namespace)
    is_plugin = parts[0] == namespace.plugin_authority
    offset = PLUGIN_MODULE_OFFSET if is_plugin else CORE_MODULE_OFFSET
    if len(parts) <= offset + 1:
        raise MalformedTypePlacementError(
            f"Entity type '{type_name}' has no module segment at position {offset}",
            type_name=type_name,
        )

    return EntityPlacement(owner=owner, module=parts[offset], name=parts[-1], is_plugin=is_plugin)


def plugin_directory_name(owner: str) -> str:
    """Directory name of a plugin owner (``Acme.PluginJamf`` -> ``jamf``)."""
    plugin = owner.split(".")[-1]
    if plugin.startswith("Plugin"):
        plugin = plugin[len("Plugin") :]
    return plugin.lower()


def entity_display_name_key(identifier: str) -> str:
    return f"entity.{identifier.lower()}.name"


def module_display_name_key(identifier: str) -> str:
    return f"module.{identifier.lower()}.name"


__all__ = [
    "DEFAULT_NAMESPACE",
    "EntityPlacement",
    "entity_display_name_key",
    "entity_identifier",
    "is_plugin_type",
    "is_recognized_type",
    "module_display_name_key",
    "module_identifier",
    "normalize_type_name",
    "owner_of",
    "parse_entity_placement",
    "plugin_directory_name",
    "split_type_name",
]
