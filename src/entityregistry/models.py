"""Registry records.

These are Pydantic models; the cache backend stores their JSON dumps.
Rights and tags are kept as sorted lists so dumps are stable across builds.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, RootModel


class ModuleRecord(BaseModel):
    """A module and the aggregate of its entities, as listed in the manifest."""

    identifier: str
    type_name: str
    owner: str
    rights: list[str] = Field(default_factory=list)
    entities: list[str] = Field(default_factory=list)


class ModuleMetadata(BaseModel):
    """Standalone per-identifier entry for a module."""

    kind: Literal["module"] = "module"
    identifier: str
    type_name: str
    owner: str
    display_name_key: str


class EntityRecord(BaseModel):
    """Per-identifier entry for an entity.

    ``rights`` is empty when ``rights_inherited_from`` is set; the real rights
    live on that target entity.
    """

    kind: Literal["entity"] = "entity"
    identifier: str
    type_name: str
    owner: str
    module: str
    name: str
    form_template: str
    capability_tags: list[str] = Field(default_factory=list)
    rights: list[str] = Field(default_factory=list)
    rights_inherited_from: Optional[str] = None
    is_relation: bool = False
    is_mapped_superclass: bool = False
    has_menu_item: bool = True
    settings_group: Optional[str] = None
    display_name_key: str
    mapped_superclasses: list[str] = Field(default_factory=list)

    @property
    def rights_redirected(self) -> bool:
        return self.rights_inherited_from is not None


class Manifest(BaseModel):
    """Which identifiers exist: modules with their entities, and entity -> type name."""

    modules: dict[str, ModuleRecord] = Field(default_factory=dict)
    entities: dict[str, str] = Field(default_factory=dict)

    def entity_identifier_for(self, type_name: str) -> Optional[str]:
        for identifier, registered in self.entities.items():
            if registered == type_name:
                return identifier
        return None

    def module_identifier_for(self, type_name: str) -> Optional[str]:
        for identifier, module in self.modules.items():
            if module.type_name == type_name:
                return identifier
        return None


class RightsManifestModule(BaseModel):
    rights: list[str] = Field(default_factory=list)
    entities: dict[str, list[str]] = Field(default_factory=dict)


class RightsManifest(RootModel[dict[str, RightsManifestModule]]):
    """module identifier -> {module rights, entity identifier -> rights}."""

    root: dict[str, RightsManifestModule] = Field(default_factory=dict)

    def module(self, identifier: str) -> RightsManifestModule:
        return self.root.setdefault(identifier, RightsManifestModule())


def metadata_from_cache(data: Any) -> EntityRecord | ModuleMetadata:
    """Rebuild a per-identifier record from its cached dump."""
    if isinstance(data, dict) and data.get("kind") == "module":
        return ModuleMetadata.model_validate(data)
    return EntityRecord.model_validate(data)


__all__ = [
    "EntityRecord",
    "Manifest",
    "ModuleMetadata",
    "ModuleRecord",
    "RightsManifest",
    "RightsManifestModule",
    "metadata_from_cache",
]
