"""Manifest builder: turns candidate types into the manifest and per-identifier records.

Build order is modules first, then entities: an entity is attached to its
module record at registration time, so the module must already exist.

Every write goes through one ``CacheBackend.set_many`` call per registration
batch. That call carries the per-identifier entries, the manifest and the
rights manifest, so readers never see a manifest without its rights manifest.
A full build stages modules and entities in a single batch, so no reader ever
sees a manifest with modules but no entities.

A candidate that fails for any reason (bad placement, unloadable type, host
constants of the wrong type) is logged and skipped; the rest of the batch is
still written.

Concurrent batches are last-writer-wins; each batch is a pure function of the
type universe, so racing cold-cache builds store equivalent results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError

from .cache import MANIFEST_KEY, RIGHTS_MANIFEST_KEY, CacheBackend
from .config import RegistryConfig
from .exceptions import (
    EntityRegistryError,
    IdentifierCollisionError,
    MalformedTypePlacementError,
    ModuleNotYetRegisteredError,
)
from .identifiers import (
    MIN_MODULE_SEGMENTS,
    entity_display_name_key,
    is_recognized_type,
    module_display_name_key,
    module_identifier,
    normalize_type_name,
    owner_of,
    parse_entity_placement,
    plugin_directory_name,
    split_type_name,
)
from .introspection import FactsCache
from .models import EntityRecord, Manifest, ModuleMetadata, ModuleRecord, RightsManifest, metadata_from_cache
from .rights.constants import MAPPED_SUPERCLASS, Rights
from .rights.inheritance import basic_rights, stored_rights
from .universe import TypeCandidate

logger = logging.getLogger(__name__)

MODULE = "module"
ENTITY = "entity"


@dataclass
class BuildReport:
    """What one registration batch did."""

    modules: list[str] = field(default_factory=list)
    entities: list[str] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)  # (type_name, error code)


class _Batch:
    """Manifest, rights manifest and per-identifier entries staged for one write."""

    def __init__(self, cache: CacheBackend) -> None:
        self._cache = cache
        self.manifest = Manifest.model_validate(cache.get(MANIFEST_KEY) or {})
        self.rights = RightsManifest.model_validate(cache.get(RIGHTS_MANIFEST_KEY) or {})
        self.entries: dict[str, dict[str, Any]] = {}

    def record(self, identifier: str) -> EntityRecord | ModuleMetadata | None:
        data = self.entries.get(identifier)
        if data is None:
            data = self._cache.get(identifier)
        return metadata_from_cache(data) if data else None

    def stage(self, identifier: str, record: EntityRecord | ModuleMetadata) -> None:
        self.entries[identifier] = record.model_dump(mode="json")

    def commit(self) -> None:
        items: dict[str, Any] = dict(self.entries)
        items[MANIFEST_KEY] = self.manifest.model_dump(mode="json")
        items[RIGHTS_MANIFEST_KEY] = self.rights.model_dump(mode="json")
        self._cache.set_many(items)


class ManifestBuilder:
    """Classifies candidate types and registers modules and entities.

    Args:
        cache: Backend receiving manifest, rights manifest and records.
        facts: FactsCache over the host's TypeIntrospector.
        config: Namespace layout, source roots, override policy, templates.
    """

    def __init__(self, cache: CacheBackend, facts: FactsCache, config: RegistryConfig) -> None:
        self.cache = cache
        self.facts = facts
        self.config = config
        self.namespace = config.namespace

    # ── Bulk build ──────────────────────────────────────

    def build(self, candidates: Iterable[TypeCandidate]) -> BuildReport:
        """Register every module and entity found among ``candidates``."""
        modules: list[str] = []
        entities: list[str] = []

        for candidate in self.filter_candidates(candidates):
            type_name = normalize_type_name(candidate.type_name, self.namespace)
            kind = self.classify(type_name)
            if kind == MODULE:
                modules.append(type_name)
            elif kind == ENTITY:
                entities.append(type_name)

        report = BuildReport()
        batch = _Batch(self.cache)
        self._stage_modules(batch, modules, report)
        self._stage_entities(batch, entities, report)
        batch.commit()
        logger.info(
            "Entity manifest built: %d modules, %d entities, %d skipped",
            len(report.modules),
            len(report.entities),
            len(report.skipped),
        )
        return report

    def filter_candidates(self, candidates: Iterable[TypeCandidate]) -> list[TypeCandidate]:
        """Keep candidates declared under a source root and inside a known namespace."""
        roots = [f"/{root.strip('/')}/" for root in self.config.source_roots if root.strip("/")]
        kept = []
        for candidate in candidates:
            path = "/" + candidate.declaring_path.replace("\\", "/").strip("/") + "/"
            if roots and not any(root in path for root in roots):
                continue
            if not is_recognized_type(candidate.type_name, self.namespace):
                continue
            kept.append(candidate)
        return kept

    def classify(self, type_name: str) -> Optional[str]:
        """``"module"``, ``"entity"``, or None for abstract / unrelated / unloadable types."""
        try:
            if self.facts.facts(type_name).is_abstract:
                return None
            intro = self.facts.introspector
            if self.facts.is_subtype_of(type_name, intro.entity_base):
                return ENTITY
            if self.facts.is_subtype_of(type_name, intro.module_base):
                return MODULE
        except EntityRegistryError as e:
            logger.warning("Cannot classify '%s': %s", type_name, e.message)
        return None

    # ── Modules ─────────────────────────────────────────

    def register_modules(self, type_names: Iterable[str]) -> BuildReport:
        report = BuildReport()
        batch = _Batch(self.cache)
        self._stage_modules(batch, type_names, report)
        batch.commit()
        return report

    def _stage_modules(self, batch: _Batch, type_names: Iterable[str], report: BuildReport) -> None:
        for raw_name in type_names:
            type_name = normalize_type_name(raw_name, self.namespace)
            identifier = self._attempt(MODULE, type_name, report, self._register_module, batch)
            if identifier is not None:
                report.modules.append(identifier)

    def _register_module(self, batch: _Batch, type_name: str) -> Optional[str]:
        if len(split_type_name(type_name, self.namespace)) < MIN_MODULE_SEGMENTS:
            raise MalformedTypePlacementError(
                f"Module type '{type_name}' needs at least {MIN_MODULE_SEGMENTS} segments",
                type_name=type_name,
            )
        if self.facts.facts(type_name).is_abstract:
            return None

        identifier = module_identifier(type_name, self.namespace)
        owner = owner_of(type_name, self.namespace)

        batch.manifest.modules[identifier] = ModuleRecord(identifier=identifier, type_name=type_name, owner=owner)
        batch.rights.root[identifier] = batch.rights.module(identifier).model_copy(
            update={"rights": [], "entities": {}}
        )
        batch.stage(
            identifier,
            ModuleMetadata(
                identifier=identifier,
                type_name=type_name,
                owner=owner,
                display_name_key=module_display_name_key(identifier),
            ),
        )
        logger.debug("Module registered: %s -> %s", identifier, type_name)
        return identifier

    # ── Entities ────────────────────────────────────────

    def register_entities(self, type_names: Iterable[str]) -> BuildReport:
        report = BuildReport()
        batch = _Batch(self.cache)
        self._stage_entities(batch, type_names, report)
        batch.commit()
        return report

    def _stage_entities(self, batch: _Batch, type_names: Iterable[str], report: BuildReport) -> None:
        normalized = {normalize_type_name(name, self.namespace) for name in type_names}
        # Core first, then plugins by name; plugin-vs-plugin clashes resolve the same way every build
        core_root = self.namespace.core_authority
        ordered = sorted(normalized, key=lambda name: (not name.startswith(core_root + self.namespace.separator), name))

        for type_name in ordered:
            identifier = self._attempt(ENTITY, type_name, report, self._register_entity, batch)
            if identifier is not None:
                report.entities.append(identifier)

    def _attempt(
        self,
        kind: str,
        type_name: str,
        report: BuildReport,
        register: Callable[[_Batch, str], Optional[str]],
        batch: _Batch,
    ) -> Optional[str]:
        """Run one registration; a failing candidate is logged, reported and skipped."""
        try:
            return register(batch, type_name)
        except EntityRegistryError as e:
            error = e
        except ValidationError as e:
            error = MalformedTypePlacementError(
                f"{kind.capitalize()} type '{type_name}' declares invalid metadata: {e.error_count()} error(s)",
                type_name=type_name,
                errors=e.errors(include_url=False),
            )
        except Exception as e:
            error = MalformedTypePlacementError(
                f"{kind.capitalize()} type '{type_name}' cannot be registered: {e}",
                type_name=type_name,
                cause=type(e).__name__,
            )
        logger.warning("%s '%s' skipped: %s", kind.capitalize(), type_name, error.message)
        report.skipped.append((type_name, error.code))
        return None

    def _register_entity(self, batch: _Batch, type_name: str) -> Optional[str]:
        facts = self.facts.facts(type_name)
        if facts.is_abstract:
            return None

        placement = parse_entity_placement(type_name, self.namespace)
        identifier = placement.identifier

        if placement.module not in batch.manifest.modules:
            raise ModuleNotYetRegisteredError(
                f"Entity '{type_name}' references unregistered module '{placement.module}'",
                type_name=type_name,
                module=placement.module,
            )

        existing = batch.record(identifier) if identifier in batch.manifest.entities else None
        if isinstance(existing, EntityRecord) and not self._may_replace(existing, type_name, placement):
            return None

        intro = self.facts.introspector
        ancestors = self.facts.ancestors(type_name, stop_at=intro.entity_base)

        tags: set[str] = set(facts.capability_tags)
        for ancestor in ancestors:
            tags.update(self.facts.facts(ancestor).capability_tags)

        inherited_from = self._rights_target(facts.constant("RIGHTS_INHERITED_FROM"))
        rights = stored_rights(basic_rights(facts.constant("BASIC_RIGHTS", ()), tags), inherited_from)

        record = EntityRecord(
            identifier=identifier,
            type_name=type_name,
            owner=placement.owner,
            module=placement.module,
            name=placement.name,
            form_template=self.determine_form_template(placement.owner, identifier),
            capability_tags=sorted(tags),
            rights=rights,
            rights_inherited_from=inherited_from,
            is_relation=intro.relation_base in ancestors,
            is_mapped_superclass=facts.has_marker(MAPPED_SUPERCLASS),
            has_menu_item=bool(facts.constant("HAS_MENU_ITEM", True)),
            settings_group=facts.constant("SETTINGS_GROUP"),
            display_name_key=entity_display_name_key(identifier),
            mapped_superclasses=[a for a in ancestors if self.facts.facts(a).has_marker(MAPPED_SUPERCLASS)],
        )

        if existing is not None:
            self._detach(batch, existing)

        batch.stage(identifier, record)
        batch.manifest.entities[identifier] = type_name
        module = batch.manifest.modules[placement.module]
        module.entities.append(identifier)
        if not record.rights_redirected:
            rights_module = batch.rights.module(placement.module)
            rights_module.entities[identifier] = list(rights)
            module.rights = Rights.normalize(set(module.rights) | set(rights))
            rights_module.rights = list(module.rights)

        logger.debug("Entity registered: %s -> %s (owner=%s)", identifier, type_name, placement.owner)
        return identifier

    def _may_replace(self, existing: EntityRecord, type_name: str, placement) -> bool:
        """Apply the override rule between an existing record and a new candidate.

        Returns True if the candidate should replace ``existing``; False if the
        candidate is dropped quietly. Raises IdentifierCollisionError when the
        two types must not share an identifier at all.
        """
        if existing.type_name == type_name:
            return True  # re-registration

        if (existing.module, existing.name) != (placement.module, placement.name):
            raise IdentifierCollisionError(
                f"'{type_name}' and '{existing.type_name}' both derive identifier '{existing.identifier}'",
                identifier=existing.identifier,
                type_name=type_name,
                registered=existing.type_name,
            )

        core = self.namespace.core_authority
        existing_is_core = existing.owner == core
        candidate_is_core = placement.owner == core

        if existing_is_core and not candidate_is_core:
            if not self.config.allow_plugin_override:
                logger.info(
                    "Plugin entity '%s' not registered: overriding core '%s' is disabled",
                    type_name,
                    existing.type_name,
                )
                return False
            logger.info("Plugin entity '%s' overrides core '%s'", type_name, existing.type_name)
            return True

        if candidate_is_core and not existing_is_core:
            # The plugin got there first; keep whichever side the override policy favours
            return not self.config.allow_plugin_override

        raise IdentifierCollisionError(
            f"'{type_name}' clashes with already registered '{existing.type_name}' "
            f"(owners {placement.owner} / {existing.owner})",
            identifier=existing.identifier,
            type_name=type_name,
            registered=existing.type_name,
        )

    def _detach(self, batch: _Batch, existing: EntityRecord) -> None:
        """Remove a superseded record from its module's aggregate."""
        module = batch.manifest.modules.get(existing.module)
        if module is None:
            return
        module.entities = [e for e in module.entities if e != existing.identifier]
        rights_module = batch.rights.module(existing.module)
        rights_module.entities.pop(existing.identifier, None)
        remaining: set[str] = set()
        for entity_rights in rights_module.entities.values():
            remaining.update(entity_rights)
        module.rights = Rights.normalize(remaining)
        rights_module.rights = list(module.rights)

    def _rights_target(self, target: Any) -> Optional[str]:
        if not target:
            return None
        if not isinstance(target, str):
            target = self.facts.introspector.type_name_of(target)
        return normalize_type_name(target, self.namespace)

    def determine_form_template(self, owner: str, identifier: str) -> str:
        """Form template for an entity: an override file if one exists, else the default."""
        if owner == self.namespace.core_authority:
            template_dir = Path(self.config.templates_dir)
        else:
            template_dir = Path(self.config.plugins_dir) / plugin_directory_name(owner) / "templates"

        relative = PurePosixPath("entity_forms") / f"{identifier}.html"
        if (template_dir / relative).is_file():
            return str(relative)
        return self.config.default_form_template


__all__ = [
    "BuildReport",
    "ManifestBuilder",
]
