"""Effective-rights aggregation.

Resolves a subject to its entity identifier, expands mapped superclasses to
their concrete descendants, asks the grant storage for matching rows and
unions the reduced per-identifier sets.

Any structural failure yields an empty set. The voter treats empty as deny.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..exceptions import (
    EntityRegistryError,
    MalformedTypePlacementError,
    UnknownEntityIdentifierError,
    UnknownIdentifierError,
)
from ..identifiers import is_recognized_type
from ..models import EntityRecord
from .constants import MAPPED_SUPERCLASS
from .storage import RightsStorage

if TYPE_CHECKING:
    from ..registry import EntityRegistry

logger = logging.getLogger(__name__)


class RightsAggregator:
    """Computes what a caller may do on an entity.

    Args:
        registry: Registry facade used to resolve subjects.
        storage: Grant storage (``find_grants`` / ``reduce_effective_rights``).

    Example::

        aggregator = RightsAggregator(registry, storage)
        aggregator.effective_rights("InventoryServer", user)   # frozenset({"view", "edit"})
        aggregator.effective_rights(server_instance, user)     # same subject, via its class
    """

    def __init__(self, registry: "EntityRegistry", storage: RightsStorage) -> None:
        self.registry = registry
        self.storage = storage

    def resolve_identifier(self, subject: Any) -> str:
        """Map an instance, class, registered type name or identifier to an identifier.

        Raises:
            UnknownEntityIdentifierError: Nothing registered matches ``subject``.
        """
        registry = self.registry
        if not isinstance(subject, str):
            return registry.get_entity_identifier(subject)

        if registry.is_entity_identifier_registered(subject):
            return subject
        if is_recognized_type(subject, registry.namespace):
            return registry.get_entity_identifier(subject)

        # Raw identifier: validate through the manifest
        registry.get_entity_from_identifier(subject)
        return subject

    def expand(self, identifier: str) -> list[str]:
        """The identifier itself plus, for a mapped superclass, every concrete descendant."""
        record = self.registry.get_metadata(identifier)
        if not isinstance(record, EntityRecord):
            raise UnknownEntityIdentifierError(identifier)
        subjects = [identifier]
        if record.is_mapped_superclass:
            for child in self.registry.get_child_entities_for_mapped_superclass(record.type_name):
                if child not in subjects:
                    subjects.append(child)
        return subjects

    def subjects_for(self, subject: Any) -> list[str]:
        """Identifiers whose grants count for ``subject``.

        An abstract mapped superclass is never registered itself; it stands for
        every registered entity that lists it among its mapped superclasses.
        """
        registry = self.registry
        try:
            return self.expand(self.resolve_identifier(subject))
        except (UnknownIdentifierError, MalformedTypePlacementError):
            if isinstance(subject, str) and not is_recognized_type(subject, registry.namespace):
                raise
            type_name = registry.type_name_of(subject)
            if not registry.facts.facts(type_name).has_marker(MAPPED_SUPERCLASS):
                raise
            children = registry.get_child_entities_for_mapped_superclass(type_name)
            if not children:
                raise
            return children

    def effective_rights(self, subject: Any, caller: Any) -> frozenset[str]:
        """Union of the caller's reduced rights over ``subject`` and its expansion."""
        try:
            subjects = self.subjects_for(subject)
        except EntityRegistryError as e:
            logger.info("No effective rights for %r: %s (%s)", subject, e.message, e.code)
            return frozenset()

        rows = self.storage.find_grants(caller, subjects)
        reduced = self.storage.reduce_effective_rights(rows)

        effective: set[str] = set()
        for rights in reduced.values():
            effective.update(rights)
        logger.debug("Effective rights on %s for %r: %s", subjects, caller, sorted(effective))
        return frozenset(effective)


__all__ = ["RightsAggregator"]
