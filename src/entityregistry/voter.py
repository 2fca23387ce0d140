"""Default access-control voter for registered entities.

Two phases:

1. ``supports``: the attribute is one of the five right verbs and the subject
   resolves to a registered entity (or to a mapped superclass with registered
   descendants). Otherwise the voter abstains.
2. ``vote_on_attribute``: follow the subject's rights-inheritance target, ask
   the RightsAggregator for the caller's effective rights, grant iff the verb
   is in that set. An empty set denies.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Iterable, Optional

from .exceptions import EntityRegistryError, MalformedTypePlacementError, UnknownIdentifierError
from .logging import get_registry_logger
from .registry import EntityRegistry
from .rights.aggregator import RightsAggregator
from .rights.constants import Rights

logger = get_registry_logger(__name__)


class Vote(IntEnum):
    """Voter outcome, ordered like the usual access-decision conventions."""

    DENIED = -1
    ABSTAIN = 0
    GRANTED = 1


class EntityVoter:
    """Decides VIEW / EDIT / CREATE / DELETE / PURGE on entities.

    Args:
        registry: Registry facade.
        aggregator: Effective-rights aggregator over the host's grant storage.

    Example::

        voter = EntityVoter(registry, RightsAggregator(registry, storage))
        voter.vote(user, "InventoryServer", [Rights.EDIT])   # Vote.GRANTED
        voter.vote(user, "InventoryServer", ["export"])      # Vote.ABSTAIN
    """

    def __init__(self, registry: EntityRegistry, aggregator: RightsAggregator) -> None:
        self.registry = registry
        self.aggregator = aggregator

    def supports_subject(self, subject: Any) -> bool:
        try:
            return bool(self.aggregator.subjects_for(subject))
        except EntityRegistryError:
            return False

    def supports(self, attribute: str, subject: Any) -> bool:
        return attribute in Rights.ALL and self.supports_subject(subject)

    def resolve_subject(self, identifier: str) -> str:
        """Subject whose rights govern ``identifier`` (one redirect step at most).

        Returns the target's identifier when the target is registered, and the
        target's type name otherwise (an abstract mapped superclass, which the
        aggregator expands to its descendants).

        Raises:
            UnknownEntityIdentifierError: ``identifier`` has no entity record.
            MalformedTypePlacementError: The redirect target has no entity namespace shape.
        """
        record = self.registry.get_entity_metadata(identifier)
        target = record.rights_inherited_from
        if target is None:
            return identifier
        target_identifier = self.registry.get_entity_identifier(target)
        if self.registry.is_entity_identifier_registered(target_identifier):
            target = target_identifier
        logger.debug("Rights of %s come from %s", identifier, target, identifier=identifier)
        return target

    def vote_on_attribute(self, attribute: str, subject: Any, caller: Any) -> bool:
        """Grant iff ``attribute`` is among the caller's effective rights on ``subject``."""
        try:
            identifier: Optional[str] = self.aggregator.resolve_identifier(subject)
        except (UnknownIdentifierError, MalformedTypePlacementError):
            identifier = None
        except EntityRegistryError as e:
            logger.warning("Cannot resolve subject %r: %s", subject, e.message, caller=caller)
            return False

        # Unregistered subjects (mapped superclasses) are expanded by the aggregator
        if identifier is not None and self.registry.is_entity_identifier_registered(identifier):
            try:
                subject = self.resolve_subject(identifier)
            except EntityRegistryError as e:
                logger.warning("Cannot follow rights of %s: %s", identifier, e.message, caller=caller)
                return False

        rights = self.aggregator.effective_rights(subject, caller)
        if not rights:
            logger.debug("No effective rights, denying %s", attribute, caller=caller)
            return False
        return attribute in rights

    def vote(self, caller: Any, subject: Any, attributes: Iterable[str]) -> Vote:
        """GRANTED if any supported attribute is granted, DENIED if none is, else ABSTAIN."""
        supported = [a for a in attributes if a in Rights.ALL]
        if not supported or not self.supports_subject(subject):
            return Vote.ABSTAIN

        for attribute in supported:
            if self.vote_on_attribute(attribute, subject, caller):
                return Vote.GRANTED
        logger.info("Access denied: %s on %r", supported, subject, caller=caller)
        return Vote.DENIED


__all__ = [
    "EntityVoter",
    "Vote",
]
