"""Type introspection for the registry.

The registry never reflects on classes directly. It asks a ``TypeIntrospector``
a small set of structural questions and captures the answers once per type in
a ``TypeFacts`` snapshot (see ``FactsCache``).

Provides:
- ``TypeIntrospector`` — protocol consumed by the builder and the aggregator.
- ``ClassIntrospector`` — implementation over live Python classes.
- ``TypeFacts`` / ``FactsCache`` — registration-time snapshots of those answers.
"""

from __future__ import annotations

import abc
import importlib
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from .config import NamespaceConfig
from .declarations import AbstractEntity, AbstractEntityRelation, AbstractModule, Trait
from .exceptions import StructuralResolutionError
from .identifiers import DEFAULT_NAMESPACE, normalize_type_name
from .rights.constants import MAPPED_SUPERCLASS

logger = logging.getLogger(__name__)

# Constants captured into every TypeFacts snapshot
KNOWN_CONSTANTS = ("BASIC_RIGHTS", "RIGHTS_INHERITED_FROM", "SETTINGS_GROUP", "HAS_MENU_ITEM")
KNOWN_MARKERS = (MAPPED_SUPERCLASS,)

_IGNORED_BASES = (object, abc.ABC, Trait)


@runtime_checkable
class TypeIntrospector(Protocol):
    """Structural questions the registry asks about a dotted type name.

    Implementations raise ``StructuralResolutionError`` when a type cannot be
    loaded or inspected.
    """

    entity_base: str
    module_base: str
    relation_base: str

    def parent_of(self, type_name: str) -> Optional[str]: ...

    def is_abstract(self, type_name: str) -> bool: ...

    def capability_tags_of(self, type_name: str) -> frozenset[str]: ...

    def has_marker(self, type_name: str, marker: str) -> bool: ...

    def constant_of(self, type_name: str, name: str, default: Any = None) -> Any: ...

    def type_name_of(self, obj: Any) -> str: ...


class ClassIntrospector:
    """TypeIntrospector over Python classes.

    Dotted names resolve through the explicit ``types`` index first, then
    through ``importlib``. A class's own name is, in order: its key in the
    index, a ``__type_name__`` set in its own body, ``module.qualname``.

    Example::

        introspector = ClassIntrospector({
            "App.Modules.Inventory": Inventory,
            "App.Entity.Inventory.Server": Server,
        })
        introspector.parent_of("App.Entity.Inventory.Server")
        # "entityregistry.declarations.AbstractEntity"
    """

    def __init__(
        self,
        types: Optional[Mapping[str, type]] = None,
        *,
        namespace: NamespaceConfig = DEFAULT_NAMESPACE,
        entity_base: type = AbstractEntity,
        module_base: type = AbstractModule,
        relation_base: type = AbstractEntityRelation,
    ) -> None:
        self._namespace = namespace
        self._by_name: dict[str, type] = {}
        self._by_class: dict[type, str] = {}
        for name, cls in (types or {}).items():
            self.add(name, cls)
        self.entity_base = self.type_name_of(entity_base)
        self.module_base = self.type_name_of(module_base)
        self.relation_base = self.type_name_of(relation_base)

    def add(self, type_name: str, cls: type) -> None:
        """Index ``cls`` under ``type_name``."""
        self._by_name[type_name] = cls
        self._by_class[cls] = type_name

    def resolve(self, type_name: str) -> type:
        """Load the class behind a dotted name."""
        if type_name in self._by_name:
            return self._by_name[type_name]
        normalized = normalize_type_name(type_name, self._namespace)
        if normalized in self._by_name:
            return self._by_name[normalized]

        module_name, _, attr = normalized.rpartition(".")
        if not module_name:
            raise StructuralResolutionError(f"Cannot resolve type '{type_name}'", type_name=type_name)
        try:
            obj = getattr(importlib.import_module(module_name), attr)
        except (ImportError, AttributeError, ValueError) as e:
            raise StructuralResolutionError(
                f"Cannot resolve type '{type_name}': {e}",
                type_name=type_name,
            ) from e
        if not isinstance(obj, type):
            raise StructuralResolutionError(f"'{type_name}' is not a class", type_name=type_name)
        return obj

    def type_name_of(self, obj: Any) -> str:
        cls = obj if isinstance(obj, type) else type(obj)
        if cls in self._by_class:
            return self._by_class[cls]
        declared = cls.__dict__.get("__type_name__")
        if declared:
            return declared
        return f"{cls.__module__}.{cls.__qualname__}"

    def parent_of(self, type_name: str) -> Optional[str]:
        cls = self.resolve(type_name)
        for base in cls.__bases__:
            if base in _IGNORED_BASES or issubclass(base, Trait):
                continue
            return self.type_name_of(base)
        return None

    def is_abstract(self, type_name: str) -> bool:
        cls = self.resolve(type_name)
        return bool(cls.__dict__.get("__abstract__", False)) or inspect.isabstract(cls)

    def capability_tags_of(self, type_name: str) -> frozenset[str]:
        cls = self.resolve(type_name)
        return frozenset(base.trait_tag() for base in cls.__bases__ if issubclass(base, Trait))

    def has_marker(self, type_name: str, marker: str) -> bool:
        cls = self.resolve(type_name)
        return marker in cls.__dict__.get("__markers__", frozenset())

    def constant_of(self, type_name: str, name: str, default: Any = None) -> Any:
        return getattr(self.resolve(type_name), name, default)


@dataclass(frozen=True)
class TypeFacts:
    """Snapshot of everything the registry needs to know about one type."""

    type_name: str
    parent: Optional[str]
    is_abstract: bool
    capability_tags: frozenset[str] = frozenset()
    markers: frozenset[str] = frozenset()
    constants: Mapping[str, Any] = field(default_factory=dict)

    def constant(self, name: str, default: Any = None) -> Any:
        value = self.constants.get(name, default)
        return default if value is None else value

    def has_marker(self, name: str) -> bool:
        return name in self.markers


class FactsCache:
    """Captures TypeFacts once per type name and answers hierarchy queries from them."""

    def __init__(self, introspector: TypeIntrospector) -> None:
        self.introspector = introspector
        self._facts: dict[str, TypeFacts] = {}

    def facts(self, type_name: str) -> TypeFacts:
        """Return (and memoize) the snapshot for ``type_name``.

        Raises:
            StructuralResolutionError: The introspector could not inspect the type.
        """
        cached = self._facts.get(type_name)
        if cached is not None:
            return cached

        intro = self.introspector
        try:
            snapshot = TypeFacts(
                type_name=type_name,
                parent=intro.parent_of(type_name),
                is_abstract=intro.is_abstract(type_name),
                capability_tags=frozenset(intro.capability_tags_of(type_name)),
                markers=frozenset(m for m in KNOWN_MARKERS if intro.has_marker(type_name, m)),
                constants={name: intro.constant_of(type_name, name) for name in KNOWN_CONSTANTS},
            )
        except StructuralResolutionError:
            raise
        except Exception as e:
            raise StructuralResolutionError(
                f"Introspection of '{type_name}' failed: {e}",
                type_name=type_name,
            ) from e

        self._facts[type_name] = snapshot
        return snapshot

    def ancestors(self, type_name: str, stop_at: Optional[str] = None) -> list[str]:
        """Parent chain of ``type_name``, nearest first, excluding ``stop_at`` and above."""
        chain: list[str] = []
        seen = {type_name}
        parent = self.facts(type_name).parent
        while parent is not None and parent != stop_at and parent not in seen:
            chain.append(parent)
            seen.add(parent)
            parent = self.facts(parent).parent
        return chain

    def is_subtype_of(self, type_name: str, base_name: str) -> bool:
        """True if ``base_name`` is a strict ancestor of ``type_name``."""
        if type_name == base_name:
            return False
        return base_name in self.ancestors(type_name)

    def clear(self) -> None:
        self._facts.clear()


def is_subtype_of(introspector: TypeIntrospector, type_name: str, base_name: str) -> bool:
    """One-off subtype check without keeping a FactsCache around."""
    return FactsCache(introspector).is_subtype_of(type_name, base_name)


__all__ = [
    "ClassIntrospector",
    "FactsCache",
    "TypeFacts",
    "TypeIntrospector",
    "is_subtype_of",
]
