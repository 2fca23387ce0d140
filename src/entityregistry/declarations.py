"""Base types host applications and plugins subclass to declare entities and modules.

Provides:
- ``AbstractEntity`` / ``AbstractEntityRelation`` — entity roots with rights constants.
- ``AbstractModule`` — module root.
- ``Trait`` / ``Trashable`` — capability-tag mixins.
- ``marker()`` / ``mapped_superclass`` — class markers that are NOT inherited.

Example::

    @mapped_superclass
    class AbstractAsset(AbstractEntity):
        __abstract__ = True

    class Server(AbstractAsset, Trashable):
        __type_name__ = "App.Entity.Inventory.Server"
        BASIC_RIGHTS = (Rights.VIEW, Rights.EDIT, Rights.CREATE, Rights.PURGE)
"""

from __future__ import annotations

from typing import Callable, ClassVar, Optional, TypeVar

from .rights.constants import MAPPED_SUPERCLASS, TRASHABLE, Rights

_T = TypeVar("_T", bound=type)


class Trait:
    """Capability mixin. Listing a trait in a class's bases tags that class."""

    TAG: ClassVar[Optional[str]] = None

    @classmethod
    def trait_tag(cls) -> str:
        return cls.__dict__.get("TAG") or cls.__name__


class Trashable(Trait):
    """Soft-delete capability. Trashable entities always support DELETE."""

    TAG = TRASHABLE


class AbstractEntity:
    """Root of every registrable entity type.

    Class constants read by the registry:
        BASIC_RIGHTS: Verbs the entity supports on its own.
        RIGHTS_INHERITED_FROM: Dotted type name of the entity whose rights govern this one.
        SETTINGS_GROUP: Settings group the entity belongs to, if it is a settings entity.
        HAS_MENU_ITEM: Whether menus list the entity.
    """

    __abstract__ = True

    BASIC_RIGHTS: ClassVar[tuple[str, ...]] = (Rights.VIEW, Rights.EDIT, Rights.CREATE, Rights.PURGE)
    RIGHTS_INHERITED_FROM: ClassVar[Optional[str]] = None
    SETTINGS_GROUP: ClassVar[Optional[str]] = None
    HAS_MENU_ITEM: ClassVar[bool] = True

    @classmethod
    def supported_basic_rights(cls) -> list[str]:
        return list(cls.BASIC_RIGHTS)


class AbstractEntityRelation(AbstractEntity):
    """Root of entities that link two other entities."""

    __abstract__ = True

    HAS_MENU_ITEM = False


class AbstractModule:
    """Root of every registrable module type."""

    __abstract__ = True


def marker(name: str) -> Callable[[_T], _T]:
    """Build a class decorator that sets ``name`` on exactly the decorated class."""

    def decorator(cls: _T) -> _T:
        own = cls.__dict__.get("__markers__", frozenset())
        cls.__markers__ = frozenset(own) | {name}
        return cls

    return decorator


mapped_superclass = marker(MAPPED_SUPERCLASS)


__all__ = [
    "AbstractEntity",
    "AbstractEntityRelation",
    "AbstractModule",
    "Trait",
    "Trashable",
    "mapped_superclass",
    "marker",
]
