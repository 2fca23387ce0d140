"""Basic-rights derivation and rights-inheritance redirection.

Provides:
- ``IMPLIED_BY_TAG`` — capability tag -> verbs the tag always adds.
- ``basic_rights()`` — declared verbs plus tag-implied verbs.
- ``stored_rights()`` — what an entity record keeps locally.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .constants import TRASHABLE, Rights

# Tag → verbs every entity carrying the tag supports, declared or not.
IMPLIED_BY_TAG: dict[str, tuple[str, ...]] = {
    TRASHABLE: (Rights.DELETE,),
}


def basic_rights(declared: Optional[Iterable[str]], capability_tags: Iterable[str]) -> list[str]:
    """Expand an entity's declared verb list by its capability tags.

    Example::

        >>> basic_rights(("view", "edit", "create", "purge"), {"Trashable"})
        ['create', 'delete', 'edit', 'purge', 'view']
    """
    expanded: set[str] = set(declared or ())
    for tag in capability_tags:
        expanded.update(IMPLIED_BY_TAG.get(tag, ()))
    return Rights.normalize(expanded)


def stored_rights(rights: Iterable[str], rights_inherited_from: Optional[str]) -> list[str]:
    """Rights kept on the record: empty when redirected to another entity."""
    if rights_inherited_from is not None:
        return []
    return Rights.normalize(rights)


__all__ = [
    "IMPLIED_BY_TAG",
    "basic_rights",
    "stored_rights",
]
