"""Right verbs and well-known capability tags.

Provides:
- ``Rights`` — the five verbs the default entity voter decides on.
- ``TRASHABLE`` — capability tag granting soft-delete.
- ``MAPPED_SUPERCLASS`` — marker of abstract shared-layout entity types.
"""

from __future__ import annotations


class Rights:
    """Canonical right verbs.

    Rights are a flat set of string verbs per subject; there are no
    conditions and no wildcards::

        Rights.VIEW in registry.get_entity_rights("InventoryServer")
    """

    VIEW = "view"
    EDIT = "edit"
    CREATE = "create"
    DELETE = "delete"  # Soft-delete (move to trash)
    PURGE = "purge"  # Permanent delete

    ALL = frozenset({"view", "edit", "create", "delete", "purge"})

    @staticmethod
    def normalize(rights) -> list[str]:
        """Deduplicate and sort a verb collection for storage."""
        return sorted({str(r) for r in rights or ()})


TRASHABLE = "Trashable"
MAPPED_SUPERCLASS = "mapped_superclass"


__all__ = [
    "MAPPED_SUPERCLASS",
    "TRASHABLE",
    "Rights",
]
