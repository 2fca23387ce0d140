"""Grant storage consumed by the rights aggregator.

The registry does not own grant persistence. It consumes a ``RightsStorage``
that can find grant rows for a caller and reduce them to effective rights
per subject identifier. ``InMemoryRightsStorage`` is the reference
implementation used by tests and single-process setups.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Iterable, Protocol, runtime_checkable

from .constants import Rights


@dataclass(frozen=True)
class Grant:
    """One grant row: ``caller`` may (or, with ``allow=False``, may not) ``right`` on ``subject``."""

    caller: Hashable
    subject: str
    right: str
    allow: bool = True


@runtime_checkable
class RightsStorage(Protocol):
    def find_grants(self, caller: Any, subject_identifiers: Iterable[str]) -> list[Any]: ...

    def reduce_effective_rights(self, rows: Iterable[Any]) -> dict[str, set[str]]: ...


def _identity(caller: Any) -> Hashable:
    return caller


class InMemoryRightsStorage:
    """Grant rows kept in a list.

    Args:
        grants: Initial rows.
        caller_key: Maps a caller object to the key stored in ``Grant.caller``
            (e.g. ``lambda user: user.id``).

    Reduction rule: an explicit deny for (subject, right) beats any allow.

    Example::

        storage = InMemoryRightsStorage([
            Grant("alice", "InventoryServer", Rights.VIEW),
            Grant("alice", "InventoryServer", Rights.EDIT),
            Grant("alice", "InventoryServer", Rights.EDIT, allow=False),
        ])
        rows = storage.find_grants("alice", ["InventoryServer"])
        storage.reduce_effective_rights(rows)  # {"InventoryServer": {"view"}}
    """

    def __init__(
        self,
        grants: Iterable[Grant] = (),
        *,
        caller_key: Callable[[Any], Hashable] = _identity,
    ) -> None:
        self._grants: list[Grant] = list(grants)
        self._caller_key = caller_key

    def grant(self, caller: Any, subject: str, *rights: str) -> None:
        key = self._caller_key(caller)
        self._grants.extend(Grant(key, subject, right) for right in rights)

    def deny(self, caller: Any, subject: str, *rights: str) -> None:
        key = self._caller_key(caller)
        self._grants.extend(Grant(key, subject, right, allow=False) for right in rights)

    def revoke_all(self, caller: Any) -> None:
        key = self._caller_key(caller)
        self._grants = [g for g in self._grants if g.caller != key]

    def find_grants(self, caller: Any, subject_identifiers: Iterable[str]) -> list[Grant]:
        key = self._caller_key(caller)
        subjects = set(subject_identifiers)
        return [g for g in self._grants if g.caller == key and g.subject in subjects]

    def reduce_effective_rights(self, rows: Iterable[Grant]) -> dict[str, set[str]]:
        allowed: dict[str, set[str]] = defaultdict(set)
        denied: dict[str, set[str]] = defaultdict(set)
        for row in rows:
            (allowed if row.allow else denied)[row.subject].add(row.right)
        return {subject: rights - denied[subject] for subject, rights in allowed.items()}

    def rights_of(self, caller: Any, subject: str) -> list[str]:
        """Effective rights of one caller on one subject identifier, sorted."""
        reduced = self.reduce_effective_rights(self.find_grants(caller, [subject]))
        return Rights.normalize(reduced.get(subject, ()))


__all__ = [
    "Grant",
    "InMemoryRightsStorage",
    "RightsStorage",
]
