"""Type universe sources: the candidate list handed to the manifest builder.

The registry does not discover types on its own. A ``TypeUniverseSource``
supplies every loadable type name together with the path it was declared in;
the builder then filters by source root and classifies.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TypeCandidate:
    """A type name plus the path hint of where it was declared."""

    type_name: str
    declaring_path: str = ""


@runtime_checkable
class TypeUniverseSource(Protocol):
    def all_candidate_types(self) -> list[TypeCandidate]: ...


class StaticTypeUniverse:
    """Fixed candidate list, for manual wiring and tests."""

    def __init__(self, candidates: Iterable[TypeCandidate | tuple[str, str]] = ()) -> None:
        self._candidates = [c if isinstance(c, TypeCandidate) else TypeCandidate(*c) for c in candidates]

    def add(self, type_name: str, declaring_path: str = "") -> None:
        self._candidates.append(TypeCandidate(type_name, declaring_path))

    def all_candidate_types(self) -> list[TypeCandidate]:
        return list(self._candidates)


class PackageTypeUniverse:
    """Walks importable packages and yields every class they define.

    Args:
        packages: Top-level package names to walk (e.g. ``["App", "Plugins"]``).
        index: Optional ClassIntrospector; every class found is added to it under
            the same name the candidate carries.
        on_error: Passed to ``pkgutil.walk_packages``; defaults to logging the failure.

    A module that fails to import is logged and skipped; one broken plugin
    must not hide the rest of the universe.
    """

    def __init__(self, packages: Iterable[str], *, index=None, on_error=None) -> None:
        self._packages = list(packages)
        self._index = index
        self._on_error = on_error or self._log_walk_error

    @staticmethod
    def _log_walk_error(name: str) -> None:
        logger.warning("Type universe: cannot walk package '%s'", name)

    def _import(self, module_name: str):
        try:
            return importlib.import_module(module_name)
        except Exception as e:
            logger.warning("Type universe: skipping module '%s': %s", module_name, e)
            return None

    def _classes_of(self, module) -> list[TypeCandidate]:
        path = getattr(module, "__file__", None) or ""
        found = []
        for _, obj in inspect.getmembers(module, inspect.isclass):
            # Only classes defined here, not re-exports
            if obj.__module__ != module.__name__:
                continue
            name = obj.__dict__.get("__type_name__") or f"{obj.__module__}.{obj.__qualname__}"
            if self._index is not None:
                self._index.add(name, obj)
            found.append(TypeCandidate(name, path))
        return found

    def all_candidate_types(self) -> list[TypeCandidate]:
        candidates: list[TypeCandidate] = []
        for package_name in self._packages:
            package = self._import(package_name)
            if package is None:
                continue
            candidates.extend(self._classes_of(package))

            search_path: Optional[list[str]] = getattr(package, "__path__", None)
            if not search_path:
                continue
            for info in pkgutil.walk_packages(search_path, prefix=f"{package_name}.", onerror=self._on_error):
                module = self._import(info.name)
                if module is not None:
                    candidates.extend(self._classes_of(module))

        logger.debug("Type universe: %d candidate types from %s", len(candidates), self._packages)
        return candidates


__all__ = [
    "PackageTypeUniverse",
    "StaticTypeUniverse",
    "TypeCandidate",
    "TypeUniverseSource",
]
