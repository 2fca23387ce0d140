"""Tests for entityregistry.introspection."""

from __future__ import annotations

import abc
from unittest.mock import MagicMock

import pytest

from entityregistry import (
    AbstractEntity,
    ClassIntrospector,
    FactsCache,
    StructuralResolutionError,
    Trait,
    is_subtype_of,
)
from entityregistry.rights.constants import MAPPED_SUPERCLASS, TRASHABLE

ENTITY_BASE = "entityregistry.declarations.AbstractEntity"
RELATION_BASE = "entityregistry.declarations.AbstractEntityRelation"


class TestClassIntrospector:
    """Tests for ClassIntrospector over the fixture classes."""

    def test_base_names(self, introspector) -> None:
        assert introspector.entity_base == ENTITY_BASE
        assert introspector.module_base == "entityregistry.declarations.AbstractModule"
        assert introspector.relation_base == RELATION_BASE

    def test_parent_skips_traits(self, introspector) -> None:
        """Server(AbstractAsset, Trashable) has AbstractAsset as its parent."""
        assert introspector.parent_of("App.Entity.Inventory.Server") == "App.Entity.Inventory.AbstractAsset"

    def test_parent_of_root(self, introspector) -> None:
        assert introspector.parent_of("App.Entity.Inventory.AbstractAsset") == ENTITY_BASE
        assert introspector.parent_of("App.Service.Mailer") is None

    def test_is_abstract_is_own_attribute(self, introspector) -> None:
        assert introspector.is_abstract("App.Entity.Inventory.AbstractAsset") is True
        assert introspector.is_abstract("App.Entity.Inventory.Server") is False

    def test_abc_abstract_methods(self) -> None:
        class Shape(AbstractEntity, abc.ABC):
            __type_name__ = "App.Entity.Geo.Shape"

            @abc.abstractmethod
            def area(self) -> float: ...

        introspector = ClassIntrospector({"App.Entity.Geo.Shape": Shape})
        assert introspector.is_abstract("App.Entity.Geo.Shape") is True

    def test_capability_tags_are_own_bases_only(self, introspector) -> None:
        assert introspector.capability_tags_of("App.Entity.Inventory.Server") == frozenset({TRASHABLE})
        assert introspector.capability_tags_of("App.Entity.Inventory.AbstractAsset") == frozenset()

    def test_custom_trait_tag_defaults_to_class_name(self) -> None:
        class Archivable(Trait):
            pass

        class Report(AbstractEntity, Archivable):
            pass

        introspector = ClassIntrospector({"App.Entity.Reports.Report": Report})
        assert introspector.capability_tags_of("App.Entity.Reports.Report") == frozenset({"Archivable"})

    def test_marker_not_inherited(self, introspector) -> None:
        assert introspector.has_marker("App.Entity.Inventory.AbstractAsset", MAPPED_SUPERCLASS) is True
        assert introspector.has_marker("App.Entity.Inventory.Server", MAPPED_SUPERCLASS) is False

    def test_constant_of(self, introspector) -> None:
        assert introspector.constant_of("App.Entity.Settings.Mail", "SETTINGS_GROUP") == "mail"
        assert introspector.constant_of("App.Entity.Inventory.Server", "MISSING", "x") == "x"

    def test_type_name_of_instance_and_class(self, introspector, server_proxy) -> None:
        server_cls = introspector.resolve("App.Entity.Inventory.Server")
        assert introspector.type_name_of(server_cls) == "App.Entity.Inventory.Server"
        assert introspector.type_name_of(server_cls()) == "App.Entity.Inventory.Server"
        assert introspector.type_name_of(server_proxy) == "Proxies.__CG__.App.Entity.Inventory.Server"

    def test_resolve_proxy_name(self, introspector) -> None:
        cls = introspector.resolve("Proxies.__CG__.App.Entity.Inventory.Server")
        assert cls is introspector.resolve("App.Entity.Inventory.Server")

    def test_resolve_through_importlib(self, introspector) -> None:
        assert introspector.resolve(ENTITY_BASE) is AbstractEntity

    def test_resolve_unknown_raises(self, introspector) -> None:
        with pytest.raises(StructuralResolutionError):
            introspector.resolve("App.Entity.Inventory.Toaster")

    def test_resolve_not_a_class(self, introspector) -> None:
        with pytest.raises(StructuralResolutionError, match="not a class"):
            introspector.resolve("entityregistry.rights.constants.TRASHABLE")


class TestFactsCache:
    """Tests for FactsCache snapshots and hierarchy queries."""

    def test_snapshot_contents(self, introspector) -> None:
        facts = FactsCache(introspector).facts("App.Entity.Inventory.Server")
        assert facts.parent == "App.Entity.Inventory.AbstractAsset"
        assert facts.is_abstract is False
        assert facts.capability_tags == frozenset({TRASHABLE})
        assert facts.constant("BASIC_RIGHTS") == ("view", "edit", "create", "purge")
        assert facts.constant("RIGHTS_INHERITED_FROM") is None

    def test_snapshot_captured_once(self) -> None:
        intro = MagicMock()
        intro.parent_of.return_value = None
        intro.is_abstract.return_value = False
        intro.capability_tags_of.return_value = frozenset()
        intro.has_marker.return_value = False
        intro.constant_of.return_value = None

        facts = FactsCache(intro)
        facts.facts("App.Entity.Inventory.Server")
        facts.facts("App.Entity.Inventory.Server")

        intro.parent_of.assert_called_once_with("App.Entity.Inventory.Server")

    def test_introspector_failure_wrapped(self) -> None:
        intro = MagicMock()
        intro.parent_of.side_effect = RuntimeError("autoload failed")

        with pytest.raises(StructuralResolutionError, match="autoload failed"):
            FactsCache(intro).facts("App.Entity.Inventory.Server")

    def test_ancestors_nearest_first(self, introspector) -> None:
        facts = FactsCache(introspector)
        chain = facts.ancestors("Plugins.Acme.PluginJamf.Entity.Inventory.Laptop", stop_at=ENTITY_BASE)
        assert chain == ["App.Entity.Inventory.Laptop", "App.Entity.Inventory.AbstractAsset"]

    def test_subtype(self, introspector) -> None:
        facts = FactsCache(introspector)
        assert facts.is_subtype_of("App.Entity.Inventory.Relation.ServerLaptop", RELATION_BASE) is True
        assert facts.is_subtype_of("App.Entity.Inventory.Server", RELATION_BASE) is False
        assert facts.is_subtype_of(ENTITY_BASE, ENTITY_BASE) is False

    def test_module_level_is_subtype_of(self, introspector) -> None:
        assert is_subtype_of(introspector, "App.Modules.Inventory", introspector.module_base) is True
        assert is_subtype_of(introspector, "App.Modules.Inventory", introspector.entity_base) is False

    def test_clear(self, introspector) -> None:
        facts = FactsCache(introspector)
        first = facts.facts("App.Entity.Inventory.Server")
        facts.clear()
        assert facts.facts("App.Entity.Inventory.Server") is not first
