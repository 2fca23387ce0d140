"""Tests for EntityVoter, including the end-to-end registration + vote scenario."""

from __future__ import annotations

import pytest

from entityregistry import AbstractEntity, EntityVoter, MalformedTypePlacementError, Rights, RightsAggregator, Vote


class TestEndToEnd:
    """Register the fixture universe, grant, then vote."""

    def test_server_scenario(self, registry, voter, storage) -> None:
        assert registry.get_entity_identifier("App.Entity.Inventory.Server") == "InventoryServer"
        assert set(registry.get_metadata("InventoryServer").rights) == {
            Rights.VIEW,
            Rights.EDIT,
            Rights.CREATE,
            Rights.PURGE,
            Rights.DELETE,
        }

        storage.grant("alice", "InventoryServer", Rights.EDIT)

        assert voter.vote("alice", "InventoryServer", [Rights.EDIT]) == Vote.GRANTED
        assert voter.vote("alice", "InventoryServer", [Rights.PURGE]) == Vote.DENIED

    def test_instances_and_proxies(self, voter, storage, introspector, server_proxy) -> None:
        storage.grant("alice", "InventoryServer", Rights.VIEW)
        server = introspector.resolve("App.Entity.Inventory.Server")()

        assert voter.vote("alice", server, [Rights.VIEW]) == Vote.GRANTED
        assert voter.vote("alice", server_proxy, [Rights.VIEW]) == Vote.GRANTED
        assert voter.vote("bob", server_proxy, [Rights.VIEW]) == Vote.DENIED


class TestSupports:
    """Tests for the supports phase."""

    def test_known_verb_and_entity(self, voter) -> None:
        for verb in Rights.ALL:
            assert voter.supports(verb, "InventoryServer") is True

    def test_unknown_verb(self, voter) -> None:
        assert voter.supports("export", "InventoryServer") is False

    def test_unknown_subject(self, voter) -> None:
        assert voter.supports(Rights.VIEW, "InventoryToaster") is False
        assert voter.supports(Rights.VIEW, "App.Entity.Billing.Invoice") is False
        assert voter.supports(Rights.VIEW, object()) is False

    def test_module_identifier_is_not_an_entity(self, voter) -> None:
        assert voter.supports(Rights.VIEW, "Inventory") is False

    def test_mapped_superclass(self, voter) -> None:
        assert voter.supports(Rights.VIEW, "App.Entity.Inventory.AbstractAsset") is True

    def test_abstain(self, voter, storage) -> None:
        storage.grant("alice", "InventoryServer", Rights.VIEW)
        assert voter.vote("alice", "InventoryServer", ["export"]) == Vote.ABSTAIN
        assert voter.vote("alice", "InventoryToaster", [Rights.VIEW]) == Vote.ABSTAIN
        assert voter.vote("alice", "InventoryServer", []) == Vote.ABSTAIN


class TestDecision:
    """Tests for the decision phase."""

    def test_fail_closed_without_grants(self, voter) -> None:
        assert voter.vote_on_attribute(Rights.VIEW, "InventoryServer", "alice") is False
        assert voter.vote("alice", "InventoryServer", [Rights.VIEW]) == Vote.DENIED

    def test_any_granted_attribute_grants(self, voter, storage) -> None:
        storage.grant("alice", "InventoryServer", Rights.VIEW)
        assert voter.vote("alice", "InventoryServer", [Rights.PURGE, Rights.VIEW]) == Vote.GRANTED

    def test_unsupported_attributes_are_ignored(self, voter, storage) -> None:
        storage.grant("alice", "InventoryServer", Rights.VIEW)
        assert voter.vote("alice", "InventoryServer", ["export", Rights.VIEW]) == Vote.GRANTED

    def test_resolve_subject_follows_redirect(self, voter) -> None:
        assert voter.resolve_subject("InventoryServerNote") == "InventoryServer"
        assert voter.resolve_subject("InventoryServer") == "InventoryServer"

    def test_redirected_entity_uses_target_grants(self, voter, storage) -> None:
        storage.grant("alice", "InventoryServer", Rights.EDIT)
        storage.grant("bob", "InventoryServerNote", Rights.EDIT)

        assert voter.vote("alice", "InventoryServerNote", [Rights.EDIT]) == Vote.GRANTED
        # Grants on the redirected entity itself are never consulted
        assert voter.vote("bob", "InventoryServerNote", [Rights.EDIT]) == Vote.DENIED

    def test_mapped_superclass_uses_descendant_grants(self, voter, storage) -> None:
        storage.grant("alice", "InventoryLaptop", Rights.EDIT)

        assert voter.vote("alice", "App.Entity.Inventory.AbstractAsset", [Rights.EDIT]) == Vote.GRANTED
        assert voter.vote("alice", "App.Entity.Inventory.AbstractAsset", [Rights.PURGE]) == Vote.DENIED

    def test_plugin_override_shares_identifier(self, voter, storage) -> None:
        storage.grant("alice", "InventoryLaptop", Rights.VIEW)
        assert voter.vote("alice", "App.Entity.Inventory.Laptop", [Rights.VIEW]) == Vote.GRANTED

    def test_missing_metadata_record_denies(self, registry, storage) -> None:
        storage.grant("alice", "InventoryServer", Rights.VIEW)
        voter = EntityVoter(registry, RightsAggregator(registry, storage))
        registry.get_manifest()

        registry.cache.clear()
        registry.cache.set("manifest", {"modules": {}, "entities": {"InventoryServer": "App.Entity.Inventory.Server"}})

        assert voter.vote_on_attribute(Rights.VIEW, "InventoryServer", "alice") is False


class TestRedirectTargets:
    """Tests for rights-inheritance targets that are not plain registered entities."""

    def test_unresolvable_target_denies(self, registry, voter, storage, introspector) -> None:
        class BadRedirect(AbstractEntity):
            RIGHTS_INHERITED_FROM = "Nowhere"

        introspector.add("App.Entity.Inventory.BadRedirect", BadRedirect)
        registry.register_entity("App.Entity.Inventory.BadRedirect")
        storage.grant("alice", "InventoryBadRedirect", Rights.EDIT)

        assert registry.get_entity_rights("InventoryBadRedirect") == frozenset()
        with pytest.raises(MalformedTypePlacementError):
            voter.resolve_subject("InventoryBadRedirect")
        assert voter.vote_on_attribute(Rights.EDIT, "InventoryBadRedirect", "alice") is False
        assert voter.vote("alice", "InventoryBadRedirect", [Rights.EDIT]) == Vote.DENIED

    def test_unregistered_target_denies(self, registry, voter, storage, introspector) -> None:
        class GhostNote(AbstractEntity):
            RIGHTS_INHERITED_FROM = "App.Entity.Inventory.Ghost"

        introspector.add("App.Entity.Inventory.GhostNote", GhostNote)
        registry.register_entity("App.Entity.Inventory.GhostNote")
        storage.grant("alice", "InventoryGhostNote", Rights.VIEW)

        assert voter.vote("alice", "InventoryGhostNote", [Rights.VIEW]) == Vote.DENIED

    def test_mapped_superclass_target_expands(self, registry, voter, storage, introspector) -> None:
        class AssetNote(AbstractEntity):
            RIGHTS_INHERITED_FROM = "App.Entity.Inventory.AbstractAsset"

        introspector.add("App.Entity.Inventory.AssetNote", AssetNote)
        registry.register_entity("App.Entity.Inventory.AssetNote")
        storage.grant("alice", "InventoryLaptop", Rights.EDIT)

        assert voter.resolve_subject("InventoryAssetNote") == "App.Entity.Inventory.AbstractAsset"
        assert voter.vote("alice", "InventoryAssetNote", [Rights.EDIT]) == Vote.GRANTED
        assert voter.vote("alice", "InventoryAssetNote", [Rights.VIEW]) == Vote.DENIED


class TestMappedSuperclassChain:
    """Tests for subjects two mapped-superclass levels above a concrete entity."""

    def test_outer_ancestor_expands_to_descendant(self, deep_chain, voter, storage) -> None:
        storage.grant("alice", "InventoryPhone", Rights.VIEW)

        assert voter.supports(Rights.VIEW, "App.Entity.Inventory.AbstractDevice") is True
        assert voter.vote("alice", "App.Entity.Inventory.AbstractDevice", [Rights.VIEW]) == Vote.GRANTED
        assert voter.vote("alice", "App.Entity.Inventory.AbstractPhone", [Rights.VIEW]) == Vote.GRANTED
        assert voter.vote("alice", "App.Entity.Inventory.AbstractDevice", [Rights.EDIT]) == Vote.DENIED

    def test_descendant_grants_stay_within_chain(self, deep_chain, voter, storage) -> None:
        storage.grant("alice", "InventoryServer", Rights.VIEW)
        assert voter.vote("alice", "App.Entity.Inventory.AbstractDevice", [Rights.VIEW]) == Vote.DENIED
