"""Shared fixtures: a small application with one plugin, declared as Python classes."""

from __future__ import annotations

import pytest

from entityregistry import (
    AbstractEntity,
    AbstractEntityRelation,
    AbstractModule,
    ClassIntrospector,
    EntityRegistry,
    EntityVoter,
    InMemoryRightsStorage,
    MemoryCacheBackend,
    RegistryConfig,
    Rights,
    RightsAggregator,
    StaticTypeUniverse,
    Trashable,
    mapped_superclass,
)

# ── Modules ─────────────────────────────────────────


class Inventory(AbstractModule):
    __type_name__ = "App.Modules.Inventory"


class Settings(AbstractModule):
    __type_name__ = "App.Modules.Settings"


class Jamf(AbstractModule):
    __type_name__ = "Plugins.Acme.PluginJamf.Modules.Jamf"


# ── Core entities ───────────────────────────────────


@mapped_superclass
class AbstractAsset(AbstractEntity):
    __abstract__ = True
    __type_name__ = "App.Entity.Inventory.AbstractAsset"


class Server(AbstractAsset, Trashable):
    __type_name__ = "App.Entity.Inventory.Server"
    BASIC_RIGHTS = (Rights.VIEW, Rights.EDIT, Rights.CREATE, Rights.PURGE)


class Laptop(AbstractAsset):
    __type_name__ = "App.Entity.Inventory.Laptop"
    BASIC_RIGHTS = (Rights.VIEW, Rights.EDIT)


class ServerNote(AbstractEntity):
    __type_name__ = "App.Entity.Inventory.ServerNote"
    RIGHTS_INHERITED_FROM = "App.Entity.Inventory.Server"


class ServerLaptop(AbstractEntityRelation):
    __type_name__ = "App.Entity.Inventory.Relation.ServerLaptop"


class MailSettings(AbstractEntity):
    __type_name__ = "App.Entity.Settings.Mail"
    SETTINGS_GROUP = "mail"
    HAS_MENU_ITEM = False


# ── Plugin entities ─────────────────────────────────


class JamfLaptop(Laptop):
    __type_name__ = "Plugins.Acme.PluginJamf.Entity.Inventory.Laptop"


class Ebook(AbstractEntity):
    __type_name__ = "Plugins.Acme.PluginJamf.Entity.Inventory.Ebook"


# ── Types the build must skip ───────────────────────


class Invoice(AbstractEntity):
    """Its module (Billing) is never declared."""

    __type_name__ = "App.Entity.Billing.Invoice"


class Broken(AbstractEntity):
    """Too short to carry a module segment."""

    __type_name__ = "App.Entity.Broken"


class Mailer:
    __type_name__ = "App.Service.Mailer"


class Printer(AbstractEntity):
    """Declared outside every source root."""

    __type_name__ = "App.Entity.Inventory.Printer"


class ServerProxy(Server):
    """What a lazy-loading ORM would hand out instead of a Server."""

    __type_name__ = "Proxies.__CG__.App.Entity.Inventory.Server"


FIXTURE_TYPES = {
    cls.__dict__["__type_name__"]: cls
    for cls in (
        Inventory,
        Settings,
        Jamf,
        AbstractAsset,
        Server,
        Laptop,
        ServerNote,
        ServerLaptop,
        MailSettings,
        JamfLaptop,
        Ebook,
        Invoice,
        Broken,
        Mailer,
        Printer,
    )
}

FIXTURE_PATHS = {
    "App.Modules.Inventory": "src/App/Modules/Inventory.py",
    "App.Modules.Settings": "src/App/Modules/Settings.py",
    "Plugins.Acme.PluginJamf.Modules.Jamf": "plugins/jamf/src/Modules/Jamf.py",
    "App.Entity.Inventory.AbstractAsset": "src/App/Entity/Inventory/AbstractAsset.py",
    "App.Entity.Inventory.Server": "src/App/Entity/Inventory/Server.py",
    "App.Entity.Inventory.Laptop": "src/App/Entity/Inventory/Laptop.py",
    "App.Entity.Inventory.ServerNote": "src/App/Entity/Inventory/ServerNote.py",
    "App.Entity.Inventory.Relation.ServerLaptop": "src/App/Entity/Inventory/Relation/ServerLaptop.py",
    "App.Entity.Settings.Mail": "src/App/Entity/Settings/Mail.py",
    "Plugins.Acme.PluginJamf.Entity.Inventory.Laptop": "plugins/jamf/src/Entity/Inventory/Laptop.py",
    "Plugins.Acme.PluginJamf.Entity.Inventory.Ebook": "plugins/jamf/src/Entity/Inventory/Ebook.py",
    "App.Entity.Billing.Invoice": "src/App/Entity/Billing/Invoice.py",
    "App.Entity.Broken": "src/App/Entity/Broken.py",
    "App.Service.Mailer": "src/App/Service/Mailer.py",
    "App.Entity.Inventory.Printer": "vendor/legacy/App/Entity/Inventory/Printer.py",
}


# ── Mapped-superclass chain (deep_chain fixture) ──


@mapped_superclass
class AbstractDevice(AbstractEntity):
    __abstract__ = True
    __type_name__ = "App.Entity.Inventory.AbstractDevice"


@mapped_superclass
class AbstractPhone(AbstractDevice):
    __abstract__ = True
    __type_name__ = "App.Entity.Inventory.AbstractPhone"


class Phone(AbstractPhone):
    __type_name__ = "App.Entity.Inventory.Phone"
    BASIC_RIGHTS = (Rights.VIEW, Rights.EDIT)


DEEP_CHAIN_TYPES = {cls.__dict__["__type_name__"]: cls for cls in (AbstractDevice, AbstractPhone, Phone)}


@pytest.fixture
def introspector() -> ClassIntrospector:
    return ClassIntrospector(FIXTURE_TYPES)


@pytest.fixture
def universe() -> StaticTypeUniverse:
    return StaticTypeUniverse(FIXTURE_PATHS.items())


@pytest.fixture
def config(tmp_path) -> RegistryConfig:
    return RegistryConfig(
        templates_dir=str(tmp_path / "templates"),
        plugins_dir=str(tmp_path / "plugins"),
    )


@pytest.fixture
def cache() -> MemoryCacheBackend:
    return MemoryCacheBackend()


@pytest.fixture
def registry(introspector, universe, cache, config) -> EntityRegistry:
    return EntityRegistry(introspector, universe, cache=cache, config=config)


@pytest.fixture
def storage() -> InMemoryRightsStorage:
    return InMemoryRightsStorage()


@pytest.fixture
def aggregator(registry, storage) -> RightsAggregator:
    return RightsAggregator(registry, storage)


@pytest.fixture
def voter(registry, aggregator) -> EntityVoter:
    return EntityVoter(registry, aggregator)


@pytest.fixture
def server_proxy() -> ServerProxy:
    return ServerProxy()


@pytest.fixture
def deep_chain(introspector, universe) -> None:
    """Add Phone -> AbstractPhone -> AbstractDevice to the universe before the first build."""
    for type_name, cls in DEEP_CHAIN_TYPES.items():
        introspector.add(type_name, cls)
        universe.add(type_name, "src/" + type_name.replace(".", "/") + ".py")
