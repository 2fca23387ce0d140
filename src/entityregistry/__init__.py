from .config import LogLevel, NamespaceConfig, RegistryConfig, load_registry_config_from_env
from .declarations import (
    AbstractEntity,
    AbstractEntityRelation,
    AbstractModule,
    Trait,
    Trashable,
    mapped_superclass,
    marker,
)
from .exceptions import (
    CacheBackendError,
    EntityRegistryError,
    IdentifierCollisionError,
    MalformedTypePlacementError,
    ModuleNotYetRegisteredError,
    StructuralResolutionError,
    UnknownEntityIdentifierError,
    UnknownIdentifierError,
    UnknownModuleIdentifierError,
)
from .identifiers import entity_identifier, module_identifier, normalize_type_name
from .introspection import ClassIntrospector, FactsCache, TypeFacts, TypeIntrospector, is_subtype_of
from .universe import PackageTypeUniverse, StaticTypeUniverse, TypeCandidate, TypeUniverseSource
from .cache import CacheBackend, MemoryCacheBackend, RedisCacheBackend, create_cache_backend
from .models import EntityRecord, Manifest, ModuleMetadata, ModuleRecord, RightsManifest
from .builder import BuildReport, ManifestBuilder
from .registry import EntityRegistry, FieldProvider
from .rights import Grant, InMemoryRightsStorage, Rights, RightsAggregator, RightsStorage
from .voter import EntityVoter, Vote
from .logging import (
    safe_preview,
    RegistryFormatter,
    RegistryLoggerAdapter,
    setup_logging,
    get_registry_logger,
)

__version__ = "0.1.0"

__all__ = [
    'LogLevel',
    'NamespaceConfig',
    'RegistryConfig',
    'load_registry_config_from_env',
    'AbstractEntity',
    'AbstractEntityRelation',
    'AbstractModule',
    'Trait',
    'Trashable',
    'mapped_superclass',
    'marker',
    'CacheBackendError',
    'EntityRegistryError',
    'IdentifierCollisionError',
    'MalformedTypePlacementError',
    'ModuleNotYetRegisteredError',
    'StructuralResolutionError',
    'UnknownEntityIdentifierError',
    'UnknownIdentifierError',
    'UnknownModuleIdentifierError',
    'entity_identifier',
    'module_identifier',
    'normalize_type_name',
    'ClassIntrospector',
    'FactsCache',
    'TypeFacts',
    'TypeIntrospector',
    'is_subtype_of',
    'PackageTypeUniverse',
    'StaticTypeUniverse',
    'TypeCandidate',
    'TypeUniverseSource',
    'CacheBackend',
    'MemoryCacheBackend',
    'RedisCacheBackend',
    'create_cache_backend',
    'EntityRecord',
    'Manifest',
    'ModuleMetadata',
    'ModuleRecord',
    'RightsManifest',
    'BuildReport',
    'ManifestBuilder',
    'EntityRegistry',
    'FieldProvider',
    'Grant',
    'InMemoryRightsStorage',
    'Rights',
    'RightsAggregator',
    'RightsStorage',
    'EntityVoter',
    'Vote',
    'safe_preview',
    'RegistryFormatter',
    'RegistryLoggerAdapter',
    'setup_logging',
    'get_registry_logger',
]
