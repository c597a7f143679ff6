"""Registries of built fragments shared by every loaded document.

A `Configuration` collects result maps, cache declarations, SQL
fragments and mapped statements under namespace-qualified identifiers,
together with the collaborators used while building them: settings, the
type alias registry, the descriptor factory and the pending registry.
"""

import logging
from datetime import date, datetime, time
from decimal import Decimal
from importlib import import_module
from threading import RLock
from typing import TYPE_CHECKING, Any

from mapperkit.errors import ConfigurationError
from mapperkit.models import MapperSettings
from mapperkit.reflection import DescriptorFactory, ObjectMetadata

from .pending import PendingRegistry
from .resolution import DeferredResolutionLoop

if TYPE_CHECKING:
    from .mapping import CacheDefinition, MappedStatement, ResultMap
    from .nodes import Node

logger = logging.getLogger(__name__)

#: Aliases known without registration, matched case-insensitively.
BUILTIN_ALIASES: dict[str, type] = {
    'string': str,
    'str': str,
    'byte': int,
    'short': int,
    'int': int,
    'integer': int,
    'long': int,
    'float': float,
    'double': float,
    'decimal': Decimal,
    'bigdecimal': Decimal,
    'boolean': bool,
    'bool': bool,
    'bytes': bytes,
    'date': date,
    'datetime': datetime,
    'time': time,
    'object': object,
    'map': dict,
    'hashmap': dict,
    'dict': dict,
    'list': list,
    'arraylist': list,
    'collection': list,
    'tuple': tuple,
    'set': set,
}


class TypeAliasRegistry:
    """Resolver of type names used in mapper documents.

    A name is looked up among registered and builtin aliases first
    (case-insensitively), then imported as a dotted `module.Class` path.
    """

    def __init__(self) -> None:
        """Initialize the registry with builtin aliases."""
        self._aliases: dict[str, type] = dict(BUILTIN_ALIASES)
        self._lock = RLock()

    def register(self, alias: str, type_: type) -> None:
        """Register an alias.

        Raises:
            ConfigurationError: If the alias is bound to another type.
        """
        key = alias.lower()

        with self._lock:
            if (existing := self._aliases.get(key)) is not None and existing is not type_:
                raise ConfigurationError(
                    f'Type alias {alias!r} is already mapped to {existing.__qualname__!r}',
                )
            self._aliases[key] = type_

    def resolve(self, name: str | None) -> type | None:
        """Resolve a type name.

        Returns:
            The resolved class, or `None` for a missing name.

        Raises:
            ConfigurationError: If the name is neither an alias nor an
                importable class.
        """
        if name is None:
            return None

        with self._lock:
            alias = self._aliases.get(name.lower())

        if alias is not None:
            return alias

        module_name, _, attribute = name.rpartition('.')
        if not module_name:
            raise ConfigurationError(f'Could not resolve type alias {name!r}')

        try:
            resolved = getattr(import_module(module_name), attribute)
        except (ImportError, AttributeError) as base:
            raise ConfigurationError(f'Could not resolve type alias {name!r}') from base

        if not isinstance(resolved, type):
            raise ConfigurationError(f'Type alias {name!r} does not name a class')

        return resolved


class Configuration:
    """Registries of one set of mapper documents.

    Attributes:
        settings: Interpretation settings.
        type_aliases: Resolver of type names.
        descriptors: Shared descriptor factory.
        pending: Fragments waiting for their references.
        resolution: Resolution passes over `pending`.
    """

    def __init__(self, settings: MapperSettings | None = None) -> None:
        """Initialize empty registries.

        Args:
            settings: Interpretation settings. Defaults are read from the
                environment when omitted.
        """
        self.settings = settings or MapperSettings()

        self.type_aliases = TypeAliasRegistry()
        self.descriptors = DescriptorFactory(cache_enabled=self.settings.reflector_cache_enabled)
        self.pending = PendingRegistry()
        self.resolution = DeferredResolutionLoop(self.pending)

        self.result_maps: dict[str, ResultMap] = {}
        self.caches: dict[str, CacheDefinition] = {}
        self.cache_refs: dict[str, str] = {}
        self.sql_fragments: dict[str, Node] = {}
        self.statements: dict[str, MappedStatement] = {}
        self.loaded_resources: set[str] = set()

        self._lock = RLock()

    def metadata_for(self, type_: type) -> ObjectMetadata:
        """Build a property view of a type."""
        return ObjectMetadata.for_type(type_, self.descriptors)

    def _register(self, registry: dict[str, Any], kind: str, key: str, value: Any) -> None:  # noqa: ANN401
        """Add an entry to one registry, rejecting duplicates."""
        with self._lock:
            if key in registry:
                raise ConfigurationError(f'{kind} {key!r} is already registered')
            registry[key] = value

        logger.debug('Registered %s %r', kind, key)

    def add_result_map(self, result_map: 'ResultMap') -> None:
        """Register a result map.

        Raises:
            ConfigurationError: If the identifier is taken.
        """
        self._register(self.result_maps, 'Result map', result_map.id, result_map)

    def get_result_map(self, identity: str) -> 'ResultMap | None':
        """Look up a result map."""
        with self._lock:
            return self.result_maps.get(identity)

    def add_cache(self, cache: 'CacheDefinition') -> None:
        """Register a cache declaration.

        Raises:
            ConfigurationError: If the namespace already declares a cache.
        """
        self._register(self.caches, 'Cache', cache.id, cache)

    def get_cache(self, namespace: str) -> 'CacheDefinition | None':
        """Look up the cache declared by a namespace."""
        with self._lock:
            return self.caches.get(namespace)

    def add_cache_ref(self, namespace: str, referenced: str) -> None:
        """Record that a namespace uses the cache of another one."""
        with self._lock:
            self.cache_refs[namespace] = referenced

    def add_sql_fragment(self, identity: str, node: 'Node') -> None:
        """Register a reusable SQL fragment.

        Args:
            identity: Qualified fragment identifier.
            node: Element holding the fragment body.

        Raises:
            ConfigurationError: If the identifier is taken.
        """
        self._register(self.sql_fragments, 'SQL fragment', identity, node)

    def get_sql_fragment(self, identity: str) -> 'Node | None':
        """Look up an SQL fragment."""
        with self._lock:
            return self.sql_fragments.get(identity)

    def add_statement(self, statement: 'MappedStatement') -> None:
        """Register a mapped statement.

        Raises:
            ConfigurationError: If the identifier is taken.
        """
        self._register(self.statements, 'Statement', statement.id, statement)

    def get_statement(self, identity: str) -> 'MappedStatement | None':
        """Look up a mapped statement."""
        with self._lock:
            return self.statements.get(identity)

    def is_resource_loaded(self, resource: str) -> bool:
        """Check whether a document was already admitted."""
        with self._lock:
            return resource in self.loaded_resources

    def add_loaded_resource(self, resource: str) -> bool:
        """Mark a document as admitted.

        Returns:
            `False` if the document was already admitted.
        """
        with self._lock:
            if resource in self.loaded_resources:
                return False
            self.loaded_resources.add(resource)

        return True
