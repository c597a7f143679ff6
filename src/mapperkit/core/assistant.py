"""Per-document fragment building.

A `BuilderAssistant` holds the state of one mapper document being
admitted (its namespace and the cache its statements use) and turns
parsed declarations into registered fragments. References to fragments
that are not registered yet raise `UnresolvableReference`, which the
callers turn into pending entries.
"""

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from mapperkit.errors import ConfigurationError, ReflectionError, UnresolvableReference
from mapperkit.names import QUALIFIED_ID_PATTERN

from .mapping import (
    CacheDefinition,
    Discriminator,
    JdbcType,
    MappedStatement,
    ResultFlag,
    ResultMap,
    ResultMapping,
    StatementKind,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .configuration import Configuration

logger = logging.getLogger(__name__)

#: Separator of several result map references.
RESULT_MAP_SEPARATOR = ','


def parse_column_names(columns: str | None) -> frozenset[str]:
    """Split a `{a, b}` or `a, b` column list."""
    if not columns:
        return frozenset()

    return frozenset(
        column.strip()
        for column in columns.strip().removeprefix('{').removesuffix('}').split(',')
        if column.strip()
    )


class BuilderAssistant:
    """Builder state of one mapper document.

    Attributes:
        configuration: Target registries.
        resource: Name of the document.
        current_cache: Cache used by statements of the document.
        cache_ref: Namespace whose cache the document links to.
        unresolved_cache_ref: Whether a cache link is still pending.
            Statements cannot be built while it is set.
    """

    def __init__(self, configuration: 'Configuration', resource: str | None = None) -> None:
        """Initialize the state of one document."""
        self.configuration = configuration
        self.resource = resource

        self.current_cache: CacheDefinition | None = None
        self.cache_ref: str | None = None
        self.unresolved_cache_ref = False

        self._namespace: str | None = None

    @property
    def current_namespace(self) -> str | None:
        """Namespace of the document."""
        return self._namespace

    @current_namespace.setter
    def current_namespace(self, namespace: str) -> None:
        if not namespace:
            raise ConfigurationError("The mapper element requires a non-empty 'namespace'")

        if not QUALIFIED_ID_PATTERN.match(namespace):
            raise ConfigurationError(f'Invalid namespace {namespace!r}')

        if self._namespace is not None and self._namespace != namespace:
            raise ConfigurationError(
                f'Wrong namespace. Expected {self._namespace!r} but found {namespace!r}',
            )

        self._namespace = namespace

    def apply_namespace(self, base: str | None, is_reference: bool = False) -> str | None:
        """Qualify a local identifier with the current namespace.

        Args:
            base: Local or qualified identifier.
            is_reference: Whether `base` refers to a fragment (dotted
                references of other namespaces are kept as they are)
                rather than declares one.

        Returns:
            The qualified identifier, or `None` for a missing one.

        Raises:
            ConfigurationError: If a declared local identifier contains dots.
        """
        if base is None:
            return None

        if self._namespace is None:
            raise ConfigurationError('Namespace must be set before identifiers are qualified')

        if is_reference:
            if '.' in base:
                return base

        else:
            if base.startswith(f'{self._namespace}.'):
                return base
            if '.' in base:
                raise ConfigurationError(
                    f'Dots are not allowed in element names, please remove it from {base!r}',
                )

        return f'{self._namespace}.{base}'

    def use_cache_ref(self, namespace: str) -> CacheDefinition:
        """Use the cache declared by another namespace.

        Raises:
            UnresolvableReference: If that namespace declares no cache yet.
        """
        self.cache_ref = namespace
        self.unresolved_cache_ref = True

        if (cache := self.configuration.get_cache(namespace)) is None:
            raise UnresolvableReference(
                f'No cache for namespace {namespace!r} could be found',
                reference=namespace,
            )

        self.current_cache = cache
        self.unresolved_cache_ref = False

        return cache

    def use_new_cache(self, *, type_: str = 'PERPETUAL', eviction: str = 'LRU',
                      flush_interval: int | None = None, size: int | None = None,
                      read_write: bool = True, blocking: bool = False,
                      properties: 'Mapping[str, str] | None' = None) -> CacheDefinition:
        """Declare the cache of the current namespace.

        Raises:
            ConfigurationError: If the namespace already declares a cache.
        """
        cache = CacheDefinition(
            id=self._require_namespace(),
            type=type_,
            eviction=eviction,
            flush_interval=flush_interval,
            size=size,
            read_write=read_write,
            blocking=blocking,
            properties=dict(properties or {}),
        )

        self.configuration.add_cache(cache)
        self.current_cache = cache

        return cache

    def _require_namespace(self) -> str:
        """Return the namespace, failing when it is not set."""
        if self._namespace is None:
            raise ConfigurationError('Namespace must be set before fragments are built')

        return self._namespace

    @staticmethod
    def resolve_jdbc_type(name: str | None) -> JdbcType | None:
        """Resolve a column type name.

        Raises:
            ConfigurationError: If the name is unknown.
        """
        if name is None:
            return None

        try:
            return JdbcType(name.upper())
        except ValueError as base:
            raise ConfigurationError(f'Error resolving JdbcType {name!r}') from base

    def _infer_value_type(self, result_type: type, property_: str | None,
                          declared: type | None) -> type:
        """Infer the value type of a mapping from the result type's writer."""
        if declared is not None:
            return declared

        if property_ is None or issubclass(result_type, Mapping):
            return object

        try:
            return self.configuration.metadata_for(result_type).setter_type(property_)
        except ReflectionError:
            return object

    def build_result_mapping(self, result_type: type, *,
                             property_: str | None = None,
                             column: str | None = None,
                             value_type: type | None = None,
                             jdbc_type: JdbcType | None = None,
                             nested_select: str | None = None,
                             nested_result_map: str | None = None,
                             not_null_column: str | None = None,
                             column_prefix: str | None = None,
                             flags: 'Iterable[ResultFlag]' = (),
                             result_set: str | None = None,
                             foreign_column: str | None = None,
                             lazy: bool | None = None) -> ResultMapping:
        """Build the mapping of one column to one property.

        Properties are validated against the writers of `result_type`. A
        mapping without a property is matched to one by its column name.

        Raises:
            ConfigurationError: If the property cannot be written.
        """
        flags = frozenset(flags)
        introspected = not issubclass(result_type, Mapping) and result_type is not object

        if introspected and ResultFlag.CONSTRUCTOR not in flags:
            metadata = self.configuration.metadata_for(result_type)

            if property_ is None and column is not None:
                property_ = metadata.find_property(
                    column,
                    use_camel_case_mapping=self.configuration.settings.map_underscore_to_camel_case,
                )

            elif property_ is not None and not metadata.has_setter(property_):
                raise ConfigurationError(
                    f'No writable property named {property_!r} '
                    f'in {result_type.__qualname__!r}',
                )

        if lazy is None:
            lazy = self.configuration.settings.lazy_loading_enabled

        return ResultMapping(
            property=property_,
            column=column,
            value_type=self._infer_value_type(result_type, property_, value_type),
            jdbc_type=jdbc_type,
            nested_select_id=self.apply_namespace(nested_select, True),
            nested_result_map_id=self.apply_namespace(nested_result_map, True),
            not_null_columns=parse_column_names(not_null_column),
            column_prefix=column_prefix,
            flags=flags,
            result_set=result_set,
            foreign_column=foreign_column,
            lazy=lazy and nested_select is not None,
        )

    def build_discriminator(self, result_type: type, *, column: str,
                            value_type: type | None = None,
                            jdbc_type: JdbcType | None = None,
                            cases: 'Mapping[str, str]') -> Discriminator:
        """Build a column-driven choice between result maps."""
        mapping = ResultMapping(
            column=column,
            value_type=value_type or object,
            jdbc_type=jdbc_type,
        )

        return Discriminator(
            mapping=mapping,
            cases={
                value: self.apply_namespace(result_map, True) or result_map
                for value, result_map in cases.items()
            },
        )

    def add_result_map(self, identity: str, type_: type, *,
                       extends: str | None = None,
                       discriminator: Discriminator | None = None,
                       mappings: 'Sequence[ResultMapping]' = (),
                       auto_mapping: bool | None = None) -> ResultMap:
        """Register a result map, merging the mappings of its parent.

        Inherited mappings of properties redeclared by the child are
        dropped, and so are inherited constructor mappings when the child
        declares its own constructor.

        Raises:
            UnresolvableReference: If the parent is not registered yet.
            ConfigurationError: If the identifier is taken.
        """
        identity = self.apply_namespace(identity) or identity
        merged = list(mappings)

        if (parent_id := self.apply_namespace(extends, True)) is not None:
            if (parent := self.configuration.get_result_map(parent_id)) is None:
                raise UnresolvableReference(
                    f'Could not find a parent result map with id {parent_id!r}',
                    reference=parent_id,
                )

            redeclared = {mapping.property for mapping in merged if mapping.property}
            declares_constructor = any(ResultFlag.CONSTRUCTOR in mapping.flags for mapping in merged)

            merged.extend(
                mapping
                for mapping in parent.mappings
                if mapping.property not in redeclared
                and not (declares_constructor and ResultFlag.CONSTRUCTOR in mapping.flags)
            )

        result_map = ResultMap(
            id=identity,
            type=type_,
            mappings=tuple(merged),
            discriminator=discriminator,
            auto_mapping=auto_mapping,
        )

        self.configuration.add_result_map(result_map)
        return result_map

    def _statement_result_maps(self, result_map: str | None) -> tuple[str, ...]:
        """Resolve the comma-separated result maps of a statement."""
        if not result_map:
            return ()

        identities = []
        for name in result_map.split(RESULT_MAP_SEPARATOR):
            identity = self.apply_namespace(name.strip(), True) or name
            if self.configuration.get_result_map(identity) is None:
                raise UnresolvableReference(
                    f'Could not find result map {identity!r}',
                    reference=identity,
                )
            identities.append(identity)

        return tuple(identities)

    def add_mapped_statement(self, identity: str, kind: StatementKind, sql: str, *,
                             parameters: 'Sequence[str]' = (),
                             parameter_type: type | None = None,
                             result_type: type | None = None,
                             result_map: str | None = None,
                             use_cache: bool | None = None,
                             flush_cache: bool | None = None,
                             database_id: str | None = None,
                             timeout: int | None = None,
                             fetch_size: int | None = None) -> MappedStatement:
        """Register a statement.

        Raises:
            UnresolvableReference: If the cache link of the document or a
                referenced result map is still missing.
            ConfigurationError: If the identifier is taken.
        """
        if self.unresolved_cache_ref:
            raise UnresolvableReference(
                'Cache-ref not yet resolved',
                reference=self.cache_ref or '',
            )

        is_select = kind is StatementKind.SELECT
        use_cache = is_select if use_cache is None else use_cache

        statement = MappedStatement(
            id=self.apply_namespace(identity) or identity,
            resource=self.resource,
            kind=kind,
            sql=sql,
            parameters=tuple(parameters),
            parameter_type=parameter_type,
            result_type=result_type,
            result_map_ids=self._statement_result_maps(result_map),
            cache_id=self.current_cache.id if self.current_cache else None,
            use_cache=use_cache and self.configuration.settings.cache_enabled,
            flush_cache=not is_select if flush_cache is None else flush_cache,
            database_id=database_id,
            timeout=timeout,
            fetch_size=fetch_size,
        )

        self.configuration.add_statement(statement)
        return statement
