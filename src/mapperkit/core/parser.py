"""Mapper document parsing and loading.

A mapper document declares one namespace and its fragments:

```yaml
namespace: app.users
cache-ref: {namespace: app.shared}
resultMap:
  - id: userMap
    type: app.models.User
    extends: baseMap
    results:
      - !id {property: id, column: user_id}
      - !result {property: name, column: user_name}
      - !association {property: address, resultMap: app.addresses.addressMap}
sql:
  - id: userColumns
    sql: user_id, user_name
select:
  - id: findUser
    parameterType: int
    resultMap: userMap
    sql:
      - SELECT
      - !include {refid: userColumns}
      - "FROM users WHERE user_id = #{id}"
```

Fragments may reference fragments of documents admitted later. Such
fragments are deferred and retried after every admitted document; the
loader reports whatever is still pending once all documents are in.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING
from warnings import warn

from yaml.error import MarkedYAMLError

from mapperkit.errors import (
    ConfigurationError,
    ErrorContext,
    MapperError,
    MapperWarning,
    UnresolvableReference,
)

from .assistant import BuilderAssistant
from .configuration import Configuration
from .mapping import ResultFlag
from .nodes import load_document
from .resolvers import CacheRefResolver, ResultMapResolver, StatementBuilder

if TYPE_CHECKING:
    from collections.abc import Iterable
    from io import TextIOBase

    from .mapping import Discriminator, ResultMapping
    from .nodes import Node
    from .pending import PendingFragment

logger = logging.getLogger(__name__)

#: One mapper document: a file path, or a resource name with its content.
type MapperSource = Path | tuple[str, 'TextIOBase | str']

#: Top-level elements of a mapper document.
DOCUMENT_ELEMENTS = frozenset({
    'cache-ref', 'cache', 'resultMap', 'sql', 'select', 'insert', 'update', 'delete',
})

#: Statement elements, matched in document order.
STATEMENT_ELEMENTS = 'select|insert|update|delete'

#: Result map elements mapping one column.
RESULT_ELEMENTS = frozenset({'id', 'result', 'results', 'association', 'collection'})

#: Result map elements that may declare a nested result map.
NESTED_ELEMENTS = frozenset({'association', 'collection', 'case', 'cases'})

#: Constructor argument elements.
ARGUMENT_ELEMENTS = frozenset({'arg', 'args', 'idArg'})

#: Discriminator case elements.
CASE_ELEMENTS = frozenset({'case', 'cases'})

#: Attributes naming the type of a result map, in order of preference.
TYPE_ATTRIBUTES = ('type', 'ofType', 'resultType', 'javaType')


class MapperParser:
    """Parser of one mapper document into a configuration.

    Attributes:
        configuration: Target registries.
        resource: Name of the document. Documents with a name are admitted
            at most once per configuration.
        assistant: Builder state of the document.
    """

    def __init__(self, configuration: Configuration, resource: str | None = None) -> None:
        """Initialize a parser of one document."""
        self.configuration = configuration
        self.resource = resource
        self.assistant = BuilderAssistant(configuration, resource)

        self._claimed_fragments: set[str] = set()
        self._claimed_statements: set[str] = set()

    def parse(self, content: 'TextIOBase | str') -> None:
        """Admit a document and run one resolution pass.

        Args:
            content: YAML content as a string or text stream.

        Raises:
            ConfigurationError: If the document is malformed.
        """
        if self.resource is not None and not self.configuration.add_loaded_resource(self.resource):
            warn(
                f'Mapper resource {self.resource!r} is already loaded',
                category=MapperWarning,
                stacklevel=2,
            )

        else:
            try:
                self.configuration_element(self.load(content))

            except MapperError:
                raise

            except Exception as base:
                raise ConfigurationError(
                    f'Error parsing mapper document {self.resource!r}: {base}',
                ) from base

            logger.debug('Admitted mapper document %r', self.resource)

        self.configuration.resolution.run_pass()

    def load(self, content: 'TextIOBase | str') -> 'Node':
        """Read the element tree of the document.

        Raises:
            ConfigurationError: If the content is not a YAML mapping.
        """
        try:
            root = load_document(content, self.resource)

        except MarkedYAMLError as base:
            raise ConfigurationError.from_yaml_error(base, self.resource) from base

        if root is None:
            raise ConfigurationError(
                f'Mapper document {self.resource!r} is empty',
                context=ErrorContext(filename=self.resource),
            )

        return root

    def configuration_element(self, root: 'Node') -> None:
        """Build every fragment declared by a document."""
        with root.located():
            self.assistant.current_namespace = root.get_string('namespace') or ''

        for child in root.children:
            if child.name not in DOCUMENT_ELEMENTS:
                warn(
                    f'Element {child.name!r} of {self.resource!r} is not supported and is ignored',
                    category=MapperWarning,
                    stacklevel=3,
                )

        self.cache_ref_element(root.eval_node('cache-ref'))
        self.cache_element(root.eval_node('cache'))
        self.result_map_elements(root.eval_nodes('resultMap'))
        self.sql_elements(root.eval_nodes('sql'))
        self.statement_elements(root.eval_nodes(STATEMENT_ELEMENTS))

    def attempt(self, entry: 'PendingFragment') -> bool:
        """Build a fragment, deferring it on a missing reference.

        Returns:
            Whether the fragment was built.
        """
        try:
            entry.resolve()

        except UnresolvableReference as error:
            entry.defer(error)
            self.configuration.pending.enqueue(entry.kind, entry)
            return False

        return True

    def cache_ref_element(self, node: 'Node | None') -> None:
        """Link the document to the cache of another namespace."""
        if node is None:
            return

        with node.located():
            namespace = node.get_string('namespace')
            if not namespace:
                raise ConfigurationError("Element cache-ref requires a 'namespace'")

            self.configuration.add_cache_ref(self.assistant.current_namespace or '', namespace)
            self.attempt(CacheRefResolver(self.assistant, namespace))

    def cache_element(self, node: 'Node | None') -> None:
        """Declare the cache of the document's namespace."""
        if node is None:
            return

        with node.located():
            properties = node.eval_node('properties')
            self.assistant.use_new_cache(
                type_=node.get_string('type', 'PERPETUAL') or 'PERPETUAL',
                eviction=node.get_string('eviction', 'LRU') or 'LRU',
                flush_interval=node.get_int('flushInterval'),
                size=node.get_int('size'),
                read_write=not node.get_bool('readOnly', False),
                blocking=node.get_bool('blocking', False) or False,
                properties={
                    name: properties.get_string(name) or ''
                    for name in properties.attributes
                } if properties else None,
            )

    def result_map_elements(self, nodes: list['Node']) -> None:
        """Build every top-level result map."""
        for node in nodes:
            self.result_map_element(node)

    def result_map_element(self, node: 'Node', enclosing: type | None = None,
                           additional: 'Iterable[ResultMapping]' = ()) -> str:
        """Build one result map, possibly nested in another.

        A result map waiting for its parent is deferred. Nested result maps
        are identified by their position in the document.

        Returns:
            Qualified identifier of the result map.
        """
        identity = node.get_string('id', node.value_based_identifier()) or ''

        with node.located(identity):
            type_ = self.result_type(node, enclosing)

            mappings = list(additional)
            discriminator: Discriminator | None = None

            for child in node.children:
                if child.name == 'constructor':
                    self.constructor_element(child, type_, mappings)

                elif child.name == 'discriminator':
                    discriminator = self.discriminator_element(child, type_, mappings)

                elif child.name in RESULT_ELEMENTS:
                    flags = {ResultFlag.ID} if child.name == 'id' else set()
                    mappings.append(self.result_mapping(child, type_, flags))

                else:
                    raise child.error(f'Unknown result map element {child.name!r}', fragment=identity)

            resolver = ResultMapResolver(
                self.assistant,
                identity,
                type_,
                extends=node.get_string('extends'),
                discriminator=discriminator,
                mappings=mappings,
                auto_mapping=node.get_bool('autoMapping'),
            )
            self.attempt(resolver)

        return resolver.identity

    def result_type(self, node: 'Node', enclosing: type | None) -> type:
        """Resolve the type built by a result map.

        Nested result maps without a declared type use the enclosing type
        (for discriminator cases), the written property type (for
        associations) or the declared element type (for collections).

        Raises:
            ConfigurationError: If no type is declared or inferable.
        """
        for attribute in TYPE_ATTRIBUTES:
            if (name := node.get_string(attribute)) is not None:
                return self.configuration.type_aliases.resolve(name) or object

        if enclosing is not None:
            if node.name in CASE_ELEMENTS:
                return enclosing

            if (property_ := node.get_string('property')) is not None:
                metadata = self.configuration.metadata_for(enclosing)
                if node.name == 'collection':
                    return metadata.getter_type(f'{property_}[0]')
                return metadata.setter_type(property_)

        raise ConfigurationError(f'Element {node.name!r} requires a type')

    def constructor_element(self, node: 'Node', type_: type,
                            mappings: list['ResultMapping']) -> None:
        """Collect constructor argument mappings."""
        for child in node.children:
            if child.name not in ARGUMENT_ELEMENTS:
                raise child.error(f'Unknown constructor element {child.name!r}')

            flags = {ResultFlag.CONSTRUCTOR}
            if child.name == 'idArg':
                flags.add(ResultFlag.ID)

            mappings.append(self.result_mapping(child, type_, flags))

    def discriminator_element(self, node: 'Node', type_: type,
                              mappings: list['ResultMapping']) -> 'Discriminator':
        """Build a discriminator and the nested result maps of its cases."""
        column = node.get_string('column')
        if column is None:
            raise node.error("Element discriminator requires a 'column'")

        cases: dict[str, str] = {}
        for child in node.eval_nodes('|'.join(CASE_ELEMENTS)):
            value = child.get_string('value')
            if value is None:
                raise child.error("Element case requires a 'value'")

            cases[value] = (
                child.get_string('resultMap')
                or self.result_map_element(child, type_, mappings)
            )

        return self.assistant.build_discriminator(
            type_,
            column=column,
            value_type=self.configuration.type_aliases.resolve(node.get_string('javaType')),
            jdbc_type=self.assistant.resolve_jdbc_type(node.get_string('jdbcType')),
            cases=cases,
        )

    def result_mapping(self, node: 'Node', type_: type,
                       flags: set[ResultFlag]) -> 'ResultMapping':
        """Build the mapping declared by one result element."""
        property_ = node.get_string('name' if ResultFlag.CONSTRUCTOR in flags else 'property')

        nested_select = node.get_string('select')
        nested_result_map = node.get_string('resultMap')
        if nested_result_map is None and nested_select is None and node.name in NESTED_ELEMENTS:
            nested_result_map = self.result_map_element(node, type_)

        fetch_type = node.get_string('fetchType')

        return self.assistant.build_result_mapping(
            type_,
            property_=property_,
            column=node.get_string('column'),
            value_type=self.configuration.type_aliases.resolve(node.get_string('javaType')),
            jdbc_type=self.assistant.resolve_jdbc_type(node.get_string('jdbcType')),
            nested_select=nested_select,
            nested_result_map=nested_result_map,
            not_null_column=node.get_string('notNullColumn'),
            column_prefix=node.get_string('columnPrefix'),
            flags=flags,
            result_set=node.get_string('resultSet'),
            foreign_column=node.get_string('foreignColumn'),
            lazy=None if fetch_type is None else fetch_type == 'lazy',
        )

    @staticmethod
    def database_id_matches(identity: str, database_id: str | None,
                            required: str | None, claimed: set[str]) -> bool:
        """Check whether an element applies to the current database.

        Elements for the current database are selected first; generic
        elements are then skipped when a database-specific variant with
        the same identifier was selected.
        """
        if required is not None:
            return database_id == required

        if database_id is not None:
            return False

        return identity not in claimed

    def _required_database_ids(self) -> list[str | None]:
        """Database identifiers to select elements for, most specific first."""
        if (database_id := self.configuration.settings.database_id) is not None:
            return [database_id, None]

        return [None]

    def _identity_of(self, node: 'Node') -> str:
        """Qualified identifier of a declared element."""
        local_id = node.get_string('id')
        if local_id is None:
            raise ConfigurationError(f'Element {node.name!r} requires an id')

        return self.assistant.apply_namespace(local_id) or local_id

    def sql_elements(self, nodes: list['Node']) -> None:
        """Register reusable SQL fragments."""
        for required in self._required_database_ids():
            for node in nodes:
                with node.located():
                    identity = self._identity_of(node)
                    if not self.database_id_matches(identity, node.get_string('databaseId'),
                                                    required, self._claimed_fragments):
                        continue

                    self.configuration.add_sql_fragment(identity, node)
                    if required is not None:
                        self._claimed_fragments.add(identity)

    def statement_elements(self, nodes: list['Node']) -> None:
        """Build statements, deferring those with missing references."""
        for required in self._required_database_ids():
            for node in nodes:
                with node.located():
                    identity = self._identity_of(node)
                    if not self.database_id_matches(identity, node.get_string('databaseId'),
                                                    required, self._claimed_statements):
                        continue

                    if required is not None:
                        self._claimed_statements.add(identity)
                    builder = StatementBuilder(self.assistant, node, required)

                self.attempt(builder)


class ConfigurationLoader:
    """Loader of several mapper documents into one configuration.

    Documents may be admitted concurrently. Once all are admitted,
    `finish` runs a last resolution pass and reports anything still
    pending.
    """

    def __init__(self, configuration: Configuration | None = None) -> None:
        """Initialize the loader."""
        self.configuration = configuration or Configuration()

    def load_one(self, source: MapperSource) -> None:
        """Admit a single document.

        Raises:
            ConfigurationError: If the document is malformed. Introspection
                errors of the declared types are raised as located
                configuration errors caused by the original error.
        """
        if isinstance(source, Path):
            resource, content = str(source), source.read_text(encoding='utf-8')
        else:
            resource, content = source

        MapperParser(self.configuration, resource).parse(content)

    def load(self, sources: 'Iterable[MapperSource]', workers: int = 1) -> Configuration:
        """Admit several documents.

        Args:
            sources: Documents to admit, in order.
            workers: Number of documents admitted concurrently.

        Returns:
            The target configuration.

        Raises:
            ConfigurationError: If a document is malformed. Introspection
                errors such as `AmbiguousAccessorError` are not raised as
                such: they are wrapped in a located `ConfigurationError`
                and kept as its `__cause__`.
        """
        if workers <= 1:
            for source in sources:
                self.load_one(source)
            return self.configuration

        with ThreadPoolExecutor(max_workers=workers) as executor:
            list(executor.map(self.load_one, sources))

        return self.configuration

    def finish(self) -> Configuration:
        """Run the last resolution pass.

        Returns:
            The fully resolved configuration.

        Raises:
            UnresolvedFragmentsError: If any fragment is still pending.
        """
        resolution = self.configuration.resolution

        resolution.run_pass()
        resolution.raise_for_unresolved()

        return self.configuration
