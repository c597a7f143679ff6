"""Resumable builders of fragments with forward references.

Each resolver captures everything needed to build one fragment, so that
a build failing on a missing reference can be retried unchanged by a
later resolution pass.
"""

from collections.abc import Collection
from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from mapperkit.errors import ConfigurationError, UnresolvableReference
from mapperkit.names import PLACEHOLDER_PATTERN

from .mapping import StatementKind
from .pending import FragmentKind, PendingFragment

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .assistant import BuilderAssistant
    from .mapping import CacheDefinition, Discriminator, MappedStatement, ResultMap, ResultMapping
    from .nodes import Node

#: Parameter types whose placeholders are not checked against properties.
SCALAR_TYPES = (str, bytes, int, float, bool, Decimal, date, datetime, time)

#: Names of the elements composing an SQL body.
BODY_ELEMENTS = 'sql|include'


class ResultMapResolver(PendingFragment):
    """Pending registration of a result map waiting for its parent."""

    kind = FragmentKind.RESULT_MAP

    def __init__(self, assistant: 'BuilderAssistant', identity: str, type_: type, *,
                 extends: str | None = None,
                 discriminator: 'Discriminator | None' = None,
                 mappings: 'Sequence[ResultMapping]' = (),
                 auto_mapping: bool | None = None) -> None:
        """Capture the declaration of a result map."""
        super().__init__(assistant.apply_namespace(identity) or identity, assistant.resource)

        self.assistant = assistant
        self.local_id = identity
        self.type = type_
        self.extends = extends
        self.discriminator = discriminator
        self.mappings = tuple(mappings)
        self.auto_mapping = auto_mapping

    def resolve(self) -> 'ResultMap':
        """Register the result map.

        Raises:
            UnresolvableReference: If the parent is still missing.
        """
        return self.assistant.add_result_map(
            self.local_id,
            self.type,
            extends=self.extends,
            discriminator=self.discriminator,
            mappings=self.mappings,
            auto_mapping=self.auto_mapping,
        )


class CacheRefResolver(PendingFragment):
    """Pending link to the cache of another namespace."""

    kind = FragmentKind.CACHE_REF

    def __init__(self, assistant: 'BuilderAssistant', namespace: str) -> None:
        """Capture a cache link of the current namespace."""
        super().__init__(assistant.current_namespace or namespace, assistant.resource)

        self.assistant = assistant
        self.namespace = namespace

    def resolve(self) -> 'CacheDefinition':
        """Link the cache.

        Raises:
            UnresolvableReference: If the namespace declares no cache yet.
        """
        return self.assistant.use_cache_ref(self.namespace)


class StatementBuilder(PendingFragment):
    """Builder of one statement element.

    Building expands `!include` references to SQL fragments, validates
    parameter placeholders and registers the statement.
    """

    kind = FragmentKind.STATEMENT

    def __init__(self, assistant: 'BuilderAssistant', node: 'Node',
                 database_id: str | None = None) -> None:
        """Capture a statement element.

        Args:
            assistant: Builder state of the declaring document.
            node: Statement element.
            database_id: Database identifier the statement was selected for.
        """
        local_id = node.get_string('id')
        if local_id is None:
            raise node.error(f'Statement {node.name!r} requires an id')

        super().__init__(assistant.apply_namespace(local_id) or local_id, assistant.resource)

        self.assistant = assistant
        self.node = node
        self.database_id = database_id

    def resolve(self) -> 'MappedStatement':
        """Build and register the statement.

        Raises:
            UnresolvableReference: If an included fragment, a result map
                or the cache link is still missing.
            ConfigurationError: If the element is invalid.
        """
        node = self.node
        configuration = self.assistant.configuration

        with node.located(self.identity):
            parameter_type = configuration.type_aliases.resolve(node.get_string('parameterType'))
            result_type = configuration.type_aliases.resolve(node.get_string('resultType'))
            result_map = node.get_string('resultMap')

            if result_type is not None and result_map is not None:
                raise ConfigurationError('Attributes resultType and resultMap are mutually exclusive')

            sql = ' '.join(' '.join(self.render(node)).split())
            if not sql:
                raise ConfigurationError(f'Statement {self.identity!r} has an empty body')

            parameters = [match.group('property') for match in PLACEHOLDER_PATTERN.finditer(sql)]
            self.validate_parameters(parameter_type, parameters)

            return self.assistant.add_mapped_statement(
                node.get_string('id') or self.identity,
                StatementKind(node.name),
                sql,
                parameters=parameters,
                parameter_type=parameter_type,
                result_type=result_type,
                result_map=result_map,
                use_cache=node.get_bool('useCache'),
                flush_cache=node.get_bool('flushCache'),
                database_id=self.database_id,
                timeout=node.get_int('timeout'),
                fetch_size=node.get_int('fetchSize'),
            )

    def render(self, node: 'Node', included: tuple[str, ...] = ()) -> list[str]:
        """Collect the text parts of an SQL body, expanding includes.

        Raises:
            UnresolvableReference: If an included fragment is missing.
            ConfigurationError: If includes are circular or lack a `refid`.
        """
        if (text := node.get_string('sql')) is not None:
            return [text]

        parts: list[str] = []

        for child in node.eval_nodes(BODY_ELEMENTS):
            if child.name != 'include':
                if child.text is not None:
                    parts.append(child.text)
                continue

            refid = child.get_string('refid', child.text)
            if refid is None:
                raise child.error('Element include requires a refid', fragment=self.identity)

            identity = self.assistant.apply_namespace(refid, True) or refid
            if identity in included:
                raise child.error(f'Circular include of {identity!r}', fragment=self.identity)

            fragment = self.assistant.configuration.get_sql_fragment(identity)
            if fragment is None:
                raise UnresolvableReference(
                    f'Could not find SQL fragment {identity!r}',
                    reference=identity,
                )

            parts.extend(self.render(fragment, (*included, identity)))

        return parts

    def validate_parameters(self, parameter_type: type | None, parameters: list[str]) -> None:
        """Check that every placeholder names a readable property.

        Raises:
            ConfigurationError: If a placeholder cannot be read from
                `parameter_type`.
        """
        if not _is_introspected(parameter_type):
            return

        metadata = self.assistant.configuration.metadata_for(parameter_type)
        for parameter in parameters:
            if not metadata.has_getter(parameter):
                raise ConfigurationError(
                    f'There is no getter for property named {parameter!r} '
                    f'in {parameter_type.__qualname__!r}',
                )


def _is_introspected(parameter_type: Any) -> bool:  # noqa: ANN401
    """Check whether placeholders of a parameter type are validated."""
    if parameter_type is None or parameter_type is object:
        return False

    return not issubclass(parameter_type, (Collection, *SCALAR_TYPES))
