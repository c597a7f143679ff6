"""Built configuration fragments.

Every fragment registered in a `Configuration` is an immutable model:
result mappings and result maps, discriminators, cache declarations and
mapped statements. Pending fragments that never resolved are described
by `UnresolvedFragment`.
"""

import builtins
from enum import StrEnum

from pydantic import Field

from mapperkit.models import SchemaModel
from mapperkit.names import Namespace  # noqa: TC001

from .pending import FragmentKind  # noqa: TC001


class JdbcType(StrEnum):
    """Known column types accepted by `jdbcType` attributes."""

    ARRAY = 'ARRAY'
    BIGINT = 'BIGINT'
    BINARY = 'BINARY'
    BIT = 'BIT'
    BLOB = 'BLOB'
    BOOLEAN = 'BOOLEAN'
    CHAR = 'CHAR'
    CLOB = 'CLOB'
    CURSOR = 'CURSOR'
    DATE = 'DATE'
    DATETIMEOFFSET = 'DATETIMEOFFSET'
    DECIMAL = 'DECIMAL'
    DOUBLE = 'DOUBLE'
    FLOAT = 'FLOAT'
    INTEGER = 'INTEGER'
    LONGNVARCHAR = 'LONGNVARCHAR'
    LONGVARBINARY = 'LONGVARBINARY'
    LONGVARCHAR = 'LONGVARCHAR'
    NCHAR = 'NCHAR'
    NCLOB = 'NCLOB'
    NULL = 'NULL'
    NUMERIC = 'NUMERIC'
    NVARCHAR = 'NVARCHAR'
    OTHER = 'OTHER'
    REAL = 'REAL'
    SMALLINT = 'SMALLINT'
    SQLXML = 'SQLXML'
    STRUCT = 'STRUCT'
    TIME = 'TIME'
    TIMESTAMP = 'TIMESTAMP'
    TINYINT = 'TINYINT'
    UNDEFINED = 'UNDEFINED'
    VARBINARY = 'VARBINARY'
    VARCHAR = 'VARCHAR'


class ResultFlag(StrEnum):
    """Role of a result mapping inside its result map."""

    ID = 'id'
    CONSTRUCTOR = 'constructor'


class StatementKind(StrEnum):
    """Kind of a mapped statement, named after its document key."""

    SELECT = 'select'
    INSERT = 'insert'
    UPDATE = 'update'
    DELETE = 'delete'


class ResultMapping(SchemaModel):
    """Mapping of one column (or nested result) to one property."""

    property: str | None = Field(
        default=None,
        title='Property path',
        description='Canonical property of the result type, or the constructor argument name.',
    )

    column: str | None = Field(
        default=None,
        title='Column',
        description='Column label read from result rows.',
    )

    value_type: type = Field(
        default=object,
        title='Value type',
        description='Declared type or the type inferred from the property writer.',
    )

    jdbc_type: JdbcType | None = Field(
        default=None,
        title='Column type',
    )

    nested_select_id: str | None = Field(
        default=None,
        title='Nested select',
        description='Qualified identifier of a statement loading the property.',
    )

    nested_result_map_id: str | None = Field(
        default=None,
        title='Nested result map',
        description='Qualified identifier of a result map building the property.',
    )

    not_null_columns: frozenset[str] = Field(
        default_factory=frozenset,
        title='Not null columns',
    )

    column_prefix: str | None = Field(
        default=None,
        title='Column prefix',
    )

    flags: frozenset[ResultFlag] = Field(
        default_factory=frozenset,
        title='Flags',
    )

    result_set: str | None = Field(
        default=None,
        title='Result set',
    )

    foreign_column: str | None = Field(
        default=None,
        title='Foreign column',
    )

    lazy: bool = Field(
        default=False,
        title='Lazy loading',
        description='Whether the nested select is deferred until first access.',
    )


class Discriminator(SchemaModel):
    """Column-driven choice between result maps."""

    mapping: ResultMapping = Field(
        title='Discriminator column',
    )

    cases: dict[str, str] = Field(
        default_factory=dict,
        title='Cases',
        description='Qualified result map identifier for every column value.',
    )


class ResultMap(SchemaModel):
    """Named set of result mappings for one result type."""

    id: str = Field(
        title='Identifier',
        description='Namespace-qualified identifier.',
    )

    type: builtins.type = Field(
        title='Result type',
    )

    mappings: tuple[ResultMapping, ...] = Field(
        default=(),
        title='Result mappings',
        description='Own mappings followed by inherited ones.',
    )

    discriminator: Discriminator | None = Field(
        default=None,
        title='Discriminator',
    )

    auto_mapping: bool | None = Field(
        default=None,
        title='Automatic mapping',
    )

    @property
    def id_mappings(self) -> tuple[ResultMapping, ...]:
        """Mappings flagged as identifiers, or all mappings when none are."""
        flagged = tuple(
            mapping
            for mapping in self.mappings
            if ResultFlag.ID in mapping.flags
        )

        return flagged or self.mappings

    @property
    def constructor_mappings(self) -> tuple[ResultMapping, ...]:
        """Mappings passed to the constructor of the result type."""
        return tuple(
            mapping
            for mapping in self.mappings
            if ResultFlag.CONSTRUCTOR in mapping.flags
        )

    @property
    def property_mappings(self) -> tuple[ResultMapping, ...]:
        """Mappings written through property writers."""
        return tuple(
            mapping
            for mapping in self.mappings
            if ResultFlag.CONSTRUCTOR not in mapping.flags
        )

    @property
    def mapped_columns(self) -> frozenset[str]:
        """Upper-cased labels of every mapped column."""
        return frozenset(
            mapping.column.upper()
            for mapping in self.mappings
            if mapping.column
        )

    @property
    def has_nested_result_maps(self) -> bool:
        """Check whether any mapping is built by another result map."""
        return any(mapping.nested_result_map_id for mapping in self.mappings)


class CacheDefinition(SchemaModel):
    """Cache declared by a namespace.

    Declarations are only recorded; no cache is instantiated.
    """

    id: Namespace

    type: str = Field(
        default='PERPETUAL',
        title='Implementation',
    )

    eviction: str = Field(
        default='LRU',
        title='Eviction policy',
    )

    flush_interval: int | None = Field(
        default=None,
        ge=0,
        title='Flush interval in milliseconds',
    )

    size: int | None = Field(
        default=None,
        ge=0,
        title='Size',
    )

    read_write: bool = Field(
        default=True,
        title='Read-write',
        description='Whether cached objects are copied before being returned.',
    )

    blocking: bool = Field(
        default=False,
        title='Blocking',
    )

    properties: dict[str, str] = Field(
        default_factory=dict,
        title='Implementation properties',
    )


class MappedStatement(SchemaModel):
    """Fully built statement."""

    id: str = Field(
        title='Identifier',
        description='Namespace-qualified identifier.',
    )

    resource: str | None = Field(
        default=None,
        title='Resource',
    )

    kind: StatementKind

    sql: str = Field(
        title='SQL text',
        description='Statement body with every included fragment expanded.',
    )

    parameters: tuple[str, ...] = Field(
        default=(),
        title='Parameter placeholders',
        description='Property paths of `#{...}` placeholders in order of appearance.',
    )

    parameter_type: type | None = Field(
        default=None,
        title='Parameter type',
    )

    result_type: type | None = Field(
        default=None,
        title='Result type',
    )

    result_map_ids: tuple[str, ...] = Field(
        default=(),
        title='Result maps',
    )

    cache_id: str | None = Field(
        default=None,
        title='Cache',
        description='Namespace of the cache used by the statement.',
    )

    use_cache: bool = Field(
        default=False,
        title='Use cache',
    )

    flush_cache: bool = Field(
        default=False,
        title='Flush cache',
    )

    database_id: str | None = Field(
        default=None,
        title='Database identifier',
    )

    timeout: int | None = Field(
        default=None,
        ge=0,
        title='Timeout in seconds',
    )

    fetch_size: int | None = Field(
        default=None,
        ge=0,
        title='Fetch size',
    )


class UnresolvedFragment(SchemaModel):
    """Fragment still pending after the last resolution pass."""

    kind: FragmentKind

    identity: str = Field(
        title='Identifier',
    )

    resource: str | None = Field(
        default=None,
        title='Resource',
    )

    reference: str | None = Field(
        default=None,
        title='Missing reference',
    )

    def describe(self) -> str:
        """Single-line description used in error reports."""
        message = f'{self.kind} {self.identity!r}'

        if self.reference:
            message += f' references unknown {self.reference!r}'
        if self.resource:
            message += f' (in {self.resource!r})'

        return message
