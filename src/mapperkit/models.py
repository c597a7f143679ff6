"""Base Pydantic models and runtime settings.

This module defines the foundational model classes used by all built
configuration fragments, and the settings model that controls how
mapper documents are interpreted.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchemaModel(BaseModel):
    """Base immutable model for all built configuration fragments.

    Design principles enforced by this model:
        - Immutability: fragments cannot be modified once registered in
          a configuration. This keeps resolution deterministic when
          several sources are loaded concurrently.
        - Strict schema validation: unknown or extra fields are rejected
          to avoid silent errors caused by typos.

    All fragment models must inherit from this class.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
        extra='forbid',
    )


class SettingsModel(BaseSettings):
    """Base immutable model for runtime settings.

    Design principles enforced by this model:
        - Immutability: resolved settings cannot be modified after creation.
        - Tolerant schema handling: unknown or extra fields are ignored.
          This allows the surrounding environment to contain unrelated
          variables without breaking configuration resolution.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra='ignore',
    )


class MapperSettings(SettingsModel):
    """Settings controlling document interpretation and introspection.

    Values are read from `MAPPERKIT_*` environment variables when not
    passed explicitly.
    """

    model_config = SettingsConfigDict(
        env_prefix='MAPPERKIT_',
        frozen=True,
        extra='ignore',
    )

    use_actual_param_name: bool = Field(
        default=True,
        title='Use actual parameter names',
        description=(
            'Name call arguments after the source names of their parameters '
            'when no explicit override is declared. When disabled, ordinal '
            'positions are used instead.'
        ),
    )

    map_underscore_to_camel_case: bool = Field(
        default=False,
        title='Map underscores to camel case',
        description=(
            'Ignore underscores when matching column names against property '
            'names, so that `user_name` resolves to `userName`.'
        ),
    )

    lazy_loading_enabled: bool = Field(
        default=False,
        title='Lazy loading',
        description='Default fetch type of nested mappings when not declared.',
    )

    database_id: str | None = Field(
        default=None,
        title='Database identifier',
        description=(
            'Identifier of the current database vendor. Statements and SQL '
            'fragments declaring another `databaseId` are skipped.'
        ),
    )

    cache_enabled: bool = Field(
        default=True,
        title='Cache declarations',
        description='Whether statements use the cache declared by their namespace.',
    )

    reflector_cache_enabled: bool = Field(
        default=True,
        title='Descriptor cache',
        description='Whether type descriptors are built once per type and reused.',
    )
