"""Mapper document loading and deferred resolution.

This package turns YAML mapper documents into a `Configuration` of
registered fragments.

It provides:
- a YAML-backed element tree with typed attribute access;
- builders of result maps, cache declarations, SQL fragments and
  statements, validated against the introspected result and parameter
  types;
- shared queues of fragments whose references are not admitted yet, and
  the resolution passes that retry them.

The primary public entry point is `ConfigurationLoader`, which admits
documents in any order and reports whatever could not be resolved.
"""

from .assistant import BuilderAssistant
from .configuration import Configuration, TypeAliasRegistry
from .mapping import (
    CacheDefinition,
    Discriminator,
    JdbcType,
    MappedStatement,
    ResultFlag,
    ResultMap,
    ResultMapping,
    StatementKind,
    UnresolvedFragment,
)
from .nodes import MapperLoader, Node, load_document
from .parser import ConfigurationLoader, MapperParser, MapperSource
from .pending import FragmentKind, PendingFragment, PendingRegistry
from .resolution import DeferredResolutionLoop
from .resolvers import CacheRefResolver, ResultMapResolver, StatementBuilder

__all__ = (
    'BuilderAssistant',
    'CacheDefinition',
    'CacheRefResolver',
    'Configuration',
    'ConfigurationLoader',
    'DeferredResolutionLoop',
    'Discriminator',
    'FragmentKind',
    'JdbcType',
    'MappedStatement',
    'MapperLoader',
    'MapperParser',
    'MapperSource',
    'Node',
    'PendingFragment',
    'PendingRegistry',
    'ResultFlag',
    'ResultMap',
    'ResultMapResolver',
    'ResultMapping',
    'StatementBuilder',
    'StatementKind',
    'TypeAliasRegistry',
    'UnresolvedFragment',
    'load_document',
)
