"""Introspection of declared object shapes.

This package normalizes the accessor styles found on Python classes into
a single property model and navigates dotted and indexed property paths
over it.

It provides:
- property path parsing (`PropertyPath`);
- per-type descriptors shared through a thread-safe factory
  (`TypeDescriptor`, `DescriptorFactory`);
- nested path navigation with element type resolution (`ObjectMetadata`);
- naming and binding of positional call arguments (`ParameterNameMap`);
- copying of instance state (`copy_properties`).
"""

from .accessors import Accessor, ReadAccessor, WriteAccessor
from .copier import copy_properties
from .descriptor import DescriptorFactory, TypeDescriptor
from .metadata import ObjectMetadata
from .params import GENERIC_NAME_PREFIX, Param, ParameterNameMap, ParamMap
from .path import PropertyPath

__all__ = (
    'GENERIC_NAME_PREFIX',
    'Accessor',
    'DescriptorFactory',
    'ObjectMetadata',
    'Param',
    'ParamMap',
    'ParameterNameMap',
    'PropertyPath',
    'ReadAccessor',
    'TypeDescriptor',
    'WriteAccessor',
    'copy_properties',
)
