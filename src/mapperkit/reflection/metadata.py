"""Navigation of property paths across nested types.

`ObjectMetadata` pairs a type with a `DescriptorFactory` and answers
questions about dotted and indexed property paths, descending into the
declared type of every intermediate segment.
"""

from typing import TYPE_CHECKING

from mapperkit.errors import NoSuchAccessorError

from .path import PropertyPath
from .types import element_type, is_container, raw_type

if TYPE_CHECKING:
    from typing import Self

    from .accessors import ReadAccessor, WriteAccessor
    from .descriptor import DescriptorFactory, TypeDescriptor


class ObjectMetadata:
    """Stateless view over the descriptor of one type.

    Attributes:
        type: Described class.
        factory: Descriptor source shared by nested views.
        descriptor: Descriptor of `type`.
    """

    def __init__(self, type_: type, factory: 'DescriptorFactory') -> None:
        """Initialize the view.

        Raises:
            ReflectionError: If the type cannot be introspected.
        """
        self.type = type_
        self.factory = factory
        self.descriptor: TypeDescriptor = factory.find_for_type(type_)

    @classmethod
    def for_type(cls, type_: type, factory: 'DescriptorFactory') -> 'Self':
        """Build a view of a type."""
        return cls(type_, factory)

    def __repr__(self) -> str:
        """Debug representation."""
        return f'{type(self).__name__}({self.type.__qualname__})'

    def metadata_for_property(self, name: str) -> 'ObjectMetadata':
        """Build the view of the type read by a property.

        Raises:
            NoSuchAccessorError: If the property has no reader.
        """
        return ObjectMetadata(self.descriptor.getter_type(name), self.factory)

    def _segment_getter_type(self, segment: PropertyPath) -> type:
        """Resolve the type read by one path segment.

        Indexed segments over homogeneous containers resolve to the
        declared element type when the declaration carries one.
        """
        value_type = self.descriptor.getter_type(segment.name)

        if segment.index is None or not is_container(value_type):
            return value_type

        declared = self.descriptor.read_accessor(segment.name).declared_type
        if (element := element_type(declared)) is None:
            return value_type

        if (element_class := raw_type(element)) is object:
            return value_type

        return element_class

    def getter_type(self, path: str) -> type:
        """Resolve the type read by a property path.

        Args:
            path: Property expression, e.g. `orders[0].customer.name`.

        Returns:
            Raw type of the last segment.

        Raises:
            NoSuchAccessorError: If a segment has no reader.
        """
        segment = PropertyPath(path)
        value_type = self._segment_getter_type(segment)

        if segment.children is None:
            return value_type

        return ObjectMetadata(value_type, self.factory).getter_type(segment.children)

    def setter_type(self, path: str) -> type:
        """Resolve the type accepted by the last segment of a path.

        Raises:
            NoSuchAccessorError: If an intermediate segment has no reader
                or the last segment has no writer.
        """
        segment = PropertyPath(path)

        if segment.children is None:
            return self.descriptor.setter_type(segment.name)

        return self.metadata_for_property(segment.name).setter_type(segment.children)

    def has_getter(self, path: str) -> bool:
        """Check whether every segment of a path is readable."""
        segment = PropertyPath(path)

        if not self.descriptor.has_getter(segment.name):
            return False

        if segment.children is None:
            return True

        try:
            nested = ObjectMetadata(self._segment_getter_type(segment), self.factory)
        except NoSuchAccessorError:
            return False

        return nested.has_getter(segment.children)

    def has_setter(self, path: str) -> bool:
        """Check whether every segment of a path is writable.

        Intermediate segments must also be readable to be navigated.
        """
        segment = PropertyPath(path)

        if not self.descriptor.has_setter(segment.name):
            return False

        if segment.children is None:
            return True

        if not self.descriptor.has_getter(segment.name):
            return False

        return self.metadata_for_property(segment.name).has_setter(segment.children)

    def find_property(self, name: str, use_camel_case_mapping: bool = False) -> str | None:
        """Canonicalize a property path case-insensitively.

        Resolution stops at the first segment that does not match, and the
        resolved prefix is returned.

        Args:
            name: Property expression, e.g. `USER.address.CITY`.
            use_camel_case_mapping: Whether underscores are ignored, so that
                `user_name` matches `userName`.

        Returns:
            The canonical dotted path, or `None` if nothing resolves.
        """
        if use_camel_case_mapping:
            name = name.replace('_', '')

        resolved = self._build_property(name, [])
        return '.'.join(resolved) or None

    def _build_property(self, name: str, resolved: list[str]) -> list[str]:
        """Accumulate canonical segment names of a path."""
        segment = PropertyPath(name)

        if (canonical := self.descriptor.find_property_name(segment.name)) is None:
            return resolved

        resolved.append(canonical)

        if segment.children is None or not self.descriptor.has_getter(canonical):
            return resolved

        return self.metadata_for_property(canonical)._build_property(segment.children, resolved)

    def getter_names(self) -> tuple[str, ...]:
        """Names of readable properties."""
        return self.descriptor.readable_names

    def setter_names(self) -> tuple[str, ...]:
        """Names of writable properties."""
        return self.descriptor.writable_names

    def read_accessor(self, name: str) -> 'ReadAccessor':
        """Reader of a property of this type."""
        return self.descriptor.read_accessor(name)

    def write_accessor(self, name: str) -> 'WriteAccessor':
        """Writer of a property of this type."""
        return self.descriptor.write_accessor(name)

    def has_default_constructor(self) -> bool:
        """Check whether the type can be instantiated without arguments."""
        return self.descriptor.has_default_constructor
