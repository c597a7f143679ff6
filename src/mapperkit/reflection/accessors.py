"""Bound read and write capabilities for a single property.

An accessor pairs one discovered property with the member that backs it
(a getter or setter method, a `property`, or a plain attribute) and the
type it reads or writes. Only two variants exist: `ReadAccessor` and
`WriteAccessor`.
"""

from collections.abc import Callable
from typing import Any, Literal

from pydantic import Field

from mapperkit.models import SchemaModel

#: Kind of member backing an accessor.
type MemberKind = Literal['method', 'property', 'field']


class BaseAccessor(SchemaModel):
    """Common metadata of read and write accessors."""

    name: str = Field(
        title='Property name',
        description='Canonical name of the property this accessor serves.',
    )

    member: str = Field(
        title='Member name',
        description='Attribute name of the backing member on the owner type.',
    )

    kind: MemberKind = Field(
        title='Member kind',
        description='Whether the property is backed by a method, a property or a field.',
    )

    value_type: type = Field(
        title='Raw value type',
        description='Class of the value read or written, without generic arguments.',
    )

    declared_type: Any = Field(
        default=None,
        title='Declared type',
        description=(
            'Annotation as declared on the member, with type parameters '
            'substituted. Keeps generic arguments such as `list[Order]`.'
        ),
    )


class ReadAccessor(BaseAccessor):
    """Capability reading a property value from an instance."""

    reader: Callable[[Any], Any] = Field(
        title='Reader',
        description='Callable reading the value from an instance.',
    )

    def __call__(self, instance: Any) -> Any:  # noqa: ANN401
        """Read the property value from an instance."""
        return self.reader(instance)


class WriteAccessor(BaseAccessor):
    """Capability writing a property value to an instance."""

    writer: Callable[[Any, Any], None] = Field(
        title='Writer',
        description='Callable writing a value to an instance.',
    )

    def __call__(self, instance: Any, value: Any) -> None:  # noqa: ANN401
        """Write a property value to an instance."""
        self.writer(instance, value)


type Accessor = ReadAccessor | WriteAccessor


def method_reader(member: str) -> Callable[[Any], Any]:
    """Build a reader calling a zero-argument method."""
    def read(instance: Any) -> Any:  # noqa: ANN401
        return getattr(instance, member)()

    return read


def method_writer(member: str) -> Callable[[Any, Any], None]:
    """Build a writer calling a one-argument method."""
    def write(instance: Any, value: Any) -> None:  # noqa: ANN401
        getattr(instance, member)(value)

    return write


def attribute_reader(member: str) -> Callable[[Any], Any]:
    """Build a reader fetching an attribute or property."""
    def read(instance: Any) -> Any:  # noqa: ANN401
        return getattr(instance, member)

    return read


def attribute_writer(member: str) -> Callable[[Any, Any], None]:
    """Build a writer assigning an attribute or property."""
    def write(instance: Any, value: Any) -> None:  # noqa: ANN401
        setattr(instance, member, value)

    return write
