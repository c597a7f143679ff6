"""Tests for type descriptors."""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier
from typing import TYPE_CHECKING

import pytest

from mapperkit.errors import AmbiguousAccessorError, NoSuchAccessorError, ReflectionError
from mapperkit.reflection import DescriptorFactory, TypeDescriptor
from mapperkit.reflection.descriptor import decapitalize

from .examples.models import (
    Acronyms,
    Address,
    AmbiguousReaders,
    AmbiguousWriters,
    Constants,
    Customer,
    DuplicateReaders,
    Flags,
    IntBox,
    Item,
    Narrowed,
    NarrowedWriters,
    Order,
    OverloadedWriters,
    Point3D,
    Report,
    User,
)

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.parametrize(('value', 'expected'), (
    pytest.param('Name', 'name', id='capitalized'),
    pytest.param('URL', 'URL', id='acronym'),
    pytest.param('X', 'x', id='single'),
    pytest.param('', '', id='empty'),
))
def test_decapitalize(value: str, expected: str) -> None:
    """Lower the first character unless the name starts with an acronym."""
    assert decapitalize(value) == expected


def test_annotated_fields() -> None:
    """Expose annotated class attributes as readable and writable."""
    descriptor = TypeDescriptor(Address)

    assert descriptor.readable_names == ('street', 'city')
    assert descriptor.writable_names == ('street', 'city')
    assert descriptor.getter_type('street') is str
    assert descriptor.read_accessor('city').kind == 'field'


def test_camel_case_methods_and_properties() -> None:
    """Discover camelCase accessor methods and properties."""
    descriptor = TypeDescriptor(Order)

    assert set(descriptor.readable_names) == {'number', 'total'}
    assert set(descriptor.writable_names) == {'number', 'total'}
    assert descriptor.read_accessor('number').member == 'getNumber'
    assert descriptor.write_accessor('number').member == 'setNumber'
    assert descriptor.getter_type('total') is Decimal
    assert descriptor.setter_type('total') is Decimal


def test_accessors_read_and_write() -> None:
    """Read and write values through discovered accessors."""
    descriptor = TypeDescriptor(Order)
    order = Order()

    descriptor.write_accessor('number')(order, 'A-1')
    descriptor.write_accessor('total')(order, Decimal('9.5'))

    assert descriptor.read_accessor('number')(order) == 'A-1'
    assert order.total == Decimal('9.5')


def test_snake_case_methods_and_containers() -> None:
    """Discover snake_case accessors next to annotated containers."""
    descriptor = TypeDescriptor(User)

    assert descriptor.getter_type('active') is bool
    assert descriptor.setter_type('active') is bool
    assert descriptor.getter_type('email') is str
    assert descriptor.getter_type('orders') is list
    assert descriptor.getter_type('attributes') is dict
    assert descriptor.read_accessor('orders').declared_type == list[Order]


def test_subclass_members() -> None:
    """Prefer members declared by the subclass."""
    descriptor = TypeDescriptor(Customer)

    assert set(descriptor.readable_names) == {
        'name', 'active', 'level', 'id', 'email', 'address', 'orders', 'tags', 'attributes',
    }
    assert descriptor.read_accessor('name').member == 'get_name'
    assert descriptor.write_accessor('name').kind == 'field'
    assert descriptor.has_setter('level')


def test_bound_type_parameters() -> None:
    """Substitute type parameters bound by a generic base."""
    descriptor = TypeDescriptor(IntBox)

    assert descriptor.getter_type('content') is int
    assert descriptor.getter_type('first') is int
    assert descriptor.read_accessor('items').declared_type == list[int]


def test_boolean_reader_prefix() -> None:
    """Prefer the `is` reader of a boolean property."""
    descriptor = TypeDescriptor(Flags)

    assert descriptor.readable_names == ('enabled',)
    assert descriptor.read_accessor('enabled').member == 'isEnabled'


def test_narrowed_reader() -> None:
    """Prefer the reader with the most specific type."""
    descriptor = TypeDescriptor(Narrowed)

    assert descriptor.getter_type('value') is str
    assert descriptor.read_accessor('value').member == 'get_value'


@pytest.mark.parametrize('type_', (
    pytest.param(AmbiguousReaders, id='unrelated-readers'),
    pytest.param(DuplicateReaders, id='same-type-readers'),
    pytest.param(AmbiguousWriters, id='unrelated-writers'),
))
def test_ambiguous_accessors(type_: type) -> None:
    """Refuse types with conflicting accessors."""
    with pytest.raises(AmbiguousAccessorError, match=r'^Ambiguous accessors for property') as error:
        TypeDescriptor(type_)

    assert error.value.owner is type_


def test_writer_matching_reader() -> None:
    """Prefer the writer accepting exactly the reader's type."""
    descriptor = TypeDescriptor(OverloadedWriters)

    assert descriptor.setter_type('value') is int
    assert descriptor.write_accessor('value').member == 'setValue'


def test_narrowed_writer() -> None:
    """Prefer the writer with the most specific parameter without a reader."""
    descriptor = TypeDescriptor(NarrowedWriters)

    assert not descriptor.has_getter('a')
    assert descriptor.setter_type('a') is bool
    assert descriptor.write_accessor('a').member == 'setA'


def test_constants_and_private_names() -> None:
    """Expose constants as read-only and hide private names."""
    descriptor = TypeDescriptor(Constants)

    assert descriptor.has_getter('VERSION')
    assert not descriptor.has_setter('VERSION')
    assert descriptor.has_setter('label')
    assert not descriptor.has_getter('_hidden')


def test_slotted_fields() -> None:
    """Expose slots declared along the hierarchy."""
    descriptor = TypeDescriptor(Point3D)
    point = Point3D(1, 2, 3)

    assert set(descriptor.readable_names) == {'x', 'y', 'z'}
    assert descriptor.read_accessor('x')(point) == 1

    descriptor.write_accessor('z')(point, 7)
    assert point.z == 7


def test_cached_and_read_only_properties() -> None:
    """Expose cached and getter-only properties as readable only."""
    descriptor = TypeDescriptor(Report)

    assert descriptor.getter_type('summary') is str
    assert descriptor.read_accessor('summary')(Report()) == '3 rows'
    assert not descriptor.has_setter('summary')
    assert not descriptor.has_setter('description')


def test_acronym_names() -> None:
    """Keep acronyms and resolve names case-insensitively."""
    descriptor = TypeDescriptor(Acronyms)

    assert descriptor.has_getter('URL')
    assert descriptor.has_getter('id')
    assert descriptor.find_property_name('url') == 'URL'
    assert descriptor.find_property_name('ID') == 'id'
    assert descriptor.find_property_name('missing') is None


def test_default_constructor() -> None:
    """Instantiate types constructible without arguments."""
    descriptor = TypeDescriptor(User)

    assert descriptor.has_default_constructor
    assert isinstance(descriptor.instantiate(), User)


def test_missing_default_constructor() -> None:
    """Refuse to instantiate types requiring arguments."""
    descriptor = TypeDescriptor(Item)

    assert descriptor.has_setter('sku')
    assert not descriptor.has_default_constructor

    with pytest.raises(ReflectionError, match=r'^There is no default constructor for'):
        descriptor.instantiate()


def test_missing_accessors() -> None:
    """Report accessors that were never discovered."""
    descriptor = TypeDescriptor(Address)

    with pytest.raises(NoSuchAccessorError, match=r"^There is no getter for property named 'zip'"):
        descriptor.getter_type('zip')

    with pytest.raises(NoSuchAccessorError, match=r"^There is no setter for property named 'zip'"):
        descriptor.write_accessor('zip')


def test_non_class() -> None:
    """Refuse to introspect objects that are not classes."""
    with pytest.raises(ReflectionError, match=r'^Can not introspect non-class object'):
        TypeDescriptor(Address())  # type: ignore[arg-type]


def test_factory_cache(factory: DescriptorFactory, mocker: 'MockerFixture') -> None:
    """Build the descriptor of a type only once."""
    build = mocker.patch(
        'mapperkit.reflection.descriptor.TypeDescriptor',
        wraps=TypeDescriptor,
    )

    first = factory.find_for_type(Address)
    second = factory.find_for_type(Address)

    assert first is second
    assert build.call_count == 1


def test_factory_without_cache(mocker: 'MockerFixture') -> None:
    """Build a new descriptor on every lookup when caching is disabled."""
    factory = DescriptorFactory(cache_enabled=False)
    build = mocker.patch(
        'mapperkit.reflection.descriptor.TypeDescriptor',
        wraps=TypeDescriptor,
    )

    assert factory.find_for_type(Address) is not factory.find_for_type(Address)
    assert build.call_count == 2


def test_factory_clear(factory: DescriptorFactory) -> None:
    """Forget cached descriptors."""
    first = factory.find_for_type(Address)
    factory.clear()

    assert factory.find_for_type(Address) is not first


def test_factory_concurrent_first_use(factory: DescriptorFactory) -> None:
    """Publish a single descriptor under concurrent first use."""
    workers = 8
    barrier = Barrier(workers)

    def find(_: int) -> TypeDescriptor:
        barrier.wait()
        return factory.find_for_type(Customer)

    with ThreadPoolExecutor(max_workers=workers) as executor:
        descriptors = list(executor.map(find, range(workers)))

    assert all(descriptor is descriptors[0] for descriptor in descriptors)
    assert factory.find_for_type(Customer) is descriptors[0]
