"""Tests for call argument naming."""

from typing import Annotated

import pytest

from mapperkit.errors import BindingError
from mapperkit.models import MapperSettings
from mapperkit.reflection import Param, ParameterNameMap, ParamMap
from mapperkit.session import ResultHandler, RowBounds

from .examples.models import CollectingHandler, User


def find_by_id(user_id: int) -> User: ...


def find_by_name(first: str, last: str) -> list[User]: ...


def find_page(name: str, bounds: RowBounds, handler: ResultHandler) -> None: ...


def find_explicit(user_id: Annotated[int, Param('id')], name: str) -> User: ...


def find_single_explicit(user_id: Annotated[int, Param('id')]) -> User: ...


def find_positional(first: str, /, last: str) -> list[User]: ...


def find_variadic(name: str, *names: str, limit: int = 10, **options: str) -> None: ...


def find_shadowing(param2: str, other: str) -> None: ...


class UserMapper:
    """Mapper interface declared as a class."""

    def find(self, user_id: int, name: str) -> User: ...

    @classmethod
    def count(cls, name: str) -> int: ...


@pytest.fixture
def ordinal_settings() -> MapperSettings:
    """Provide settings naming arguments by position."""
    return MapperSettings(use_actual_param_name=False)


def test_source_names(settings: MapperSettings) -> None:
    """Name parameters after their source names."""
    names = ParameterNameMap(find_by_name, settings)

    assert names.names() == ('first', 'last')
    assert list(names) == [(0, 'first'), (1, 'last')]
    assert len(names) == 2
    assert not names.has_explicit_names


def test_ordinal_names(ordinal_settings: MapperSettings) -> None:
    """Name parameters by ordinal when source names are disabled."""
    names = ParameterNameMap(find_by_name, ordinal_settings)

    assert names.names() == ('0', '1')
    assert names.bind((10, 20)) == {'0': 10, '1': 20, 'param1': 10, 'param2': 20}


def test_control_parameters(settings: MapperSettings) -> None:
    """Skip row bounds and result handlers."""
    names = ParameterNameMap(find_page, settings)

    assert list(names) == [(0, 'name')]


def test_control_parameter_ordinals(ordinal_settings: MapperSettings) -> None:
    """Count ordinals among named parameters only."""
    def find(bounds: RowBounds, first: str, handler: ResultHandler, last: str) -> None: ...

    names = ParameterNameMap(find, ordinal_settings)

    assert list(names) == [(1, '0'), (3, '1')]


def test_explicit_names(ordinal_settings: MapperSettings) -> None:
    """Prefer explicit names over source names and ordinals."""
    names = ParameterNameMap(find_explicit, ordinal_settings)

    assert names.names() == ('id', '1')
    assert names.has_explicit_names


def test_positional_only_names(settings: MapperSettings) -> None:
    """Name positional-only parameters by ordinal."""
    names = ParameterNameMap(find_positional, settings)

    assert names.names() == ('0', 'last')


def test_variadic_parameters(settings: MapperSettings) -> None:
    """Ignore variadic and keyword-only parameters."""
    names = ParameterNameMap(find_variadic, settings)

    assert names.names() == ('name',)


@pytest.mark.parametrize('function', (
    pytest.param(UserMapper.find, id='unbound'),
    pytest.param(UserMapper().find, id='bound'),
))
def test_method_receiver(function: object, settings: MapperSettings) -> None:
    """Never name the receiver of a method."""
    names = ParameterNameMap(function, settings)

    assert names.names() == ('user_id', 'name')


def test_classmethod_receiver(settings: MapperSettings) -> None:
    """Never name the class of a class method."""
    assert ParameterNameMap(UserMapper.count, settings).names() == ('name',)


@pytest.mark.parametrize('argv', (
    pytest.param(None, id='none'),
    pytest.param((), id='empty'),
))
def test_bind_without_arguments(argv: tuple | None, settings: MapperSettings) -> None:
    """Bind nothing without arguments."""
    assert ParameterNameMap(find_by_name, settings).named_arguments(argv) is None


def test_bind_without_named_parameters(settings: MapperSettings) -> None:
    """Bind nothing when every parameter is a control one."""
    def find(bounds: RowBounds) -> None: ...

    assert ParameterNameMap(find, settings).named_arguments((RowBounds(),)) is None


def test_bind_single_argument(settings: MapperSettings) -> None:
    """Bind a single argument as the value itself."""
    user = User()

    assert ParameterNameMap(find_by_id, settings).bind((user,)) is user


def test_bind_single_explicit_argument(settings: MapperSettings) -> None:
    """Bind a single explicitly named argument by name."""
    bound = ParameterNameMap(find_single_explicit, settings).bind((7,))

    assert bound == {'id': 7, 'param1': 7}


def test_bind_around_control_arguments(settings: MapperSettings) -> None:
    """Bind the single named argument next to control arguments."""
    handler = CollectingHandler()
    bound = ParameterNameMap(find_page, settings).bind(('ann', RowBounds(limit=10), handler))

    assert bound == 'ann'


def test_bind_several_arguments(settings: MapperSettings) -> None:
    """Bind arguments by name with generic aliases."""
    bound = ParameterNameMap(find_by_name, settings).bind(('Ann', 'Lee'))

    assert isinstance(bound, ParamMap)
    assert bound == {'first': 'Ann', 'last': 'Lee', 'param1': 'Ann', 'param2': 'Lee'}


def test_bind_keeps_assigned_names(settings: MapperSettings) -> None:
    """Never replace an assigned name with a generic alias."""
    bound = ParameterNameMap(find_shadowing, settings).bind(('a', 'b'))

    assert bound == {'param2': 'a', 'param1': 'a', 'other': 'b'}


def test_missing_bound_name(settings: MapperSettings) -> None:
    """Report missing names with the available ones."""
    bound = ParameterNameMap(find_by_name, settings).bind(('Ann', 'Lee'))

    with pytest.raises(BindingError, match=r"^Parameter 'middle' not found. Available parameters"):
        bound['middle']
