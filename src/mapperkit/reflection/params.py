"""Naming of positional call arguments.

A mapped call receives positional arguments, while statements refer to
them by name. `ParameterNameMap` derives one stable name per declared
parameter of a callable:

- an explicit `Annotated[..., Param('name')]` override;
- otherwise the source name of the parameter, when enabled by settings;
- otherwise the ordinal of the parameter among named ones (`'0'`, `'1'`).

Control parameters (`RowBounds`, `ResultHandler`) are never named.
"""

from inspect import Parameter, signature
from typing import TYPE_CHECKING, Annotated, Any, get_args, get_origin, get_type_hints

from mapperkit.errors import BindingError
from mapperkit.models import MapperSettings, SchemaModel
from mapperkit.session import ResultHandler, RowBounds

from .types import is_assignable, raw_type

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

#: Prefix of the generic aliases added to bound arguments.
GENERIC_NAME_PREFIX = 'param'

#: Types of arguments that are never bound by name.
CONTROL_TYPES = (RowBounds, ResultHandler)

_POSITIONAL = (Parameter.POSITIONAL_ONLY, Parameter.POSITIONAL_OR_KEYWORD)

_RECEIVERS = ('self', 'cls')


class Param(SchemaModel):
    """Explicit argument name attached with `typing.Annotated`.

    Example:
        >>> def find(user_id: Annotated[int, Param('id')]) -> None: ...
    """

    name: str

    def __init__(self, name: str) -> None:
        """Declare the name of an argument."""
        super().__init__(name=name)


class ParamMap(dict[str, Any]):
    """Named arguments of one call.

    Reading a missing name raises `BindingError` listing the names that
    are available instead of `KeyError`.
    """

    def __missing__(self, key: str) -> Any:  # noqa: ANN401
        """Report a missing argument name."""
        raise BindingError(
            f'Parameter {key!r} not found. Available parameters are {list(self)}',
        )


def _is_control(annotation: Any) -> bool:  # noqa: ANN401
    """Check whether an annotation declares a control argument."""
    value_type = raw_type(annotation)

    return value_type is not object and any(
        is_assignable(control, value_type)
        for control in CONTROL_TYPES
    )


def _explicit_name(annotation: Any) -> str | None:  # noqa: ANN401
    """Extract a `Param` override from an `Annotated` declaration."""
    if get_origin(annotation) is not Annotated:
        return None

    for metadata in get_args(annotation)[1:]:
        if isinstance(metadata, Param):
            return metadata.name

    return None


def _is_unbound_method(function: 'Callable[..., Any]') -> bool:
    """Check whether a function was declared in a class body and taken unbound."""
    qualname = getattr(function, '__qualname__', '')
    owner, _, _ = qualname.rpartition('.')

    return bool(owner) and not owner.endswith('<locals>') and not hasattr(function, '__self__')


class ParameterNameMap:
    """Ordered names of the positional parameters of a callable.

    Attributes:
        function: Inspected callable.
        has_explicit_names: Whether any parameter carries a `Param` override.
    """

    def __init__(self, function: 'Callable[..., Any]',
                 settings: MapperSettings | None = None) -> None:
        """Inspect a callable.

        Args:
            function: Function, bound method or method taken from a class.
                The receiver of a method taken from a class is not named.
            settings: Settings deciding whether source names are used.
                Defaults are read from the environment when omitted.
        """
        settings = settings or MapperSettings()

        self.function = function
        self.has_explicit_names = False

        parameters = list(signature(function).parameters.values())
        if parameters and _is_unbound_method(function) and parameters[0].name in _RECEIVERS:
            parameters = parameters[1:]

        try:
            hints = get_type_hints(function, include_extras=True)
        except (NameError, TypeError):
            hints = {}

        names: dict[int, str] = {}

        for position, parameter in enumerate(parameters):
            if parameter.kind not in _POSITIONAL:
                continue

            annotation = hints.get(parameter.name, parameter.annotation)
            if _is_control(annotation):
                continue

            if (name := _explicit_name(annotation)) is not None:
                self.has_explicit_names = True
            elif settings.use_actual_param_name and parameter.kind is not Parameter.POSITIONAL_ONLY:
                name = parameter.name
            else:
                name = str(len(names))

            names[position] = name

        self._names = names

    def __repr__(self) -> str:
        """Debug representation."""
        return f'{type(self).__name__}({self._names!r})'

    def __len__(self) -> int:
        """Number of named parameters."""
        return len(self._names)

    def __iter__(self) -> 'Iterator[tuple[int, str]]':
        """Iterate over original positions and assigned names."""
        return iter(self._names.items())

    def names(self) -> tuple[str, ...]:
        """Assigned names in declaration order."""
        return tuple(self._names.values())

    def named_arguments(self, argv: 'Sequence[Any] | None') -> Any:  # noqa: ANN401
        """Bind positional call arguments to their names.

        Args:
            argv: Positional arguments of one call, including control ones.

        Returns:
            `None` without named parameters or arguments; the single
            argument itself for one parameter without explicit names;
            otherwise a `ParamMap` also holding `param1`, `param2`, ...
            aliases that never replace an assigned name.
        """
        if not argv or not self._names:
            return None

        if not self.has_explicit_names and len(self._names) == 1:
            position, = self._names
            return argv[position]

        assigned = set(self._names.values())
        bound = ParamMap()

        for ordinal, (position, name) in enumerate(self._names.items(), start=1):
            bound[name] = argv[position]

            generic = f'{GENERIC_NAME_PREFIX}{ordinal}'
            if generic not in assigned:
                bound[generic] = argv[position]

        return bound

    bind = named_arguments

