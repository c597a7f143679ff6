"""Helpers reducing declared annotations to concrete classes.

Declared member types may be plain classes, parameterized generics,
optional unions, type variables or unresolved forward references. The
helpers in this module reduce them to the raw class used for subtype
checks, substitute type variables bound by parameterized base classes,
and extract element types of homogeneous containers.
"""

from collections.abc import Collection, Mapping
from types import NoneType, UnionType
from typing import Annotated, Any, ClassVar, Final, Literal, TypeVar, Union, get_args, get_origin

#: Sequences of characters or bytes, never indexed by element type.
_TEXT_TYPES = (str, bytes, bytearray)

#: Wrappers that only qualify the underlying annotation.
_QUALIFIERS = (Annotated, ClassVar, Final)


def unwrap(annotation: Any) -> Any:  # noqa: ANN401
    """Strip qualifiers and optional unions from an annotation.

    `Annotated[X, ...]`, `ClassVar[X]`, `Final[X]` and `X | None` are all
    reduced to `X`. Other unions are returned unchanged.
    """
    origin = get_origin(annotation)

    if origin in _QUALIFIERS:
        args = get_args(annotation)
        return unwrap(args[0]) if args else Any

    if origin in (Union, UnionType):
        args = [arg for arg in get_args(annotation) if arg is not NoneType]
        if len(args) == 1:
            return unwrap(args[0])

    return annotation


def raw_type(annotation: Any) -> type:  # noqa: ANN401, PLR0911
    """Reduce an annotation to a concrete class.

    Args:
        annotation: Declared annotation.

    Returns:
        The generic origin for parameterized types, the bound of a type
        variable, the class itself for plain classes, and `object` for
        anything that cannot be reduced (unions, `Any`, strings).
    """
    if annotation is None or annotation is NoneType:
        return NoneType

    annotation = unwrap(annotation)
    origin = get_origin(annotation)

    if origin in (Union, UnionType):
        return object

    if origin is Literal:
        kinds = {type(arg) for arg in get_args(annotation)}
        return kinds.pop() if len(kinds) == 1 else object

    if origin is not None:
        return origin if isinstance(origin, type) else object

    if isinstance(annotation, TypeVar):
        if annotation.__bound__ is not None:
            return raw_type(annotation.__bound__)
        return object

    if isinstance(annotation, type):
        return annotation

    return object


def is_assignable(target: type, source: type) -> bool:
    """Check whether values of `source` are acceptable where `target` is expected."""
    try:
        return issubclass(source, target)
    except TypeError:
        return False


def is_container(value_type: type) -> bool:
    """Check whether a class is a homogeneous (non-mapping, non-text) container."""
    if not is_assignable(Collection, value_type):
        return False

    return not (
        is_assignable(Mapping, value_type)
        or any(is_assignable(kind, value_type) for kind in _TEXT_TYPES)
    )


def element_type(annotation: Any) -> Any | None:  # noqa: ANN401
    """Extract the declared element type of a container annotation.

    Args:
        annotation: Declared container annotation, e.g. `list[Order]`.

    Returns:
        The element annotation, or `None` if the declaration does not
        carry a single element type.
    """
    annotation = unwrap(annotation)
    args = get_args(annotation)

    if get_origin(annotation) is tuple:
        if len(args) == 2 and args[1] is Ellipsis:  # noqa: PLR2004
            return args[0]
        return None

    if len(args) == 1:
        return args[0]

    return None


def type_parameters(owner: type) -> dict[TypeVar, Any]:
    """Collect type variable bindings declared by parameterized bases.

    For `class IntBox(Box[int])` the result maps the `T` of `Box` to
    `int`. Bindings are chained through intermediate generic classes.

    Args:
        owner: Class whose hierarchy is inspected.

    Returns:
        Mapping of type variables to their bound annotations.
    """
    bindings: dict[TypeVar, Any] = {}

    for klass in owner.__mro__:
        for base in vars(klass).get('__orig_bases__', ()):
            origin = get_origin(base)
            parameters = getattr(origin, '__parameters__', ())
            for parameter, argument in zip(parameters, get_args(base), strict=False):
                bindings.setdefault(parameter, substitute(argument, bindings))

    return bindings


def substitute(annotation: Any, bindings: dict[TypeVar, Any]) -> Any:  # noqa: ANN401
    """Replace bound type variables inside an annotation.

    Args:
        annotation: Declared annotation, possibly generic.
        bindings: Type variable bindings of the owner type.

    Returns:
        The annotation with every bound type variable replaced.
    """
    if not bindings:
        return annotation

    if isinstance(annotation, TypeVar):
        return bindings.get(annotation, annotation)

    parameters = getattr(annotation, '__parameters__', ())
    if not parameters:
        return annotation

    try:
        return annotation[tuple(bindings.get(parameter, parameter) for parameter in parameters)]
    except TypeError:
        return annotation
