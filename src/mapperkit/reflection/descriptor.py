"""Per-type introspection cache.

A `TypeDescriptor` normalizes the accessor styles found on a Python class
into a single property model:

- camelCase getter and setter methods (`getName`, `isActive`, `setName`);
- snake_case getter and setter methods (`get_name`, `is_active`, `set_name`);
- `property` and `functools.cached_property` members;
- annotated class attributes and `__slots__` entries (field-level access).

Descriptors are immutable once built and are shared through a
`DescriptorFactory`, which builds at most one published descriptor per
type even under concurrent first use.
"""

import logging
from functools import cached_property
from inspect import Parameter, get_annotations, isabstract, isfunction, signature
from re import ASCII
from re import compile as regexp
from threading import Lock
from typing import TYPE_CHECKING, Any, ClassVar, Final, NamedTuple, get_args, get_origin, get_type_hints

from mapperkit.errors import AmbiguousAccessorError, NoSuchAccessorError, ReflectionError

from .accessors import (
    ReadAccessor,
    WriteAccessor,
    attribute_reader,
    attribute_writer,
    method_reader,
    method_writer,
)
from .types import is_assignable, raw_type, substitute, type_parameters

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from .accessors import MemberKind

logger = logging.getLogger(__name__)

#: Getter methods: `getName`, `isActive`, `get_name`, `is_active`.
GETTER_PATTERN = regexp(
    r'^(?P<prefix>get|is)(_(?P<snake>[a-z]\w*)|(?P<camel>[A-Z]\w*))$',
    flags=ASCII,
)

#: Setter methods: `setName`, `set_name`.
SETTER_PATTERN = regexp(
    r'^set(_(?P<snake>[a-z]\w*)|(?P<camel>[A-Z]\w*))$',
    flags=ASCII,
)

#: Names starting with this marker are never exposed as properties.
RESERVED_MARKER = '_'

#: Bookkeeping names of the runtime and of pydantic models.
HOUSEKEEPING_NAMES = frozenset({
    'class',
    'model_computed_fields',
    'model_config',
    'model_extra',
    'model_fields',
    'model_fields_set',
})

_POSITIONAL = (Parameter.POSITIONAL_ONLY, Parameter.POSITIONAL_OR_KEYWORD)


class _Candidate(NamedTuple):
    """Accessor candidate found during discovery."""

    name: str
    member: str
    kind: 'MemberKind'
    declared: Any
    value_type: type
    prefix: str | None = None


def decapitalize(name: str) -> str:
    """Turn a method suffix into a property name.

    The first character is lowered unless the first two characters are
    both upper case, so `Name` becomes `name` and `URL` stays `URL`.
    """
    if not name or (len(name) > 1 and name[0].isupper() and name[1].isupper()):
        return name

    return name[0].lower() + name[1:]


def is_valid_property_name(name: str) -> bool:
    """Check whether a discovered name may be exposed as a property."""
    return not name.startswith(RESERVED_MARKER) and name not in HOUSEKEEPING_NAMES


def _property_name(match: Any) -> str:  # noqa: ANN401
    """Build a property name from a getter or setter pattern match."""
    if snake := match.group('snake'):
        return snake

    return decapitalize(match.group('camel'))


def _hints(function: 'Callable[..., Any]') -> dict[str, Any]:
    """Resolve annotations of a function.

    Forward references that cannot be resolved fall back to the raw
    annotations, which later reduce to `object`.
    """
    try:
        return get_type_hints(function)
    except (NameError, TypeError):
        return dict(getattr(function, '__annotations__', {}))


def _is_final(annotation: Any) -> bool:  # noqa: ANN401
    """Check whether an attribute annotation declares an immutable name."""
    if annotation is Final or get_origin(annotation) is Final:
        return True

    if get_origin(annotation) is ClassVar:
        return any(_is_final(argument) for argument in get_args(annotation))

    return False


def _positional(function: 'Callable[..., Any]') -> list[Parameter]:
    """List positional parameters of a method, excluding the receiver."""
    try:
        parameters = list(signature(function).parameters.values())
    except (TypeError, ValueError):
        return []

    return [
        parameter
        for parameter in parameters[1:]
        if parameter.kind in _POSITIONAL
    ]


class TypeDescriptor:
    """Cached set of readable and writable properties of one type.

    Attributes:
        type: Introspected class.
        readable_names: Ordered names of properties with a reader.
        writable_names: Ordered names of properties with a writer.
    """

    def __init__(self, type_: type) -> None:
        """Introspect a class.

        Args:
            type_: Class to introspect.

        Raises:
            ReflectionError: If `type_` is not a class.
            AmbiguousAccessorError: If accessor candidates of one
                property have conflicting types.
        """
        if not isinstance(type_, type):
            raise ReflectionError(f'Can not introspect non-class object {type_!r}')

        self.type = type_

        self._bindings = type_parameters(type_)
        self._getters: dict[str, ReadAccessor] = {}
        self._setters: dict[str, WriteAccessor] = {}
        self._default_constructor = self._find_default_constructor(type_)

        getters, setters = self._collect_methods(type_)
        self._resolve_getter_conflicts(getters)
        self._resolve_setter_conflicts(setters)
        self._add_fields(type_)

        self.readable_names = tuple(self._getters)
        self.writable_names = tuple(self._setters)

        self._case_insensitive = {
            name.upper(): name
            for name in (*self.readable_names, *self.writable_names)
        }

    def __repr__(self) -> str:
        """Debug representation."""
        return f'{type(self).__name__}({self.type.__qualname__})'

    @staticmethod
    def _find_default_constructor(type_: type) -> 'Callable[[], Any] | None':
        """Return the class if it can be called without arguments."""
        if isabstract(type_) or getattr(type_, '_is_protocol', False):
            return None

        try:
            parameters = signature(type_).parameters.values()
        except (TypeError, ValueError):
            return None

        if all(
            parameter.default is not Parameter.empty
            or parameter.kind in (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD)
            for parameter in parameters
        ):
            return type_

        return None

    def _declared(self, annotation: Any) -> tuple[Any, type]:  # noqa: ANN401
        """Substitute type parameters and reduce an annotation.

        A missing annotation (`None`) is treated as `Any`.
        """
        if annotation is None:
            return Any, object

        declared = substitute(annotation, self._bindings)
        return declared, raw_type(declared)

    @staticmethod
    def _members(type_: type) -> 'Iterable[tuple[str, Any]]':
        """Iterate over members visible on a class, most specific first.

        A member overridden by a subclass is only yielded once, for the
        subclass declaration.
        """
        seen: set[str] = set()
        for klass in type_.__mro__:
            if klass is object:
                continue
            for name, member in vars(klass).items():
                if name in seen:
                    continue
                seen.add(name)
                yield name, member

    def _collect_methods(self, type_: type) -> tuple[dict[str, list[_Candidate]],
                                                      dict[str, list[_Candidate]]]:
        """Collect getter and setter candidates grouped by property name."""
        getters: dict[str, list[_Candidate]] = {}
        setters: dict[str, list[_Candidate]] = {}

        for member_name, member in self._members(type_):
            if member_name.startswith(RESERVED_MARKER):
                continue

            if isinstance(member, property):
                self._collect_property(member_name, member, getters, setters)

            elif isinstance(member, cached_property):
                declared, value_type = self._declared(_hints(member.func).get('return'))
                getters.setdefault(member_name, []).append(_Candidate(
                    member_name, member_name, 'property', declared, value_type,
                ))

            elif isfunction(member):
                self._collect_method(member_name, member, getters, setters)

        return getters, setters

    def _collect_property(self, name: str, member: property,
                          getters: dict[str, list[_Candidate]],
                          setters: dict[str, list[_Candidate]]) -> None:
        """Collect candidates contributed by a `property` object."""
        declared, value_type = self._declared(None)

        if member.fget is not None:
            declared, value_type = self._declared(_hints(member.fget).get('return'))
            getters.setdefault(name, []).append(_Candidate(
                name, name, 'property', declared, value_type,
            ))

        if member.fset is not None:
            if parameters := _positional(member.fset):
                annotation = _hints(member.fset).get(parameters[0].name)
                if annotation is not None:
                    declared, value_type = self._declared(annotation)
            setters.setdefault(name, []).append(_Candidate(
                name, name, 'property', declared, value_type,
            ))

    def _collect_method(self, member_name: str, member: 'Callable[..., Any]',
                        getters: dict[str, list[_Candidate]],
                        setters: dict[str, list[_Candidate]]) -> None:
        """Collect a candidate contributed by a getter or setter method."""
        parameters = _positional(member)

        if not parameters and (match := GETTER_PATTERN.match(member_name)):
            name = _property_name(match)
            declared, value_type = self._declared(_hints(member).get('return'))
            getters.setdefault(name, []).append(_Candidate(
                name, member_name, 'method', declared, value_type, match.group('prefix'),
            ))

        elif len(parameters) == 1 and (match := SETTER_PATTERN.match(member_name)):
            name = _property_name(match)
            declared, value_type = self._declared(_hints(member).get(parameters[0].name))
            setters.setdefault(name, []).append(_Candidate(
                name, member_name, 'method', declared, value_type,
            ))

    def _ambiguous(self, name: str, *candidates: _Candidate) -> AmbiguousAccessorError:
        """Build an ambiguity error for a property."""
        members = ', '.join(
            f'{candidate.member}: {candidate.value_type.__qualname__}'
            for candidate in candidates
        )
        return AmbiguousAccessorError(
            f'Ambiguous accessors for property {name!r} in {self.type.__qualname__!r} '
            f'({members})',
            owner=self.type,
            name=name,
        )

    def _resolve_getter_conflicts(self, conflicting: dict[str, list[_Candidate]]) -> None:
        """Pick the most specific reader of every property."""
        for name, candidates in conflicting.items():
            winner: _Candidate | None = None

            for candidate in candidates:
                if winner is None:
                    winner = candidate
                    continue

                if candidate.value_type is winner.value_type:
                    if candidate.value_type is not bool:
                        raise self._ambiguous(name, winner, candidate)
                    if candidate.prefix == 'is':
                        winner = candidate

                elif is_assignable(candidate.value_type, winner.value_type):
                    continue

                elif is_assignable(winner.value_type, candidate.value_type):
                    winner = candidate

                else:
                    raise self._ambiguous(name, winner, candidate)

            if winner is not None:
                self._add_getter(winner)

    def _resolve_setter_conflicts(self, conflicting: dict[str, list[_Candidate]]) -> None:
        """Pick the best writer of every property.

        A writer accepting exactly the reader's type always wins. Otherwise
        the writer with the most specific parameter type is chosen.
        """
        for name, candidates in conflicting.items():
            getter = self._getters.get(name)
            getter_type = getter.value_type if getter else None

            match: _Candidate | None = None
            error: AmbiguousAccessorError | None = None

            for candidate in candidates:
                if candidate.value_type is getter_type:
                    match = candidate
                    break

                if error is None:
                    try:
                        match = self._pick_better_setter(match, candidate)
                    except AmbiguousAccessorError as exc:
                        match, error = None, exc

            if match is not None:
                self._add_setter(match)
            elif error is not None:
                raise error

    def _pick_better_setter(self, current: _Candidate | None,
                            candidate: _Candidate) -> _Candidate:
        """Choose between two writers by parameter specificity."""
        if current is None:
            return candidate

        if is_assignable(current.value_type, candidate.value_type):
            return candidate

        if is_assignable(candidate.value_type, current.value_type):
            return current

        raise self._ambiguous(candidate.name, current, candidate)

    def _add_getter(self, candidate: _Candidate) -> None:
        """Publish a reader for a candidate."""
        if not is_valid_property_name(candidate.name):
            return

        reader = method_reader if candidate.kind == 'method' else attribute_reader
        self._getters[candidate.name] = ReadAccessor(
            name=candidate.name,
            member=candidate.member,
            kind=candidate.kind,
            value_type=candidate.value_type,
            declared_type=candidate.declared,
            reader=reader(candidate.member),
        )

    def _add_setter(self, candidate: _Candidate) -> None:
        """Publish a writer for a candidate."""
        if not is_valid_property_name(candidate.name):
            return

        writer = method_writer if candidate.kind == 'method' else attribute_writer
        self._setters[candidate.name] = WriteAccessor(
            name=candidate.name,
            member=candidate.member,
            kind=candidate.kind,
            value_type=candidate.value_type,
            declared_type=candidate.declared,
            writer=writer(candidate.member),
        )

    @staticmethod
    def _annotations(klass: type) -> dict[str, Any]:
        """Resolve annotations declared directly on a class."""
        try:
            return get_annotations(klass, eval_str=True)
        except (NameError, SyntaxError, TypeError):
            return get_annotations(klass)

    @staticmethod
    def _slots(klass: type) -> tuple[str, ...]:
        """List `__slots__` entries declared directly on a class."""
        slots = vars(klass).get('__slots__', ())
        if isinstance(slots, str):
            return (slots,)

        return tuple(slots)

    def _add_fields(self, type_: type) -> None:
        """Add field-level accessors for attributes without accessors.

        Constants that are both immutable and shared across instances
        (`Final` names assigned in the class body) only get a reader.
        """
        for klass in type_.__mro__:
            if klass is object:
                continue

            annotations = self._annotations(klass)
            fields = {
                **annotations,
                **{slot: Any for slot in self._slots(klass) if slot not in annotations},
            }

            for name, annotation in fields.items():
                if not is_valid_property_name(name):
                    continue

                constant = _is_final(annotation) and name in vars(klass)

                declared, value_type = self._declared(annotation)
                candidate = _Candidate(name, name, 'field', declared, value_type)

                if name not in self._setters and not constant:
                    self._add_setter(candidate)

                if name not in self._getters:
                    self._add_getter(candidate)

    @property
    def has_default_constructor(self) -> bool:
        """Check whether the type can be instantiated without arguments."""
        return self._default_constructor is not None

    @property
    def default_constructor(self) -> 'Callable[[], Any]':
        """Zero-argument constructor of the type.

        Raises:
            ReflectionError: If the type has no zero-argument constructor.
        """
        if self._default_constructor is None:
            raise ReflectionError(f'There is no default constructor for {self.type.__qualname__!r}')

        return self._default_constructor

    def instantiate(self) -> Any:  # noqa: ANN401
        """Create a new instance with the zero-argument constructor."""
        return self.default_constructor()

    def has_getter(self, name: str) -> bool:
        """Check whether a readable property was discovered."""
        return name in self._getters

    def has_setter(self, name: str) -> bool:
        """Check whether a writable property was discovered."""
        return name in self._setters

    def read_accessor(self, name: str) -> ReadAccessor:
        """Return the reader of a property.

        Raises:
            NoSuchAccessorError: If the property has no reader.
        """
        if (accessor := self._getters.get(name)) is None:
            raise NoSuchAccessorError(
                f'There is no getter for property named {name!r} in {self.type.__qualname__!r}',
                owner=self.type,
                name=name,
            )

        return accessor

    def write_accessor(self, name: str) -> WriteAccessor:
        """Return the writer of a property.

        Raises:
            NoSuchAccessorError: If the property has no writer.
        """
        if (accessor := self._setters.get(name)) is None:
            raise NoSuchAccessorError(
                f'There is no setter for property named {name!r} in {self.type.__qualname__!r}',
                owner=self.type,
                name=name,
            )

        return accessor

    def getter_type(self, name: str) -> type:
        """Return the raw type read by a property.

        Raises:
            NoSuchAccessorError: If the property has no reader.
        """
        return self.read_accessor(name).value_type

    def setter_type(self, name: str) -> type:
        """Return the raw type accepted by a property.

        Raises:
            NoSuchAccessorError: If the property has no writer.
        """
        return self.write_accessor(name).value_type

    def find_property_name(self, name: str) -> str | None:
        """Resolve a property name case-insensitively.

        Returns:
            The canonical property name, or `None` if nothing matches.
        """
        return self._case_insensitive.get(name.upper())


class DescriptorFactory:
    """Source of type descriptors with an optional per-type cache.

    With caching enabled, exactly one descriptor is ever published per
    type. Concurrent first uses may build several descriptors, but only
    the first one published is kept and the others are dropped.
    """

    def __init__(self, cache_enabled: bool = True) -> None:
        """Initialize the factory.

        Args:
            cache_enabled: Whether descriptors are cached per type.
        """
        self.cache_enabled = cache_enabled

        self._descriptors: dict[type, TypeDescriptor] = {}
        self._lock = Lock()

    def find_for_type(self, type_: type) -> TypeDescriptor:
        """Return the descriptor of a type, building it on first use.

        Raises:
            ReflectionError: If the type cannot be introspected.
        """
        if not self.cache_enabled:
            return TypeDescriptor(type_)

        if (cached := self._descriptors.get(type_)) is not None:
            return cached

        descriptor = TypeDescriptor(type_)

        with self._lock:
            published = self._descriptors.setdefault(type_, descriptor)

        if published is not descriptor:
            logger.debug('Dropping duplicate descriptor of %r', type_)
        else:
            logger.debug('Published descriptor of %r', type_)

        return published

    def clear(self) -> None:
        """Forget every cached descriptor."""
        with self._lock:
            self._descriptors.clear()
